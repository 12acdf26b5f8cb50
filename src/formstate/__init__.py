"""
Hierarchical form-state engine.

A tree of controls (FormControl leaves, FormGroup composites) that tracks
value, validation status and touched/pristine flags, and keeps them
consistent across the whole tree after every mutation.

Quick Start:
    >>> from formstate import FormControl, FormGroup, Validators
    >>>
    >>> form = FormGroup({
    ...     'name': FormControl('', Validators.required),
    ...     'age': FormControl(None),
    ... })
    >>> form.status
    <ControlStatus.INVALID: 'INVALID'>
    >>> form.get('name').set_value('x')
    >>> form.value
    {'name': 'x', 'age': None}

Architecture:
    Value and validity propagate UP (node, then parent, to the root).
    Enable/disable, mark_as_pristine/mark_as_untouched and reset propagate
    DOWN by force-setting children, after which ancestors re-aggregate.

    Each control owns its notification channels:
    - value_changes: current aggregate value after each revalidation
    - status_changes: current status
    - view_refresh: payload-less, fired on the root once per mutation

Modules:
    - control: AbstractControl state machine
    - form_control: FormControl leaf and boxed FormState
    - form_group: FormGroup composite
    - validators: Validators, composition and option coercion
    - async_validation: async validator subscriptions
    - channels: EventChannel
    - path: dotted-path lookup
    - events: input-event value extraction
    - config: contextvar-scoped FormStateConfig
"""

from formstate.constants import (
    ControlStatus,
    UpdateOn,
    VALID,
    INVALID,
    PENDING,
    DISABLED,
    PATH_DELIMITER,
)

from formstate.config import (
    FormStateConfig,
    config_context,
    get_config,
    set_config,
    reset_config,
)

from formstate.channels import EventChannel

from formstate.validators import (
    Validators,
    ControlOptions,
    compose_validators,
    compose_async_validators,
    coerce_to_validator,
    coerce_to_async_validator,
)

from formstate.async_validation import AsyncValidationHandle, AsyncValidationLoopError

from formstate.control import AbstractControl
from formstate.form_control import FormControl, FormState, is_boxed_value
from formstate.form_group import FormGroup

from formstate.path import find_control
from formstate.events import is_event, extract_event_value

__all__ = [
    # Constants
    'ControlStatus',
    'UpdateOn',
    'VALID',
    'INVALID',
    'PENDING',
    'DISABLED',
    'PATH_DELIMITER',
    # Config
    'FormStateConfig',
    'config_context',
    'get_config',
    'set_config',
    'reset_config',
    # Channels
    'EventChannel',
    # Validators
    'Validators',
    'ControlOptions',
    'compose_validators',
    'compose_async_validators',
    'coerce_to_validator',
    'coerce_to_async_validator',
    'AsyncValidationHandle',
    'AsyncValidationLoopError',
    # Controls
    'AbstractControl',
    'FormControl',
    'FormState',
    'is_boxed_value',
    'FormGroup',
    # Navigation / input adapter
    'find_control',
    'is_event',
    'extract_event_value',
]

__version__ = "0.1.0"

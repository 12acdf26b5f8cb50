"""
FormControl: leaf control holding a single opaque value.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from formstate.async_validation import DeferredLoopErrors
from formstate.constants import UpdateOn
from formstate.control import AbstractControl, refresh_episode
from formstate.events import extract_event_value, is_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormState:
    """Boxed initial state: a value together with its disabled flag."""
    value: Any = None
    disabled: bool = False


def is_boxed_value(form_state: Any) -> bool:
    """True for FormState or a mapping with exactly the keys value and disabled."""
    if isinstance(form_state, FormState):
        return True
    return (
        isinstance(form_state, Mapping)
        and len(form_state) == 2
        and 'value' in form_state
        and 'disabled' in form_state
    )


class FormControl(AbstractControl):
    """Leaf node of the form tree.

    Args:
        form_state: Initial value, or a boxed ``FormState``/``{value, disabled}``
        validator_or_opts: Validator(s) or an options object
        async_validator: Async validator(s)

    The control is fully validated (without emitting) before it is returned.

    UI bindings drive it through ``on_change`` and ``on_blur``; with an
    ``update_on`` of blur or submit, ``on_change`` only records a pending
    value that ``on_blur`` (blur) or ``commit_pending`` (submit) applies.
    """

    def __init__(self, form_state: Any = None, validator_or_opts: Any = None, async_validator: Any = None):
        super().__init__(validator_or_opts, async_validator)
        self._apply_form_state(form_state)
        self.update_value_and_validity(only_self=True, emit_event=False)

    # ========== VARIANT HOOKS ==========

    def _for_each_child(self, callback: Callable[[AbstractControl, Any], None]) -> None:
        return None

    def _update_value(self) -> None:
        return None

    def _all_controls_disabled(self) -> bool:
        return self.disabled

    def _any_controls(self, condition: Callable[[AbstractControl], bool]) -> bool:
        return False

    # ========== VALUE ==========

    def set_value(self, value: Any, only_self: bool = False, emit_event: bool = True) -> None:
        """Assign the value (and the pending mirror) and revalidate."""
        self.value = self._pending_value = value
        self.update_value_and_validity(only_self=only_self, emit_event=emit_event)

    def patch_value(self, value: Any, only_self: bool = False, emit_event: bool = True) -> None:
        """Same as ``set_value`` for a leaf."""
        self.set_value(value, only_self=only_self, emit_event=emit_event)

    @refresh_episode
    def reset(self, form_state: Any = None, only_self: bool = False, emit_event: bool = True) -> None:
        """Reapply an initial state, mark pristine and untouched, revalidate."""
        steps = DeferredLoopErrors()
        steps.run(self._apply_form_state, form_state)
        self.mark_as_pristine(only_self=only_self)
        self.mark_as_untouched(only_self=only_self)
        self._pending_change = False
        steps.run(self.set_value, self.value, only_self=only_self, emit_event=emit_event)
        steps.raise_first()

    def _apply_form_state(self, form_state: Any) -> None:
        if is_boxed_value(form_state):
            if isinstance(form_state, FormState):
                value, disabled = form_state.value, form_state.disabled
            else:
                value, disabled = form_state['value'], form_state['disabled']
            self.value = self._pending_value = value
            if disabled:
                self.disable(only_self=True, emit_event=False)
            else:
                self.enable(only_self=True, emit_event=False)
        else:
            self.value = self._pending_value = form_state

    # ========== INPUT ADAPTER ==========

    @refresh_episode
    def on_change(self, event: Any) -> None:
        """Handle a raw value or an input event from the UI binding."""
        value = extract_event_value(event) if is_event(event) else event
        if self.update_on is UpdateOn.CHANGE:
            if not self.dirty:
                self.mark_as_dirty()
            self.set_value(value)
        else:
            self._pending_value = value
            self._pending_change = True
            self._pending_dirty = True

    @refresh_episode
    def on_blur(self) -> None:
        """Handle a blur: commit a pending blur-strategy value, mark touched."""
        steps = DeferredLoopErrors()
        if self.update_on is UpdateOn.BLUR and self._pending_change:
            steps.run(self.commit_pending)
        if not self.touched:
            self.mark_as_touched()
            self._request_view_refresh()
        steps.raise_first()

    def commit_pending(self) -> bool:
        """Apply a value recorded by ``on_change`` under blur/submit strategy.

        Returns:
            True if there was a pending value to apply
        """
        if not self._pending_change:
            return False
        if self._pending_dirty and not self.dirty:
            self.mark_as_dirty()
        self._pending_change = False
        self._pending_dirty = False
        self.set_value(self._pending_value)
        return True

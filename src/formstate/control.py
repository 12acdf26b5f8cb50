"""
AbstractControl: the shared state machine of every node in a form tree.

A control tracks a value, a validation status, its own sync-validator errors
and the touched/pristine interaction flags, and keeps them consistent with
the rest of the tree:

- value and validity flow UP: a mutation recomputes the node, then its
  parent, and so on to the root (unless ``only_self``)
- enable/disable, mark_as_untouched/mark_as_pristine and reset flow DOWN by
  force-setting every child, then the ancestors are recomputed by aggregation
- mark_as_touched/mark_as_dirty force-set the node and every ancestor

Concrete controls implement four capability hooks and nothing else:
``_for_each_child``, ``_update_value``, ``_all_controls_disabled`` and
``_any_controls``. ``FormControl`` is the leaf variant, ``FormGroup`` the
named-children composite.

Status precedence (evaluated once per recomputation):
    1. every reachable control disabled      -> DISABLED
    2. own sync validator returned errors    -> INVALID
    3. some enabled child PENDING            -> PENDING
    4. some enabled child INVALID            -> INVALID
    5. otherwise                             -> VALID

Notifications: every control owns ``value_changes``, ``status_changes`` and
``view_refresh`` channels. The view-refresh request is routed to the root and
coalesced so that one externally visible mutation (including its whole
root-ward walk) fires the root's ``view_refresh`` once.
"""

import functools
import logging
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Optional, Set

from formstate.async_validation import (
    AsyncValidationHandle,
    AsyncValidationLoopError,
    DeferredLoopErrors,
    subscribe_async_result,
)
from formstate.channels import EventChannel
from formstate.config import get_config
from formstate.constants import DISABLED, INVALID, PENDING, VALID, ControlStatus, UpdateOn
from formstate.path import ControlPath, find_control
from formstate.validators import (
    ErrorMap,
    as_options,
    coerce_to_async_validator,
    coerce_to_validator,
)

logger = logging.getLogger(__name__)


def refresh_episode(method):
    """Run ``method`` as one view-refresh episode of the control's tree."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._view_refresh_episode():
            return method(self, *args, **kwargs)
    return wrapper


class AbstractControl(ABC):
    """Base class of FormControl and FormGroup."""

    def __init__(self, validator_or_opts: Any = None, async_validator: Any = None):
        """
        Args:
            validator_or_opts: A validator, a sequence of validators, or an
                options object (mapping or ControlOptions) with
                ``validators``, ``async_validators`` and ``update_on``
            async_validator: An async validator or sequence of them; ignored
                when ``validator_or_opts`` is an options object
        """
        options = as_options(validator_or_opts)
        self.validator = coerce_to_validator(options if options is not None else validator_or_opts)
        self.async_validator = coerce_to_async_validator(async_validator, options)

        # === State ===
        self.value: Any = None
        self.errors: Optional[ErrorMap] = None
        self.status: ControlStatus = VALID
        # touched: a blur-equivalent interaction happened
        self.touched = False
        # pristine: the user has not changed the value (programmatic set_value does not count)
        self.pristine = True

        # === Structure ===
        self._parent_ref: Optional[weakref.ref] = None
        self._update_on: Optional[UpdateOn] = None

        # === Input adapter bookkeeping ===
        self._pending_value: Any = None
        self._pending_change = False
        self._pending_dirty = False
        self._pending_touched = False

        # === Hooks ===
        self._on_disabled_change: List[Callable[[bool], None]] = []
        self._on_collection_change: Callable[[], None] = _noop

        # Most recent async validation; superseded ones stay live (and
        # referenced in _async_validations) unless cancel_superseded_async
        # is configured
        self._async_validation_subscription: Optional[AsyncValidationHandle] = None
        self._async_validations: Set[AsyncValidationHandle] = set()

        # === Notification channels ===
        self.value_changes = EventChannel('value_changes')
        self.status_changes = EventChannel('status_changes')
        self.view_refresh = EventChannel('view_refresh')
        self._episode_depth = 0
        self._refresh_requested = False

        self._set_update_strategy(options)

    # ========== DERIVED PROPERTIES ==========

    @property
    def parent(self) -> Optional['AbstractControl']:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def root(self) -> 'AbstractControl':
        """Top-level ancestor (self for a root)."""
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def update_on(self) -> UpdateOn:
        """Own strategy, else the parent's, else the configured default."""
        if self._update_on is not None:
            return self._update_on
        parent = self.parent
        return parent.update_on if parent is not None else get_config().default_update_on

    @property
    def raw_value(self) -> Any:
        return self.value

    @property
    def dirty(self) -> bool:
        return not self.pristine

    @property
    def untouched(self) -> bool:
        return not self.touched

    @property
    def valid(self) -> bool:
        return self.status == VALID

    @property
    def invalid(self) -> bool:
        return self.status == INVALID

    @property
    def pending(self) -> bool:
        return self.status == PENDING

    @property
    def enabled(self) -> bool:
        return self.status != DISABLED

    @property
    def disabled(self) -> bool:
        return self.status == DISABLED

    # ========== VALUE & VALIDITY ==========

    def set_initial_status(self) -> None:
        # A group disabled only by aggregation must become enabled again
        # once any child is re-enabled
        self.status = DISABLED if self._all_controls_disabled() else VALID

    @refresh_episode
    def update_value_and_validity(self, only_self: bool = False, emit_event: bool = True) -> None:
        """Recompute value, errors and status, then do the same for the parent.

        Args:
            only_self: Stop after this control (no ancestor walk)
            emit_event: Emit value/status changes and request a view refresh

        Raises:
            AsyncValidationLoopError: The async validator returned an
                awaitable outside a running event loop. Raised only after the
                ancestors have been recomputed; this control keeps its sync
                validation status.
        """
        previous = self.status
        steps = DeferredLoopErrors()
        self.set_initial_status()
        self._update_value()
        if self.enabled:
            self.errors = self._run_validator()
            self.status = self._calculate_status()
            if self.status in (VALID, PENDING):
                steps.run(self._run_async_validator, emit_event)

        if previous != self.status:
            logger.debug(f"{self!r}: {previous} -> {self.status}")

        if emit_event:
            self._emit_changes()

        parent = self.parent
        if parent is not None and not only_self:
            steps.run(parent.update_value_and_validity, only_self=only_self, emit_event=emit_event)
        steps.raise_first()

    @refresh_episode
    def set_errors(self, errors: Optional[ErrorMap], emit_event: bool = True) -> None:
        """Replace this control's own errors and recompute status up to the root.

        Used when validation runs outside the control (and by async
        validators when their result arrives).
        """
        self.errors = errors
        self._update_controls_errors(emit_event)

    def _update_controls_errors(self, emit_event: bool) -> None:
        self.status = self._calculate_status()
        if emit_event:
            self.status_changes.emit(self.status)
            self._request_view_refresh()
        parent = self.parent
        if parent is not None:
            parent._update_controls_errors(emit_event)

    def _calculate_status(self) -> ControlStatus:
        if self._all_controls_disabled():
            return DISABLED
        if self.errors:
            return INVALID
        if self._any_controls_have_status(PENDING):
            return PENDING
        if self._any_controls_have_status(INVALID):
            return INVALID
        return VALID

    def _any_controls_have_status(self, status: ControlStatus) -> bool:
        return self._any_controls(lambda control: control.status == status)

    def _run_validator(self) -> Optional[ErrorMap]:
        return self.validator(self) if self.validator is not None else None

    def _run_async_validator(self, emit_event: bool) -> None:
        if self.async_validator is None:
            return
        if get_config().cancel_superseded_async and self._cancel_async_validations():
            logger.debug(f"{self!r}: cancelled superseded async validation")
        status = self.status
        self.status = PENDING
        try:
            handle = subscribe_async_result(
                self.async_validator(self),
                lambda errors: self.set_errors(errors, emit_event=emit_event),
                label=repr(self),
            )
        except AsyncValidationLoopError:
            self.status = status
            raise
        self._async_validation_subscription = handle
        if not handle.done:
            self._async_validations.add(handle)
            handle.add_done_callback(self._async_validations.discard)

    def _cancel_async_validations(self) -> bool:
        cancelled = False
        for handle in list(self._async_validations):
            cancelled = handle.cancel() or cancelled
        self._async_validations.clear()
        return cancelled

    # ========== ENABLE / DISABLE ==========

    @refresh_episode
    def disable(self, only_self: bool = False, emit_event: bool = True) -> None:
        """Exempt this control (and every descendant) from validation and
        from the aggregate value of its ancestors."""
        self.status = DISABLED
        self.errors = None
        self._for_each_child(lambda control, name: control.disable(only_self=True, emit_event=emit_event))
        self._update_value()

        if emit_event:
            self._emit_changes()

        self._update_ancestors(only_self, emit_event)
        self._notify_disabled_change(True)

    @refresh_episode
    def enable(self, only_self: bool = False, emit_event: bool = True) -> None:
        """Re-include this control and every descendant; status is recomputed
        from the current value and validators."""
        steps = DeferredLoopErrors()
        self.status = VALID
        self._for_each_child(
            lambda control, name: steps.run(control.enable, only_self=True, emit_event=emit_event)
        )
        steps.run(self.update_value_and_validity, only_self=True, emit_event=emit_event)

        steps.run(self._update_ancestors, only_self, emit_event)
        self._notify_disabled_change(False)
        steps.raise_first()

    def _update_ancestors(self, only_self: bool, emit_event: bool) -> None:
        parent = self.parent
        if parent is not None and not only_self:
            steps = DeferredLoopErrors()
            steps.run(parent.update_value_and_validity, emit_event=emit_event)
            parent._update_pristine()
            parent._update_touched()
            steps.raise_first()

    def register_on_disabled_change(self, fn: Callable[[bool], None]) -> None:
        """Subscribe to enable/disable transitions (called with True on disable)."""
        if fn not in self._on_disabled_change:
            self._on_disabled_change.append(fn)

    def unregister_on_disabled_change(self, fn: Callable[[bool], None]) -> None:
        if fn in self._on_disabled_change:
            self._on_disabled_change.remove(fn)

    def _notify_disabled_change(self, is_disabled: bool) -> None:
        for fn in list(self._on_disabled_change):
            try:
                fn(is_disabled)
            except Exception as e:
                logger.warning(f"Error in disabled-change callback of {self!r}: {e!r}")

    # ========== TOUCHED / PRISTINE ==========

    def mark_as_touched(self, only_self: bool = False) -> None:
        """Mark touched, and every ancestor too unless ``only_self``."""
        self.touched = True
        parent = self.parent
        if parent is not None and not only_self:
            parent.mark_as_touched(only_self=only_self)

    def mark_as_untouched(self, only_self: bool = False) -> None:
        """Force every descendant untouched, then re-aggregate the ancestors."""
        self.touched = False
        self._pending_touched = False
        self._for_each_child(lambda control, name: control.mark_as_untouched(only_self=True))
        parent = self.parent
        if parent is not None and not only_self:
            parent._update_touched(only_self=only_self)

    def mark_as_dirty(self, only_self: bool = False) -> None:
        """Mark dirty, and every ancestor too unless ``only_self``."""
        self.pristine = False
        parent = self.parent
        if parent is not None and not only_self:
            parent.mark_as_dirty(only_self=only_self)

    def mark_as_pristine(self, only_self: bool = False) -> None:
        """Force every descendant pristine, then re-aggregate the ancestors."""
        self.pristine = True
        self._pending_dirty = False
        self._for_each_child(lambda control, name: control.mark_as_pristine(only_self=True))
        parent = self.parent
        if parent is not None and not only_self:
            parent._update_pristine(only_self=only_self)

    def _update_pristine(self, only_self: bool = False) -> None:
        self.pristine = not self._any_controls_dirty()
        parent = self.parent
        if parent is not None and not only_self:
            parent._update_pristine(only_self=only_self)

    def _update_touched(self, only_self: bool = False) -> None:
        self.touched = self._any_controls_touched()
        parent = self.parent
        if parent is not None and not only_self:
            parent._update_touched(only_self=only_self)

    def _any_controls_dirty(self) -> bool:
        return self._any_controls(lambda control: control.dirty)

    def _any_controls_touched(self) -> bool:
        return self._any_controls(lambda control: control.touched)

    # ========== VALIDATORS ==========

    def set_validators(self, new_validator: Any) -> None:
        """Replace the sync validator(s); takes effect on the next revalidation."""
        self.validator = coerce_to_validator(new_validator)

    def set_async_validators(self, new_validator: Any) -> None:
        self.async_validator = coerce_to_async_validator(new_validator)

    def clear_validators(self) -> None:
        self.validator = None

    def clear_async_validators(self) -> None:
        self.async_validator = None

    # ========== LOOKUP ==========

    def get(self, path: Optional[ControlPath]) -> Optional['AbstractControl']:
        """Descendant at ``path`` ("person.name" or ["person", "name"]), or None."""
        return find_control(self, path)

    def get_error(self, error_code: str, path: Optional[ControlPath] = None) -> Any:
        """Detail of ``error_code`` on the control at ``path`` (self if no path)."""
        control = self.get(path) if path else self
        if control is None or not control.errors:
            return None
        return control.errors.get(error_code)

    def has_error(self, error_code: str, path: Optional[ControlPath] = None) -> bool:
        return bool(self.get_error(error_code, path))

    def _child(self, name: Any) -> Optional['AbstractControl']:
        return None

    # ========== STRUCTURE & LIFECYCLE ==========

    def set_parent(self, parent: Optional['AbstractControl']) -> None:
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    def _register_on_collection_change(self, fn: Callable[[], None]) -> None:
        self._on_collection_change = fn

    def _set_update_strategy(self, options) -> None:
        if options is not None and options.update_on is not None:
            self._update_on = options.update_on

    def close(self) -> None:
        """Tear down this control and its descendants: close every channel
        and cancel every live async validation."""
        self._for_each_child(lambda control, name: control.close())
        self._cancel_async_validations()
        self.value_changes.close()
        self.status_changes.close()
        self.view_refresh.close()

    # ========== NOTIFICATION ==========

    def _emit_changes(self) -> None:
        self.value_changes.emit(self.value)
        self.status_changes.emit(self.status)
        self._request_view_refresh()

    def _request_view_refresh(self) -> None:
        root = self.root
        if root._episode_depth > 0:
            root._refresh_requested = True
        else:
            root.view_refresh.emit()

    @contextmanager
    def _view_refresh_episode(self) -> Generator[None, None, None]:
        """Coalesce view-refresh requests made inside the block.

        Nested episodes on the same tree are supported; only the outermost
        one fires the root's view_refresh, and only if something asked.
        """
        root = self.root
        root._episode_depth += 1
        try:
            yield
        finally:
            root._episode_depth -= 1
            if root._episode_depth == 0 and root._refresh_requested:
                root._refresh_requested = False
                root.view_refresh.emit()

    # ========== VARIANT HOOKS ==========

    @abstractmethod
    def _for_each_child(self, callback: Callable[['AbstractControl', Any], None]) -> None:
        """Call ``callback(control, name)`` for every direct child."""

    @abstractmethod
    def _update_value(self) -> None:
        """Recompute ``self.value`` from the variant's aggregation rule."""

    @abstractmethod
    def _all_controls_disabled(self) -> bool:
        ...

    @abstractmethod
    def _any_controls(self, condition: Callable[['AbstractControl'], bool]) -> bool:
        ...

    @abstractmethod
    def set_value(self, value: Any, only_self: bool = False, emit_event: bool = True) -> None:
        ...

    @abstractmethod
    def reset(self, value: Any = None, only_self: bool = False, emit_event: bool = True) -> None:
        ...

    @abstractmethod
    def commit_pending(self) -> bool:
        """Apply values the input adapter held back under blur/submit strategy."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status.value}, value={self.value!r})"


def _noop() -> None:
    return None

"""
FormGroup: composite control addressed by string keys.

Aggregation rules:
- value: {name: child.value} over enabled children, or over all children
  when the group itself is disabled; insertion order is preserved
- status: see AbstractControl; disabled children never count
- pristine/touched: recomputed from enabled children when an operation
  asks the group to re-aggregate

Membership is owned by ``controls``; attaching a child sets its parent
reference once, detaching clears it and closes the child's channels.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from formstate.async_validation import DeferredLoopErrors
from formstate.control import AbstractControl, refresh_episode
from formstate.validators import ErrorMap

logger = logging.getLogger(__name__)


class FormGroup(AbstractControl):
    """Composite of named child controls.

    Example:
        form = FormGroup({
            'name': FormControl('', Validators.required),
            'age': FormControl(None),
        })
        form.status          # INVALID
        form.get('name').set_value('x')
        form.value           # {'name': 'x', 'age': None}
    """

    def __init__(self, controls: Optional[Mapping[str, AbstractControl]] = None,
                 validator_or_opts: Any = None, async_validator: Any = None):
        super().__init__(validator_or_opts, async_validator)
        self.controls: Dict[str, AbstractControl] = dict(controls or {})
        self._set_up_controls()
        self.update_value_and_validity(only_self=True, emit_event=False)

    # ========== VARIANT HOOKS ==========

    def _for_each_child(self, callback: Callable[[AbstractControl, Any], None]) -> None:
        for name, control in list(self.controls.items()):
            callback(control, name)

    def _update_value(self) -> None:
        self.value = self._reduce_value()

    def _all_controls_disabled(self) -> bool:
        for control in self.controls.values():
            if control.enabled:
                return False
        # An empty group is only disabled when disabled explicitly
        return len(self.controls) > 0 or self.disabled

    def _any_controls(self, condition: Callable[[AbstractControl], bool]) -> bool:
        return any(self.contains(name) and condition(control) for name, control in self.controls.items())

    def _child(self, name: Any) -> Optional[AbstractControl]:
        return self.controls.get(name)

    # ========== AGGREGATION ==========

    def contains(self, control_name: str) -> bool:
        """True if an ENABLED control named ``control_name`` is in the group.

        Use ``get()`` to check existence regardless of enabled-ness.
        """
        control = self.controls.get(control_name)
        return control is not None and control.enabled

    def _reduce_value(self) -> Dict[str, Any]:
        return self._reduce_children(
            {}, lambda acc, control, name: _assign(acc, name, control.value)
            if control.enabled or self.disabled else acc
        )

    @property
    def errors_by_control(self) -> Dict[str, Optional[ErrorMap]]:
        """Own errors of each enabled child, computed on demand."""
        return self._reduce_children(
            {}, lambda acc, control, name: _assign(acc, name, control.errors)
            if control.enabled or self.disabled else acc
        )

    @property
    def raw_value(self) -> Dict[str, Any]:
        """Values of all children, disabled ones included."""
        return {name: control.raw_value for name, control in self.controls.items()}

    def _reduce_children(self, init_value: Any, fn: Callable[[Any, AbstractControl, str], Any]) -> Any:
        result = init_value
        for name, control in self.controls.items():
            result = fn(result, control, name)
        return result

    # ========== MEMBERSHIP ==========

    def _set_up_controls(self) -> None:
        self._for_each_child(lambda control, name: self._attach(control))

    def _attach(self, control: AbstractControl) -> None:
        control.set_parent(self)
        control._register_on_collection_change(self._on_collection_change)

    def register_control(self, name: str, control: AbstractControl) -> AbstractControl:
        """Attach ``control`` under ``name`` without revalidating.

        If a control is already registered under ``name`` it is kept and
        returned.
        """
        existing = self.controls.get(name)
        if existing is not None:
            return existing
        self.controls[name] = control
        self._attach(control)
        logger.debug(f"Attached {name!r} to {self!r}")
        return control

    @refresh_episode
    def add_control(self, name: str, control: AbstractControl, emit_event: bool = True) -> None:
        """Attach a control and revalidate up to the root."""
        self.register_control(name, control)
        steps = DeferredLoopErrors()
        steps.run(self.update_value_and_validity, emit_event=emit_event)
        self._on_collection_change()
        steps.raise_first()

    @refresh_episode
    def remove_control(self, name: str, emit_event: bool = True) -> None:
        """Detach and close the control named ``name`` (no-op if absent)."""
        control = self.controls.pop(name, None)
        if control is not None:
            self._detach(name, control)
        steps = DeferredLoopErrors()
        steps.run(self.update_value_and_validity, emit_event=emit_event)
        self._on_collection_change()
        steps.raise_first()

    @refresh_episode
    def set_control(self, name: str, control: AbstractControl, emit_event: bool = True) -> None:
        """Replace the control named ``name`` (or add it)."""
        previous = self.controls.pop(name, None)
        if previous is not None:
            self._detach(name, previous)
        self.register_control(name, control)
        steps = DeferredLoopErrors()
        steps.run(self.update_value_and_validity, emit_event=emit_event)
        self._on_collection_change()
        steps.raise_first()

    def _detach(self, name: str, control: AbstractControl) -> None:
        control.set_parent(None)
        control._register_on_collection_change(lambda: None)
        control.close()
        logger.debug(f"Detached {name!r} from {self!r}")

    # ========== VALUE ==========

    @refresh_episode
    def set_value(self, value: Mapping[str, Any], only_self: bool = False, emit_event: bool = True) -> None:
        """Set every child from ``value``; every child name must be present.

        Raises:
            ValueError: a child has no entry in ``value``, or ``value`` names
                a child the group does not have
        """
        missing = [name for name in self.controls if name not in value]
        if missing:
            raise ValueError(f"Must supply a value for form control(s): {', '.join(missing)}")
        unknown = [name for name in value if name not in self.controls]
        if unknown:
            raise ValueError(f"No form control(s) named: {', '.join(map(str, unknown))}")
        steps = DeferredLoopErrors()
        for name, child_value in value.items():
            steps.run(self.controls[name].set_value, child_value, only_self=True, emit_event=emit_event)
        steps.run(self.update_value_and_validity, only_self=only_self, emit_event=emit_event)
        steps.raise_first()

    @refresh_episode
    def patch_value(self, value: Mapping[str, Any], only_self: bool = False, emit_event: bool = True) -> None:
        """Set the children named in ``value``; other names are ignored."""
        steps = DeferredLoopErrors()
        for name, child_value in value.items():
            control = self.controls.get(name)
            if control is not None:
                steps.run(control.patch_value, child_value, only_self=True, emit_event=emit_event)
        steps.run(self.update_value_and_validity, only_self=only_self, emit_event=emit_event)
        steps.raise_first()

    @refresh_episode
    def reset(self, value: Optional[Mapping[str, Any]] = None, only_self: bool = False, emit_event: bool = True) -> None:
        """Reset every child to its keyed entry in ``value`` (None if absent),
        then revalidate and re-aggregate pristine/touched once."""
        value = value or {}
        steps = DeferredLoopErrors()
        self._for_each_child(
            lambda control, name: steps.run(control.reset, value.get(name), only_self=True, emit_event=emit_event)
        )
        steps.run(self.update_value_and_validity, only_self=only_self, emit_event=emit_event)
        self._update_pristine(only_self=only_self)
        self._update_touched(only_self=only_self)
        steps.raise_first()

    def commit_pending(self) -> bool:
        """Apply pending input-adapter values anywhere in the subtree."""
        steps = DeferredLoopErrors()
        committed = False
        for control in list(self.controls.values()):
            if steps.run(control.commit_pending):
                committed = True
        steps.raise_first()
        return committed

    @refresh_episode
    def submit(self) -> bool:
        """Commit pending values across the subtree and revalidate.

        Returns:
            True if the group is valid afterwards
        """
        steps = DeferredLoopErrors()
        steps.run(self.commit_pending)
        steps.run(self.update_value_and_validity)
        steps.raise_first()
        return self.valid


def _assign(acc: Dict[str, Any], name: str, value: Any) -> Dict[str, Any]:
    acc[name] = value
    return acc

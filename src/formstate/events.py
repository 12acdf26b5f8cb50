"""
Helpers for the leaf input adapter.

A UI binding may hand ``FormControl.on_change`` either a raw value or an
input-event-shaped object: something with a ``target`` carrying ``type`` and
``value`` (plus ``checked`` for checkboxes and ``options`` for multi-selects).
Targets may be attribute objects or mappings.
"""

from typing import Any, List

_MISSING = object()


def _read(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def is_event(candidate: Any) -> bool:
    """True if ``candidate`` looks like an input event (has a ``target``)."""
    if candidate is None or isinstance(candidate, (str, bytes, int, float, bool, list, tuple)):
        return False
    return _read(candidate, 'target', _MISSING) not in (_MISSING, None)


def _selected_option_values(options: Any) -> List[Any]:
    return [_read(option, 'value') for option in options if _read(option, 'selected', False)]


def extract_event_value(event: Any) -> Any:
    """Extract the value an input event carries, branching on ``target.type``.

    - checkbox: the boolean ``checked`` flag
    - select-multiple: values of every selected option, in option order
      (falls back to ``target.value`` when the target exposes no options)
    - anything else: ``target.value``
    """
    target = _read(event, 'target')
    input_type = _read(target, 'type')
    if input_type == 'checkbox':
        return bool(_read(target, 'checked', False))
    if input_type == 'select-multiple':
        options = _read(target, 'options')
        if options:
            return _selected_option_values(options)
        return _read(target, 'value')
    return _read(target, 'value')

"""
Resolve a dotted path or key sequence to a descendant control.
"""

from typing import TYPE_CHECKING, Optional, Sequence, Union

from formstate.constants import PATH_DELIMITER

if TYPE_CHECKING:
    from formstate.control import AbstractControl

ControlPath = Union[str, Sequence[Union[str, int]]]


def find_control(control: 'AbstractControl', path: Optional[ControlPath],
                 delimiter: str = PATH_DELIMITER) -> Optional['AbstractControl']:
    """Walk ``path`` from ``control``.

    Each step asks the current node for a named child; leaves have none.
    Returns None for a None or empty path, an unknown key, or a step
    through a leaf.
    """
    if path is None:
        return None
    if isinstance(path, str):
        path = path.split(delimiter)
    if len(path) == 0:
        return None

    current: Optional['AbstractControl'] = control
    for name in path:
        if current is None:
            return None
        current = current._child(name)
    return current

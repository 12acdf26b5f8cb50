"""
Status and update-strategy enumerations shared by every control.
"""
from enum import Enum


class ControlStatus(str, Enum):
    """Validation status of a control.

    Members are ``str`` subclasses so ``control.status == "VALID"`` holds.
    """
    VALID = "VALID"
    INVALID = "INVALID"
    PENDING = "PENDING"
    DISABLED = "DISABLED"

    def __str__(self) -> str:
        return self.value


VALID = ControlStatus.VALID
INVALID = ControlStatus.INVALID
PENDING = ControlStatus.PENDING
DISABLED = ControlStatus.DISABLED


class UpdateOn(str, Enum):
    """Event on which a control commits a value coming from the input adapter."""
    CHANGE = "change"
    BLUR = "blur"
    SUBMIT = "submit"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def coerce(cls, value) -> 'UpdateOn':
        """Accept an ``UpdateOn`` member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(repr(m.value) for m in cls)
            raise ValueError(f"update_on must be one of {allowed}, got {value!r}") from None


PATH_DELIMITER = "."

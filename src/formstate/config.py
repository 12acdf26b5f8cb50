"""
Process-level configuration for the control tree.

The active configuration lives in a ContextVar so that a test or an embedding
application can scope overrides with ``config_context()`` without touching
the process default:

    with config_context(strict_options=True):
        FormControl("", {"validators": required, "updateon": "blur"})  # ValueError

Fields:
- default_update_on: strategy a root control resolves to when none is set
- strict_options: reject unknown keys in construction option mappings
- cancel_superseded_async: cancel a live async validation when a newer one
  starts on the same control ("last request wins"). Off by default, which
  keeps "last resolution wins".
"""

import contextvars
import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator

from formstate.constants import UpdateOn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormStateConfig:
    """Immutable configuration snapshot."""
    default_update_on: UpdateOn = UpdateOn.CHANGE
    strict_options: bool = False
    cancel_superseded_async: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'default_update_on', UpdateOn.coerce(self.default_update_on))


_DEFAULT_CONFIG = FormStateConfig()

current_config: contextvars.ContextVar[FormStateConfig] = contextvars.ContextVar(
    'formstate_current_config', default=_DEFAULT_CONFIG
)


def get_config() -> FormStateConfig:
    """Return the configuration active in the current context."""
    return current_config.get()


def set_config(config: FormStateConfig) -> None:
    """Replace the configuration for the current context.

    Args:
        config: New configuration snapshot
    """
    if not isinstance(config, FormStateConfig):
        raise TypeError(f"set_config() expects FormStateConfig, got {type(config).__name__}")
    current_config.set(config)
    logger.debug(f"formstate config set: {config}")


def reset_config() -> None:
    """Restore the built-in defaults for the current context."""
    current_config.set(_DEFAULT_CONFIG)


@contextmanager
def config_context(**overrides) -> Generator[FormStateConfig, None, None]:
    """Scope configuration overrides to a ``with`` block.

    Args:
        **overrides: FormStateConfig field values to override

    Yields:
        The effective configuration inside the block
    """
    merged = dataclasses.replace(current_config.get(), **overrides)
    token = current_config.set(merged)
    try:
        yield merged
    finally:
        current_config.reset(token)

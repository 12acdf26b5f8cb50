"""
Validator pipeline: composition combinators, a small set of stock validators,
and coercion of the construction arguments controls accept.

A sync validator is ``Callable[[AbstractControl], Optional[Dict[str, Any]]]``:
it returns an error mapping (error code -> detail) or None when valid.
An async validator has the same signature but may return an awaitable, an
async iterator of error mappings, or a plain result.

Objects exposing a ``validate(control)`` method are accepted anywhere a
function is.
"""

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Union

from formstate.config import get_config
from formstate.constants import UpdateOn

logger = logging.getLogger(__name__)

ErrorMap = Dict[str, Any]
ValidatorFn = Callable[[Any], Optional[ErrorMap]]
AsyncValidatorFn = Callable[[Any], Any]


def _is_empty_input_value(value: Any) -> bool:
    return value is None or (hasattr(value, '__len__') and len(value) == 0)


def _merge_errors(results: Iterable[Optional[ErrorMap]]) -> Optional[ErrorMap]:
    merged: ErrorMap = {}
    for result in results:
        if result:
            merged.update(result)
    return merged or None


async def _await_result(result: Any) -> Optional[ErrorMap]:
    """Resolve an async validator result to its final error mapping."""
    if inspect.isawaitable(result):
        return await result
    if hasattr(result, '__aiter__'):
        last = None
        async for item in result:
            last = item
        return last
    return result


class Validators:
    """Stock validators and the compose combinators."""

    @staticmethod
    def required(control) -> Optional[ErrorMap]:
        """Fail on None or an empty string/collection."""
        return {'required': True} if _is_empty_input_value(control.value) else None

    @staticmethod
    def required_true(control) -> Optional[ErrorMap]:
        """Fail unless the value is exactly True (checkbox consent)."""
        return None if control.value is True else {'required': True}

    @staticmethod
    def null_validator(control) -> None:
        return None

    @staticmethod
    def min_length(min_length: int) -> ValidatorFn:
        def validator(control) -> Optional[ErrorMap]:
            value = control.value
            if _is_empty_input_value(value) or not hasattr(value, '__len__'):
                return None
            length = len(value)
            if length < min_length:
                return {'min_length': {'required_length': min_length, 'actual_length': length}}
            return None
        return validator

    @staticmethod
    def max_length(max_length: int) -> ValidatorFn:
        def validator(control) -> Optional[ErrorMap]:
            value = control.value
            if value is None or not hasattr(value, '__len__'):
                return None
            length = len(value)
            if length > max_length:
                return {'max_length': {'required_length': max_length, 'actual_length': length}}
            return None
        return validator

    @staticmethod
    def min_value(minimum: float) -> ValidatorFn:
        def validator(control) -> Optional[ErrorMap]:
            value = control.value
            if _is_empty_input_value(value):
                return None
            try:
                number = float(value)
            except (TypeError, ValueError):
                return None
            return {'min': {'min': minimum, 'actual': value}} if number < minimum else None
        return validator

    @staticmethod
    def max_value(maximum: float) -> ValidatorFn:
        def validator(control) -> Optional[ErrorMap]:
            value = control.value
            if _is_empty_input_value(value):
                return None
            try:
                number = float(value)
            except (TypeError, ValueError):
                return None
            return {'max': {'max': maximum, 'actual': value}} if number > maximum else None
        return validator

    @staticmethod
    def pattern(regex: Union[str, Pattern]) -> ValidatorFn:
        """Require the whole string value to match ``regex``."""
        compiled = re.compile(regex) if isinstance(regex, str) else regex

        def validator(control) -> Optional[ErrorMap]:
            value = control.value
            if _is_empty_input_value(value):
                return None
            if compiled.fullmatch(str(value)):
                return None
            return {'pattern': {'required_pattern': compiled.pattern, 'actual_value': value}}
        return validator

    @staticmethod
    def compose(validators: Optional[Sequence[Optional[ValidatorFn]]]) -> Optional[ValidatorFn]:
        """Merge the error mappings of several sync validators into one.

        Returns None when there is nothing to compose.
        """
        if validators is None:
            return None
        present = [v for v in validators if v is not None]
        if not present:
            return None

        def composed(control) -> Optional[ErrorMap]:
            return _merge_errors(v(control) for v in present)
        return composed

    @staticmethod
    def compose_async(validators: Optional[Sequence[Optional[AsyncValidatorFn]]]) -> Optional[AsyncValidatorFn]:
        """Run several async validators concurrently and merge their final results."""
        if validators is None:
            return None
        present = [v for v in validators if v is not None]
        if not present:
            return None

        async def composed(control) -> Optional[ErrorMap]:
            results = await asyncio.gather(*(_await_result(v(control)) for v in present))
            return _merge_errors(results)
        return composed


# ========== NORMALISATION ==========

def normalize_validator(validator: Any) -> ValidatorFn:
    """Turn a function or an object with ``validate()`` into a function."""
    validate = getattr(validator, 'validate', None)
    if validate is not None and callable(validate):
        return lambda control: validate(control)
    if callable(validator):
        return validator
    raise TypeError(f"Validator must be callable or expose validate(), got {type(validator).__name__}")


normalize_async_validator = normalize_validator


def compose_validators(validators: Optional[Sequence[Any]]) -> Optional[ValidatorFn]:
    return Validators.compose([normalize_validator(v) for v in validators]) if validators is not None else None


def compose_async_validators(validators: Optional[Sequence[Any]]) -> Optional[AsyncValidatorFn]:
    return Validators.compose_async([normalize_async_validator(v) for v in validators]) if validators is not None else None


# ========== CONSTRUCTION OPTIONS ==========

_OPTION_ALIASES = {
    'validators': 'validators',
    'async_validators': 'async_validators',
    'asyncValidators': 'async_validators',
    'update_on': 'update_on',
    'updateOn': 'update_on',
}


@dataclass
class ControlOptions:
    """Options object accepted in place of a validator at construction."""
    validators: Any = None
    async_validators: Any = None
    update_on: Optional[UpdateOn] = None

    def __post_init__(self):
        if self.update_on is not None:
            self.update_on = UpdateOn.coerce(self.update_on)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> 'ControlOptions':
        """Build options from a mapping, honouring ``strict_options``."""
        known: Dict[str, Any] = {}
        unknown: List[str] = []
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key)
            if name is None:
                unknown.append(key)
            else:
                known[name] = value
        if unknown:
            if get_config().strict_options:
                raise ValueError(f"Unknown control option(s): {', '.join(sorted(map(str, unknown)))}")
            logger.debug(f"Ignoring unknown control option(s): {unknown}")
        return cls(**known)


def as_options(validator_or_opts: Any) -> Optional[ControlOptions]:
    """Return ControlOptions if the argument is an options object, else None."""
    if isinstance(validator_or_opts, ControlOptions):
        return validator_or_opts
    if isinstance(validator_or_opts, Mapping):
        return ControlOptions.from_mapping(validator_or_opts)
    return None


def _coerce(candidate: Any, compose: Callable[[Sequence[Any]], Any]) -> Any:
    if candidate is None:
        return None
    if isinstance(candidate, (list, tuple)):
        return compose(candidate)
    return normalize_validator(candidate)


def coerce_to_validator(validator_or_opts: Any) -> Optional[ValidatorFn]:
    """Resolve a validator, a sequence of validators or an options object."""
    options = as_options(validator_or_opts)
    candidate = options.validators if options is not None else validator_or_opts
    return _coerce(candidate, compose_validators)


def coerce_to_async_validator(async_validator: Any, validator_or_opts: Any = None) -> Optional[AsyncValidatorFn]:
    """Resolve the async validator; an options object takes precedence."""
    options = as_options(validator_or_opts)
    candidate = options.async_validators if options is not None else async_validator
    return _coerce(candidate, compose_async_validators)

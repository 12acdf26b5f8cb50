"""Tests for the stock validators, composition and option coercion."""
import asyncio

import pytest

from formstate import (
    ControlOptions,
    FormControl,
    UpdateOn,
    Validators,
    coerce_to_async_validator,
    coerce_to_validator,
    compose_validators,
)


def _errors(validator, value):
    return validator(FormControl(value))


class TestStockValidators:
    """Behaviour of the bundled validators."""

    @pytest.mark.parametrize("value", [None, '', [], {}])
    def test_required_fails_on_empty(self, value):
        assert _errors(Validators.required, value) == {'required': True}

    @pytest.mark.parametrize("value", ['a', [1], 0, False])
    def test_required_passes(self, value):
        assert _errors(Validators.required, value) is None

    def test_required_true(self):
        assert _errors(Validators.required_true, True) is None
        assert _errors(Validators.required_true, 'yes') == {'required': True}

    def test_min_length(self):
        validator = Validators.min_length(3)

        assert _errors(validator, 'ab') == {'min_length': {'required_length': 3, 'actual_length': 2}}
        assert _errors(validator, 'abc') is None
        # Empty values are left to required
        assert _errors(validator, '') is None

    def test_max_length(self):
        validator = Validators.max_length(2)

        assert _errors(validator, 'abc') == {'max_length': {'required_length': 2, 'actual_length': 3}}
        assert _errors(validator, [1, 2]) is None

    def test_min_and_max_value(self):
        assert _errors(Validators.min_value(5), 3) == {'min': {'min': 5, 'actual': 3}}
        assert _errors(Validators.min_value(5), 5) is None
        assert _errors(Validators.max_value(5), '7') == {'max': {'max': 5, 'actual': '7'}}
        assert _errors(Validators.max_value(5), 'not a number') is None

    def test_pattern(self):
        validator = Validators.pattern(r'\d+')

        assert _errors(validator, '123') is None
        assert _errors(validator, '12a') == {'pattern': {'required_pattern': r'\d+', 'actual_value': '12a'}}

    def test_null_validator(self):
        assert _errors(Validators.null_validator, None) is None


class TestComposition:
    """compose / compose_async and coercion of constructor arguments."""

    def test_compose_merges_errors(self):
        validator = Validators.compose([Validators.required, lambda c: {'custom': 1}])

        assert _errors(validator, '') == {'required': True, 'custom': 1}

    def test_compose_returns_none_when_all_pass(self):
        validator = Validators.compose([Validators.required, Validators.min_length(1)])

        assert _errors(validator, 'a') is None

    def test_compose_nothing(self):
        assert Validators.compose(None) is None
        assert Validators.compose([]) is None
        assert Validators.compose([None]) is None

    def test_compose_validators_normalises_objects(self):
        class Always:
            def validate(self, control):
                return {'always': True}

        validator = compose_validators([Always()])

        assert _errors(validator, 'x') == {'always': True}

    def test_coerce_single_and_sequence(self):
        assert coerce_to_validator(None) is None
        assert coerce_to_validator(Validators.required) is Validators.required
        assert _errors(coerce_to_validator((Validators.required,)), '') == {'required': True}

    def test_coerce_from_options(self):
        options = {'validators': Validators.required, 'asyncValidators': [lambda c: None]}

        assert coerce_to_validator(options) is Validators.required
        assert coerce_to_async_validator(None, options) is not None
        # Options take precedence over the positional async validator
        assert coerce_to_async_validator(lambda c: None, {'validators': None}) is None

    def test_control_options_coerces_update_on(self):
        assert ControlOptions(update_on='submit').update_on is UpdateOn.SUBMIT

    def test_control_options_rejects_bad_update_on(self):
        with pytest.raises(ValueError, match="update_on"):
            ControlOptions(update_on='hover')

    def test_compose_async(self):
        async def taken(control):
            return {'taken': True}

        validator = Validators.compose_async([taken, lambda c: {'sync_result': True}, lambda c: None])

        result = asyncio.run(validator(FormControl('x')))

        assert result == {'taken': True, 'sync_result': True}

    def test_compose_async_all_pass(self):
        async def ok(control):
            return None

        validator = Validators.compose_async([ok])

        assert asyncio.run(validator(FormControl('x'))) is None

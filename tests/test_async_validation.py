"""Tests for asynchronous validator orchestration."""
import asyncio
import inspect

import pytest

from formstate import (
    INVALID,
    PENDING,
    VALID,
    AsyncValidationLoopError,
    FormControl,
    FormGroup,
    Validators,
    config_context,
)


def gated_validator(gates):
    """Async validator whose result for a value waits on ``gates[value]``.

    The value is captured when validation starts, not when the producer runs.
    """
    def validator(control):
        value = control.value
        gate = gates[value]

        async def produce():
            await gate.wait()
            return {'result': value}
        return produce()
    return validator


class TestSingleValidation:
    """One async validation from start to result."""

    @pytest.mark.asyncio
    async def test_pending_then_invalid(self, record):
        """VALID -> PENDING immediately, PENDING -> INVALID when the result lands,
        one status emission per transition."""
        release = asyncio.Event()

        async def taken(control):
            await release.wait()
            return {'taken': True}

        control = FormControl('bob')
        control.set_async_validators(taken)
        rec = record(control)
        assert control.status == VALID

        control.set_value('alice')

        assert control.status == PENDING
        assert rec.statuses == [PENDING]

        release.set()
        await control._async_validation_subscription.task

        assert control.status == INVALID
        assert control.errors == {'taken': True}
        assert rec.statuses == [PENDING, INVALID]

    @pytest.mark.asyncio
    async def test_none_result_makes_valid(self):
        async def available(control):
            return None

        control = FormControl('bob', None, available)
        assert control.pending

        await control._async_validation_subscription.task

        assert control.valid

    @pytest.mark.asyncio
    async def test_async_skipped_when_sync_invalid(self):
        calls = []

        async def never(control):
            calls.append(control.value)
            return None

        control = FormControl('', Validators.required, never)

        assert control.invalid
        assert control._async_validation_subscription is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_group_pending_while_child_validates(self):
        release = asyncio.Event()

        async def taken(control):
            await release.wait()
            return {'taken': True}

        form = FormGroup({'user': FormControl('bob', None, taken), 'age': FormControl(1)})

        assert form.status == PENDING

        release.set()
        await form.get('user')._async_validation_subscription.task

        assert form.get('user').invalid
        assert form.status == INVALID

    @pytest.mark.asyncio
    async def test_async_iterator_delivers_every_result(self, record):
        async def stream(control):
            yield {'checking': True}
            yield None

        control = FormControl('x')
        control.set_async_validators(stream)
        rec = record(control)

        control.update_value_and_validity()
        await control._async_validation_subscription.task

        assert rec.statuses == [PENDING, INVALID, VALID]
        assert control.valid

    @pytest.mark.asyncio
    async def test_failing_producer_is_logged(self, caplog):
        async def broken(control):
            raise ConnectionError("backend down")

        with caplog.at_level('WARNING'):
            control = FormControl('x', None, broken)
            await control._async_validation_subscription.task

        assert control.pending
        assert "backend down" in caplog.text
        failure = caplog.records[-1]
        assert failure.levelname == 'ERROR'
        assert failure.exc_info is not None
        assert "stays PENDING" in failure.getMessage()

    @pytest.mark.asyncio
    async def test_compose_async(self):
        async def first(control):
            return {'first': True}

        async def second(control):
            await asyncio.sleep(0)
            return {'second': True}

        control = FormControl('x', None, [first, second])
        await control._async_validation_subscription.task

        assert control.errors == {'first': True, 'second': True}


class TestSynchronousResults:
    """Async validators that return a plain result need no event loop."""

    def test_plain_result_delivered_immediately(self):
        control = FormControl('bob', None, lambda c: {'taken': True})

        assert control.invalid
        assert control.errors == {'taken': True}

    def test_plain_none_result(self, record):
        control = FormControl('bob', None, lambda c: None)
        rec = record(control)

        control.set_value('alice')

        assert control.valid
        assert rec.statuses == [VALID, VALID]

    def test_awaitable_without_loop_raises(self):
        async def check(control):
            return None

        with pytest.raises(RuntimeError, match="no asyncio event loop"):
            FormControl('bob', None, check)

    def test_awaitable_without_loop_still_updates_ancestors(self, record):
        """The error surfaces only after the root-ward walk, so the group
        value and status still agree with the child."""
        async def check(control):
            return None

        form = FormGroup({'a': FormControl('x', Validators.required)})
        leaf = form.get('a')
        leaf.set_async_validators(check)
        rec = record(form)

        with pytest.raises(AsyncValidationLoopError, match="no asyncio event loop"):
            leaf.set_value('y')

        assert leaf.value == 'y'
        assert form.value == {'a': leaf.value}
        assert leaf.status == VALID
        assert form.status == leaf.status
        assert rec.values == [{'a': 'y'}]
        assert rec.refreshes == 1

    def test_awaitable_without_loop_group_set_value_sets_every_child(self):
        async def check(control):
            return None

        form = FormGroup({
            'a': FormControl('x'),
            'b': FormControl('x', Validators.required),
        })
        form.get('a').set_async_validators(check)
        form.get('b').set_async_validators(check)

        with pytest.raises(AsyncValidationLoopError):
            form.set_value({'a': 'y', 'b': ''})

        assert form.value == {'a': 'y', 'b': ''}
        assert form.get('a').valid
        assert form.get('b').invalid
        assert form.invalid

        with pytest.raises(AsyncValidationLoopError):
            form.reset({'a': 'z', 'b': 'z'})

        assert form.value == {'a': 'z', 'b': 'z'}
        assert form.valid
        assert form.pristine


class TestOverlappingValidations:
    """Overlapping validations of one control: the last RESOLUTION wins."""

    @pytest.mark.asyncio
    async def test_later_resolution_wins(self):
        gates = {'first': asyncio.Event(), 'second': asyncio.Event()}
        control = FormControl('first')
        control.set_async_validators(gated_validator(gates))

        control.set_value('first')
        first = control._async_validation_subscription
        control.set_value('second')
        second = control._async_validation_subscription

        assert first is not second
        assert not first.done

        # The newer validation resolves first ...
        gates['second'].set()
        await second.task
        assert control.errors == {'result': 'second'}

        # ... then the superseded one lands and overwrites it
        gates['first'].set()
        await first.task
        assert control.errors == {'result': 'first'}
        assert control.value == 'second'
        assert not control._async_validations

    @pytest.mark.asyncio
    async def test_superseded_validation_stays_referenced(self):
        gates = {'first': asyncio.Event(), 'second': asyncio.Event()}
        control = FormControl('first')
        control.set_async_validators(gated_validator(gates))

        control.set_value('first')
        first = control._async_validation_subscription
        control.set_value('second')
        second = control._async_validation_subscription

        assert control._async_validations == {first, second}

        gates['second'].set()
        await second.task
        assert control._async_validations == {first}

    @pytest.mark.asyncio
    async def test_close_cancels_superseded_validations(self):
        """A closed control receives no result from any earlier validation."""
        gates = {'first': asyncio.Event(), 'second': asyncio.Event()}
        control = FormControl('first')
        control.set_async_validators(gated_validator(gates))
        control.set_value('first')
        first = control._async_validation_subscription
        control.set_value('second')
        second = control._async_validation_subscription

        control.close()
        gates['first'].set()
        gates['second'].set()
        await asyncio.gather(first.task, second.task, return_exceptions=True)

        assert first.task.cancelled()
        assert second.task.cancelled()
        assert control.pending
        assert control.errors is None
        assert not control._async_validations

    @pytest.mark.asyncio
    async def test_removed_control_receives_no_late_result(self):
        gates = {'first': asyncio.Event(), 'second': asyncio.Event()}
        form = FormGroup({'user': FormControl('first')})
        user = form.get('user')
        user.set_async_validators(gated_validator(gates))
        user.set_value('first')
        user.set_value('second')

        form.remove_control('user')
        gates['first'].set()
        gates['second'].set()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert user.errors is None
        assert form.valid

    @pytest.mark.asyncio
    async def test_cancelled_before_start_closes_validator_coroutine(self):
        produced = []

        def validator(control):
            async def produce():
                return None
            coroutine = produce()
            produced.append(coroutine)
            return coroutine

        control = FormControl('x')
        control.set_async_validators(validator)
        control.update_value_and_validity()
        handle = control._async_validation_subscription

        control.close()
        await asyncio.gather(handle.task, return_exceptions=True)
        await asyncio.sleep(0)

        assert handle.task.cancelled()
        assert inspect.getcoroutinestate(produced[0]) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_cancel_superseded_async(self):
        """With cancel_superseded_async the last REQUEST wins instead."""
        gates = {'first': asyncio.Event(), 'second': asyncio.Event()}

        with config_context(cancel_superseded_async=True):
            control = FormControl('first')
            control.set_async_validators(gated_validator(gates))
            control.set_value('first')
            first = control._async_validation_subscription
            control.set_value('second')
            second = control._async_validation_subscription

        await asyncio.gather(first.task, return_exceptions=True)
        assert first.task.cancelled()

        gates['first'].set()
        gates['second'].set()
        await second.task

        assert control.errors == {'result': 'second'}

    @pytest.mark.asyncio
    async def test_close_cancels_live_validation(self):
        gates = {'x': asyncio.Event()}
        control = FormControl('x')
        control.set_async_validators(gated_validator(gates))
        control.update_value_and_validity()
        handle = control._async_validation_subscription

        control.close()
        await asyncio.gather(handle.task, return_exceptions=True)

        assert handle.task.cancelled()

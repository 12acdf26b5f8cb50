"""
Asynchronous validator subscriptions.

An async validator may return:
- an awaitable (coroutine, Task, Future): one result is delivered when it completes
- an async iterator: every yielded error mapping is delivered in turn
- anything else: delivered immediately, in the caller's turn

All three are normalised into one delivery callback. Nothing here orders
overlapping validations of the same control: every live subscription
delivers when its producer yields, so the last producer to finish wins.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class AsyncValidationLoopError(RuntimeError):
    """An async validator returned an awaitable outside a running event loop."""


class DeferredLoopErrors:
    """Run the steps of one tree mutation so that a missing event loop in
    one step does not skip the others; the first error is raised at the end.

    Example:
        steps = DeferredLoopErrors()
        for control in children:
            steps.run(control.enable, only_self=True)
        steps.run(self._update_ancestors, only_self, emit_event)
        steps.raise_first()
    """

    def __init__(self):
        self.failure: Optional[AsyncValidationLoopError] = None

    def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except AsyncValidationLoopError as e:
            if self.failure is None:
                self.failure = e
            return None

    def raise_first(self) -> None:
        if self.failure is not None:
            raise self.failure


class AsyncValidationHandle:
    """Handle on one async-validation subscription of a control."""

    def __init__(self, task: Optional['asyncio.Task'] = None):
        self._task = task

    @property
    def task(self) -> Optional['asyncio.Task']:
        return self._task

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> bool:
        """Cancel the subscription if it is still live.

        Returns:
            True if a live subscription was cancelled
        """
        if self._task is not None and not self._task.done():
            return self._task.cancel()
        return False

    def add_done_callback(self, fn: Callable[['AsyncValidationHandle'], None]) -> None:
        """Call ``fn(handle)`` once the subscription finishes or is cancelled."""
        if self.done:
            fn(self)
        else:
            self._task.add_done_callback(lambda task: fn(self))

    def __repr__(self) -> str:
        return f"AsyncValidationHandle(done={self.done})"


def _is_async_producer(result: Any) -> bool:
    return inspect.isawaitable(result) or hasattr(result, '__aiter__')


async def _consume(result: Any, deliver: Callable[[Any], None], label: str) -> None:
    try:
        if inspect.isawaitable(result):
            deliver(await result)
        else:
            async for errors in result:
                deliver(errors)
    except Exception:
        # No caller frame to propagate to; the control stays PENDING
        logger.exception(f"Async validator for {label} failed; control stays PENDING")


def subscribe_async_result(result: Any, deliver: Callable[[Any], None], label: str = "control") -> AsyncValidationHandle:
    """Subscribe ``deliver`` to the outcome of an async validator call.

    Args:
        result: Return value of the async validator
        deliver: Called with each error mapping (or None) the producer yields
        label: Name used in log messages

    Returns:
        Handle for the live subscription

    Raises:
        AsyncValidationLoopError: ``result`` needs an event loop and none is
            running
    """
    if not _is_async_producer(result):
        deliver(result)
        return AsyncValidationHandle()

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(result):
            result.close()
        raise AsyncValidationLoopError(
            f"Async validator for {label} returned an awaitable but no asyncio event loop is running"
        ) from None

    task = loop.create_task(_consume(result, deliver, label))
    if inspect.iscoroutine(result):
        # A task cancelled before its first step never awaits ``result``
        task.add_done_callback(lambda _: result.close())
    logger.debug(f"Async validation started for {label}")
    return AsyncValidationHandle(task)

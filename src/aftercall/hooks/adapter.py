"""Result adapter: run the real operation, then dispatch its hooks.

Normalizes the invocation shapes into one execution-record path:
- synchronous call returning a value (or raising)
- coroutine function / awaitable-returning function with no value
- coroutine function / awaitable-returning function with a value

Coroutines, tasks and futures are all awaited the same way. Whatever the
shape, the caller observes exactly what the real operation produced; hooks
only ever add latency.
"""

import asyncio
import collections.abc
import inspect
import logging
import time
import typing
import weakref
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from aftercall.hooks.dispatcher import HookDispatcher
from aftercall.hooks.errors import HookExecutionError
from aftercall.hooks.types import ExecutionRecord, operation_key

logger = logging.getLogger(__name__)


class ReturnShape(Enum):
    """Declared completion shape of an operation."""

    SYNC = "sync"
    ASYNC_NO_VALUE = "async_no_value"
    ASYNC_VALUE = "async_value"


def _is_none_type(annotation: Any) -> bool:
    return annotation is None or annotation is type(None)


# Weak keys: an entry lives only as long as its callable
_shapes: "weakref.WeakKeyDictionary[Callable[..., Any], ReturnShape]" = (
    weakref.WeakKeyDictionary()
)


def _classify(fn: Callable[..., Any]) -> ReturnShape:
    try:
        returns = typing.get_type_hints(fn).get("return", inspect.Signature.empty)
    except Exception:
        returns = inspect.Signature.empty

    if inspect.iscoroutinefunction(fn):
        return ReturnShape.ASYNC_NO_VALUE if _is_none_type(returns) else ReturnShape.ASYNC_VALUE

    origin = typing.get_origin(returns) or returns
    if isinstance(origin, type) and issubclass(origin, collections.abc.Awaitable):
        args = typing.get_args(returns)
        # Awaitable[T] / Future[T] carry T first, Coroutine[Y, S, T] carries it last
        value_type = args[-1] if args else Any
        if _is_none_type(value_type):
            return ReturnShape.ASYNC_NO_VALUE
        return ReturnShape.ASYNC_VALUE

    return ReturnShape.SYNC


def classify_return_shape(fn: Callable[..., Any]) -> ReturnShape:
    """Classify an operation by its declaration.

    Coroutine functions are asynchronous; so are plain functions annotated
    to return an awaitable (Awaitable, Coroutine, asyncio.Future,
    asyncio.Task). A ``None`` value type means no value. Everything else is
    synchronous.
    """
    fn = getattr(fn, "__func__", fn)
    try:
        shape = _shapes.get(fn)
    except TypeError:
        # Unhashable or not weakly referenceable; classify without caching
        return _classify(fn)
    if shape is None:
        shape = _shapes[fn] = _classify(fn)
    return shape


@dataclass
class _Invocation:
    """State captured before the real operation runs."""

    operation: Callable[..., Any]
    key: str
    instance: Any
    parameter_names: tuple[str, ...]
    arguments: tuple[Any, ...]
    start_time: datetime
    started: float
    caller: Any


def _receiver(operation: Callable[..., Any]) -> Any:
    receiver = getattr(operation, "__self__", None)
    # Bound classmethods carry the class, which is not a receiver instance
    if isinstance(receiver, type) or inspect.ismodule(receiver):
        return None
    return receiver


def _align_arguments(
    operation: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> tuple[tuple[str, ...], tuple[Any, ...]]:
    """Map the call's arguments onto the operation's formal parameters."""
    try:
        bound = inspect.signature(operation).bind(*args, **kwargs)
    except (TypeError, ValueError):
        # The real call will fail the same way; the record then has no arguments
        logger.debug("Could not align arguments for %s", operation_key(operation))
        return (), ()
    bound.apply_defaults()
    return tuple(bound.arguments.keys()), tuple(bound.arguments.values())


class ResultAdapter:
    """Runs operations and hands their sealed records to the dispatcher.

    Example:
        adapter = ResultAdapter(HookDispatcher(options, services))
        total = adapter.invoke(calculator.add, (2, 3))
        user = await adapter.invoke(users.fetch, (42,))
    """

    def __init__(self, dispatcher: HookDispatcher):
        self.dispatcher = dispatcher

    def invoke(
        self,
        operation: Callable[..., Any],
        args: tuple[Any, ...] = (),
        kwargs: dict[str, Any] | None = None,
        *,
        instance: Any = None,
        shape: ReturnShape | None = None,
        caller: Any = None,
    ) -> Any:
        """Run ``operation(*args, **kwargs)`` and dispatch its hooks.

        Args:
            operation: The real callable (usually a bound method)
            args: Positional arguments
            kwargs: Keyword arguments
            instance: Receiver; defaults to the bound method's ``__self__``
            shape: Completion shape; classified from the declaration if omitted
            caller: Optional diagnostic reference stored on the record

        Returns:
            For synchronous operations, the operation's own result. For
            asynchronous ones, a coroutine resolving to the operation's own
            result once hooks have run.

        Raises:
            Exception: The operation's own exception, always re-raised
            HookExecutionError: Hooks aborted after a successful operation
        """
        kwargs = kwargs or {}
        if instance is None:
            instance = _receiver(operation)
        declared = shape is not None
        if shape is None:
            shape = classify_return_shape(operation)

        names, values = _align_arguments(operation, args, kwargs)
        invocation = _Invocation(
            operation=operation,
            key=operation_key(operation),
            instance=instance,
            parameter_names=names,
            arguments=values,
            start_time=datetime.now(timezone.utc),
            started=time.perf_counter(),
            caller=caller,
        )

        try:
            outcome = operation(*args, **kwargs)
        except Exception as e:
            self._finish_failed_sync(self._seal(invocation, exception=e), e)
            raise

        if shape is ReturnShape.SYNC and not declared and inspect.isawaitable(outcome):
            # Undeclared function that nevertheless handed back an awaitable
            shape = ReturnShape.ASYNC_VALUE

        if shape is ReturnShape.SYNC:
            self._dispatch_blocking(self._seal(invocation, result=outcome))
            return outcome

        return self._complete_async(outcome, shape, invocation)

    async def _complete_async(
        self, awaitable: Awaitable[Any], shape: ReturnShape, invocation: _Invocation
    ) -> Any:
        try:
            value = await awaitable
        except Exception as e:
            record = self._seal(invocation, exception=e)
            try:
                await self._dispatch(record)
            except HookExecutionError:
                logger.warning(
                    "Hooks aborted for failed operation %s; re-raising its own exception",
                    record.operation_key,
                )
                raise e
            raise

        result = None if shape is ReturnShape.ASYNC_NO_VALUE else value
        await self._dispatch(self._seal(invocation, result=result))
        return value

    def _finish_failed_sync(self, record: ExecutionRecord, error: Exception) -> None:
        try:
            self._dispatch_blocking(record)
        except HookExecutionError:
            logger.warning(
                "Hooks aborted for failed operation %s; re-raising its own exception",
                record.operation_key,
            )
            raise error

    def _seal(
        self,
        invocation: _Invocation,
        *,
        result: Any = None,
        exception: Exception | None = None,
    ) -> ExecutionRecord:
        elapsed = timedelta(seconds=time.perf_counter() - invocation.started)
        return ExecutionRecord(
            operation=getattr(invocation.operation, "__func__", invocation.operation),
            operation_key=invocation.key,
            instance=invocation.instance,
            parameter_names=invocation.parameter_names,
            arguments=invocation.arguments,
            start_time=invocation.start_time,
            elapsed=elapsed,
            result=result,
            exception=exception,
            caller=invocation.caller,
        )

    async def _dispatch(self, record: ExecutionRecord) -> None:
        if self.dispatcher.should_dispatch(record):
            await self.dispatcher.dispatch(record)

    def _dispatch_blocking(self, record: ExecutionRecord) -> None:
        """Dispatch from synchronous code, waiting for every hook to finish."""
        if not self.dispatcher.should_dispatch(record):
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.dispatcher.dispatch(record))
            return

        # This thread already runs a loop; use a private one in a worker thread
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="aftercall-dispatch") as pool:
            pool.submit(lambda: asyncio.run(self.dispatcher.dispatch(record))).result()

"""Hook dispatcher for aftercall.

Runs the hook bindings of one sealed ExecutionRecord: production skipping,
ordering, guard evaluation, handler resolution, parameter binding,
invocation with a timeout, and the per-binding error policy.
"""

import asyncio
import contextvars
import functools
import inspect
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from aftercall.config import HookErrorPolicy, HookOptions
from aftercall.hooks.binder import ParameterBinder
from aftercall.hooks.declarations import is_skipped_in_production
from aftercall.hooks.errors import (
    HookExecutionError,
    HookGuardError,
    HookResolutionError,
    HookTimeoutError,
)
from aftercall.hooks.registry import HookMetadataRegistry
from aftercall.hooks.types import (
    DispatchResult,
    ExecutionRecord,
    HookBinding,
    HookFailure,
    HookMetadata,
    import_dotted_path,
)
from aftercall.services import ServiceRegistry

logger = logging.getLogger(__name__)


class HookDispatcher:
    """Orchestrates post-execution hooks for one record at a time.

    Bindings run strictly sequentially in ascending ``order`` (declaration
    order on ties), so a handler sees every change earlier handlers made to
    ``record.items``.

    When a timeout is configured, synchronous handlers run on a thread pool
    owned by the dispatcher. A thread cannot be cancelled: a handler that
    overruns the timeout is abandoned, keeps running in its worker and may
    still touch ``record.items`` after later handlers have run. Call
    ``shutdown`` to release the pool.
    """

    def __init__(
        self,
        options: HookOptions | None = None,
        services: ServiceRegistry | None = None,
        binder: ParameterBinder | None = None,
        registry: type[HookMetadataRegistry] = HookMetadataRegistry,
    ):
        self.options = options or HookOptions()
        self.services = services or ServiceRegistry()
        self.binder = binder or ParameterBinder(
            self.services, auto_resolve=self.options.auto_resolve_parameters
        )
        self.registry = registry
        self._thread_pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    def shutdown(self) -> None:
        """Release the handler thread pool without waiting for abandoned handlers."""
        with self._pool_lock:
            if self._thread_pool is not None:
                self._thread_pool.shutdown(wait=False)
                self._thread_pool = None

    def _get_thread_pool(self) -> ThreadPoolExecutor:
        # Not the loop's default executor: asyncio.run joins that one on exit
        with self._pool_lock:
            if self._thread_pool is None:
                self._thread_pool = ThreadPoolExecutor(thread_name_prefix="aftercall-hook")
            return self._thread_pool

    def should_dispatch(self, record: ExecutionRecord) -> bool:
        """Check, without running anything, whether dispatch would do any work."""
        metadata = self.registry.get(record.operation_key)
        if metadata is None or not metadata.bindings:
            return False
        return not self._skipped_in_production(record, metadata)

    async def dispatch(self, record: ExecutionRecord) -> DispatchResult:
        """Execute the post-execution hooks declared for ``record.operation_key``.

        Args:
            record: The sealed execution record of a finished operation

        Returns:
            DispatchResult listing invoked, skipped and failed handlers.

        Raises:
            HookExecutionError: A failing binding's effective policy says to
                stop, or the global policy defers the first failure to the end
        """
        result = DispatchResult()

        metadata = self.registry.get(record.operation_key)
        if metadata is None or not metadata.bindings:
            return result

        if self._skipped_in_production(record, metadata):
            logger.debug(
                "Skipping hooks for %s in production mode due to skip_hooks_in_production",
                record.operation_key,
            )
            return result

        bindings = sorted(metadata.bindings, key=lambda b: b.order)
        self._trace(
            "Executing %d post-execution hooks for %s", len(bindings), record.operation_key
        )

        deferred: HookFailure | None = None

        for binding in bindings:
            try:
                if not await self._guard_allows(record, metadata, binding):
                    result.skipped.append(binding.display_name)
                    continue
                await self._execute(record, metadata, binding)
            except Exception as e:
                failure = HookFailure(binding=binding, error=e)
                result.failures.append(failure)
                logger.error(
                    "Error executing post-hook %s for %s: %s",
                    binding.display_name,
                    record.operation_key,
                    e,
                    exc_info=e,
                )

                policy = self._effective_policy(binding)
                if policy is HookErrorPolicy.STOP_EXECUTING_HOOKS:
                    raise HookExecutionError(
                        f"Hook method '{binding.display_name}' failed and stopped "
                        f"the hooks of {record.operation_key}",
                        record=record,
                        binding=binding,
                        failures=result.failures,
                    ) from e
                if policy is HookErrorPolicy.RETHROW_AFTER_ALL_HOOKS and deferred is None:
                    deferred = failure
                continue

            result.invoked.append(binding.display_name)

        if deferred is not None:
            raise HookExecutionError(
                f"{len(result.failures)} hook(s) failed for {record.operation_key}; "
                f"first failure in '{deferred.binding.display_name}'",
                record=record,
                binding=deferred.binding,
                failures=result.failures,
            ) from deferred.error

        return result

    def _effective_policy(self, binding: HookBinding) -> HookErrorPolicy:
        # An explicit per-binding flag always wins over the global policy
        if binding.continue_on_error is True:
            return HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK
        if binding.continue_on_error is False:
            return HookErrorPolicy.STOP_EXECUTING_HOOKS
        return self.options.error_policy

    def _skipped_in_production(self, record: ExecutionRecord, metadata: HookMetadata) -> bool:
        if not self.options.is_production:
            return False
        return (
            metadata.skip_in_production
            or is_skipped_in_production(metadata.declaring_type)
            or is_skipped_in_production(record.declaring_type)
        )

    async def _guard_allows(
        self, record: ExecutionRecord, metadata: HookMetadata, binding: HookBinding
    ) -> bool:
        if metadata.guard is None:
            return True

        guard = self._resolve_guard(record, metadata)
        try:
            allowed = guard(record)
            if inspect.isawaitable(allowed):
                allowed = await allowed
        except Exception as e:
            raise HookGuardError(
                f"Guard '{metadata.guard}' of {record.operation_key} raised: {e}"
            ) from e

        if not allowed:
            self._trace(
                "Skipping hook %s for %s due to guard %s returning false",
                binding.display_name,
                record.operation_key,
                metadata.guard,
            )
        return bool(allowed)

    def _resolve_guard(
        self, record: ExecutionRecord, metadata: HookMetadata
    ) -> Callable[[ExecutionRecord], Any]:
        name = metadata.guard
        for owner in (record.instance, metadata.declaring_type):
            if owner is not None and hasattr(owner, name):
                return getattr(owner, name)

        # Declared from YAML or on a free function: look in the owning class or module
        owner_path = record.operation_key.rsplit(".", 1)[0]
        owner = sys.modules.get(owner_path)
        if owner is None:
            try:
                owner = import_dotted_path(owner_path)
            except ImportError as e:
                raise HookGuardError(
                    f"Guard '{name}' of {record.operation_key} cannot be resolved: {e}"
                ) from e
        if not hasattr(owner, name):
            raise HookGuardError(f"Guard '{name}' not found on {owner_path}")
        return getattr(owner, name)

    def _resolve_handler(self, binding: HookBinding) -> Callable[..., Any]:
        try:
            target = binding.resolve_target()
        except ImportError as e:
            raise HookResolutionError(f"Hook type '{binding.target}' cannot be imported") from e

        try:
            member = inspect.getattr_static(target, binding.method)
        except AttributeError:
            raise HookResolutionError(
                f"Hook method '{binding.method}' not found in type '{target.__qualname__}'"
            ) from None

        if isinstance(member, (staticmethod, classmethod)):
            return getattr(target, binding.method)

        instance = self.services.resolve(target)
        if instance is None:
            if not self.options.auto_create_handlers:
                raise HookResolutionError(
                    f"Hook type '{target.__qualname__}' is not registered "
                    "and auto_create_handlers is disabled"
                )
            instance = self.services.construct(target)
            if instance is None:
                raise HookResolutionError(
                    f"Could not create an instance of hook type '{target.__qualname__}'"
                )

        handler = getattr(instance, binding.method)
        if not callable(handler):
            raise HookResolutionError(f"Hook member '{binding.display_name}' is not callable")
        return handler

    async def _execute(
        self, record: ExecutionRecord, metadata: HookMetadata, binding: HookBinding
    ) -> None:
        handler = self._resolve_handler(binding)
        arguments = self.binder.bind(handler, record, binding, metadata)

        self._trace("Invoking hook method %s", binding.display_name)
        timeout = self.options.hook_timeout
        call = self._call_handler(handler, arguments, threaded=timeout is not None)

        if timeout is None:
            outcome = await call
        else:
            try:
                outcome = await asyncio.wait_for(call, timeout)
            except asyncio.TimeoutError as e:
                raise HookTimeoutError(
                    f"Hook method '{binding.display_name}' did not complete "
                    f"within {timeout:g}s"
                ) from e

        if outcome is not None:
            self._trace("Hook method %s returned: %r", binding.display_name, outcome)
        else:
            self._trace("Hook method %s completed successfully", binding.display_name)

    async def _call_handler(
        self, handler: Callable[..., Any], arguments: inspect.BoundArguments, threaded: bool
    ) -> Any:
        if inspect.iscoroutinefunction(handler):
            return await handler(*arguments.args, **arguments.kwargs)

        # Synchronous handlers run in a worker thread when a timeout must be enforced
        if threaded:
            call = functools.partial(
                contextvars.copy_context().run, handler, *arguments.args, **arguments.kwargs
            )
            loop = asyncio.get_running_loop()
            outcome = await loop.run_in_executor(self._get_thread_pool(), call)
        else:
            outcome = handler(*arguments.args, **arguments.kwargs)

        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _trace(self, message: str, *args: Any) -> None:
        level = logging.INFO if self.options.verbose_logging else logging.DEBUG
        logger.log(level, message, *args)

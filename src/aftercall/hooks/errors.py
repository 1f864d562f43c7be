"""Hook dispatch error taxonomy.

- HookResolutionError: handler type/member missing, or no instance available
- HookGuardError: the guard predicate raised or could not be found
- HookTimeoutError: a handler exceeded the configured hook timeout
- HookExecutionError: dispatch aborted; wraps the failure that caused it

The first three are binding failures and obey the binding's error policy.
Only HookExecutionError ever leaves the dispatcher.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aftercall.hooks.types import ExecutionRecord, HookBinding


class HookError(Exception):
    """Base class for all hook dispatch errors."""


class HookResolutionError(HookError):
    """A handler could not be resolved to something callable."""


class HookGuardError(HookError):
    """A guard predicate raised instead of returning a boolean."""


class HookTimeoutError(HookError):
    """A handler did not complete within the configured timeout."""


class HookExecutionError(HookError):
    """Dispatch was aborted because a binding failed.

    The failure that triggered the abort is available as ``__cause__``.

    Attributes:
        record: The execution record being dispatched (carries the
            original operation's result)
        binding: The binding that failed, or None for a deferred rethrow
        failures: Every binding failure collected during the dispatch
    """

    def __init__(
        self,
        message: str,
        record: "ExecutionRecord | None" = None,
        binding: "HookBinding | None" = None,
        failures: list[Any] | None = None,
    ):
        super().__init__(message)
        self.record = record
        self.binding = binding
        self.failures = failures or []

"""aftercall post-execution hook system.

Handlers are declared on an operation and run after it finishes,
successfully or not, with full information about the call:
- call_after: attach a handler (ordered, with its own error policy)
- map_parameter / inject_parameter / map_return_value: feed handler parameters
- execute_when: gate the handlers on a predicate of the declaring class
- skip_hooks_in_production: disable the handlers in production mode

Usage:
    from aftercall.hooks import call_after, hookable, map_return_value

    @hookable
    class Calculator:
        @call_after(ResultLog, "record")
        @map_return_value("total")
        def add(self, a: int, b: int) -> int:
            return a + b
"""

from aftercall.config import HookErrorPolicy
from aftercall.hooks.adapter import ResultAdapter, ReturnShape, classify_return_shape
from aftercall.hooks.binder import CONTEXT_PARAMETER, RETURN_VALUE_PARAMETER, ParameterBinder
from aftercall.hooks.declarations import (
    call_after,
    execute_when,
    inject_parameter,
    map_parameter,
    map_return_value,
    skip_hooks_in_production,
)
from aftercall.hooks.dispatcher import HookDispatcher
from aftercall.hooks.errors import (
    HookError,
    HookExecutionError,
    HookGuardError,
    HookResolutionError,
    HookTimeoutError,
)
from aftercall.hooks.registry import HookMetadataRegistry, hookable
from aftercall.hooks.types import (
    DispatchResult,
    ExecutionRecord,
    HookBinding,
    HookFailure,
    HookMetadata,
    InjectedParameter,
    ParameterMapping,
    ReturnValueMapping,
    operation_key,
)

__all__ = [
    "CONTEXT_PARAMETER",
    "DispatchResult",
    "ExecutionRecord",
    "HookBinding",
    "HookDispatcher",
    "HookError",
    "HookErrorPolicy",
    "HookExecutionError",
    "HookFailure",
    "HookGuardError",
    "HookMetadata",
    "HookMetadataRegistry",
    "HookResolutionError",
    "HookTimeoutError",
    "InjectedParameter",
    "ParameterBinder",
    "ParameterMapping",
    "RETURN_VALUE_PARAMETER",
    "ResultAdapter",
    "ReturnShape",
    "ReturnValueMapping",
    "call_after",
    "classify_return_shape",
    "execute_when",
    "hookable",
    "inject_parameter",
    "map_parameter",
    "map_return_value",
    "operation_key",
    "skip_hooks_in_production",
]

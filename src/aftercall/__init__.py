"""aftercall: declarative post-execution hooks for Python operations."""

from aftercall.config import HookErrorPolicy, HookOptions
from aftercall.hooks import (
    ExecutionRecord,
    HookBinding,
    HookDispatcher,
    HookError,
    HookExecutionError,
    HookMetadataRegistry,
    ResultAdapter,
    call_after,
    execute_when,
    hookable,
    inject_parameter,
    map_parameter,
    map_return_value,
    skip_hooks_in_production,
)
from aftercall.proxy import HookProxy, create_proxy
from aftercall.runtime import HookRuntime, create_runtime
from aftercall.services import ServiceRegistry

__version__ = "0.1.0"

__all__ = [
    "ExecutionRecord",
    "HookBinding",
    "HookDispatcher",
    "HookError",
    "HookErrorPolicy",
    "HookExecutionError",
    "HookMetadataRegistry",
    "HookOptions",
    "HookProxy",
    "HookRuntime",
    "ResultAdapter",
    "ServiceRegistry",
    "call_after",
    "create_proxy",
    "create_runtime",
    "execute_when",
    "hookable",
    "inject_parameter",
    "map_parameter",
    "map_return_value",
    "skip_hooks_in_production",
]

"""Declarative hook annotations.

Decorators in this module only attach declarations to the decorated
function; nothing is registered until the registration pass runs
(``@hookable`` on the class, or HookMetadataRegistry.register_class /
register_function).

Usage:
    @hookable
    class UserService:
        @call_after(AuditLog, "record_login", order=1)
        @call_after("myapp.alerts.BruteForceDetector", "check")
        @map_parameter("username", "user")
        @map_return_value("success")
        @execute_when("should_audit")
        async def authenticate(self, username: str, password: str) -> bool:
            ...

Declaration order is source order: stacked decorators are applied bottom-up,
so each one prepends its entry.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from aftercall.hooks.types import (
    HookBinding,
    InjectedParameter,
    ParameterMapping,
    ReturnValueMapping,
)

F = TypeVar("F")

_DECLARATIONS_ATTR = "__aftercall_declarations__"
_SKIP_ATTR = "__aftercall_skip_in_production__"


@dataclass
class Declarations:
    """Declarations collected on one function, before registration."""

    bindings: list[HookBinding] = field(default_factory=list)
    mappings: list[ParameterMapping] = field(default_factory=list)
    injections: list[InjectedParameter] = field(default_factory=list)
    return_values: list[ReturnValueMapping] = field(default_factory=list)
    guard: str | None = None
    skip_in_production: bool = False


def _underlying(obj: Any) -> Callable[..., Any]:
    # staticmethod / classmethod objects keep the real function in __func__
    return getattr(obj, "__func__", obj)


def get_declarations(obj: Any) -> Declarations | None:
    """Return the declarations attached to a function, if any."""
    return getattr(_underlying(obj), _DECLARATIONS_ATTR, None)


def _declarations_for(obj: Any) -> Declarations:
    fn = _underlying(obj)
    if not callable(fn):
        raise TypeError(f"Hook declarations can only decorate functions, got {obj!r}")
    declarations = getattr(fn, _DECLARATIONS_ATTR, None)
    if declarations is None:
        declarations = Declarations()
        setattr(fn, _DECLARATIONS_ATTR, declarations)
    return declarations


def call_after(
    target: type | str,
    method: str,
    *,
    order: int = 0,
    include_parameters: bool = True,
    include_return_value: bool = True,
    continue_on_error: bool | None = None,
) -> Callable[[F], F]:
    """Declare a handler to call after the decorated operation completes.

    Args:
        target: Handler class, or its dotted import path
        method: Name of the handler member to call
        order: Lower values run first
        include_parameters: Allow binding from the original arguments
        include_return_value: Allow binding from the original result
        continue_on_error: Override the global error policy for this binding
    """
    if not isinstance(target, (type, str)) or not target:
        raise TypeError("call_after target must be a class or a dotted path")
    if not method:
        raise ValueError("call_after method name is required")

    binding = HookBinding(
        target=target,
        method=method,
        include_parameters=include_parameters,
        include_return_value=include_return_value,
        continue_on_error=continue_on_error,
        order=order,
    )

    def decorator(fn: F) -> F:
        _declarations_for(fn).bindings.insert(0, binding)
        return fn

    return decorator


def map_parameter(source: str, target: str) -> Callable[[F], F]:
    """Bind the operation's parameter ``source`` to handler parameter ``target``."""
    mapping = ParameterMapping(source=source, target=target)

    def decorator(fn: F) -> F:
        _declarations_for(fn).mappings.insert(0, mapping)
        return fn

    return decorator


def inject_parameter(target: str, value: Any) -> Callable[[F], F]:
    """Bind a literal ``value`` to handler parameter ``target``."""
    injection = InjectedParameter(target=target, value=value)

    def decorator(fn: F) -> F:
        _declarations_for(fn).injections.insert(0, injection)
        return fn

    return decorator


def map_return_value(target: str) -> Callable[[F], F]:
    """Bind the operation's return value to handler parameter ``target``."""
    mapping = ReturnValueMapping(target=target)

    def decorator(fn: F) -> F:
        _declarations_for(fn).return_values.insert(0, mapping)
        return fn

    return decorator


def execute_when(guard: str) -> Callable[[F], F]:
    """Gate every binding of the operation on the predicate named ``guard``.

    The predicate is looked up on the declaring class (or the receiver) at
    dispatch time and called with the ExecutionRecord.
    """
    if not guard:
        raise ValueError("execute_when requires a guard name")

    def decorator(fn: F) -> F:
        declarations = _declarations_for(fn)
        if declarations.guard is not None:
            raise ValueError(
                f"{_underlying(fn).__qualname__} already declares guard '{declarations.guard}'"
            )
        declarations.guard = guard
        return fn

    return decorator


def skip_hooks_in_production(obj: F) -> F:
    """Disable all hooks of a function, or of every method of a class, in production."""
    if isinstance(obj, type):
        setattr(obj, _SKIP_ATTR, True)
    else:
        _declarations_for(obj).skip_in_production = True
    return obj


def is_skipped_in_production(cls: type | None) -> bool:
    """Check whether a class (or one of its bases) carries the production skip marker."""
    return bool(cls is not None and getattr(cls, _SKIP_ATTR, False))

"""Hook system types for aftercall.

Defines the core data structures for the post-execution hook system:
- ExecutionRecord: sealed snapshot of one finished operation invocation
- HookBinding: metadata describing which handler runs after an operation
- ParameterMapping / InjectedParameter / ReturnValueMapping: binding directives
- HookMetadata: everything declared for one operation
"""

import functools
import importlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable


def operation_key(fn: Callable[..., Any]) -> str:
    """Return the stable identity of an operation: ``<module>.<qualname>``.

    Bound methods, staticmethod and classmethod wrappers and
    ``functools.partial`` objects are unwrapped so that every way of reaching
    the same function yields the same key. A callable instance is keyed by
    its class's ``__call__``.
    """
    while isinstance(fn, functools.partial):
        fn = fn.func
    fn = getattr(fn, "__func__", fn)
    if not hasattr(fn, "__qualname__"):
        owner = type(fn)
        return f"{owner.__module__}.{owner.__qualname__}.__call__"
    return f"{fn.__module__}.{fn.__qualname__}"


def import_dotted_path(path: str) -> Any:
    """Import an object from a dotted path such as ``pkg.module.Class``.

    Nested attributes are supported (``pkg.module.Outer.Inner``): the longest
    importable module prefix is imported and the rest is walked with getattr.

    Raises:
        ImportError: If no prefix of the path is importable or an attribute
            along the way does not exist
    """
    parts = path.split(".")
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            obj = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attr in parts[split:]:
                obj = getattr(obj, attr)
        except AttributeError as e:
            raise ImportError(f"Cannot resolve '{path}': {e}") from e
        return obj
    raise ImportError(f"Cannot import any module from '{path}'")


@dataclass(frozen=True)
class HookBinding:
    """A handler declared to run after an operation.

    Attributes:
        target: Handler type, or its dotted import path (resolved lazily)
        method: Name of the handler member to call
        include_parameters: Bind handler parameters from the original arguments
        include_return_value: Bind handler parameters from the original result
        continue_on_error: Keep dispatching when this binding fails.
            None defers to the global HookErrorPolicy.
        order: Sort key, lower runs first; ties keep declaration order
    """

    target: type | str
    method: str
    include_parameters: bool = True
    include_return_value: bool = True
    continue_on_error: bool | None = None
    order: int = 0

    @property
    def target_name(self) -> str:
        if isinstance(self.target, str):
            return self.target.rsplit(".", 1)[-1]
        return self.target.__name__

    @property
    def display_name(self) -> str:
        """Human-readable ``Handler.method`` used in logs and errors."""
        return f"{self.target_name}.{self.method}"

    def resolve_target(self) -> type:
        """Resolve the handler type, importing it when declared by path."""
        if isinstance(self.target, str):
            return import_dotted_path(self.target)
        return self.target

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HookBinding":
        """Create HookBinding from a YAML/JSON dict."""
        return cls(
            target=data["handler"],
            method=data["method"],
            include_parameters=data.get("includeParameters", True),
            include_return_value=data.get("includeReturnValue", True),
            continue_on_error=data.get("continueOnError"),
            order=data.get("order", 0),
        )


@dataclass(frozen=True)
class ParameterMapping:
    """Binds the original parameter ``source`` to handler parameter ``target``."""

    source: str
    target: str


@dataclass(frozen=True)
class InjectedParameter:
    """Binds a literal value to handler parameter ``target``."""

    target: str
    value: Any = None


@dataclass(frozen=True)
class ReturnValueMapping:
    """Binds the original return value to handler parameter ``target``."""

    target: str


@dataclass(frozen=True)
class HookMetadata:
    """Everything declared for one operation.

    Built once by the registration pass and shared read-only by every
    dispatch of that operation. Directive lookups are keyed by the target
    parameter name.

    Attributes:
        operation_key: Identity of the operation (see operation_key())
        bindings: Hook bindings in declaration order
        parameter_mappings: target name -> source parameter name
        injected_parameters: target name -> literal value
        return_value_targets: names that receive the return value
        guard: Name of the predicate gating every binding, if any
        skip_in_production: Disable all hooks in production mode
        declaring_type: Class that declares the operation, if known
    """

    operation_key: str
    bindings: tuple[HookBinding, ...] = ()
    parameter_mappings: dict[str, str] = field(default_factory=dict)
    injected_parameters: dict[str, Any] = field(default_factory=dict)
    return_value_targets: frozenset[str] = frozenset()
    guard: str | None = None
    skip_in_production: bool = False
    declaring_type: type | None = None

    @classmethod
    def build(
        cls,
        operation_key: str,
        bindings: list[HookBinding],
        mappings: list[ParameterMapping] | None = None,
        injections: list[InjectedParameter] | None = None,
        return_values: list[ReturnValueMapping] | None = None,
        guard: str | None = None,
        skip_in_production: bool = False,
        declaring_type: type | None = None,
    ) -> "HookMetadata":
        """Assemble metadata from declaration lists."""
        return cls(
            operation_key=operation_key,
            bindings=tuple(bindings),
            parameter_mappings={m.target: m.source for m in mappings or []},
            injected_parameters={i.target: i.value for i in injections or []},
            return_value_targets=frozenset(r.target for r in return_values or []),
            guard=guard,
            skip_in_production=skip_in_production,
            declaring_type=declaring_type,
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """Sealed snapshot of one finished operation invocation.

    A record is only built once the operation, including any asynchronous
    completion, has finished, so ``elapsed`` is always final. ``items`` is
    the only mutable part: handlers use it to pass data to later handlers
    within the same dispatch.

    Attributes:
        operation: The invoked function
        operation_key: Identity used to look up the operation's metadata
        instance: Receiver object, or None for a free/static function
        parameter_names: Formal parameter names of the operation (no receiver)
        arguments: Argument values aligned with parameter_names
        result: Return value (None for void-like operations or on failure)
        exception: The raised exception, or None on success
        start_time: UTC timestamp taken just before the call
        elapsed: Wall-clock duration of the call
        items: Shared bag for inter-hook communication
        caller: Optional diagnostic reference supplied by the interceptor
    """

    operation: Callable[..., Any]
    operation_key: str
    instance: Any
    parameter_names: tuple[str, ...]
    arguments: tuple[Any, ...]
    start_time: datetime
    elapsed: timedelta
    result: Any = None
    exception: Exception | None = None
    items: dict[str, Any] = field(default_factory=dict)
    caller: Any = None

    def __post_init__(self) -> None:
        if self.exception is not None and self.result is not None:
            raise ValueError("An execution record cannot hold both a result and an exception")
        if len(self.parameter_names) != len(self.arguments):
            raise ValueError("arguments must align with parameter_names")

    @property
    def is_success(self) -> bool:
        return self.exception is None

    @property
    def declaring_type(self) -> type | None:
        """Class of the receiver, when there is one."""
        if self.instance is None:
            return None
        return type(self.instance)

    def get_parameter_value(self, name: str, default: Any = None) -> Any:
        """Return the argument passed for parameter ``name``."""
        try:
            return self.arguments[self.parameter_names.index(name)]
        except ValueError:
            return default

    def get_result(self, expected_type: type) -> Any:
        """Return the result if it is an instance of ``expected_type``, else None."""
        if isinstance(self.result, expected_type):
            return self.result
        return None

    def __str__(self) -> str:
        status = "succeeded" if self.is_success else "failed"
        millis = self.elapsed.total_seconds() * 1000
        return f"Method {self.operation_key} {status} in {millis:.2f}ms"


@dataclass
class HookFailure:
    """A binding that failed during a dispatch."""

    binding: HookBinding
    error: Exception

    def __str__(self) -> str:
        return f"{self.binding.display_name}: {self.error}"


@dataclass
class DispatchResult:
    """Outcome of one dispatch.

    Attributes:
        invoked: Handlers that ran to completion, in order
        skipped: Handlers whose guard returned false
        failures: Bindings that failed (guard, resolution, invocation, timeout)
    """

    invoked: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[HookFailure] = field(default_factory=list)

    @property
    def ran_clean(self) -> bool:
        return not self.failures

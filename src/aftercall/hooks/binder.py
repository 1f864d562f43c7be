"""Parameter binding for hook handlers.

Each formal parameter of a handler is resolved independently, first match
wins:

1. A return-value mapping targets the name (and the binding includes the
   return value) -> the operation's result
2. The name is ``return_value`` (and the binding includes the return value)
   -> the operation's result
3. The name is ``context`` and it is annotated as ExecutionRecord
   -> the record itself
4. An injected literal targets the name -> that literal
5. The binding includes parameters and the operation had a parameter with
   this name (after applying rename mappings) -> the original argument
6. Service resolution is enabled and a service of the annotated type is
   registered -> that service
7. The parameter's default, else None

Binding never fails on its own: a handler called with None for parameters
nobody could supply is intended.
"""

import inspect
import logging
import typing
from typing import Any, Callable

from aftercall.hooks.types import ExecutionRecord, HookBinding, HookMetadata
from aftercall.services import ServiceRegistry

logger = logging.getLogger(__name__)

RETURN_VALUE_PARAMETER = "return_value"
CONTEXT_PARAMETER = "context"

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class ParameterBinder:
    """Builds the arguments for one handler invocation."""

    def __init__(self, services: ServiceRegistry | None = None, auto_resolve: bool = True):
        self.services = services or ServiceRegistry()
        self.auto_resolve = auto_resolve

    def bind(
        self,
        handler: Callable[..., Any],
        record: ExecutionRecord,
        binding: HookBinding,
        metadata: HookMetadata,
    ) -> inspect.BoundArguments:
        """Resolve every parameter of ``handler`` for this record and binding.

        Args:
            handler: The callable to invoke (bound method, function, ...)
            record: The sealed execution record
            binding: The binding being dispatched
            metadata: The operation's metadata (mapping directives)

        Returns:
            BoundArguments ready for ``handler(*bound.args, **bound.kwargs)``
        """
        signature = inspect.signature(handler)
        hints = _type_hints(handler)
        values: dict[str, Any] = {}

        for name, param in signature.parameters.items():
            if param.kind in _SKIPPED_KINDS:
                continue
            annotation = hints.get(name, param.annotation)
            values[name] = self._resolve(name, param, annotation, record, binding, metadata)

        return _bind(signature, values)

    def _resolve(
        self,
        name: str,
        param: inspect.Parameter,
        annotation: Any,
        record: ExecutionRecord,
        binding: HookBinding,
        metadata: HookMetadata,
    ) -> Any:
        if binding.include_return_value and name in metadata.return_value_targets:
            return record.result

        if binding.include_return_value and name == RETURN_VALUE_PARAMETER:
            return record.result

        if name == CONTEXT_PARAMETER and _is_record_annotation(annotation):
            return record

        if name in metadata.injected_parameters:
            return metadata.injected_parameters[name]

        if binding.include_parameters:
            source = metadata.parameter_mappings.get(name, name)
            if source in record.parameter_names:
                return record.get_parameter_value(source)

        if self.auto_resolve and isinstance(annotation, type):
            service = self.services.resolve(annotation)
            if service is not None:
                return service

        if param.default is not inspect.Parameter.empty:
            return param.default
        return None


def _type_hints(handler: Callable[..., Any]) -> dict[str, Any]:
    """Evaluated annotations of ``handler``; empty when they cannot be resolved."""
    target = getattr(handler, "__func__", handler)
    try:
        return typing.get_type_hints(target)
    except Exception:
        logger.debug("Could not evaluate annotations of %r", handler, exc_info=True)
        return {}


def _is_record_annotation(annotation: Any) -> bool:
    if annotation is ExecutionRecord:
        return True
    # Unevaluated string annotation, e.g. under `from __future__ import annotations`
    return isinstance(annotation, str) and annotation.rsplit(".", 1)[-1] == "ExecutionRecord"


def _bind(signature: inspect.Signature, values: dict[str, Any]) -> inspect.BoundArguments:
    # Pass positionally so positional-only parameters bind too
    args = []
    kwargs = {}
    for name, param in signature.parameters.items():
        if name not in values:
            continue
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            kwargs[name] = values[name]
        else:
            args.append(values[name])
    return signature.bind(*args, **kwargs)

"""Hook metadata registry for aftercall.

Maps operation identity to its immutable HookMetadata. The registry is
populated once at startup by an explicit registration pass (the @hookable
class decorator, register_class / register_function, or the YAML loader);
the dispatcher only ever reads from it.
"""

import logging
import sys
from typing import Any, Callable, TypeVar

from aftercall.hooks.declarations import Declarations, get_declarations
from aftercall.hooks.types import HookMetadata, operation_key

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=type)


class HookMetadataRegistry:
    """Registry of hook metadata keyed by operation key.

    Example:
        HookMetadataRegistry.register_class(UserService)

        # Later, at dispatch time
        metadata = HookMetadataRegistry.get("myapp.users.UserService.authenticate")
    """

    _metadata: dict[str, HookMetadata] = {}

    @classmethod
    def register(cls, metadata: HookMetadata) -> None:
        """Register metadata for an operation.

        Re-registering a key replaces the previous metadata, so a YAML file
        loaded after the code declarations wins.
        """
        if metadata.operation_key in cls._metadata:
            logger.info("Replacing hook metadata for %s", metadata.operation_key)
        cls._metadata[metadata.operation_key] = metadata
        logger.debug(
            "Registered %d hook binding(s) for %s",
            len(metadata.bindings),
            metadata.operation_key,
        )

    @classmethod
    def get(cls, operation: str | Callable[..., Any]) -> HookMetadata | None:
        """Get metadata by operation key or by the operation function itself."""
        key = operation if isinstance(operation, str) else operation_key(operation)
        return cls._metadata.get(key)

    @classmethod
    def has_bindings(cls, operation: str | Callable[..., Any]) -> bool:
        """Check if an operation has at least one hook binding."""
        metadata = cls.get(operation)
        return metadata is not None and bool(metadata.bindings)

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered operation keys."""
        return sorted(cls._metadata.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._metadata.clear()

    @classmethod
    def register_class(cls, target: type) -> list[str]:
        """Register every decorated method declared directly on ``target``.

        Returns:
            The operation keys registered

        Raises:
            ValueError: If a method declares a guard the class does not define
        """
        registered = []
        for name, member in vars(target).items():
            declarations = get_declarations(member)
            if declarations is None:
                continue
            if declarations.guard and not hasattr(target, declarations.guard):
                raise ValueError(
                    f"Guard '{declarations.guard}' for {target.__qualname__}.{name} "
                    f"is not defined on {target.__qualname__}"
                )
            key = operation_key(member)
            cls.register(_to_metadata(key, declarations, declaring_type=target))
            registered.append(key)
        return registered

    @classmethod
    def register_function(cls, fn: Callable[..., Any]) -> str:
        """Register a decorated module-level function.

        Guards for free functions are looked up in the function's module.

        Raises:
            ValueError: If the function carries no declarations or its guard
                is not defined in its module
        """
        declarations = get_declarations(fn)
        if declarations is None:
            raise ValueError(f"{operation_key(fn)} has no hook declarations")
        module = sys.modules.get(fn.__module__)
        if declarations.guard and not hasattr(module, declarations.guard):
            raise ValueError(
                f"Guard '{declarations.guard}' for {operation_key(fn)} "
                f"is not defined in module {fn.__module__}"
            )
        key = operation_key(fn)
        cls.register(_to_metadata(key, declarations))
        return key


def _to_metadata(
    key: str, declarations: Declarations, declaring_type: type | None = None
) -> HookMetadata:
    return HookMetadata.build(
        operation_key=key,
        bindings=declarations.bindings,
        mappings=declarations.mappings,
        injections=declarations.injections,
        return_values=declarations.return_values,
        guard=declarations.guard,
        skip_in_production=declarations.skip_in_production,
        declaring_type=declaring_type,
    )


def hookable(cls: C) -> C:
    """Class decorator running the registration pass for ``cls``.

    Usage:
        @hookable
        class OrderService:
            @call_after(OrderAudit, "record")
            def place(self, order_id: str) -> str:
                ...
    """
    HookMetadataRegistry.register_class(cls)
    return cls

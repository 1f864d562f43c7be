"""Typed service registry used to resolve hook handlers and their parameters.

Provides the two outbound capabilities the dispatcher needs:
- resolve(type): an already-registered service, or None
- construct(type): a best-effort new instance, or None

There is no reflective constructor scanning. Dependency-aware construction
happens only through a constructor function registered for the type, which
receives the registry and pulls what it needs from it.
"""

import logging
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Factory = Callable[["ServiceRegistry"], Any]


class ServiceRegistry:
    """Explicit capability lookup by type.

    Example:
        services = ServiceRegistry()
        services.register_instance(AuditLog, AuditLog(sink))
        services.register_factory(Clock, lambda registry: Clock())
        services.register_constructor(
            Notifier, lambda registry: Notifier(registry.resolve(Mailer))
        )
    """

    def __init__(self) -> None:
        self._instances: dict[type, Any] = {}
        self._factories: dict[type, Factory] = {}
        self._constructors: dict[type, Factory] = {}

    def register_instance(self, service_type: type[T], instance: T) -> None:
        """Register a shared instance returned by every resolve()."""
        self._instances[service_type] = instance

    def register_factory(self, service_type: type, factory: Factory) -> None:
        """Register a factory called by every resolve() for a fresh instance."""
        self._factories[service_type] = factory

    def register_constructor(self, service_type: type, constructor: Factory) -> None:
        """Register the dependency-aware constructor used by construct()."""
        self._constructors[service_type] = constructor

    def is_registered(self, service_type: type) -> bool:
        return service_type in self._instances or service_type in self._factories

    def resolve(self, service_type: type[T]) -> T | None:
        """Return the registered service for ``service_type``, or None."""
        if service_type in self._instances:
            return self._instances[service_type]
        factory = self._factories.get(service_type)
        if factory is not None:
            return factory(self)
        return None

    def construct(self, service_type: type[T]) -> T | None:
        """Build a new, unregistered instance of ``service_type``.

        Tries the registered constructor first, then the no-argument
        constructor. Returns None when neither works.
        """
        constructor = self._constructors.get(service_type)
        if constructor is not None:
            try:
                instance = constructor(self)
                logger.debug("Created %s with its registered constructor", service_type.__name__)
                return instance
            except Exception:
                logger.warning(
                    "Registered constructor for %s failed, falling back to %s()",
                    service_type.__name__,
                    service_type.__name__,
                    exc_info=True,
                )

        try:
            instance = service_type()
        except Exception:
            logger.warning(
                "Could not create %s with a no-argument constructor",
                service_type.__name__,
                exc_info=True,
            )
            return None
        logger.debug("Created %s with its no-argument constructor", service_type.__name__)
        return instance

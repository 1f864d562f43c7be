"""Runtime wiring: options, services, binder, dispatcher and adapter."""

from dataclasses import dataclass
from typing import Any

from aftercall.config import HookOptions
from aftercall.hooks.adapter import ResultAdapter
from aftercall.hooks.binder import ParameterBinder
from aftercall.hooks.dispatcher import HookDispatcher
from aftercall.proxy import HookProxy, create_proxy
from aftercall.services import ServiceRegistry


@dataclass
class HookRuntime:
    """The wired components of one hook runtime.

    Attributes:
        options: Dispatch options
        services: Service registry used for handlers and parameters
        binder: Parameter binder
        dispatcher: Hook dispatcher
        adapter: Result adapter fronting the dispatcher
    """

    options: HookOptions
    services: ServiceRegistry
    binder: ParameterBinder
    dispatcher: HookDispatcher
    adapter: ResultAdapter

    def proxy(self, target: Any, caller: Any = None) -> HookProxy:
        """Wrap ``target`` so that its hooked methods dispatch through this runtime."""
        return create_proxy(target, self.adapter, caller)

    def invoke(self, operation: Any, *args: Any, **kwargs: Any) -> Any:
        """Invoke a single operation through the adapter."""
        return self.adapter.invoke(operation, args, kwargs)

    def shutdown(self) -> None:
        """Release the dispatcher's handler threads."""
        self.dispatcher.shutdown()


def create_runtime(
    options: HookOptions | None = None,
    services: ServiceRegistry | None = None,
) -> HookRuntime:
    """Create a HookRuntime.

    Args:
        options: Dispatch options; read from the environment when omitted
        services: Service registry; a new empty one when omitted
    """
    options = options or HookOptions.from_env()
    services = services or ServiceRegistry()
    binder = ParameterBinder(services, auto_resolve=options.auto_resolve_parameters)
    dispatcher = HookDispatcher(options, services, binder)
    return HookRuntime(
        options=options,
        services=services,
        binder=binder,
        dispatcher=dispatcher,
        adapter=ResultAdapter(dispatcher),
    )

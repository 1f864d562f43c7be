"""Interception layer: route hooked method calls through the result adapter."""

import functools
import inspect
import logging
from typing import Any, Callable

from aftercall.hooks.adapter import ResultAdapter
from aftercall.hooks.registry import HookMetadataRegistry

logger = logging.getLogger(__name__)


class HookProxy:
    """Wraps an object so that its hooked methods dispatch post-execution hooks.

    Methods without registered bindings and all other attributes are
    returned unchanged.

    Example:
        service = HookProxy(UserService(), adapter)
        ok = await service.authenticate("ada", "secret")
    """

    __slots__ = ("_target", "_adapter", "_caller")

    def __init__(self, target: Any, adapter: ResultAdapter, caller: Any = None):
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_adapter", adapter)
        object.__setattr__(self, "_caller", caller)

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._target, name)
        if not (inspect.ismethod(attribute) or inspect.isfunction(attribute)):
            return attribute
        if not HookMetadataRegistry.has_bindings(attribute):
            return attribute
        return self._wrap(attribute)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._target, name, value)

    def __repr__(self) -> str:
        return f"HookProxy({self._target!r})"

    def _wrap(self, method: Callable[..., Any]) -> Callable[..., Any]:
        adapter = self._adapter
        target = self._target
        caller = self._caller

        @functools.wraps(method)
        def hooked(*args: Any, **kwargs: Any) -> Any:
            return adapter.invoke(method, args, kwargs, instance=target, caller=caller)

        return hooked


def create_proxy(target: Any, adapter: ResultAdapter, caller: Any = None) -> HookProxy:
    """Create a HookProxy around ``target``."""
    logger.debug("Creating hook proxy for %s", type(target).__qualname__)
    return HookProxy(target, adapter, caller)

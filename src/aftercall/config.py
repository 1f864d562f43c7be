"""Hook runtime configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any

_TRUE_VALUES = ("1", "true", "yes", "on")
_PRODUCTION_ENVS = ("production", "prod")


class HookErrorPolicy(Enum):
    """Process-wide fallback for bindings that leave continue_on_error unset.

    CONTINUE_WITH_NEXT_HOOK: Log the failure and run the next binding
    STOP_EXECUTING_HOOKS: Abort the dispatch at the first failure
    RETHROW_AFTER_ALL_HOOKS: Run every binding, then raise the first failure
    """

    CONTINUE_WITH_NEXT_HOOK = "continue"
    STOP_EXECUTING_HOOKS = "stop"
    RETHROW_AFTER_ALL_HOOKS = "rethrow"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_timeout_ms(value: Any) -> float | None:
    """Convert a millisecond timeout to seconds; 0 / none / null disable it."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().lower()
        if value in ("", "none", "null"):
            return None
    millis = float(value)
    if millis < 0:
        raise ValueError(f"Hook timeout must not be negative: {value}")
    if millis == 0:
        return None
    return millis / 1000


def _parse_policy(value: str | HookErrorPolicy) -> HookErrorPolicy:
    if isinstance(value, HookErrorPolicy):
        return value
    normalized = value.strip().lower()
    for policy in HookErrorPolicy:
        if normalized in (policy.value, policy.name.lower()):
            return policy
    raise ValueError(
        f"Unknown hook error policy '{value}'. "
        f"Expected one of: {', '.join(p.value for p in HookErrorPolicy)}"
    )


@dataclass
class HookOptions:
    """Options controlling hook dispatch.

    Attributes:
        auto_create_handlers: Construct handler instances missing from the
            service registry instead of failing the binding
        auto_resolve_parameters: Fill handler parameters from the service
            registry by their annotated type
        is_production: Honour skip_hooks_in_production markers
        hook_timeout: Per-handler timeout in seconds, None for no limit
        error_policy: Fallback for bindings without continue_on_error
        verbose_logging: Log per-binding activity at INFO instead of DEBUG
    """

    auto_create_handlers: bool = True
    auto_resolve_parameters: bool = True
    is_production: bool = False
    hook_timeout: float | None = 30.0
    error_policy: HookErrorPolicy = HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK
    verbose_logging: bool = False

    @classmethod
    def from_env(cls) -> HookOptions:
        """Create options from environment variables.

        Variables:
        - AFTERCALL_AUTO_CREATE_HANDLERS (bool, default true)
        - AFTERCALL_AUTO_RESOLVE_PARAMETERS (bool, default true)
        - AFTERCALL_ENV ("production" or "prod" enables production mode)
        - AFTERCALL_HOOK_TIMEOUT_MS (default 30000; 0 or "none" disables)
        - AFTERCALL_ERROR_POLICY (continue | stop | rethrow)
        - AFTERCALL_VERBOSE (bool, default false)
        """
        env_name = os.environ.get("AFTERCALL_ENV", "").strip().lower()
        timeout = os.environ.get("AFTERCALL_HOOK_TIMEOUT_MS")
        policy = os.environ.get("AFTERCALL_ERROR_POLICY")

        return cls(
            auto_create_handlers=_env_flag("AFTERCALL_AUTO_CREATE_HANDLERS", True),
            auto_resolve_parameters=_env_flag("AFTERCALL_AUTO_RESOLVE_PARAMETERS", True),
            is_production=env_name in _PRODUCTION_ENVS,
            hook_timeout=_parse_timeout_ms(timeout) if timeout is not None else 30.0,
            error_policy=(
                _parse_policy(policy) if policy else HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK
            ),
            verbose_logging=_env_flag("AFTERCALL_VERBOSE", False),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HookOptions:
        """Create options from the ``options`` block of a YAML declaration file."""
        defaults = cls()
        timeout = (
            _parse_timeout_ms(data["hookTimeoutMs"])
            if "hookTimeoutMs" in data
            else defaults.hook_timeout
        )
        return cls(
            auto_create_handlers=data.get("autoCreateHandlers", defaults.auto_create_handlers),
            auto_resolve_parameters=data.get(
                "autoResolveParameters", defaults.auto_resolve_parameters
            ),
            is_production=data.get("production", defaults.is_production),
            hook_timeout=timeout,
            error_policy=_parse_policy(data.get("errorPolicy", defaults.error_policy)),
            verbose_logging=data.get("verboseLogging", defaults.verbose_logging),
        )

"""Tests for hook runtime configuration."""

import pytest

from aftercall.config import HookErrorPolicy, HookOptions

_ENV_VARS = (
    "AFTERCALL_AUTO_CREATE_HANDLERS",
    "AFTERCALL_AUTO_RESOLVE_PARAMETERS",
    "AFTERCALL_ENV",
    "AFTERCALL_HOOK_TIMEOUT_MS",
    "AFTERCALL_ERROR_POLICY",
    "AFTERCALL_VERBOSE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        options = HookOptions()
        assert options.auto_create_handlers is True
        assert options.auto_resolve_parameters is True
        assert options.is_production is False
        assert options.hook_timeout == 30.0
        assert options.error_policy is HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK
        assert options.verbose_logging is False

    def test_from_env_without_variables(self):
        assert HookOptions.from_env() == HookOptions()


class TestFromEnv:
    def test_flags(self, monkeypatch):
        monkeypatch.setenv("AFTERCALL_AUTO_CREATE_HANDLERS", "false")
        monkeypatch.setenv("AFTERCALL_AUTO_RESOLVE_PARAMETERS", "0")
        monkeypatch.setenv("AFTERCALL_VERBOSE", "yes")
        options = HookOptions.from_env()
        assert options.auto_create_handlers is False
        assert options.auto_resolve_parameters is False
        assert options.verbose_logging is True

    @pytest.mark.parametrize("env", ["production", "prod", "PRODUCTION"])
    def test_production_environment(self, monkeypatch, env):
        monkeypatch.setenv("AFTERCALL_ENV", env)
        assert HookOptions.from_env().is_production is True

    def test_other_environment(self, monkeypatch):
        monkeypatch.setenv("AFTERCALL_ENV", "staging")
        assert HookOptions.from_env().is_production is False

    def test_timeout_in_milliseconds(self, monkeypatch):
        monkeypatch.setenv("AFTERCALL_HOOK_TIMEOUT_MS", "1500")
        assert HookOptions.from_env().hook_timeout == 1.5

    @pytest.mark.parametrize("value", ["0", "none", "NULL"])
    def test_timeout_disabled(self, monkeypatch, value):
        monkeypatch.setenv("AFTERCALL_HOOK_TIMEOUT_MS", value)
        assert HookOptions.from_env().hook_timeout is None

    def test_negative_timeout_rejected(self, monkeypatch):
        monkeypatch.setenv("AFTERCALL_HOOK_TIMEOUT_MS", "-5")
        with pytest.raises(ValueError, match="must not be negative"):
            HookOptions.from_env()

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("stop", HookErrorPolicy.STOP_EXECUTING_HOOKS),
            ("rethrow", HookErrorPolicy.RETHROW_AFTER_ALL_HOOKS),
            ("CONTINUE_WITH_NEXT_HOOK", HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK),
        ],
    )
    def test_error_policy(self, monkeypatch, value, expected):
        monkeypatch.setenv("AFTERCALL_ERROR_POLICY", value)
        assert HookOptions.from_env().error_policy is expected

    def test_unknown_error_policy(self, monkeypatch):
        monkeypatch.setenv("AFTERCALL_ERROR_POLICY", "sometimes")
        with pytest.raises(ValueError, match="Unknown hook error policy 'sometimes'"):
            HookOptions.from_env()


class TestFromDict:
    def test_options_block(self):
        options = HookOptions.from_dict(
            {
                "autoCreateHandlers": False,
                "autoResolveParameters": False,
                "production": True,
                "hookTimeoutMs": 250,
                "errorPolicy": "stop",
                "verboseLogging": True,
            }
        )
        assert options == HookOptions(
            auto_create_handlers=False,
            auto_resolve_parameters=False,
            is_production=True,
            hook_timeout=0.25,
            error_policy=HookErrorPolicy.STOP_EXECUTING_HOOKS,
            verbose_logging=True,
        )

    def test_empty_block_uses_defaults(self):
        assert HookOptions.from_dict({}) == HookOptions()

    def test_null_timeout_disables(self):
        assert HookOptions.from_dict({"hookTimeoutMs": None}).hook_timeout is None

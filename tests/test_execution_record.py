"""Tests for the hook data model: records, bindings, metadata and identity."""

import functools
from datetime import datetime, timedelta, timezone

import pytest

from aftercall.hooks import (
    DispatchResult,
    ExecutionRecord,
    HookBinding,
    HookFailure,
    HookMetadata,
    InjectedParameter,
    ParameterMapping,
    ReturnValueMapping,
    operation_key,
)
from aftercall.hooks.types import import_dotted_path

import sample_app


class Shouter:
    def __call__(self, name: str) -> str:
        return name.upper()


class Greeter:
    def greet(self, name: str) -> str:
        return f"hello {name}"

    @staticmethod
    def shout(name: str) -> str:
        return name.upper()


def make_record(**overrides) -> ExecutionRecord:
    values = dict(
        operation=Greeter.greet,
        operation_key=operation_key(Greeter.greet),
        instance=Greeter(),
        parameter_names=("name",),
        arguments=("ada",),
        start_time=datetime.now(timezone.utc),
        elapsed=timedelta(milliseconds=12.5),
        result="hello ada",
    )
    values.update(overrides)
    return ExecutionRecord(**values)


# =============================================================================
# ExecutionRecord
# =============================================================================


class TestExecutionRecord:
    def test_success_record(self):
        record = make_record()
        assert record.is_success
        assert record.exception is None
        assert record.result == "hello ada"

    def test_failure_record(self):
        error = ValueError("boom")
        record = make_record(result=None, exception=error)
        assert not record.is_success
        assert record.exception is error

    def test_result_and_exception_are_exclusive(self):
        with pytest.raises(ValueError, match="both a result and an exception"):
            make_record(exception=ValueError("boom"))

    def test_arguments_must_align_with_names(self):
        with pytest.raises(ValueError, match="align"):
            make_record(arguments=("ada", "extra"))

    def test_declaring_type_from_instance(self):
        assert make_record().declaring_type is Greeter
        assert make_record(instance=None).declaring_type is None

    def test_get_parameter_value(self):
        record = make_record()
        assert record.get_parameter_value("name") == "ada"
        assert record.get_parameter_value("missing") is None
        assert record.get_parameter_value("missing", "fallback") == "fallback"

    def test_get_result_checks_type(self):
        record = make_record()
        assert record.get_result(str) == "hello ada"
        assert record.get_result(int) is None

    def test_items_are_mutable_on_sealed_record(self):
        record = make_record()
        record.items["seen"] = True
        assert record.items == {"seen": True}
        with pytest.raises(AttributeError):
            record.result = "changed"

    def test_str(self):
        key = operation_key(Greeter.greet)
        assert str(make_record()) == f"Method {key} succeeded in 12.50ms"
        failed = make_record(result=None, exception=RuntimeError("x"))
        assert str(failed) == f"Method {key} failed in 12.50ms"


# =============================================================================
# Operation identity
# =============================================================================


class TestOperationKey:
    def test_function_key(self):
        assert operation_key(Greeter.greet) == "test_execution_record.Greeter.greet"

    def test_bound_method_matches_function(self):
        assert operation_key(Greeter().greet) == operation_key(Greeter.greet)

    def test_staticmethod_unwrapped(self):
        member = vars(Greeter)["shout"]
        assert operation_key(member) == "test_execution_record.Greeter.shout"

    def test_partial_unwrapped(self):
        greet_ada = functools.partial(Greeter().greet, "ada")
        assert operation_key(greet_ada) == operation_key(Greeter.greet)

    def test_callable_instance_keyed_by_call(self):
        assert operation_key(Shouter()) == "test_execution_record.Shouter.__call__"
        assert operation_key(Shouter()) == operation_key(Shouter.__call__)


class TestImportDottedPath:
    def test_imports_class(self):
        assert import_dotted_path("sample_app.AuditTrail") is sample_app.AuditTrail

    def test_imports_nested_attribute(self):
        assert import_dotted_path("sample_app.AccountService.login") is (
            sample_app.AccountService.login
        )

    def test_missing_attribute(self):
        with pytest.raises(ImportError, match="Cannot resolve"):
            import_dotted_path("sample_app.NoSuchHandler")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            import_dotted_path("no_such_package.Handler")


# =============================================================================
# HookBinding / HookMetadata
# =============================================================================


class TestHookBinding:
    def test_defaults(self):
        binding = HookBinding(Greeter, "greet")
        assert binding.include_parameters is True
        assert binding.include_return_value is True
        assert binding.continue_on_error is None
        assert binding.order == 0

    def test_display_name_for_type_and_path(self):
        assert HookBinding(Greeter, "greet").display_name == "Greeter.greet"
        assert HookBinding("sample_app.AuditTrail", "record").display_name == (
            "AuditTrail.record"
        )

    def test_resolve_target(self):
        assert HookBinding(Greeter, "greet").resolve_target() is Greeter
        binding = HookBinding("sample_app.AuditTrail", "record")
        assert binding.resolve_target() is sample_app.AuditTrail

    def test_from_dict(self):
        binding = HookBinding.from_dict(
            {
                "handler": "sample_app.AuditTrail",
                "method": "record",
                "order": 2,
                "includeParameters": False,
                "continueOnError": False,
            }
        )
        assert binding.target == "sample_app.AuditTrail"
        assert binding.method == "record"
        assert binding.order == 2
        assert binding.include_parameters is False
        assert binding.include_return_value is True
        assert binding.continue_on_error is False


class TestHookMetadata:
    def test_build_keys_directives_by_target(self):
        metadata = HookMetadata.build(
            "app.Service.run",
            [HookBinding(Greeter, "greet")],
            mappings=[ParameterMapping(source="username", target="user")],
            injections=[InjectedParameter(target="channel", value="security")],
            return_values=[ReturnValueMapping(target="success")],
            guard="should_run",
        )
        assert metadata.bindings == (HookBinding(Greeter, "greet"),)
        assert metadata.parameter_mappings == {"user": "username"}
        assert metadata.injected_parameters == {"channel": "security"}
        assert metadata.return_value_targets == frozenset({"success"})
        assert metadata.guard == "should_run"
        assert metadata.skip_in_production is False
        assert metadata.declaring_type is None


class TestDispatchResult:
    def test_ran_clean(self):
        result = DispatchResult(invoked=["Greeter.greet"])
        assert result.ran_clean

    def test_failures(self):
        failure = HookFailure(HookBinding(Greeter, "greet"), RuntimeError("log failed"))
        result = DispatchResult(failures=[failure])
        assert not result.ran_clean
        assert str(failure) == "Greeter.greet: log failed"

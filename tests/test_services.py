"""Tests for the typed service registry."""

import logging

import pytest

from aftercall.services import ServiceRegistry


class Mailer:
    pass


class Notifier:
    def __init__(self, mailer: Mailer | None = None):
        self.mailer = mailer


class Configured:
    def __init__(self, url: str):
        self.url = url


@pytest.fixture
def services():
    return ServiceRegistry()


# =============================================================================
# resolve
# =============================================================================


class TestResolve:
    def test_registered_instance(self, services):
        mailer = Mailer()
        services.register_instance(Mailer, mailer)
        assert services.resolve(Mailer) is mailer
        assert services.resolve(Mailer) is mailer

    def test_factory_called_per_resolve(self, services):
        services.register_factory(Mailer, lambda registry: Mailer())
        first = services.resolve(Mailer)
        second = services.resolve(Mailer)
        assert isinstance(first, Mailer)
        assert first is not second

    def test_factory_receives_registry(self, services):
        mailer = Mailer()
        services.register_instance(Mailer, mailer)
        services.register_factory(Notifier, lambda registry: Notifier(registry.resolve(Mailer)))
        assert services.resolve(Notifier).mailer is mailer

    def test_instance_wins_over_factory(self, services):
        mailer = Mailer()
        services.register_factory(Mailer, lambda registry: Mailer())
        services.register_instance(Mailer, mailer)
        assert services.resolve(Mailer) is mailer

    def test_unknown_type(self, services):
        assert services.resolve(Mailer) is None

    def test_is_registered(self, services):
        assert not services.is_registered(Mailer)
        services.register_factory(Mailer, lambda registry: Mailer())
        assert services.is_registered(Mailer)


# =============================================================================
# construct
# =============================================================================


class TestConstruct:
    def test_no_argument_constructor(self, services):
        assert isinstance(services.construct(Mailer), Mailer)

    def test_registered_constructor(self, services):
        mailer = Mailer()
        services.register_instance(Mailer, mailer)
        services.register_constructor(
            Notifier, lambda registry: Notifier(registry.resolve(Mailer))
        )
        assert services.construct(Notifier).mailer is mailer

    def test_construct_does_not_register(self, services):
        services.construct(Mailer)
        assert services.resolve(Mailer) is None

    def test_failing_constructor_falls_back(self, services, caplog):
        def broken(registry):
            raise RuntimeError("no database")

        services.register_constructor(Notifier, broken)

        with caplog.at_level(logging.WARNING, logger="aftercall.services"):
            notifier = services.construct(Notifier)

        assert isinstance(notifier, Notifier)
        assert notifier.mailer is None
        assert "Registered constructor for Notifier failed" in caplog.text

    def test_unconstructible_returns_none(self, services, caplog):
        with caplog.at_level(logging.WARNING, logger="aftercall.services"):
            assert services.construct(Configured) is None

        assert "Could not create Configured" in caplog.text

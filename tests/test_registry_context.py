from collections.abc import Iterator

import pytest

import depends
from depends.key import DependencyKey
from depends.registry import DependencyRegistry
from depends.registry_context import RegistryContext


class Clock:
    pass


CLOCK = DependencyKey(Clock, default=Clock)


@pytest.fixture()
def context() -> Iterator[RegistryContext]:
    context = RegistryContext()
    yield context
    context.reset()


def test_top_level_registry_context_export_is_available() -> None:
    assert isinstance(depends.registry_context, RegistryContext)


def test_get_current_lazily_creates_one_registry(context: RegistryContext) -> None:
    first = context.get_current()

    assert isinstance(first, DependencyRegistry)
    assert first.parent is None
    assert context.get_current() is first


def test_set_current_binds_registry(context: RegistryContext) -> None:
    registry = DependencyRegistry()

    context.set_current(registry)

    assert context.get_current() is registry


def test_reset_creates_fresh_registry_on_next_access(context: RegistryContext) -> None:
    first = context.get_current()

    context.reset()

    assert context.get_current() is not first


def test_proxies_forward_to_current_registry(context: RegistryContext) -> None:
    clock = Clock()

    context.register(clock, CLOCK)
    assert context.resolve(CLOCK) is clock
    assert context.get_current().resolve(CLOCK) is clock

    context.unregister(CLOCK)
    assert context.resolve(CLOCK) is not clock

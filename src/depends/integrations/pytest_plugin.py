from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Generic, TypeVar, overload

import pytest

from depends._internal.type_checks import matches_expected_type
from depends.exceptions import DependsTypeMismatchError
from depends.key import DependencyKey, key_for
from depends.registry import DependencyRegistry

T = TypeVar("T")


class DependencyOverrides:
    """Read and replace test dependencies with item syntax.

    Reading ``overrides[key]`` resolves the key, assigning a value registers
    it, and assigning ``None`` (or deleting the item) unregisters it so the
    parent's value or the key's default shows through again. Keys may be a
    ``DependencyKey`` or a ``KeyedDependency`` class.

    Examples:
        .. code-block:: python

            def test_reports_use_frozen_clock(dependency_overrides):
                dependency_overrides[CLOCK] = FrozenClock(at=noon)
                assert build_report().generated_at == noon

                dependency_overrides[CLOCK] = None
                assert isinstance(dependency_overrides[CLOCK], SystemClock)

    """

    def __init__(self, registry: DependencyRegistry) -> None:
        self.registry = registry

    def __getitem__(self, key: Any) -> Any:
        return self.registry.resolve(_as_key(key))

    def __setitem__(self, key: Any, value: Any) -> None:
        dependency_key = _as_key(key)
        if value is None:
            self.registry.unregister(dependency_key)
            return
        if not matches_expected_type(value, dependency_key.dependency_type):
            raise DependsTypeMismatchError(dependency_key, dependency_key.dependency_type, type(value))
        self.registry.register(value, dependency_key)

    def __delitem__(self, key: Any) -> None:
        self.registry.unregister(_as_key(key))

    def __contains__(self, key: object) -> bool:
        return _as_key(key) in self.registry


class DependencyOverride(Generic[T]):
    """Class attribute exposing one keyed dependency of a test class.

    The test instance must provide ``dependencies``, usually from an autouse
    fixture bound to ``dependency_registry``. Reading the attribute resolves
    the keyed class's ``dependency_key`` and checks the result is an instance
    of that class; assigning registers, and assigning ``None`` unregisters.

    Examples:
        .. code-block:: python

            class TestReports:
                clock = DependencyOverride(SystemClock)

                @pytest.fixture(autouse=True)
                def _bind(self, dependency_registry):
                    self.dependencies = dependency_registry

                def test_uses_frozen_clock(self):
                    self.clock = FrozenClock(at=noon)

    """

    def __init__(self, dependency_type: type[T]) -> None:
        self.dependency_type = dependency_type
        self.key = key_for(dependency_type)

    @overload
    def __get__(self, instance: None, owner: type[Any]) -> DependencyOverride[T]: ...

    @overload
    def __get__(self, instance: object, owner: type[Any]) -> T: ...

    def __get__(self, instance: object | None, owner: type[Any]) -> DependencyOverride[T] | T:
        if instance is None:
            return self
        registered = _registry_of(instance).resolve(self.key)
        if not isinstance(registered, self.dependency_type):
            raise DependsTypeMismatchError(self.key, self.dependency_type, type(registered))
        return registered

    def __set__(self, instance: object, value: T | None) -> None:
        DependencyOverrides(_registry_of(instance))[self.key] = value


def _as_key(key: Any) -> DependencyKey[Any]:
    if isinstance(key, DependencyKey):
        return key
    return key_for(key)


def _registry_of(instance: object) -> DependencyRegistry:
    registry = getattr(instance, "dependencies", None)
    if not isinstance(registry, DependencyRegistry):
        msg = (
            f"{type(instance).__qualname__!r} has no `dependencies` registry. "
            "Bind `self.dependencies = dependency_registry` in an autouse fixture."
        )
        raise AttributeError(msg)
    return registry


@pytest.fixture()
def dependency_registry() -> Iterator[DependencyRegistry]:
    """Provide a fresh registry per test and clear it on teardown.

    Tests read dependencies with ``dependency_registry.resolve(key)`` and
    substitute fakes with ``dependency_registry.register(fake, key)``. Override
    this fixture to chain the test registry to a shared parent.

    Yields:
        A new root ``DependencyRegistry``.

    """
    registry = DependencyRegistry()
    try:
        yield registry
    finally:
        registry.unregister_all()
        registry.close()


@pytest.fixture()
def dependency_overrides(dependency_registry: DependencyRegistry) -> DependencyOverrides:
    """Wrap ``dependency_registry`` in item syntax for reading and replacing dependencies."""
    return DependencyOverrides(dependency_registry)

from __future__ import annotations

from collections.abc import Iterator

import pytest

from depends import DependencyKey, DependencyRegistry

pytest_plugins = ["depends.integrations.pytest_plugin"]


class _Service:
    pass


class _FakeService(_Service):
    pass


SERVICE = DependencyKey(_Service, default=_Service)

_seen_registries: list[DependencyRegistry] = []


@pytest.fixture()
def track_registry(dependency_registry: DependencyRegistry) -> Iterator[DependencyRegistry]:
    _seen_registries.append(dependency_registry)
    yield dependency_registry


def test_fixture_provides_empty_root_registry(dependency_registry: DependencyRegistry) -> None:
    assert isinstance(dependency_registry, DependencyRegistry)
    assert dependency_registry.parent is None
    assert len(dependency_registry) == 0


def test_tests_can_substitute_dependencies(dependency_registry: DependencyRegistry) -> None:
    fake = _FakeService()

    dependency_registry.register(fake, SERVICE)

    assert dependency_registry.resolve(SERVICE) is fake


def test_first_registry_is_populated(track_registry: DependencyRegistry) -> None:
    track_registry.register(_FakeService(), SERVICE)

    assert SERVICE in track_registry


def test_registry_was_cleared_after_previous_test(track_registry: DependencyRegistry) -> None:
    if len(_seen_registries) < 2:
        pytest.skip("requires the previous test in this module")
    previous, current = _seen_registries[-2:]
    assert previous is not current
    assert len(previous) == 0
    assert len(current) == 0

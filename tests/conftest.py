"""Shared pytest fixtures for depends tests."""

import pytest

from depends.registry import DependencyRegistry


@pytest.fixture()
def registry() -> DependencyRegistry:
    """Root registry without a parent."""
    return DependencyRegistry()


@pytest.fixture()
def parent_registry() -> DependencyRegistry:
    """Registry used as the parent in delegation tests."""
    return DependencyRegistry()


@pytest.fixture()
def child_registry(parent_registry: DependencyRegistry) -> DependencyRegistry:
    """Registry chained to ``parent_registry``."""
    return DependencyRegistry(parent=parent_registry)

from __future__ import annotations

import threading
from typing import Any, TypeVar

from depends.key import DependencyKey
from depends.registry import DependencyRegistry

T = TypeVar("T")


class RegistryContext:
    """Hold one process-wide default registry.

    The registry is created lazily on first access and shared by every caller
    of this ``RegistryContext`` instance. The binding is process-global (not
    task-local or thread-local), which suits application startup but matters
    for tests running in parallel: prefer passing registries explicitly there.
    """

    def __init__(self) -> None:
        self._registry: DependencyRegistry | None = None
        self._lock = threading.Lock()

    def get_current(self) -> DependencyRegistry:
        """Return the bound registry, creating an empty root registry on first use."""
        registry = self._registry
        if registry is None:
            with self._lock:
                if self._registry is None:
                    self._registry = DependencyRegistry()
                registry = self._registry
        return registry

    def set_current(self, registry: DependencyRegistry) -> None:
        """Bind ``registry`` as the process-wide default."""
        with self._lock:
            self._registry = registry

    def reset(self) -> None:
        """Drop the bound registry; the next access creates a fresh one."""
        with self._lock:
            self._registry = None

    def resolve(self, key: DependencyKey[T]) -> T:
        return self.get_current().resolve(key)

    def register(self, dependency: Any, key: DependencyKey[Any] | None = None) -> None:
        self.get_current().register(dependency, key)

    def unregister(self, key: DependencyKey[Any] | Any) -> None:
        self.get_current().unregister(key)


registry_context = RegistryContext()
"""Provide the process-wide default registry used by application code.

Examples:
    .. code-block:: python

        registry_context.register(SystemClock(), CLOCK)
        clock = registry_context.resolve(CLOCK)
"""

__all__ = ["RegistryContext", "registry_context"]

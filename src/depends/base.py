from __future__ import annotations

import logging
import threading
import warnings
import weakref
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from depends.exceptions import DependsDetachedDependencyWarning

if TYPE_CHECKING:
    from typing_extensions import Self

    from depends.registry import DependencyRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class DependencyProvider(Protocol):
    """Anything that exposes the registry its ``Dependency`` accessors read from."""

    @property
    def dependencies(self) -> DependencyRegistry: ...


class DependencyBase:
    """Base class for dependencies that resolve further dependencies themselves.

    When a ``DependencyBase`` is registered, the registry stores a weak
    back-reference to itself on the instance. The first time that reference
    goes from unset to set, ``setup()`` runs, synchronously and before
    ``register`` returns. Setup may register or resolve on the same registry.

    The back-reference never keeps the registry alive: the owning direction is
    registry to instance only.

    Examples:
        .. code-block:: python

            class ReportService(DependencyBase):
                clock = Dependency(CLOCK)

                def setup(self) -> None:
                    self.started_at = self.clock.now()


            registry.register(ReportService(), REPORTS)

    """

    _registry_ref: weakref.ReferenceType[DependencyRegistry] | None = None
    _attachment_lock: threading.RLock

    def __new__(cls, *args: object, **kwargs: object) -> Self:  # noqa: ARG004
        # Subclasses that never call ``super().__init__()`` (dataclasses, for
        # one) still need the lock before their first registration.
        instance = super().__new__(cls)
        instance._attachment_lock = threading.RLock()
        return instance

    def __init__(self, dependencies: DependencyRegistry | None = None) -> None:
        """Create the dependency, optionally attached to a registry right away.

        Args:
            dependencies: Registry to attach. Attaching fires ``setup()``.

        """
        if dependencies is not None:
            self._attach_registry(dependencies)

    @property
    def weak_dependencies(self) -> DependencyRegistry | None:
        """Return the attached registry, or ``None`` when unset or collected."""
        if self._registry_ref is None:
            return None
        return self._registry_ref()

    @property
    def dependencies(self) -> DependencyRegistry:
        """Return the registry this dependency was registered into.

        Accessing it before any registration is a programming error. It is
        logged and reported as ``DependsDetachedDependencyWarning``, and an
        empty placeholder registry is returned so callers keep running.
        """
        registry = self.weak_dependencies
        if registry is not None:
            return registry

        msg = (
            f"Attempted to access a dependency within {type(self).__qualname__!r} before it "
            "has been added to a DependencyRegistry using `DependencyRegistry.register()`."
        )
        logger.error(msg)
        warnings.warn(msg, DependsDetachedDependencyWarning, stacklevel=2)

        from depends.registry import DependencyRegistry  # noqa: PLC0415

        return DependencyRegistry()

    def _attach_registry(self, registry: DependencyRegistry) -> None:
        with self._attachment_lock:
            was_detached = self.weak_dependencies is None
            self._registry_ref = weakref.ref(registry)
            if was_detached:
                self.setup()

    def setup(self) -> None:
        """Run once when the dependency is first attached to a registry."""

    def added_to_dependency_registry(self) -> None:
        """Notify that every dependency this instance needs is available.

        The registry never calls this hook; the code that assembles the
        registry does, once registration is complete.
        """


__all__ = ["DependencyBase", "DependencyProvider"]

from __future__ import annotations

import logging
import threading
import warnings
import weakref
from collections.abc import AsyncIterable, Callable, Iterable
from types import TracebackType
from typing import TYPE_CHECKING, Any, Literal, TypeVar, overload

from depends._internal.type_checks import matches_expected_type
from depends.base import DependencyBase
from depends.exceptions import (
    DependsDependencyNotRegisteredError,
    DependsInvalidRegistrationError,
    DependsTypeMismatchError,
    DependsTypeMismatchWarning,
    type_mismatch_message,
)
from depends.key import DependencyKey, key_for
from depends.policies import TypeMismatchPolicy
from depends.subscriptions import Publisher, SubscriptionBag, open_subscription

if TYPE_CHECKING:
    from typing_extensions import Self

T = TypeVar("T")

StorageKey = str

logger = logging.getLogger(__name__)
_MISSING = object()


class DependencyRegistry:
    """Store dependency instances by key and resolve them through a parent chain.

    ``resolve`` looks in the local storage first, then asks the parent, its
    parent and so on. When the whole chain misses, the key's default factory
    builds an instance which is cached in the registry that was asked (never
    in a parent). Without a default factory a miss raises
    ``DependsDependencyNotRegisteredError``.

    Registration only ever touches local storage, so a child registry can
    shadow a parent's value without changing what the parent resolves.

    All public methods are safe to call from any number of threads. The
    storage lock is reentrant: a ``DependencyBase.setup()`` hook triggered by
    ``register`` can register or resolve on the same registry.
    """

    def __init__(
        self,
        parent: DependencyRegistry | None = None,
        *,
        dependencies: Iterable[Any] = (),
        type_mismatch: TypeMismatchPolicy | Literal["from_parent"] = "from_parent",
    ) -> None:
        """Create a registry, optionally chained to a parent and pre-populated.

        Args:
            parent: Registry consulted when a key is missing locally. Fixed for
                the lifetime of this registry.
            dependencies: Initial registrations, accepted in every form
                ``register_all`` accepts.
            type_mismatch: What ``resolve`` does when a slot holds a value of
                the wrong type. ``"from_parent"`` inherits the parent's policy,
                or ``TypeMismatchPolicy.WARN`` for a root registry.

        Examples:
            .. code-block:: python

                app = DependencyRegistry(dependencies=[SystemClock(), (DB, PostgresDb(dsn))])
                request = DependencyRegistry(parent=app)

                strict = DependencyRegistry(type_mismatch=TypeMismatchPolicy.ERROR)

        """
        self._parent = parent
        self._storage: dict[StorageKey, Any] = {}
        self._lock = threading.RLock()
        self._creation_locks: dict[StorageKey, threading.RLock] = {}
        self._creation_locks_lock = threading.Lock()
        self._type_mismatch = self._resolve_type_mismatch_policy(type_mismatch)

        self._subscriptions = SubscriptionBag()
        self._finalizer = weakref.finalize(self, self._subscriptions.cancel_all)

        self.register_all(dependencies)

    @property
    def parent(self) -> DependencyRegistry | None:
        return self._parent

    @property
    def type_mismatch(self) -> TypeMismatchPolicy:
        return self._type_mismatch

    def _resolve_type_mismatch_policy(
        self,
        type_mismatch: TypeMismatchPolicy | Literal["from_parent"],
    ) -> TypeMismatchPolicy:
        if type_mismatch != "from_parent":
            return TypeMismatchPolicy(type_mismatch)
        if self._parent is not None:
            return self._parent.type_mismatch
        return TypeMismatchPolicy.WARN

    # region Locating Dependencies
    def resolve(self, key: DependencyKey[T]) -> T:
        """Return the dependency stored for ``key`` in this registry or its parents.

        Args:
            key: Slot to resolve.

        Returns:
            The registered instance (the same object that was registered), or
            the instance produced by ``key.default`` on a total miss.

        Raises:
            DependsDependencyNotRegisteredError: If nothing is registered in the
                chain and ``key`` has no default factory.
            DependsTypeMismatchError: If the slot holds a value of the wrong
                type and the registry uses ``TypeMismatchPolicy.ERROR``.

        """
        registered = self._find(key.name)
        if registered is not _MISSING:
            if matches_expected_type(registered, key.dependency_type):
                return registered
            self._report_type_mismatch(key, registered)

        if key.default is None:
            raise DependsDependencyNotRegisteredError(key, key.dependency_type)

        return self._create_default(key, key.default)

    def __getitem__(self, key: DependencyKey[T]) -> T:
        return self.resolve(key)

    def _find(self, storage_key: StorageKey) -> Any:
        with self._lock:
            registered = self._storage.get(storage_key, _MISSING)
        if registered is _MISSING and self._parent is not None:
            # Local lock is released before walking up the chain.
            return self._parent._find(storage_key)  # noqa: SLF001
        return registered

    def _report_type_mismatch(self, key: DependencyKey[Any], registered: Any) -> None:
        if self._type_mismatch is TypeMismatchPolicy.ERROR:
            raise DependsTypeMismatchError(key, key.dependency_type, type(registered))

        msg = (
            f"{type_mismatch_message(key, key.dependency_type, type(registered))} "
            "Returning the default instead."
        )
        logger.warning(msg)
        warnings.warn(msg, DependsTypeMismatchWarning, stacklevel=3)

    def _create_default(self, key: DependencyKey[T], factory: Callable[[], T]) -> T:
        with self._get_creation_lock(key.name):
            # Double-check: another thread may have stored the default meanwhile
            with self._lock:
                cached = self._storage.get(key.name, _MISSING)
            if cached is not _MISSING and matches_expected_type(cached, key.dependency_type):
                return cached

            dependency = factory()
            logger.debug("Created default dependency for key %r", key.name)
            self.register(dependency, key)
            return dependency

    def _get_creation_lock(self, storage_key: StorageKey) -> threading.RLock:
        """Get or create the lock serialising default creation for one key.

        Uses double-checked locking to minimize lock contention.
        """
        if storage_key not in self._creation_locks:
            with self._creation_locks_lock:
                if storage_key not in self._creation_locks:  # pragma: no cover - race timing dependent
                    self._creation_locks[storage_key] = threading.RLock()
        return self._creation_locks[storage_key]

    # endregion Locating Dependencies

    # region Registering Dependencies
    @overload
    def register(self, dependency: T, key: DependencyKey[T]) -> None: ...

    @overload
    def register(self, dependency: Any, key: None = None) -> None: ...

    def register(self, dependency: Any, key: DependencyKey[Any] | None = None) -> None:
        """Store ``dependency`` in this registry, replacing any previous value for the key.

        A ``DependencyBase`` is first attached to this registry; when that is
        its first attachment, its ``setup()`` hook runs before this method
        returns.

        Args:
            dependency: Instance to store.
            key: Slot to store it in. May be omitted for a ``KeyedDependency``,
                which supplies its own ``dependency_key``.

        Raises:
            DependsInvalidRegistrationError: If ``key`` is omitted and
                ``dependency`` declares no ``dependency_key``.

        """
        storage_key = self._storage_key(dependency, key)
        if isinstance(dependency, DependencyBase):
            # Setup may resolve defaults on this registry, so it runs before the
            # storage lock is taken.
            dependency._attach_registry(self)  # noqa: SLF001
        with self._lock:
            self._storage[storage_key] = dependency

    def register_all(self, dependencies: Iterable[Any]) -> None:
        """Register many dependencies in order.

        Accepted items are ``KeyedDependency`` instances, ``(key, dependency)``
        pairs, ``None`` (skipped), and nested iterables of the same.

        Examples:
            .. code-block:: python

                registry.register_all(
                    [
                        SystemClock(),
                        (DB, PostgresDb(dsn)),
                        FeatureFlags() if flags_enabled else None,
                        [EmailSender(), SmsSender()],
                    ],
                )

        """
        for item in dependencies:
            if item is None:
                continue
            if isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], DependencyKey):  # noqa: PLR2004
                self.register(item[1], item[0])
            elif isinstance(item, (list, tuple, set, frozenset)):
                self.register_all(item)
            else:
                self.register(item)

    def subscribe(
        self,
        stream: Publisher[Any] | AsyncIterable[Any],
        key: DependencyKey[Any] | None = None,
    ) -> None:
        """Register every value ``stream`` emits, replacing the previous one.

        The subscription belongs to this registry and stays active until the
        registry is closed or garbage collected.

        Args:
            stream: A ``Publisher`` (values registered in the emitting thread)
                or an ``AsyncIterable`` (drained by a task on the running loop).
            key: Slot to register into. ``None`` uses each emitted value's
                ``dependency_key``.

        Raises:
            DependsInvalidRegistrationError: If ``stream`` is unsupported, or an
                async stream is subscribed without a running event loop.

        """
        open_subscription(self, stream, key, self._subscriptions)
        logger.debug("Subscribed registry to dynamic dependency stream %r", stream)

    @staticmethod
    def _storage_key(dependency: Any, key: DependencyKey[Any] | None) -> StorageKey:
        if key is None:
            return key_for(dependency).name
        if not isinstance(key, DependencyKey):
            msg = f"Expected a DependencyKey, got {key!r}."
            raise DependsInvalidRegistrationError(msg)
        return key.name

    # endregion Registering Dependencies

    # region Unregistering Dependencies
    def unregister(self, key: DependencyKey[Any] | Any) -> None:
        """Remove the local value for a key, exposing the parent's value or the default again.

        Args:
            key: A ``DependencyKey``, or a ``KeyedDependency`` instance or class.

        """
        storage_key = key.name if isinstance(key, DependencyKey) else key_for(key).name
        with self._lock:
            self._storage.pop(storage_key, None)

    def unregister_all(self) -> None:
        """Clear every local registration at once."""
        with self._lock:
            self._storage.clear()

    # endregion Unregistering Dependencies

    # region Lifecycle
    def close(self) -> None:
        """Cancel every dynamic subscription owned by this registry."""
        self._subscriptions.cancel_all()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    # endregion Lifecycle

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, DependencyKey):
            return False
        with self._lock:
            return key.name in self._storage

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entries={len(self)}, has_parent={self._parent is not None})"


__all__ = ["DependencyRegistry", "StorageKey"]

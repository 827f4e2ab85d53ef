from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

from depends._internal.integrations.pydantic_settings import settings_default_factory
from depends._internal.type_checks import qualified_name
from depends.exceptions import DependsInvalidKeyError, DependsInvalidRegistrationError

T = TypeVar("T")

DefaultFactory = Callable[[], Any]
"""A zero-argument callable producing a fallback dependency instance."""


@dataclass(frozen=True, slots=True, init=False)
class DependencyKey(Generic[T]):
    """Identify one dependency slot in a ``DependencyRegistry``.

    A key is a process-wide constant, usually declared once next to the
    protocol it stands for. Equality and hashing only look at ``name``, so
    two keys built independently with the same name address the same slot.

    Examples:
        .. code-block:: python

            class Clock(Protocol):
                def now(self) -> datetime: ...


            CLOCK = DependencyKey(Clock, default=SystemClock)

            registry.register(FrozenClock(), CLOCK)
            clock = registry.resolve(CLOCK)

    """

    name: str
    default: DefaultFactory | None = field(compare=False, repr=False)
    dependency_type: Any = field(compare=False)

    def __init__(
        self,
        dependency_type: type[T] | Any = None,
        *,
        name: str | None = None,
        default: Callable[[], T] | None = None,
    ) -> None:
        """Declare a dependency slot.

        Args:
            dependency_type: Expected type of resolved instances. Used to
                derive ``name`` and to check stored values on resolution.
            name: Explicit slot identity. Defaults to the fully-qualified name
                of ``dependency_type``.
            default: Zero-argument factory called lazily when no instance is
                registered anywhere in the parent chain. Pydantic settings
                classes get the class itself as default when omitted.

        Raises:
            DependsInvalidKeyError: If neither ``name`` nor ``dependency_type``
                is given.

        """
        if name is None:
            if dependency_type is None:
                msg = "DependencyKey requires a name or a dependency type to derive one from."
                raise DependsInvalidKeyError(msg)
            name = qualified_name(dependency_type)
        if default is None:
            default = settings_default_factory(dependency_type)

        object.__setattr__(self, "name", name)
        object.__setattr__(self, "default", default)
        object.__setattr__(self, "dependency_type", dependency_type)

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def __repr__(self) -> str:
        return f"DependencyKey({self.name!r})"


class KeyedDependency:
    """Base class for dependencies that know the slot they live in.

    Subclasses set ``dependency_key`` so that registration needs no explicit
    key:

    .. code-block:: python

        class SystemClock(KeyedDependency):
            dependency_key = CLOCK


        registry.register(SystemClock())

    """

    dependency_key: ClassVar[DependencyKey[Any]]


def key_for(value: object) -> DependencyKey[Any]:
    """Return the key declared by a keyed dependency instance or class.

    Raises:
        DependsInvalidRegistrationError: If ``value`` declares no
            ``dependency_key``.

    """
    key = getattr(value, "dependency_key", None)
    if not isinstance(key, DependencyKey):
        msg = (
            f"Cannot determine the dependency key for {value!r}. "
            "Pass a DependencyKey explicitly or declare `dependency_key` on a KeyedDependency."
        )
        raise DependsInvalidRegistrationError(msg)
    return key


__all__ = ["DefaultFactory", "DependencyKey", "KeyedDependency", "key_for"]

from __future__ import annotations

from typing import Any


class DependsError(Exception):
    """Represent a base class for all depends-specific failures.

    Catch this type when you want to handle any registry error path without
    matching each concrete exception class individually.
    """


class DependsInvalidKeyError(DependsError):
    """Signal a dependency key that cannot identify a storage slot.

    Raised by ``DependencyKey`` when neither ``name`` nor ``dependency_type``
    is given, so no stable name can be derived.
    """


class DependsInvalidRegistrationError(DependsError):
    """Signal invalid arguments to registration APIs.

    Raised by ``register``, ``unregister`` and ``subscribe`` when the key
    cannot be determined (the value is not a ``KeyedDependency`` and no key was
    passed), and by ``subscribe`` for unsupported stream objects.
    """


class DependsDependencyNotRegisteredError(DependsError):
    """Signal that a required dependency was never registered and has no default.

    Raised by ``DependencyRegistry.resolve`` after the whole parent chain
    missed and the key carries no default factory.

    Typical fixes include registering the dependency during application
    startup, or giving the key a ``default=`` factory.
    """

    def __init__(self, key: Any, expected_type: Any = None) -> None:
        self.key = key
        self.expected_type = expected_type
        expecting = "" if expected_type is None else f" Expecting {_type_name(expected_type)}."
        super().__init__(
            f"You have not registered a dependency at key {key.name!r}.{expecting}",
        )


class DependsTypeMismatchError(DependsError):
    """Signal a stored value that does not match the type the key expects.

    Only raised when the registry uses ``TypeMismatchPolicy.ERROR``; the
    default policy warns and falls back to the key's default factory.
    """

    def __init__(self, key: Any, expected_type: Any, actual_type: Any) -> None:
        self.key = key
        self.expected_type = expected_type
        self.actual_type = actual_type
        super().__init__(type_mismatch_message(key, expected_type, actual_type))


class DependsWarning(UserWarning):
    """Base category for recoverable registry misuse."""


class DependsTypeMismatchWarning(DependsWarning):
    """Emitted when a slot holds a value of the wrong type and the default is used."""


class DependsDetachedDependencyWarning(DependsWarning):
    """Emitted when a ``DependencyBase`` is asked for its registry before registration."""


def type_mismatch_message(key: Any, expected_type: Any, actual_type: Any) -> str:
    return (
        f"Dependency registered at key {key.name!r} is a {_type_name(actual_type)} "
        f"when we expected a {_type_name(expected_type)}."
    )


def _type_name(value: Any) -> str:
    qualname = getattr(value, "__qualname__", None)
    if qualname is None:
        return repr(value)
    return qualname

from __future__ import annotations

import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def matches_expected_type(value: object, expected_type: object) -> bool:
    """Return whether ``value`` can be handed out as ``expected_type``.

    Only runtime classes are checked. Aliases, unions and protocols that are
    not ``runtime_checkable`` cannot be verified with ``isinstance`` and are
    accepted as is.

    Args:
        value: Stored dependency instance.
        expected_type: Type declared on the dependency key, or ``None``.

    """
    if expected_type is None or not is_runtime_class(expected_type):
        return True
    try:
        return isinstance(value, expected_type)
    except TypeError:
        return True


def qualified_name(dependency_type: object) -> str:
    """Return the stable ``module.qualname`` identity of a dependency type."""
    module = getattr(dependency_type, "__module__", None)
    qualname = getattr(dependency_type, "__qualname__", None) or getattr(
        dependency_type,
        "__name__",
        None,
    )
    if qualname is None:
        return repr(dependency_type)
    if module is None or module == "builtins":
        return qualname
    return f"{module}.{qualname}"


__all__ = ["is_runtime_class", "matches_expected_type", "qualified_name"]

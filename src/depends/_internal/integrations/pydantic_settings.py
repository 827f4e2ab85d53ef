from __future__ import annotations

import importlib
import warnings
from collections.abc import Callable
from typing import Any

from depends._internal.type_checks import is_runtime_class

_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)
_SETTINGS_MODULES: tuple[str, ...] = ("pydantic_settings", "pydantic.v1")


def _import_settings_base(module_name: str) -> type[Any] | None:
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message=_PYDANTIC_V1_WARNING_PATTERN,
            category=UserWarning,
        )
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return None
    base_settings = getattr(module, "BaseSettings", None)
    if isinstance(base_settings, type):
        return base_settings
    return None


def _discover_settings_bases() -> tuple[type[Any], ...]:
    bases: list[type[Any]] = []
    for module_name in _SETTINGS_MODULES:
        base = _import_settings_base(module_name)
        if base is not None and base not in bases:
            bases.append(base)
    return tuple(bases)


SETTINGS_BASES: tuple[type[Any], ...] = _discover_settings_bases()


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether a class is a Pydantic settings model.

    Both ``pydantic_settings.BaseSettings`` and the legacy
    ``pydantic.v1.BaseSettings`` are recognised when importable. Without
    Pydantic installed every candidate is rejected.

    Args:
        candidate: Object to test.

    """
    if not is_runtime_class(candidate):
        return False
    try:
        return any(issubclass(candidate, base) for base in SETTINGS_BASES)
    except TypeError:
        return False


def settings_default_factory(dependency_type: object) -> Callable[[], Any] | None:
    """Return a zero-argument factory for settings classes, else ``None``.

    Settings models read their values from the environment, so the class
    itself is a valid lazy default for a dependency key.
    """
    if is_pydantic_settings_subclass(dependency_type):
        return dependency_type  # type: ignore[return-value]
    return None


__all__ = [
    "SETTINGS_BASES",
    "is_pydantic_settings_subclass",
    "settings_default_factory",
]

from enum import Enum


class TypeMismatchPolicy(str, Enum):
    """Policy for slots holding a value of an unexpected type."""

    WARN = "warn"
    """Log and warn, then fall back to the key's default factory."""

    ERROR = "error"
    """Raise ``DependsTypeMismatchError`` from ``resolve``."""

from depends.accessors import Dependency
from depends.base import DependencyBase, DependencyProvider
from depends.exceptions import (
    DependsDependencyNotRegisteredError,
    DependsDetachedDependencyWarning,
    DependsError,
    DependsInvalidKeyError,
    DependsInvalidRegistrationError,
    DependsTypeMismatchError,
    DependsTypeMismatchWarning,
    DependsWarning,
)
from depends.key import DependencyKey, KeyedDependency
from depends.policies import TypeMismatchPolicy
from depends.registry import DependencyRegistry
from depends.registry_context import RegistryContext, registry_context
from depends.subscriptions import Publisher, ValuePublisher, subscribe_dynamic

__all__ = [
    "Dependency",
    "DependencyBase",
    "DependencyKey",
    "DependencyProvider",
    "DependencyRegistry",
    "DependsDependencyNotRegisteredError",
    "DependsDetachedDependencyWarning",
    "DependsError",
    "DependsInvalidKeyError",
    "DependsInvalidRegistrationError",
    "DependsTypeMismatchError",
    "DependsTypeMismatchWarning",
    "DependsWarning",
    "KeyedDependency",
    "Publisher",
    "RegistryContext",
    "TypeMismatchPolicy",
    "ValuePublisher",
    "registry_context",
    "subscribe_dynamic",
]

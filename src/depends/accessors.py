from __future__ import annotations

from typing import Any, Generic, TypeVar, overload

from depends.key import DependencyKey

T = TypeVar("T")


class Dependency(Generic[T]):
    """Read a dependency from the owner's registry on attribute access.

    Usable on any class whose instances expose a ``dependencies`` registry,
    such as ``DependencyBase`` subclasses. Every read calls
    ``instance.dependencies.resolve(key)``; nothing is cached on the instance,
    so re-registrations are picked up immediately. Assignment is refused:
    dependencies are replaced through the registry only.

    Examples:
        .. code-block:: python

            class Checkout(DependencyBase):
                payments: Dependency[PaymentGateway] = Dependency(PAYMENTS)

                def pay(self, amount: int) -> None:
                    self.payments.charge(amount)

    """

    def __init__(self, key: DependencyKey[T]) -> None:
        self.key = key
        self.attribute_name: str | None = None

    def __set_name__(self, owner: type[Any], name: str) -> None:
        self.attribute_name = name

    @overload
    def __get__(self, instance: None, owner: type[Any] | None = None) -> Dependency[T]: ...

    @overload
    def __get__(self, instance: object, owner: type[Any] | None = None) -> T: ...

    def __get__(self, instance: object | None, owner: type[Any] | None = None) -> Any:
        if instance is None:
            return self
        registry = getattr(instance, "dependencies", None)
        if registry is None:
            msg = (
                f"Dependency {self.attribute_name!r} can only be used in a class that exposes "
                "a `dependencies` registry (see DependencyProvider)."
            )
            raise AttributeError(msg)
        return registry.resolve(self.key)

    def __set__(self, instance: object, value: Any) -> None:
        msg = (
            f"Dependency {self.attribute_name!r} is read-only. "
            f"Register a replacement with `registry.register(value, {self.key!r})`."
        )
        raise AttributeError(msg)


__all__ = ["Dependency"]

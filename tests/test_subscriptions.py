"""Tests for stream-driven re-registration."""

import asyncio
import gc
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from depends.exceptions import DependsInvalidRegistrationError
from depends.key import DependencyKey, KeyedDependency
from depends.registry import DependencyRegistry
from depends.subscriptions import ValuePublisher, subscribe_dynamic


@dataclass(frozen=True)
class DefaultService:
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class OneService:
    id: uuid.UUID = field(default_factory=uuid.uuid4)


SERVICE = DependencyKey(name="dynamic-service", default=DefaultService)


@dataclass(frozen=True)
class KeyedService(KeyedDependency):
    dependency_key = SERVICE

    id: uuid.UUID = field(default_factory=uuid.uuid4)


class CallbackSource:
    """Minimal push source exposing nothing but ``subscribe``."""

    def __init__(self) -> None:
        self.callback: Callable[[Any], None] | None = None
        self.cancelled = False

    def subscribe(self, callback: Callable[[Any], None], /) -> "CallbackSource":
        self.callback = callback
        return self

    def cancel(self) -> None:
        self.cancelled = True


class TestPublisherSubscriptions:
    def test_registers_each_emitted_dependency(self, registry: DependencyRegistry) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()

        registry.subscribe(publisher, SERVICE)

        for _ in range(10):
            dependency = OneService()
            publisher.send(dependency)
            assert registry.resolve(SERVICE).id == dependency.id

    def test_registers_keyed_dependencies_without_explicit_key(
        self,
        registry: DependencyRegistry,
    ) -> None:
        publisher: ValuePublisher[KeyedService] = ValuePublisher()

        subscribe_dynamic(registry, publisher)

        for _ in range(10):
            dependency = KeyedService()
            publisher.send(dependency)
            assert registry.resolve(SERVICE) is dependency

    def test_registry_owns_subscription_until_closed(self, registry: DependencyRegistry) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()
        registry.subscribe(publisher, SERVICE)
        assert len(publisher) == 1

        registry.close()
        assert len(publisher) == 0

        last = registry.resolve(SERVICE)
        publisher.send(OneService())
        assert registry.resolve(SERVICE) is last

    def test_context_manager_closes_subscriptions(self) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()

        with DependencyRegistry() as registry:
            registry.subscribe(publisher, SERVICE)
            assert len(publisher) == 1

        assert len(publisher) == 0

    def test_garbage_collected_registry_cancels_subscriptions(self) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()
        registry = DependencyRegistry()
        registry.subscribe(publisher, SERVICE)

        del registry
        gc.collect()

        assert len(publisher) == 0
        publisher.send(OneService())

    def test_completed_publisher_drops_values(self, registry: DependencyRegistry) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()
        registry.subscribe(publisher, SERVICE)
        first = OneService()
        publisher.send(first)

        publisher.complete()
        publisher.send(OneService())

        assert publisher.completed
        assert registry.resolve(SERVICE) is first

    def test_emission_order_is_preserved(self, registry: DependencyRegistry) -> None:
        publisher: ValuePublisher[int] = ValuePublisher()
        key = DependencyKey(int, name="counter")
        seen: list[int] = []
        publisher.subscribe(seen.append)

        registry.subscribe(publisher, key)
        for value in range(100):
            publisher.send(value)
            assert registry.resolve(key) == value

        assert seen == list(range(100))

    def test_accepts_any_object_with_subscribe(self, registry: DependencyRegistry) -> None:
        source = CallbackSource()

        registry.subscribe(source, SERVICE)
        assert source.callback is not None

        dependency = OneService()
        source.callback(dependency)
        assert registry.resolve(SERVICE) is dependency

        registry.close()
        assert source.cancelled

    def test_rejects_unsupported_streams(self, registry: DependencyRegistry) -> None:
        with pytest.raises(DependsInvalidRegistrationError, match="Publisher or an AsyncIterable"):
            registry.subscribe([OneService()], SERVICE)  # type: ignore[arg-type]

    def test_keyless_emission_of_unkeyed_value_raises(self, registry: DependencyRegistry) -> None:
        publisher: ValuePublisher[OneService] = ValuePublisher()
        registry.subscribe(publisher)

        with pytest.raises(DependsInvalidRegistrationError):
            publisher.send(OneService())


async def _emit(values: list[OneService], gate: asyncio.Event) -> AsyncIterator[OneService]:
    for value in values:
        await gate.wait()
        gate.clear()
        yield value


class TestAsyncStreamSubscriptions:
    @pytest.mark.asyncio
    async def test_registers_values_from_async_stream(self, registry: DependencyRegistry) -> None:
        values = [OneService() for _ in range(5)]

        async def stream() -> AsyncIterator[OneService]:
            for value in values:
                yield value

        registry.subscribe(stream(), SERVICE)
        for _ in range(20):
            await asyncio.sleep(0)

        assert registry.resolve(SERVICE) is values[-1]

    @pytest.mark.asyncio
    async def test_each_value_is_registered_before_the_next(
        self,
        registry: DependencyRegistry,
    ) -> None:
        values = [OneService() for _ in range(3)]
        gate = asyncio.Event()

        registry.subscribe(_emit(values, gate), SERVICE)
        for value in values:
            gate.set()
            for _ in range(5):
                await asyncio.sleep(0)
            assert registry.resolve(SERVICE) is value

        registry.close()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_close_cancels_stream_task(self, registry: DependencyRegistry) -> None:
        values = [OneService() for _ in range(3)]
        gate = asyncio.Event()
        registry.subscribe(_emit(values, gate), SERVICE)
        gate.set()
        for _ in range(5):
            await asyncio.sleep(0)
        assert registry.resolve(SERVICE) is values[0]

        registry.close()
        gate.set()
        for _ in range(5):
            await asyncio.sleep(0)

        assert registry.resolve(SERVICE) is values[0]

    @pytest.mark.asyncio
    async def test_failing_stream_is_logged_and_ends(
        self,
        registry: DependencyRegistry,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        first = OneService()

        async def stream() -> AsyncIterator[OneService]:
            yield first
            msg = "stream broke"
            raise RuntimeError(msg)

        with caplog.at_level("ERROR", logger="depends.subscriptions"):
            registry.subscribe(stream(), SERVICE)
            for _ in range(10):
                await asyncio.sleep(0)

        assert registry.resolve(SERVICE) is first
        assert "stream broke" in caplog.text

    def test_async_stream_requires_running_loop(self, registry: DependencyRegistry) -> None:
        async def stream() -> AsyncIterator[OneService]:
            yield OneService()

        iterator = stream()
        with pytest.raises(DependsInvalidRegistrationError, match="running event loop"):
            registry.subscribe(iterator, SERVICE)

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import weakref
from collections.abc import AsyncIterable, Callable
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable

from depends.exceptions import DependsInvalidRegistrationError

if TYPE_CHECKING:
    from depends.key import DependencyKey
    from depends.registry import DependencyRegistry

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class Publisher(Protocol[T_co]):
    """A push source of dependency values.

    ``subscribe`` attaches a callback invoked once per emitted value and returns a
    handle that detaches it. Publishers must never report failures through
    the callback: they either emit values or stop emitting.
    """

    def subscribe(self, callback: Callable[[Any], None], /) -> Cancellable: ...


class ValuePublisher(Generic[T]):
    """Thread-safe in-process publisher that forwards sent values to its sinks.

    Values are delivered synchronously, in the calling thread, to every sink
    attached at the time of ``send``. After ``complete`` further values are
    dropped.

    Examples:
        .. code-block:: python

            clocks: ValuePublisher[Clock] = ValuePublisher()
            registry.subscribe(clocks, CLOCK)

            clocks.send(FrozenClock(at=noon))
            assert registry.resolve(CLOCK).now() == noon

    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sinks: dict[int, Callable[[T], None]] = {}
        self._tokens = itertools.count()
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def subscribe(self, callback: Callable[[T], None], /) -> PublisherSubscription:
        with self._lock:
            token = next(self._tokens)
            if not self._completed:
                self._sinks[token] = callback
        return PublisherSubscription(self, token)

    def send(self, value: T) -> None:
        with self._lock:
            if self._completed:
                return
            sinks = list(self._sinks.values())
        for callback in sinks:
            callback(value)

    def complete(self) -> None:
        with self._lock:
            self._completed = True
            self._sinks.clear()

    def _detach(self, token: int) -> None:
        with self._lock:
            self._sinks.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sinks)


class PublisherSubscription:
    """Handle detaching one sink from a ``ValuePublisher``."""

    def __init__(self, publisher: ValuePublisher[Any], token: int) -> None:
        self._publisher = publisher
        self._token = token

    def cancel(self) -> None:
        self._publisher._detach(self._token)  # noqa: SLF001


class AsyncStreamSubscription:
    """Handle owning the task that drains an async stream into a registry."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self.task = task

    def cancel(self) -> None:
        loop = self.task.get_loop()
        if self.task.done() or loop.is_closed():
            return
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is loop:
            self.task.cancel()
        else:
            loop.call_soon_threadsafe(self.task.cancel)


class SubscriptionBag:
    """Thread-safe set of live subscriptions owned by one registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: set[Cancellable] = set()

    def add(self, subscription: Cancellable) -> None:
        with self._lock:
            self._subscriptions.add(subscription)

    def discard(self, subscription: Cancellable) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    def cancel_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.cancel()
        if subscriptions:
            logger.debug("Cancelled %d dynamic dependency subscription(s)", len(subscriptions))

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)


class _RegistrationSink:
    """Register every received value into a weakly held registry."""

    def __init__(
        self,
        registry: DependencyRegistry,
        key: DependencyKey[Any] | None,
    ) -> None:
        self._registry_ref = weakref.ref(registry)
        self._key = key

    def __call__(self, value: Any) -> bool:
        registry = self._registry_ref()
        if registry is None:
            return False
        registry.register(value, self._key)
        return True


async def _drain_stream(stream: AsyncIterable[Any], sink: _RegistrationSink) -> None:
    try:
        async for value in stream:
            if not sink(value):
                return
    except asyncio.CancelledError:
        raise
    except Exception:
        # Streams are expected to never fail; a failure ends the subscription.
        logger.exception("Dynamic dependency stream %r failed, subscription ended", stream)


def open_subscription(
    registry: DependencyRegistry,
    stream: Publisher[Any] | AsyncIterable[Any],
    key: DependencyKey[Any] | None,
    subscriptions: SubscriptionBag,
) -> Cancellable:
    """Start feeding ``stream`` into ``registry`` and track the handle in ``subscriptions``.

    Args:
        registry: Registry receiving one ``register`` call per emitted value.
        stream: A ``Publisher`` or an ``AsyncIterable``.
        key: Slot to register into, or ``None`` to use each value's own
            ``dependency_key``.
        subscriptions: Bag owning the subscription for its lifetime.

    Raises:
        DependsInvalidRegistrationError: If ``stream`` is neither a publisher
            nor an async iterable, or an async iterable is subscribed outside
            a running event loop.

    """
    sink = _RegistrationSink(registry, key)

    if isinstance(stream, Publisher):
        subscription: Cancellable = stream.subscribe(sink)
        subscriptions.add(subscription)
        return subscription

    if isinstance(stream, AsyncIterable):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as error:
            msg = "Subscribing an async stream requires a running event loop."
            raise DependsInvalidRegistrationError(msg) from error

        task = loop.create_task(_drain_stream(stream, sink))
        async_subscription = AsyncStreamSubscription(task)
        subscriptions.add(async_subscription)
        task.add_done_callback(lambda _: subscriptions.discard(async_subscription))
        return async_subscription

    msg = f"Cannot subscribe to {stream!r}: expected a Publisher or an AsyncIterable."
    raise DependsInvalidRegistrationError(msg)


def subscribe_dynamic(
    registry: DependencyRegistry,
    stream: Publisher[Any] | AsyncIterable[Any],
    key: DependencyKey[Any] | None = None,
) -> None:
    """Re-register ``key`` on ``registry`` every time ``stream`` emits.

    The subscription is owned by the registry and is cancelled when the
    registry is closed or garbage collected.
    """
    registry.subscribe(stream, key)


__all__ = [
    "AsyncStreamSubscription",
    "Cancellable",
    "Publisher",
    "PublisherSubscription",
    "SubscriptionBag",
    "ValuePublisher",
    "open_subscription",
    "subscribe_dynamic",
]

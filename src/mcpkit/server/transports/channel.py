# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Publish/subscribe primitives shared by the server transports.

:class:`BroadcastChannel` fans every published item out to all current
subscribers, synchronously and in publication order.  Transports expose the
channel through two narrow views:

* :class:`ChannelReader` – ``listen`` for callbacks or ``async for`` for
  iteration.  Handed to whoever consumes messages.
* :class:`ChannelSink` – ``add``/``add_error``/``close``.  Handed to whoever
  produces messages.

:class:`CloseSignal` is the one-shot terminal event every transport exposes as
``on_close``.  Only its first completion (success or failure) is recorded.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
import math
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import anyio

from ...utils import get_logger


if TYPE_CHECKING:
    from collections.abc import Generator

    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream


T = TypeVar("T")

DataCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]
DoneCallback = Callable[[], None]

_logger = get_logger("mcpkit.transport.channel")


class ChannelClosedError(RuntimeError):
    """Raised when publishing to a channel that has already been closed."""


class Subscription:
    """Handle returned by :meth:`BroadcastChannel.listen`."""

    __slots__ = ("_channel", "_on_data", "_on_error", "_on_done", "_active")

    def __init__(
        self,
        channel: BroadcastChannel[Any] | None,
        on_data: DataCallback,
        on_error: ErrorCallback | None,
        on_done: DoneCallback | None,
    ) -> None:
        self._channel = channel
        self._on_data = on_data
        self._on_error = on_error
        self._on_done = on_done
        self._active = channel is not None

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop receiving events.  No ``on_done`` is delivered."""
        if not self._active:
            return
        self._active = False
        if self._channel is not None:
            self._channel._detach(self)  # noqa: SLF001

    def _deliver(self, item: Any) -> None:
        if self._active:
            self._on_data(item)

    def _deliver_error(self, error: BaseException, channel_name: str) -> None:
        if not self._active:
            return
        if self._on_error is None:
            _logger.error("Unhandled error on channel %s: %r", channel_name, error)
            return
        self._on_error(error)

    def _finish(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_done is not None:
            self._on_done()


_DATA = "data"
_ERROR = "error"
_DONE = "done"


@dataclass(slots=True)
class _Event:
    kind: str
    payload: Any
    subscribers: tuple[Subscription, ...]


class BroadcastChannel(Generic[T]):
    """Multi-listener channel with synchronous, ordered fan-out.

    Items published before a listener subscribes are not replayed.  Closing
    the channel delivers ``on_done`` to every live subscriber; listening on a
    closed channel delivers ``on_done`` immediately.
    """

    def __init__(self, name: str = "channel") -> None:
        self._name = name
        self._subscribers: list[Subscription] = []
        self._closed = False
        self._pending: deque[_Event] = deque()
        self._delivering = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._subscribers)} listener(s)"
        return f"<BroadcastChannel {self._name} {state}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def has_listeners(self) -> bool:
        return bool(self._subscribers)

    @property
    def reader(self) -> ChannelReader[T]:
        return ChannelReader(self)

    @property
    def sink(self) -> ChannelSink[T]:
        return ChannelSink(self)

    def listen(
        self,
        on_data: DataCallback,
        *,
        on_error: ErrorCallback | None = None,
        on_done: DoneCallback | None = None,
    ) -> Subscription:
        if self._closed:
            if on_done is not None:
                on_done()
            return Subscription(None, on_data, on_error, on_done)

        subscription = Subscription(self, on_data, on_error, on_done)
        self._subscribers.append(subscription)
        return subscription

    def add(self, item: T) -> None:
        if self._closed:
            raise ChannelClosedError(f"Cannot add to closed channel {self._name}")
        self._dispatch(_Event(_DATA, item, tuple(self._subscribers)))

    def add_error(self, error: BaseException) -> None:
        if self._closed:
            raise ChannelClosedError(f"Cannot add an error to closed channel {self._name}")
        self._dispatch(_Event(_ERROR, error, tuple(self._subscribers)))

    def close(self) -> None:
        """Close the channel.  Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._dispatch(_Event(_DONE, None, ()))

    def _dispatch(self, event: _Event) -> None:
        # Events published from inside a callback are queued behind the one
        # being delivered, so every subscriber sees publication order.
        self._pending.append(event)
        if self._delivering:
            return

        self._delivering = True
        try:
            while self._pending:
                self._deliver(self._pending.popleft())
        finally:
            self._delivering = False

    def _deliver(self, event: _Event) -> None:
        if event.kind == _DONE:
            subscribers, self._subscribers = self._subscribers, []
            for subscription in subscribers:
                subscription._finish()  # noqa: SLF001
            return

        for subscription in event.subscribers:
            if event.kind == _DATA:
                subscription._deliver(event.payload)  # noqa: SLF001
            else:
                subscription._deliver_error(event.payload, self._name)  # noqa: SLF001

    def _detach(self, subscription: Subscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            pass


class ChannelReader(Generic[T]):
    """Consumer-facing view of a :class:`BroadcastChannel`."""

    __slots__ = ("_channel",)

    def __init__(self, channel: BroadcastChannel[T]) -> None:
        self._channel = channel

    @property
    def is_closed(self) -> bool:
        return self._channel.is_closed

    def listen(
        self,
        on_data: DataCallback,
        *,
        on_error: ErrorCallback | None = None,
        on_done: DoneCallback | None = None,
    ) -> Subscription:
        return self._channel.listen(on_data, on_error=on_error, on_done=on_done)

    def stream(self) -> ChannelStream[T]:
        """Subscribe now and return an async iterator over subsequent items."""
        return ChannelStream(self._channel)

    def __aiter__(self) -> ChannelStream[T]:
        return self.stream()


class ChannelSink(Generic[T]):
    """Producer-facing view of a :class:`BroadcastChannel`.

    Unlike the channel itself, the sink tolerates use after close: items and
    errors are dropped once the channel is closed.
    """

    __slots__ = ("_channel",)

    def __init__(self, channel: BroadcastChannel[T]) -> None:
        self._channel = channel

    @property
    def is_closed(self) -> bool:
        return self._channel.is_closed

    def add(self, item: T) -> None:
        if self._channel.is_closed:
            _logger.debug("Dropping item written to closed channel %s", self._channel.name)
            return
        self._channel.add(item)

    def add_error(self, error: BaseException) -> None:
        if self._channel.is_closed:
            _logger.debug("Dropping error written to closed channel %s: %r", self._channel.name, error)
            return
        self._channel.add_error(error)

    def close(self) -> None:
        self._channel.close()


@dataclass(slots=True)
class _Fault:
    error: BaseException


class ChannelStream(Generic[T]):
    """Async iterator bound to one channel subscription.

    Items are buffered without bound, so publishers never block.  A published
    error is raised from ``__anext__``; closing the channel ends iteration.
    """

    def __init__(self, channel: BroadcastChannel[T]) -> None:
        send: MemoryObjectSendStream[Any]
        receive: MemoryObjectReceiveStream[Any]
        send, receive = anyio.create_memory_object_stream[Any](math.inf)
        self._send = send
        self._receive = receive
        self._subscription = channel.listen(self._on_data, on_error=self._on_error, on_done=self._send.close)

    def _on_data(self, item: Any) -> None:
        self._send.send_nowait(item)

    def _on_error(self, error: BaseException) -> None:
        self._send.send_nowait(_Fault(error))

    def __aiter__(self) -> ChannelStream[T]:
        return self

    async def __anext__(self) -> T:
        try:
            item = await self._receive.receive()
        except (anyio.EndOfStream, anyio.ClosedResourceError):
            raise StopAsyncIteration from None
        if isinstance(item, _Fault):
            raise item.error
        return item

    def close(self) -> None:
        """Unsubscribe and discard anything still buffered."""
        self._subscription.cancel()
        self._send.close()
        self._receive.close()

    async def aclose(self) -> None:
        self.close()


class CloseSignal:
    """One-shot completion cell observed by any number of waiters.

    The first call to :meth:`complete` or :meth:`fail` settles the signal; later
    calls return ``False`` and change nothing.
    """

    def __init__(self) -> None:
        self._completed = False
        self._error: BaseException | None = None
        self._waiters: list[anyio.Event] = []
        self._callbacks: list[Callable[[BaseException | None], None]] = []

    def __repr__(self) -> str:
        if not self._completed:
            return "<CloseSignal pending>"
        if self._error is not None:
            return f"<CloseSignal failed {self._error!r}>"
        return "<CloseSignal completed>"

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def error(self) -> BaseException | None:
        """The recorded failure, or ``None`` when pending or completed successfully."""
        return self._error

    def complete(self) -> bool:
        return self._settle(None)

    def fail(self, error: BaseException) -> bool:
        return self._settle(error)

    def add_done_callback(self, callback: Callable[[BaseException | None], None]) -> None:
        """Invoke *callback* with the recorded error (or ``None``) once settled."""
        if self._completed:
            callback(self._error)
            return
        self._callbacks.append(callback)

    async def settled(self) -> None:
        """Wait until the signal settles, without raising a recorded failure."""
        if self._completed:
            return
        event = anyio.Event()
        self._waiters.append(event)
        await event.wait()

    async def wait(self) -> None:
        """Wait until the signal settles and raise the failure, if any."""
        await self.settled()
        if self._error is not None:
            raise self._error

    def __await__(self) -> Generator[Any, None, None]:
        return self.wait().__await__()

    def _settle(self, error: BaseException | None) -> bool:
        if self._completed:
            return False
        self._completed = True
        self._error = error
        waiters, self._waiters = self._waiters, []
        for event in waiters:
            event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(error)
        return True


__all__ = [
    "BroadcastChannel",
    "ChannelClosedError",
    "ChannelReader",
    "ChannelSink",
    "ChannelStream",
    "CloseSignal",
    "Subscription",
]

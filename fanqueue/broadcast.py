"""A bounded broadcast queue with any number of writers, streams and readers.

Every value sent into the queue is seen once on every stream. A stream may be
shared by several receivers, in which case they compete for its values. The
queue is bounded: a send fails while the slowest stream is a full ring behind
the writers.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from fanqueue.countedindex import get_valid_wrap

R = TypeVar("R")

_EMPTY = object()


class QueueError(Exception):
    """Base class for queue errors."""


class QueueFull(QueueError):
    """Raised when a value cannot be sent because the queue is full."""

    def __init__(self, value: Any = None, message: str = "queue is full") -> None:
        super().__init__(message)
        self.value = value


class QueueEmpty(QueueError):
    """Raised when no value is available but writers are still connected."""


class Disconnected(QueueError):
    """Raised when the other side of the queue has gone away."""

    def __init__(self, message: str = "queue is disconnected", value: Any = None) -> None:
        super().__init__(message)
        self.value = value


class _Stream:
    """One broadcast stream: a read position shared by its consumers."""

    __slots__ = ("tail", "consumers", "__weakref__")

    def __init__(self, tail: int) -> None:
        self.tail = tail
        self.consumers = 0


class _QueueCore:
    """The shared ring buffer and bookkeeping behind every queue handle."""

    def __init__(self, capacity: int) -> None:
        self.capacity = get_valid_wrap(capacity)
        self._slots: list[Any] = [_EMPTY] * self.capacity
        self._head = 0
        self._streams: list[_Stream] = []
        self._senders = 0
        self._lock = threading.Lock()
        self.changed = threading.Condition(self._lock)

    # -- membership -------------------------------------------------------

    def add_sender(self) -> None:
        with self._lock:
            self._senders += 1

    def release_sender(self) -> None:
        with self.changed:
            self._senders -= 1
            if self._senders == 0:
                self.changed.notify_all()

    def open_stream(self, tail: int | None = None) -> _Stream:
        """Create and register a stream with a single consumer."""
        with self._lock:
            stream = _Stream(self._head if tail is None else tail)
            stream.consumers = 1
            self._streams.append(stream)
            return stream

    def branch(self, source: _Stream) -> _Stream:
        """Register a new stream starting where ``source`` currently is."""
        with self._lock:
            stream = _Stream(source.tail)
            stream.consumers = 1
            self._streams.append(stream)
            return stream

    def attach(self, stream: _Stream) -> None:
        with self._lock:
            stream.consumers += 1

    def consumers(self, stream: _Stream) -> int:
        with self._lock:
            return stream.consumers

    def release_consumer(self, stream: _Stream) -> bool:
        """Drop one consumer; return True if it was the last on its stream."""
        with self.changed:
            stream.consumers -= 1
            if stream.consumers > 0:
                return False
            old_min = self._min_tail()
            self._streams.remove(stream)
            self._clear_slots(old_min)
            self.changed.notify_all()
            return True

    @property
    def senders(self) -> int:
        with self._lock:
            return self._senders

    # -- data -------------------------------------------------------------

    def _min_tail(self) -> int:
        return min((s.tail for s in self._streams), default=self._head)

    def _clear_slots(self, old_min: int) -> None:
        for pos in range(old_min, self._min_tail()):
            self._slots[pos % self.capacity] = _EMPTY

    def try_send(self, value: Any) -> None:
        with self.changed:
            if not self._streams:
                raise Disconnected("no receivers are subscribed", value)
            if self._head - self._min_tail() >= self.capacity:
                raise QueueFull(value)
            self._slots[self._head % self.capacity] = value
            self._head += 1
            self.changed.notify_all()

    def _check_available(self, stream: _Stream) -> None:
        if stream.tail < self._head:
            return
        if self._senders == 0:
            raise Disconnected()
        raise QueueEmpty("queue is empty")

    def _peek_locked(self, stream: _Stream) -> Any:
        self._check_available(stream)
        return self._slots[stream.tail % self.capacity]

    def _advance_locked(self, stream: _Stream) -> None:
        old_min = self._min_tail()
        stream.tail += 1
        self._clear_slots(old_min)
        self.changed.notify_all()

    def _take_locked(self, stream: _Stream) -> Any:
        value = self._peek_locked(stream)
        self._advance_locked(stream)
        return value

    def _wait_for(self, action: Callable[[_Stream], Any], stream: _Stream) -> Any:
        with self.changed:
            while True:
                try:
                    return action(stream)
                except QueueEmpty:
                    self.changed.wait()

    def try_recv(self, stream: _Stream) -> Any:
        with self._lock:
            return self._take_locked(stream)

    def recv(self, stream: _Stream) -> Any:
        return self._wait_for(self._take_locked, stream)

    def try_peek(self, stream: _Stream) -> Any:
        with self._lock:
            return self._peek_locked(stream)

    def peek(self, stream: _Stream) -> Any:
        return self._wait_for(self._peek_locked, stream)

    def advance(self, stream: _Stream) -> None:
        with self.changed:
            self._advance_locked(stream)


class _Membership:
    """One registration with the queue, released explicitly or on collection."""

    __slots__ = ("_finalizer", "__weakref__")

    def __init__(self, release: Callable[..., Any], *args: Any) -> None:
        self._finalizer = weakref.finalize(self, release, *args)

    @property
    def active(self) -> bool:
        return self._finalizer.alive

    def release(self) -> Any:
        return self._finalizer()


class BroadcastSender:
    """The sending half of a broadcast queue. Sends never block."""

    def __init__(self, core: _QueueCore) -> None:
        core.add_sender()
        self._core = core
        self._membership = _Membership(core.release_sender)

    def _require(self) -> _QueueCore:
        if not self._membership.active:
            raise Disconnected("sender is no longer subscribed")
        return self._core

    def try_send(self, value: Any) -> None:
        """Send ``value`` or raise ``QueueFull`` / ``Disconnected`` at once."""
        self._require().try_send(value)

    def clone(self) -> BroadcastSender:
        """Return another sender on the same queue."""
        return type(self)(self._require())

    def unsubscribe(self) -> None:
        """Remove this sender from the queue."""
        self._membership.release()

    def __enter__(self) -> BroadcastSender:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class _ReceiverBase:
    def __init__(
        self,
        core: _QueueCore,
        stream: _Stream,
        membership: _Membership | None = None,
    ) -> None:
        self._core = core
        self._stream = stream
        self._membership: _Membership | None = membership or _Membership(
            core.release_consumer, stream
        )

    def _require(self) -> _Stream:
        if self._membership is None or not self._membership.active:
            raise Disconnected("receiver is no longer subscribed")
        return self._stream

    def _hand_over(self) -> _Membership:
        self._require()
        membership = self._membership
        self._membership = None
        assert membership is not None
        return membership

    def _release(self) -> bool:
        if self._membership is None:
            return False
        return bool(self._membership.release())

    def _try_take(self) -> Any:
        return self._core.try_recv(self._require())

    def _take(self) -> Any:
        return self._core.recv(self._require())

    def _drain_blocking(self) -> Iterator[Any]:
        while True:
            try:
                yield self._take()
            except Disconnected:
                return


class BroadcastReceiver(_ReceiverBase):
    """The receiving half of a broadcast queue, bound to one stream."""

    def try_recv(self) -> Any:
        """Return the next value or raise ``QueueEmpty`` / ``Disconnected`` at once."""
        return self._try_take()

    def recv(self) -> Any:
        """Return the next value, blocking until one arrives.

        Raises ``Disconnected`` once all senders are gone and the stream is drained.
        """
        return self._take()

    def add_stream(self) -> BroadcastReceiver:
        """Return a receiver on a new stream starting at this receiver's position."""
        return BroadcastReceiver(self._core, self._core.branch(self._require()))

    def clone(self) -> BroadcastReceiver:
        """Return another receiver competing for values on the same stream."""
        stream = self._require()
        self._core.attach(stream)
        return BroadcastReceiver(self._core, stream)

    def unsubscribe(self) -> bool:
        """Leave the stream; return True if this was its last receiver."""
        return self._release()

    def try_iter(self) -> Iterator[Any]:
        """Yield values until the stream is empty or disconnected, never blocking."""
        while True:
            try:
                yield self.try_recv()
            except (QueueEmpty, Disconnected):
                return

    def into_single(self) -> BroadcastUniReceiver:
        """Convert into a ``BroadcastUniReceiver`` if this is the stream's only receiver.

        Raises ``ValueError`` and leaves this receiver usable otherwise.
        """
        stream = self._require()
        if self._core.consumers(stream) != 1:
            raise ValueError("stream has more than one receiver")
        return BroadcastUniReceiver(self._core, stream, self._hand_over())

    def __iter__(self) -> Iterator[Any]:
        return self._drain_blocking()

    def __enter__(self) -> BroadcastReceiver:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class BroadcastUniReceiver(_ReceiverBase):
    """The sole receiver of a stream, able to inspect values in place."""

    def try_recv(self) -> Any:
        """Return the next value or raise ``QueueEmpty`` / ``Disconnected`` at once."""
        return self._try_take()

    def recv(self) -> Any:
        """Return the next value, blocking until one arrives or senders are gone."""
        return self._take()

    def try_recv_view(self, op: Callable[[Any], R]) -> R:
        """Apply ``op`` to the next value without blocking and return its result.

        The value is consumed only if ``op`` returns normally.
        """
        stream = self._require()
        result = op(self._core.try_peek(stream))
        self._core.advance(stream)
        return result

    def recv_view(self, op: Callable[[Any], R]) -> R:
        """Like ``try_recv_view`` but blocks until a value arrives."""
        stream = self._require()
        result = op(self._core.peek(stream))
        self._core.advance(stream)
        return result

    def unsubscribe(self) -> None:
        """Leave the stream."""
        self._release()

    def into_multi(self) -> BroadcastReceiver:
        """Convert back into an ordinary ``BroadcastReceiver``."""
        return BroadcastReceiver(self._core, self._stream, self._hand_over())

    def iter_with(self, op: Callable[[Any], R]) -> Iterator[R]:
        """Yield ``op`` applied to each value, blocking, until disconnected."""
        while True:
            try:
                yield self.recv_view(op)
            except Disconnected:
                return

    def try_iter_with(self, op: Callable[[Any], R]) -> Iterator[R]:
        """Yield ``op`` applied to each value until the stream is empty or disconnected."""
        while True:
            try:
                yield self.try_recv_view(op)
            except (QueueEmpty, Disconnected):
                return

    def __iter__(self) -> Iterator[Any]:
        return self._drain_blocking()

    def __enter__(self) -> BroadcastUniReceiver:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


def broadcast_queue(capacity: int) -> tuple[BroadcastSender, BroadcastReceiver]:
    """Create a sender and receiver pair.

    The capacity is rounded up to the next power of two (at least one).
    """
    core = _QueueCore(capacity)
    return BroadcastSender(core), BroadcastReceiver(core, core.open_stream())
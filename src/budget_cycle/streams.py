# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Observable current-value streams.

A ``StateStream`` always holds a value. Subscribers receive that value as
soon as they subscribe and then every later *distinct* value. Updates made
inside ``stream_batch()`` are applied immediately but delivered only when
the outermost batch exits, and delivery itself runs in rounds until nothing
is pending. Derived streams therefore settle before any external subscriber
sees them: one batch of source updates produces at most one delivery per
subscriber, always of the settled value.

Callbacks run synchronously on the caller's thread of control and must not
block. Async consumers iterate instead::

    async for aggregate in engine.aggregate:
        render(aggregate)

Iteration is conflated: a consumer that falls behind skips straight to the
latest value.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import AsyncIterator, Callable, Generic, Iterator, TypeVar

logger = logging.getLogger("budget_cycle.streams")

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")

_UNSET = object()


# ─── Batching ─────────────────────────────────────────────────────────────────


class _BatchState:
    __slots__ = ("depth", "pending")

    def __init__(self) -> None:
        self.depth = 0
        self.pending: dict[int, StateStream] = {}


_batch = _BatchState()


@contextmanager
def stream_batch() -> Iterator[None]:
    """
    Defer subscriber delivery until the outermost batch exits.

    Nothing inside the ``with`` block may ``await``: the batch is a
    synchronous critical section on the event loop.
    """
    _batch.depth += 1
    try:
        yield
    finally:
        _batch.depth -= 1
        if _batch.depth == 0:
            _flush()


def _flush() -> None:
    # Deliveries can trigger further updates; keep the batch open while
    # draining so those are delivered in a later round, not re-entrantly.
    _batch.depth += 1
    try:
        while _batch.pending:
            streams = list(_batch.pending.values())
            _batch.pending.clear()
            for stream in streams:
                stream._deliver()
    finally:
        _batch.depth -= 1


# ─── Streams ──────────────────────────────────────────────────────────────────


class Subscription(Generic[T]):
    """Handle returned by ``StateStream.subscribe``; call ``cancel()`` to stop."""

    __slots__ = ("_stream", "_callback", "_last", "active")

    def __init__(self, stream: StateStream[T], callback: Callable[[T], object]) -> None:
        self._stream = stream
        self._callback = callback
        self._last: object = _UNSET
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._stream._unsubscribe(self)

    def _push(self, value: T) -> None:
        if not self.active or self._last is not _UNSET and self._last == value:
            return
        self._last = value
        try:
            self._callback(value)
        except Exception:
            logger.exception(
                "stream_subscriber_failed",
                extra={"stream": self._stream.name},
            )


class StateStream(Generic[T]):
    """Read-only view of a current-value stream."""

    def __init__(self, initial: T, name: str = "stream") -> None:
        self._value = initial
        self._subscriptions: list[Subscription[T]] = []
        self.name = name

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: Callable[[T], object]) -> Subscription[T]:
        """Call ``callback`` with the current value now and on every change."""
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        subscription._push(self._value)
        return subscription

    def map(self, transform: Callable[[T], U], name: str | None = None) -> StateStream[U]:
        return map_stream(self, transform, name=name)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        ready = asyncio.Event()
        latest: list[object] = [_UNSET]

        def receive(value: T) -> None:
            latest[0] = value
            ready.set()

        subscription = self.subscribe(receive)
        try:
            while True:
                await ready.wait()
                ready.clear()
                yield latest[0]  # type: ignore[misc]
        finally:
            subscription.cancel()

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def _set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        if _batch.depth:
            _batch.pending[id(self)] = self
        else:
            self._deliver()

    def _deliver(self) -> None:
        for subscription in list(self._subscriptions):
            subscription._push(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, value={self._value!r})"


class MutableStateStream(StateStream[T]):
    """A StateStream its owner can push values into."""

    def emit(self, value: T) -> None:
        self._set(value)


# ─── Operators ────────────────────────────────────────────────────────────────


def map_stream(
    source: StateStream[T],
    transform: Callable[[T], U],
    name: str | None = None,
) -> StateStream[U]:
    """Derived stream holding ``transform(source.value)``."""
    output: MutableStateStream[U] = MutableStateStream(
        transform(source.value), name=name or f"{source.name}.map"
    )
    source.subscribe(lambda value: output.emit(transform(value)))
    return output


def switch_map(
    source: StateStream[T],
    selector: Callable[[T], StateStream[U]],
    name: str | None = None,
) -> StateStream[U]:
    """
    Follow the inner stream chosen by the latest source value.

    When ``selector`` returns a different stream the old inner subscription is
    cancelled and the output takes the new inner stream's current value.
    """
    inner = selector(source.value)
    output: MutableStateStream[U] = MutableStateStream(
        inner.value, name=name or f"{source.name}.switch"
    )
    state: dict[str, object] = {"inner": inner, "subscription": None}

    def follow(stream: StateStream[U]) -> None:
        state["inner"] = stream
        state["subscription"] = stream.subscribe(output.emit)

    def on_source(value: T) -> None:
        selected = selector(value)
        if selected is state["inner"] and state["subscription"] is not None:
            return
        current = state["subscription"]
        if current is not None:
            current.cancel()  # type: ignore[attr-defined]
        follow(selected)

    follow(inner)
    source.subscribe(on_source)
    return output


def combine_latest(
    first: StateStream[T],
    second: StateStream[U],
    fold: Callable[[T, U], V],
    name: str | None = None,
) -> StateStream[V]:
    """Derived stream holding ``fold(first.value, second.value)``."""
    output: MutableStateStream[V] = MutableStateStream(
        fold(first.value, second.value), name=name or f"{first.name}+{second.name}"
    )

    def recompute(_: object) -> None:
        output.emit(fold(first.value, second.value))

    first.subscribe(recompute)
    second.subscribe(recompute)
    return output


def constant(value: T, name: str = "constant") -> StateStream[T]:
    """A stream that never changes."""
    return StateStream(value, name=name)

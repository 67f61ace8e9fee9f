"""Async stream combinators used to build live media queries.

Streams are plain async iterators. The combinators run their upstreams in
child tasks and hand values to the consumer through a conflated slot, so a
slow consumer only ever sees the most recent value. Child tasks are cancelled
and upstream generators closed when the consumer stops iterating.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

_MISSING: Any = object()


class ChangeSignal:
    """Replay-latest broadcast of a monotonically increasing version.

    Subscribers receive the current version immediately and at least one
    further emission after every ``notify``. Bursts of notifications are
    conflated into a single emission.
    """

    def __init__(self) -> None:
        self._version = 0
        self._event = asyncio.Event()

    @property
    def version(self) -> int:
        return self._version

    def notify(self) -> None:
        self._version += 1
        event, self._event = self._event, asyncio.Event()
        event.set()

    async def changes(self) -> AsyncIterator[int]:
        seen: int | None = None
        while True:
            version = self._version
            if version != seen:
                seen = version
                yield version
                continue
            await self._event.wait()


class _Conflated(Generic[T]):
    """Single-slot hand-off between producer tasks and one consumer."""

    def __init__(self) -> None:
        self._value: Any = _MISSING
        self._error: BaseException | None = None
        self._closed = False
        self._event = asyncio.Event()

    def send(self, value: T) -> None:
        self._value = value
        self._event.set()

    def fail(self, error: BaseException) -> None:
        if self._error is None:
            self._error = error
        self._event.set()

    def close(self) -> None:
        self._closed = True
        self._event.set()

    async def receive(self) -> AsyncIterator[T]:
        while True:
            if self._value is not _MISSING:
                value, self._value = self._value, _MISSING
                yield value
                continue
            if self._error is not None:
                raise self._error
            if self._closed:
                return
            self._event.clear()
            await self._event.wait()


async def _close_iterator(iterator: AsyncIterator[Any]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


def _supervise(tasks: Sequence[asyncio.Task[Any]], channel: _Conflated[Any]) -> None:
    pending = set(tasks)

    def _done(task: asyncio.Task[Any]) -> None:
        pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            channel.fail(error)
        elif not pending:
            channel.close()

    for task in tasks:
        task.add_done_callback(_done)


async def _cancel_all(tasks: Sequence[asyncio.Task[Any]]) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.wait(tasks)


async def flow_of(*values: T) -> AsyncIterator[T]:
    for value in values:
        yield value


async def single(factory: Callable[[], Awaitable[T]]) -> AsyncIterator[T]:
    """Emit the result of one awaited call."""

    yield await factory()


async def map_stream(source: AsyncIterator[T], mapper: Callable[[T], R]) -> AsyncIterator[R]:
    try:
        async for value in source:
            yield mapper(value)
    finally:
        await _close_iterator(source)


async def flat_map_latest(
    source: AsyncIterator[T], transform: Callable[[T], AsyncIterator[R]]
) -> AsyncIterator[R]:
    """Switch to the stream built from each new upstream value.

    The inner stream built for the previous value is cancelled as soon as the
    upstream emits again. The result completes once the upstream and the last
    inner stream are both exhausted.
    """

    channel: _Conflated[R] = _Conflated()

    async def run_inner(value: T) -> None:
        inner = transform(value)
        try:
            async for item in inner:
                channel.send(item)
        finally:
            await _close_iterator(inner)

    async def run_outer() -> None:
        current: asyncio.Task[None] | None = None
        try:
            async for value in source:
                if current is not None and not current.done():
                    current.cancel()
                    await asyncio.wait({current})
                current = asyncio.create_task(run_inner(value))
                _supervise_inner(current)
            if current is not None:
                await asyncio.wait({current})
        finally:
            if current is not None and not current.done():
                current.cancel()
                await asyncio.wait({current})
            await _close_iterator(source)

    def _supervise_inner(task: asyncio.Task[None]) -> None:
        def _done(finished: asyncio.Task[None]) -> None:
            if not finished.cancelled() and finished.exception() is not None:
                channel.fail(finished.exception())

        task.add_done_callback(_done)

    outer = asyncio.create_task(run_outer())
    _supervise([outer], channel)
    try:
        async for item in channel.receive():
            yield item
    finally:
        await _cancel_all([outer])


async def map_latest(
    source: AsyncIterator[T], transform: Callable[[T], Awaitable[R]]
) -> AsyncIterator[R]:
    """Await ``transform`` for each upstream value, abandoning stale calls."""

    stream = flat_map_latest(source, lambda value: single(lambda: transform(value)))
    try:
        async for item in stream:
            yield item
    finally:
        await stream.aclose()


async def combine_latest(
    sources: Iterable[AsyncIterator[Any]], combine: Callable[[list[Any]], R]
) -> AsyncIterator[R]:
    """Emit ``combine(latest values)`` whenever any source emits.

    Nothing is emitted until every source has produced at least one value.
    """

    upstreams = list(sources)
    if not upstreams:
        yield combine([])
        return

    channel: _Conflated[R] = _Conflated()
    latest: list[Any] = [_MISSING] * len(upstreams)

    async def pump(index: int, upstream: AsyncIterator[Any]) -> None:
        try:
            async for value in upstream:
                latest[index] = value
                if all(item is not _MISSING for item in latest):
                    channel.send(combine(list(latest)))
        finally:
            await _close_iterator(upstream)

    tasks = [asyncio.create_task(pump(index, upstream)) for index, upstream in enumerate(upstreams)]
    _supervise(tasks, channel)
    try:
        async for item in channel.receive():
            yield item
    finally:
        await _cancel_all(tasks)


__all__ = [
    "ChangeSignal",
    "combine_latest",
    "flat_map_latest",
    "flow_of",
    "map_latest",
    "map_stream",
    "single",
]

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from cadence.utils.streams import (
    ChangeSignal,
    combine_latest,
    flat_map_latest,
    flow_of,
    map_latest,
    map_stream,
    single,
)
from tests.support.async_utils import close, collect_all, next_matching, take


@pytest.mark.asyncio
async def test_change_signal_replays_current_version() -> None:
    signal = ChangeSignal()
    signal.notify()
    stream = signal.changes()

    try:
        (current,) = await take(stream, 1)
        signal.notify()
        signal.notify()
        (latest,) = await take(stream, 1)
    finally:
        await close(stream)

    assert current == 1
    assert latest == 3


@pytest.mark.asyncio
async def test_finite_combinators() -> None:
    async def double(value: int) -> int:
        return value * 2

    assert await collect_all(flow_of(1, 2, 3)) == [1, 2, 3]
    assert await collect_all(single(lambda: double(4))) == [8]
    assert await collect_all(map_stream(flow_of(1, 2), lambda value: value + 1)) == [2, 3]
    assert await collect_all(combine_latest([], lambda values: len(values))) == [0]


@pytest.mark.asyncio
async def test_flat_map_latest_cancels_stale_inner_streams() -> None:
    signal = ChangeSignal()
    cancelled: list[int] = []

    async def inner(version: int) -> AsyncIterator[str]:
        yield f"v{version}"
        try:
            await asyncio.Event().wait()
        finally:
            cancelled.append(version)

    stream = flat_map_latest(signal.changes(), inner)
    try:
        (first,) = await take(stream, 1)
        signal.notify()
        second = await next_matching(stream, lambda value: value == "v1")
    finally:
        await close(stream)

    assert first == "v0"
    assert second == "v1"
    assert cancelled == [0, 1]


@pytest.mark.asyncio
async def test_map_latest_reruns_on_every_change() -> None:
    signal = ChangeSignal()
    calls: list[int] = []

    async def load(version: int) -> int:
        calls.append(version)
        return version * 10

    stream = map_latest(signal.changes(), load)
    try:
        (first,) = await take(stream, 1)
        signal.notify()
        (second,) = await take(stream, 1)
    finally:
        await close(stream)

    assert (first, second) == (0, 10)
    assert calls == [0, 1]


@pytest.mark.asyncio
async def test_combine_latest_waits_for_every_source() -> None:
    left = ChangeSignal()
    right = ChangeSignal()
    right.notify()

    stream = combine_latest([left.changes(), right.changes()], tuple)
    try:
        (first,) = await take(stream, 1)
        left.notify()
        second = await next_matching(stream, lambda value: value == (1, 1))
    finally:
        await close(stream)

    assert first == (0, 1)
    assert second == (1, 1)


@pytest.mark.asyncio
async def test_upstream_errors_propagate() -> None:
    async def broken() -> AsyncIterator[int]:
        yield 1
        raise RuntimeError("upstream failed")

    with pytest.raises(RuntimeError, match="upstream failed"):
        await collect_all(combine_latest([broken(), flow_of(2)], tuple))
    with pytest.raises(RuntimeError, match="upstream failed"):
        await collect_all(flat_map_latest(flow_of(1), lambda _value: broken()))

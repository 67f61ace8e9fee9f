"""Asynchronous utilities used exclusively by the test-suite."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

T = TypeVar("T")


async def next_matching(
    stream: AsyncIterator[T],
    predicate: Callable[[T], bool],
    *,
    timeout: float = 2.0,
) -> T:
    """Advance *stream* until an item satisfies *predicate*."""

    async def _advance() -> T:
        async for item in stream:
            if predicate(item):
                return item
        raise AssertionError("stream completed without a matching item")

    return await asyncio.wait_for(_advance(), timeout=timeout)


async def take(stream: AsyncIterator[T], count: int, *, timeout: float = 2.0) -> list[T]:
    """Collect the next *count* items of *stream*."""

    async def _collect() -> list[T]:
        items: list[T] = []
        async for item in stream:
            items.append(item)
            if len(items) >= count:
                break
        return items

    return await asyncio.wait_for(_collect(), timeout=timeout)


async def collect_all(stream: AsyncIterator[T], *, timeout: float = 2.0) -> list[T]:
    """Drain a finite *stream*."""

    async def _collect() -> list[T]:
        return [item async for item in stream]

    return await asyncio.wait_for(_collect(), timeout=timeout)


async def close(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()

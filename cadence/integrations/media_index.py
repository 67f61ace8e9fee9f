"""SQLAlchemy-backed index of locally available media.

The index plays the part of the device media store: it owns the album,
artist, genre and audio tables and lets callers observe arbitrary queries.
An observed query is re-run on a worker thread whenever a writer reports a
change.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from typing import Any, TypeVar

from sqlalchemy import delete
from sqlalchemy.orm import Session

from cadence.db import SessionFactory, run_session
from cadence.logging import get_logger
from cadence.models import IndexedAlbum, IndexedArtist, IndexedAudio, IndexedGenre
from cadence.utils.streams import ChangeSignal, map_latest

logger = get_logger(__name__)

T = TypeVar("T")

IndexQuery = Callable[[Session], T]


class MediaIndex:
    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory
        self._changes = ChangeSignal()

    def notify_change(self) -> None:
        self._changes.notify()

    async def fetch(self, query: IndexQuery[T]) -> T:
        return await run_session(query, factory=self._session_factory)

    def observe(self, query: IndexQuery[T]) -> AsyncIterator[T]:
        """Yield the result of ``query`` now and after every index change."""

        return map_latest(self._changes.changes(), lambda _version: self.fetch(query))

    # Writers

    async def upsert_artists(self, rows: Iterable[Mapping[str, Any]]) -> None:
        await self._merge(IndexedArtist, rows)

    async def upsert_albums(self, rows: Iterable[Mapping[str, Any]]) -> None:
        await self._merge(IndexedAlbum, rows)

    async def upsert_genres(self, rows: Iterable[Mapping[str, Any]]) -> None:
        await self._merge(IndexedGenre, rows)

    async def upsert_audio(self, rows: Iterable[Mapping[str, Any]]) -> None:
        await self._merge(IndexedAudio, rows)

    async def remove_audio(self, audio_ids: Iterable[int]) -> int:
        ids = list(audio_ids)

        def _remove(session: Session) -> int:
            result = session.execute(delete(IndexedAudio).where(IndexedAudio.id.in_(ids)))
            return int(result.rowcount or 0)

        removed = await run_session(_remove, factory=self._session_factory)
        if removed:
            self.notify_change()
        return removed

    async def _merge(self, model: type[Any], rows: Iterable[Mapping[str, Any]]) -> None:
        payload = [dict(row) for row in rows]
        if not payload:
            return

        def _write(session: Session) -> None:
            for row in payload:
                session.merge(model(**row))

        await run_session(_write, factory=self._session_factory)
        logger.debug("Indexed %d %s rows", len(payload), model.__tablename__)
        self.notify_change()


__all__ = ["IndexQuery", "MediaIndex"]

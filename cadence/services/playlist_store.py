"""Persistence for locally managed playlists."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import and_, delete, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from cadence.db import SessionFactory, run_session
from cadence.errors import CadenceError
from cadence.logging import get_logger
from cadence.logging_events import log_event
from cadence.models import Item, Playlist, PlaylistItemCrossRef
from cadence.utils.streams import ChangeSignal, map_latest

logger = get_logger(__name__)

T = TypeVar("T")


class PlaylistNotFoundError(CadenceError):
    def __init__(self, playlist_id: int) -> None:
        super().__init__(f"Playlist {playlist_id} does not exist")
        self.playlist_id = playlist_id


class PlaylistItemExistsError(CadenceError):
    def __init__(self, playlist_id: int, audio_uri: str) -> None:
        super().__init__(f"{audio_uri} is already part of playlist {playlist_id}")
        self.playlist_id = playlist_id
        self.audio_uri = audio_uri


@dataclass(slots=True, frozen=True)
class StoredPlaylist:
    id: int
    name: str
    last_modified: datetime
    track_count: int


def _snapshot(row: Playlist) -> StoredPlaylist:
    return StoredPlaylist(
        id=int(row.id),
        name=row.name,
        last_modified=row.last_modified,
        track_count=int(row.track_count),
    )


def _require_playlist(session: Session, playlist_id: int) -> Playlist:
    playlist = session.get(Playlist, playlist_id)
    if playlist is None:
        raise PlaylistNotFoundError(playlist_id)
    return playlist


_CONFLICT_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def _ensure_item(session: Session, audio_uri: str) -> Item:
    """Return the item row for ``audio_uri``, inserting it when missing.

    Concurrent writers may race on the unique ``audio_uri``; the insert ignores
    the conflict and the row is re-selected.
    """
    dialect_insert = _CONFLICT_INSERTS.get(session.get_bind().dialect.name)
    if dialect_insert is None:
        item = session.scalar(select(Item).where(Item.audio_uri == audio_uri))
        if item is None:
            item = Item(audio_uri=audio_uri, count=0)
            session.add(item)
            session.flush()
        return item
    session.execute(
        dialect_insert(Item)
        .values(audio_uri=audio_uri, count=0)
        .on_conflict_do_nothing(index_elements=["audio_uri"])
    )
    return session.scalars(select(Item).where(Item.audio_uri == audio_uri)).one()


def _delete_if_orphaned(session: Session, item: Item) -> None:
    references = session.scalar(
        select(func.count())
        .select_from(PlaylistItemCrossRef)
        .where(PlaylistItemCrossRef.item_id == item.id)
    )
    if not references and int(item.count or 0) == 0:
        session.delete(item)


class PlaylistStore:
    """Playlists, their items, and the links between them."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory
        self._changes = ChangeSignal()

    async def _run(self, func: Callable[[Session], T]) -> T:
        return await run_session(func, factory=self._session_factory)

    def _observe(self, func: Callable[[Session], T]) -> AsyncIterator[T]:
        return map_latest(self._changes.changes(), lambda _version: self._run(func))

    def _changed(self, action: str, playlist_id: int) -> None:
        log_event(logger, "playlist_store.changed", action=action, playlist_id=playlist_id)
        self._changes.notify()

    # Mutations

    async def create(self, name: str) -> int:
        def _create(session: Session) -> int:
            playlist = Playlist(name=name, last_modified=datetime.now(UTC), track_count=0)
            session.add(playlist)
            session.flush()
            return int(playlist.id)

        playlist_id = await self._run(_create)
        self._changed("create", playlist_id)
        return playlist_id

    async def rename(self, playlist_id: int, name: str) -> None:
        def _rename(session: Session) -> None:
            playlist = _require_playlist(session, playlist_id)
            playlist.name = name
            playlist.last_modified = datetime.now(UTC)

        await self._run(_rename)
        self._changed("rename", playlist_id)

    async def delete(self, playlist_id: int) -> None:
        def _delete(session: Session) -> None:
            playlist = _require_playlist(session, playlist_id)
            item_ids = list(
                session.scalars(
                    select(PlaylistItemCrossRef.item_id).where(
                        PlaylistItemCrossRef.playlist_id == playlist_id
                    )
                )
            )
            session.execute(
                delete(PlaylistItemCrossRef).where(PlaylistItemCrossRef.playlist_id == playlist_id)
            )
            session.delete(playlist)
            session.flush()
            for item_id in item_ids:
                item = session.get(Item, item_id)
                if item is not None:
                    _delete_if_orphaned(session, item)

        await self._run(_delete)
        self._changed("delete", playlist_id)

    async def add_item(self, playlist_id: int, audio_uri: str) -> None:
        def _add(session: Session) -> None:
            playlist = _require_playlist(session, playlist_id)
            item = _ensure_item(session, audio_uri)
            if session.get(PlaylistItemCrossRef, (playlist_id, item.id)) is not None:
                raise PlaylistItemExistsError(playlist_id, audio_uri)

            now = datetime.now(UTC)
            session.add(
                PlaylistItemCrossRef(playlist_id=playlist_id, item_id=item.id, last_modified=now)
            )
            playlist.track_count = int(playlist.track_count or 0) + 1
            playlist.last_modified = now

        await self._run(_add)
        self._changed("add_item", playlist_id)

    async def remove_item(self, playlist_id: int, audio_uri: str) -> bool:
        """Unlink ``audio_uri`` from the playlist. Returns ``False`` if it was not linked."""

        def _remove(session: Session) -> bool:
            playlist = _require_playlist(session, playlist_id)
            item = session.scalar(select(Item).where(Item.audio_uri == audio_uri))
            if item is None:
                return False
            reference = session.get(PlaylistItemCrossRef, (playlist_id, item.id))
            if reference is None:
                return False

            session.delete(reference)
            playlist.track_count = max(0, int(playlist.track_count or 0) - 1)
            playlist.last_modified = datetime.now(UTC)
            session.flush()
            _delete_if_orphaned(session, item)
            return True

        removed = await self._run(_remove)
        self._changed("remove_item", playlist_id)
        return removed

    # Queries

    @staticmethod
    def _all(session: Session) -> list[StoredPlaylist]:
        rows = session.scalars(select(Playlist).order_by(Playlist.name, Playlist.id))
        return [_snapshot(row) for row in rows]

    @staticmethod
    def _with_items(
        session: Session, playlist_id: int
    ) -> tuple[StoredPlaylist, list[str]] | None:
        playlist = session.get(Playlist, playlist_id)
        if playlist is None:
            return None
        uris = session.scalars(
            select(Item.audio_uri)
            .join(PlaylistItemCrossRef, PlaylistItemCrossRef.item_id == Item.id)
            .where(PlaylistItemCrossRef.playlist_id == playlist_id)
            .order_by(PlaylistItemCrossRef.last_modified, Item.id)
        )
        return _snapshot(playlist), list(uris)

    @staticmethod
    def _item_status(session: Session, audio_uri: str) -> list[tuple[StoredPlaylist, bool]]:
        item_id = select(Item.id).where(Item.audio_uri == audio_uri).scalar_subquery()
        rows = session.execute(
            select(Playlist, PlaylistItemCrossRef.item_id)
            .outerjoin(
                PlaylistItemCrossRef,
                and_(
                    PlaylistItemCrossRef.playlist_id == Playlist.id,
                    PlaylistItemCrossRef.item_id == item_id,
                ),
            )
            .order_by(Playlist.name, Playlist.id)
        )
        return [(_snapshot(playlist), linked is not None) for playlist, linked in rows]

    async def all(self) -> list[StoredPlaylist]:
        return await self._run(self._all)

    async def get_with_items(self, playlist_id: int) -> tuple[StoredPlaylist, list[str]] | None:
        return await self._run(lambda session: self._with_items(session, playlist_id))

    async def playlists_with_item_status(
        self, audio_uri: str
    ) -> list[tuple[StoredPlaylist, bool]]:
        return await self._run(lambda session: self._item_status(session, audio_uri))

    def observe_all(self) -> AsyncIterator[list[StoredPlaylist]]:
        return self._observe(self._all)

    def observe_with_items(
        self, playlist_id: int
    ) -> AsyncIterator[tuple[StoredPlaylist, list[str]] | None]:
        return self._observe(lambda session: self._with_items(session, playlist_id))

    def observe_item_status(self, audio_uri: str) -> AsyncIterator[list[tuple[StoredPlaylist, bool]]]:
        return self._observe(lambda session: self._item_status(session, audio_uri))


__all__ = [
    "PlaylistItemExistsError",
    "PlaylistNotFoundError",
    "PlaylistStore",
    "StoredPlaylist",
]

"""Persistence for configured Subsonic providers."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from cadence.db import SessionFactory, run_session
from cadence.errors import CadenceError
from cadence.logging import get_logger
from cadence.logging_events import log_event
from cadence.models import SubsonicProvider
from cadence.utils.streams import ChangeSignal, map_latest

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderNotFoundError(CadenceError):
    def __init__(self, provider_id: int) -> None:
        super().__init__(f"Subsonic provider {provider_id} does not exist")
        self.provider_id = provider_id


@dataclass(slots=True, frozen=True)
class StoredSubsonicProvider:
    id: int
    name: str
    url: str
    username: str
    password: str
    use_legacy_authentication: bool

    def __repr__(self) -> str:
        return (
            f"StoredSubsonicProvider(id={self.id!r}, name={self.name!r}, url={self.url!r}, "
            f"username={self.username!r}, password='***', "
            f"use_legacy_authentication={self.use_legacy_authentication!r})"
        )


def _snapshot(row: SubsonicProvider) -> StoredSubsonicProvider:
    return StoredSubsonicProvider(
        id=int(row.id),
        name=row.name,
        url=row.url,
        username=row.username,
        password=row.password,
        use_legacy_authentication=bool(row.use_legacy_authentication),
    )


class ProviderStore:
    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory
        self._changes = ChangeSignal()

    async def _run(self, func: Callable[[Session], T]) -> T:
        return await run_session(func, factory=self._session_factory)

    def _changed(self, action: str, provider_id: int) -> None:
        log_event(logger, "provider_store.changed", action=action, provider_id=provider_id)
        self._changes.notify()

    async def create(
        self,
        name: str,
        url: str,
        username: str,
        password: str,
        use_legacy_authentication: bool,
    ) -> int:
        def _create(session: Session) -> int:
            row = SubsonicProvider(
                name=name,
                url=url,
                username=username,
                password=password,
                use_legacy_authentication=use_legacy_authentication,
            )
            session.add(row)
            session.flush()
            return int(row.id)

        provider_id = await self._run(_create)
        self._changed("create", provider_id)
        return provider_id

    async def update(
        self,
        provider_id: int,
        name: str,
        url: str,
        username: str,
        password: str,
        use_legacy_authentication: bool,
    ) -> None:
        def _update(session: Session) -> None:
            row = session.get(SubsonicProvider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            row.name = name
            row.url = url
            row.username = username
            row.password = password
            row.use_legacy_authentication = use_legacy_authentication

        await self._run(_update)
        self._changed("update", provider_id)

    async def delete(self, provider_id: int) -> None:
        def _delete(session: Session) -> None:
            row = session.get(SubsonicProvider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            session.delete(row)

        await self._run(_delete)
        self._changed("delete", provider_id)

    @staticmethod
    def _all(session: Session) -> list[StoredSubsonicProvider]:
        rows = session.scalars(select(SubsonicProvider).order_by(SubsonicProvider.id))
        return [_snapshot(row) for row in rows]

    async def get(self, provider_id: int) -> StoredSubsonicProvider | None:
        def _get(session: Session) -> StoredSubsonicProvider | None:
            row = session.get(SubsonicProvider, provider_id)
            return _snapshot(row) if row is not None else None

        return await self._run(_get)

    async def all(self) -> list[StoredSubsonicProvider]:
        return await self._run(self._all)

    def observe_all(self) -> AsyncIterator[list[StoredSubsonicProvider]]:
        return map_latest(self._changes.changes(), lambda _version: self._run(self._all))


__all__ = [
    "ProviderNotFoundError",
    "ProviderStore",
    "StoredSubsonicProvider",
]

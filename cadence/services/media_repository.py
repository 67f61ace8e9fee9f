"""Single entry point over every configured media provider.

Listings follow the current navigation provider. Detail queries and playlist
mutations are routed to the provider whose data source recognises the URIs
involved. Global search and the playlist overview merge all providers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from cadence.config import load_config
from cadence.db import SessionFactory
from cadence.domain.media import Album, Artist, Audio, Genre, MediaItem, Playlist
from cadence.domain.providers import (
    ArgumentValue,
    Provider,
    ProviderType,
    validate_arguments,
)
from cadence.domain.status import Error, ErrorType, Loading, RequestStatus, Success
from cadence.errors import UnsupportedProviderOperation
from cadence.integrations.contracts import (
    AlbumDetail,
    ArtistDetail,
    GenreDetail,
    MediaDataSource,
    PlaylistDetail,
    PlaylistMembership,
)
from cadence.integrations.local_source import LocalDataSource
from cadence.integrations.media_index import MediaIndex
from cadence.integrations.subsonic_source import SubsonicDataSource
from cadence.logging import get_logger
from cadence.logging_events import log_event
from cadence.services.playlist_store import PlaylistStore
from cadence.services.provider_store import ProviderStore, StoredSubsonicProvider
from cadence.utils.streams import (
    ChangeSignal,
    combine_latest,
    flat_map_latest,
    flow_of,
    map_latest,
    map_stream,
)

logger = get_logger(__name__)

T = TypeVar("T")

LOCAL_PROVIDER_ID = 0

SourceFactory = Callable[[Mapping[str, ArgumentValue]], MediaDataSource]
ProviderSources = list[tuple[Provider, MediaDataSource]]


def _subsonic_arguments(row: StoredSubsonicProvider) -> dict[str, ArgumentValue]:
    return {
        "server": row.url,
        "username": row.username,
        "password": row.password,
        "use_legacy_authentication": row.use_legacy_authentication,
    }


def _subsonic_provider(row: StoredSubsonicProvider) -> Provider:
    return Provider(type=ProviderType.SUBSONIC, type_id=row.id, name=row.name)


async def with_loading(stream: AsyncIterator[RequestStatus[T]]) -> AsyncIterator[RequestStatus[T]]:
    """Prefix ``stream`` with a ``Loading`` status."""

    try:
        yield Loading()
        async for status in stream:
            yield status
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()


def merge_statuses(statuses: Sequence[RequestStatus[list[T]]]) -> RequestStatus[list[T]]:
    """Fold per-provider results into one.

    Loading while any provider is still loading; otherwise the concatenation
    of all successful results, or the first error if nothing succeeded.
    """

    if any(isinstance(status, Loading) for status in statuses):
        return Loading()
    successes = [status.data for status in statuses if isinstance(status, Success)]
    if successes:
        return Success([item for data in successes for item in data])
    errors = [status for status in statuses if isinstance(status, Error)]
    return errors[0] if errors else Success([])


class MediaRepository:
    def __init__(
        self,
        local_source: MediaDataSource,
        provider_store: ProviderStore,
        *,
        local_name: str | None = None,
        source_factory: SourceFactory | None = None,
    ) -> None:
        self._local = local_source
        self._local_provider = Provider(
            type=ProviderType.LOCAL,
            type_id=LOCAL_PROVIDER_ID,
            name=local_name or load_config().local.name,
        )
        self._store = provider_store
        self._source_factory: SourceFactory = source_factory or SubsonicDataSource
        self._sources: dict[int, tuple[StoredSubsonicProvider, MediaDataSource]] = {}
        self._navigation = self._local_provider
        self._navigation_changed = ChangeSignal()

    @property
    def local_provider(self) -> Provider:
        return self._local_provider

    async def aclose(self) -> None:
        sources, self._sources = self._sources, {}
        for _row, source in sources.values():
            await source.aclose()
        await self._local.aclose()

    # Provider wiring

    async def _sync_sources(self, rows: list[StoredSubsonicProvider]) -> ProviderSources:
        fresh: dict[int, tuple[StoredSubsonicProvider, MediaDataSource]] = {}
        for row in rows:
            existing = self._sources.get(row.id)
            if existing is not None and existing[0] == row:
                fresh[row.id] = existing
            else:
                fresh[row.id] = (row, self._source_factory(_subsonic_arguments(row)))

        stale = [
            source
            for provider_id, (_row, source) in self._sources.items()
            if provider_id not in fresh or fresh[provider_id][1] is not source
        ]
        self._sources = fresh
        for source in stale:
            await source.aclose()

        entries: ProviderSources = [(self._local_provider, self._local)]
        entries.extend((_subsonic_provider(row), source) for row, source in fresh.values())
        return entries

    def _provider_sources(self) -> AsyncIterator[ProviderSources]:
        return map_latest(self._store.observe_all(), self._sync_sources)

    async def _current_sources(self) -> ProviderSources:
        return await self._sync_sources(await self._store.all())

    def _navigation_source(self) -> AsyncIterator[MediaDataSource]:
        def pick(parts: list[Any]) -> MediaDataSource:
            entries: ProviderSources = parts[1]
            for provider, source in entries:
                if provider.same_identity(self._navigation):
                    return source
            return self._local

        return combine_latest([self._navigation_changed.changes(), self._provider_sources()], pick)

    def _routed(
        self, query: Callable[[MediaDataSource], AsyncIterator[RequestStatus[T]]], *uris: str
    ) -> AsyncIterator[RequestStatus[T]]:
        def pick(entries: ProviderSources) -> AsyncIterator[RequestStatus[T]]:
            source = self._compatible_source(entries, uris)
            if source is None:
                return flow_of(Error(ErrorType.NOT_FOUND))
            return query(source)

        return with_loading(flat_map_latest(self._provider_sources(), pick))

    def _on_navigation(
        self, query: Callable[[MediaDataSource], AsyncIterator[RequestStatus[T]]]
    ) -> AsyncIterator[RequestStatus[T]]:
        return with_loading(flat_map_latest(self._navigation_source(), query))

    def _merged(
        self, query: Callable[[MediaDataSource], AsyncIterator[RequestStatus[list[T]]]]
    ) -> AsyncIterator[RequestStatus[list[T]]]:
        def merge(entries: ProviderSources) -> AsyncIterator[RequestStatus[list[T]]]:
            return combine_latest(
                [with_loading(query(source)) for _provider, source in entries],
                merge_statuses,
            )

        return with_loading(flat_map_latest(self._provider_sources(), merge))

    @staticmethod
    def _compatible_source(
        entries: ProviderSources, uris: Sequence[str]
    ) -> MediaDataSource | None:
        for _provider, source in entries:
            if all(source.is_media_item_compatible(uri) for uri in uris):
                return source
        return None

    async def _mutate(
        self, operation: Callable[[MediaDataSource], Awaitable[RequestStatus[T]]], *uris: str
    ) -> RequestStatus[T]:
        source = self._compatible_source(await self._current_sources(), uris)
        if source is None:
            return Error(ErrorType.NOT_FOUND)
        return await operation(source)

    # Navigation provider listings

    def albums(self) -> AsyncIterator[RequestStatus[list[Album]]]:
        return self._on_navigation(lambda source: source.albums())

    def artists(self) -> AsyncIterator[RequestStatus[list[Artist]]]:
        return self._on_navigation(lambda source: source.artists())

    def genres(self) -> AsyncIterator[RequestStatus[list[Genre]]]:
        return self._on_navigation(lambda source: source.genres())

    def playlists(self) -> AsyncIterator[RequestStatus[list[Playlist]]]:
        return self._on_navigation(lambda source: source.playlists())

    def search(self, query: str) -> AsyncIterator[RequestStatus[list[MediaItem]]]:
        return self._on_navigation(lambda source: source.search(query))

    # Cross-provider

    def global_search(self, query: str) -> AsyncIterator[RequestStatus[list[MediaItem]]]:
        return self._merged(lambda source: source.search(query))

    def all_playlists(self) -> AsyncIterator[RequestStatus[list[Playlist]]]:
        return self._merged(lambda source: source.playlists())

    # Single entities

    def audio(self, audio_uri: str) -> AsyncIterator[RequestStatus[Audio]]:
        return self._routed(lambda source: source.audio(audio_uri), audio_uri)

    def album(self, album_uri: str) -> AsyncIterator[RequestStatus[AlbumDetail]]:
        return self._routed(lambda source: source.album(album_uri), album_uri)

    def artist(self, artist_uri: str) -> AsyncIterator[RequestStatus[ArtistDetail]]:
        return self._routed(lambda source: source.artist(artist_uri), artist_uri)

    def genre(self, genre_uri: str) -> AsyncIterator[RequestStatus[GenreDetail]]:
        return self._routed(lambda source: source.genre(genre_uri), genre_uri)

    def playlist(self, playlist_uri: str) -> AsyncIterator[RequestStatus[PlaylistDetail]]:
        return self._routed(lambda source: source.playlist(playlist_uri), playlist_uri)

    def audio_playlists_status(
        self, audio_uri: str
    ) -> AsyncIterator[RequestStatus[PlaylistMembership]]:
        return self._routed(lambda source: source.audio_playlists_status(audio_uri), audio_uri)

    # Playlist mutations

    async def create_playlist(self, provider: Provider, name: str) -> RequestStatus[str]:
        for candidate, source in await self._current_sources():
            if candidate.same_identity(provider):
                return await source.create_playlist(name)
        return Error(ErrorType.NOT_FOUND)

    async def rename_playlist(self, playlist_uri: str, name: str) -> RequestStatus[None]:
        return await self._mutate(
            lambda source: source.rename_playlist(playlist_uri, name), playlist_uri
        )

    async def delete_playlist(self, playlist_uri: str) -> RequestStatus[None]:
        return await self._mutate(lambda source: source.delete_playlist(playlist_uri), playlist_uri)

    async def add_audio_to_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        return await self._mutate(
            lambda source: source.add_audio_to_playlist(playlist_uri, audio_uri),
            playlist_uri,
            audio_uri,
        )

    async def remove_audio_from_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        return await self._mutate(
            lambda source: source.remove_audio_from_playlist(playlist_uri, audio_uri),
            playlist_uri,
            audio_uri,
        )

    # Providers

    def all_providers(self) -> AsyncIterator[list[Provider]]:
        return map_stream(
            self._store.observe_all(),
            lambda rows: [self._local_provider] + [_subsonic_provider(row) for row in rows],
        )

    def provider(self, provider_type: ProviderType, type_id: int) -> AsyncIterator[Provider | None]:
        target = Provider(type=provider_type, type_id=type_id, name="")
        return map_stream(
            self.all_providers(),
            lambda providers: next(
                (candidate for candidate in providers if candidate.same_identity(target)), None
            ),
        )

    def navigation_provider(self) -> AsyncIterator[Provider]:
        def resolve(parts: list[Any]) -> Provider:
            providers: list[Provider] = parts[1]
            for candidate in providers:
                if candidate.same_identity(self._navigation):
                    return candidate
            return self._local_provider

        return combine_latest([self._navigation_changed.changes(), self.all_providers()], resolve)

    def set_navigation_provider(self, provider: Provider) -> None:
        self._navigation = provider
        self._navigation_changed.notify()

    async def provider_of_media_items(self, *uris: str) -> Provider | None:
        for provider, source in await self._current_sources():
            if all(source.is_media_item_compatible(uri) for uri in uris):
                return provider
        return None

    async def provider_arguments(
        self, provider_type: ProviderType, type_id: int
    ) -> dict[str, ArgumentValue] | None:
        if provider_type is ProviderType.LOCAL:
            return {} if type_id == LOCAL_PROVIDER_ID else None
        row = await self._store.get(type_id)
        return _subsonic_arguments(row) if row is not None else None

    async def add_provider(
        self, provider_type: ProviderType, name: str, arguments: Mapping[str, Any]
    ) -> Provider:
        if provider_type is ProviderType.LOCAL:
            raise UnsupportedProviderOperation(provider_type.value, "add")
        validated = validate_arguments(provider_type, arguments)
        provider_id = await self._store.create(
            name=name,
            url=str(validated["server"]),
            username=str(validated["username"]),
            password=str(validated["password"]),
            use_legacy_authentication=bool(validated["use_legacy_authentication"]),
        )
        log_event(logger, "provider.added", provider_type=provider_type.value, provider_id=provider_id)
        return Provider(type=provider_type, type_id=provider_id, name=name)

    async def update_provider(
        self,
        provider_type: ProviderType,
        type_id: int,
        name: str,
        arguments: Mapping[str, Any],
    ) -> None:
        if provider_type is ProviderType.LOCAL:
            raise UnsupportedProviderOperation(provider_type.value, "update")
        validated = validate_arguments(provider_type, arguments)
        await self._store.update(
            type_id,
            name=name,
            url=str(validated["server"]),
            username=str(validated["username"]),
            password=str(validated["password"]),
            use_legacy_authentication=bool(validated["use_legacy_authentication"]),
        )
        log_event(logger, "provider.updated", provider_type=provider_type.value, provider_id=type_id)

    async def delete_provider(self, provider_type: ProviderType, type_id: int) -> None:
        if provider_type is ProviderType.LOCAL:
            raise UnsupportedProviderOperation(provider_type.value, "delete")
        await self._store.delete(type_id)
        log_event(logger, "provider.deleted", provider_type=provider_type.value, provider_id=type_id)


def build_repository(
    *,
    session_factory: SessionFactory | None = None,
    index: MediaIndex | None = None,
) -> MediaRepository:
    """Wire the default local source, stores and repository together."""

    config = load_config()
    local = LocalDataSource(
        index or MediaIndex(session_factory),
        playlist_store=PlaylistStore(session_factory),
        thumbnail_size=config.local.thumbnail_size,
    )
    return MediaRepository(
        local,
        ProviderStore(session_factory),
        local_name=config.local.name,
    )


__all__ = [
    "LOCAL_PROVIDER_ID",
    "MediaRepository",
    "build_repository",
    "merge_statuses",
    "with_loading",
]

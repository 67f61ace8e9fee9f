"""Media data source backed by a Subsonic server."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
import logging
from typing import Any, TypeVar
from urllib.parse import quote, unquote

import httpx

from cadence.config import SubsonicConfig, load_config
from cadence.domain.media import (
    Album,
    Artist,
    ArtistWorks,
    Audio,
    AudioType,
    Genre,
    MediaItem,
    Playlist,
    Thumbnail,
    ThumbnailType,
)
from cadence.domain.providers import (
    SUBSONIC_PASSWORD,
    SUBSONIC_SERVER,
    SUBSONIC_USE_LEGACY_AUTHENTICATION,
    SUBSONIC_USERNAME,
    require_argument,
)
from cadence.domain.status import Error, ErrorType, RequestStatus, Success
from cadence.errors import InvalidMediaTypeError
from cadence.integrations.contracts import (
    AlbumDetail,
    ArtistDetail,
    GenreDetail,
    PlaylistDetail,
    PlaylistMembership,
)
from cadence.integrations.subsonic import models
from cadence.integrations.subsonic.client import (
    HttpError,
    MethodResult,
    MethodSuccess,
    ProtocolError,
    SubsonicClient,
    SubsonicDecodeError,
)
from cadence.integrations.subsonic.codecs import ErrorCode
from cadence.logging import get_logger
from cadence.logging_events import log_event
from cadence.utils.streams import ChangeSignal, map_latest, single

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ALBUM_LIST_TYPE = "alphabeticalByName"

_ERROR_TYPES: dict[ErrorCode, ErrorType] = {
    ErrorCode.WRONG_CREDENTIALS: ErrorType.INVALID_CREDENTIALS,
    ErrorCode.TOKEN_AUTHENTICATION_NOT_SUPPORTED: ErrorType.INVALID_CREDENTIALS,
    ErrorCode.USER_NOT_AUTHORIZED: ErrorType.INVALID_CREDENTIALS,
    ErrorCode.SUBSONIC_PREMIUM_TRIAL_ENDED: ErrorType.INVALID_CREDENTIALS,
    ErrorCode.NOT_FOUND: ErrorType.NOT_FOUND,
}

_AUDIO_TYPES: dict[models.MediaType, AudioType] = {
    models.MediaType.MUSIC: AudioType.MUSIC,
    models.MediaType.PODCAST: AudioType.PODCAST,
    models.MediaType.AUDIOBOOK: AudioType.AUDIOBOOK,
}


def error_type_for(result: HttpError | ProtocolError) -> ErrorType:
    """Map a non-successful method result onto a domain error category."""

    if isinstance(result, HttpError):
        return ErrorType.IO
    if result.error is None:
        return ErrorType.IO
    return _ERROR_TYPES.get(result.error.code, ErrorType.IO)


def audio_type_for(media_type: models.MediaType | None, *, item_id: str | None = None) -> AudioType:
    if media_type is None:
        return AudioType.MUSIC
    try:
        return _AUDIO_TYPES[media_type]
    except KeyError:
        raise InvalidMediaTypeError(media_type.value, item_id=item_id) from None


class SubsonicDataSource:
    """Expose one Subsonic server through the media data source contract."""

    def __init__(
        self,
        arguments: Mapping[str, Any],
        *,
        config: SubsonicConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: SubsonicClient | None = None,
    ) -> None:
        server = str(require_argument(arguments, SUBSONIC_SERVER)).rstrip("/")
        username = str(require_argument(arguments, SUBSONIC_USERNAME))
        password = str(require_argument(arguments, SUBSONIC_PASSWORD))
        use_legacy_authentication = bool(
            require_argument(arguments, SUBSONIC_USE_LEGACY_AUTHENTICATION)
        )
        settings = config or load_config().subsonic

        self.server = server
        self._album_list_size = settings.album_list_size
        self._client = client or SubsonicClient(
            server,
            username,
            password,
            client_name=settings.client_name,
            use_legacy_authentication=use_legacy_authentication,
            api_version=settings.api_version,
            salt_length=settings.salt_length,
            timeout_ms=settings.timeout_ms,
            transport=transport,
        )
        self._playlists_changed = ChangeSignal()

    @property
    def client(self) -> SubsonicClient:
        return self._client

    async def aclose(self) -> None:
        await self._client.aclose()

    # URIs

    def _uri(self, kind: str, item_id: str) -> str:
        return f"{self.server}/{kind}/{quote(item_id, safe='')}"

    @staticmethod
    def _id_of(uri: str) -> str:
        return unquote(uri.rstrip("/").rsplit("/", 1)[-1])

    def is_media_item_compatible(self, uri: str) -> bool:
        return any(
            uri.startswith(f"{self.server}/{kind}/")
            for kind in ("albums", "artists", "audio", "genres", "playlists")
        )

    # Queries

    def albums(self) -> AsyncIterator[RequestStatus[list[Album]]]:
        return single(
            lambda: self._request(
                "albums",
                lambda: self._client.get_album_list2(ALBUM_LIST_TYPE, self._album_list_size),
                lambda album_list: [self._album(album) for album in album_list.album],
            )
        )

    def artists(self) -> AsyncIterator[RequestStatus[list[Artist]]]:
        return single(
            lambda: self._request(
                "artists",
                self._client.get_artists,
                lambda artists: [
                    self._artist(artist) for index in artists.index for artist in index.artist
                ],
            )
        )

    def genres(self) -> AsyncIterator[RequestStatus[list[Genre]]]:
        return single(
            lambda: self._request(
                "genres",
                self._client.get_genres,
                lambda genres: [self._genre(genre.value) for genre in genres.genre],
            )
        )

    def playlists(self) -> AsyncIterator[RequestStatus[list[Playlist]]]:
        return map_latest(
            self._playlists_changed.changes(),
            lambda _version: self._request(
                "playlists",
                self._client.get_playlists,
                lambda playlists: [self._playlist(item) for item in playlists.playlist],
            ),
        )

    def search(self, query: str) -> AsyncIterator[RequestStatus[list[MediaItem]]]:
        def to_items(result: models.SearchResult3) -> list[MediaItem]:
            items: list[MediaItem] = [self._audio(song) for song in result.song]
            items.extend(self._artist(artist) for artist in result.artist)
            items.extend(self._album(album) for album in result.album)
            return items

        return single(
            lambda: self._request("search", lambda: self._client.search3(query), to_items)
        )

    def audio(self, audio_uri: str) -> AsyncIterator[RequestStatus[Audio]]:
        return single(
            lambda: self._request(
                "audio",
                lambda: self._client.get_song(self._id_of(audio_uri)),
                self._audio,
            )
        )

    def album(self, album_uri: str) -> AsyncIterator[RequestStatus[AlbumDetail]]:
        return single(
            lambda: self._request(
                "album",
                lambda: self._client.get_album(self._id_of(album_uri)),
                lambda album: (
                    self._album(album.to_album_id3()),
                    [self._audio(song) for song in album.song],
                ),
            )
        )

    def artist(self, artist_uri: str) -> AsyncIterator[RequestStatus[ArtistDetail]]:
        return single(
            lambda: self._request(
                "artist",
                lambda: self._client.get_artist(self._id_of(artist_uri)),
                lambda artist: (
                    self._artist(artist.to_artist_id3()),
                    ArtistWorks(albums=tuple(self._album(album) for album in artist.album)),
                ),
            )
        )

    def genre(self, genre_uri: str) -> AsyncIterator[RequestStatus[GenreDetail]]:
        name = self._id_of(genre_uri)
        return single(
            lambda: self._request(
                "genre",
                lambda: self._client.get_songs_by_genre(name),
                lambda songs: (
                    Genre(uri=genre_uri, name=name),
                    [self._audio(song) for song in songs.song],
                ),
            )
        )

    def playlist(self, playlist_uri: str) -> AsyncIterator[RequestStatus[PlaylistDetail]]:
        playlist_id = self._id_of(playlist_uri)
        return map_latest(
            self._playlists_changed.changes(),
            lambda _version: self._request(
                "playlist",
                lambda: self._client.get_playlist(playlist_id),
                lambda playlist: (
                    self._playlist(playlist.to_playlist()),
                    [self._audio(song) for song in playlist.entry or []],
                ),
            ),
        )

    def audio_playlists_status(
        self, audio_uri: str
    ) -> AsyncIterator[RequestStatus[PlaylistMembership]]:
        audio_id = self._id_of(audio_uri)
        return map_latest(
            self._playlists_changed.changes(),
            lambda _version: self._membership(audio_id),
        )

    async def _membership(self, audio_id: str) -> RequestStatus[PlaylistMembership]:
        listing = await self._request(
            "audio_playlists_status", self._client.get_playlists, lambda result: result.playlist
        )
        if not isinstance(listing, Success):
            return listing

        async def contains(playlist: models.Playlist) -> bool:
            detail = await self._request(
                "audio_playlists_status",
                lambda: self._client.get_playlist(playlist.id),
                lambda result: any(song.id == audio_id for song in result.entry or []),
            )
            return isinstance(detail, Success) and detail.data

        flags = await asyncio.gather(*(contains(playlist) for playlist in listing.data))
        return Success(
            [(self._playlist(playlist), flag) for playlist, flag in zip(listing.data, flags)]
        )

    # Mutations

    async def create_playlist(self, name: str) -> RequestStatus[str]:
        try:
            return await self._request(
                "create_playlist",
                lambda: self._client.create_playlist(name=name),
                lambda playlist: self._uri("playlists", playlist.id),
            )
        finally:
            self._playlists_changed.notify()

    async def rename_playlist(self, playlist_uri: str, name: str) -> RequestStatus[None]:
        try:
            return await self._request(
                "rename_playlist",
                lambda: self._client.update_playlist(self._id_of(playlist_uri), name=name),
                _discard,
            )
        finally:
            self._playlists_changed.notify()

    async def delete_playlist(self, playlist_uri: str) -> RequestStatus[None]:
        try:
            return await self._request(
                "delete_playlist",
                lambda: self._client.delete_playlist(self._id_of(playlist_uri)),
                _discard,
            )
        finally:
            self._playlists_changed.notify()

    async def add_audio_to_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        try:
            return await self._request(
                "add_audio_to_playlist",
                lambda: self._client.update_playlist(
                    self._id_of(playlist_uri), song_ids_to_add=[self._id_of(audio_uri)]
                ),
                _discard,
            )
        finally:
            self._playlists_changed.notify()

    async def remove_audio_from_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        playlist_id = self._id_of(playlist_uri)
        audio_id = self._id_of(audio_uri)
        try:
            indexes = await self._request(
                "remove_audio_from_playlist",
                lambda: self._client.get_playlist(playlist_id),
                lambda playlist: [
                    index
                    for index, song in enumerate(playlist.entry or [])
                    if song.id == audio_id
                ],
            )
            if not isinstance(indexes, Success):
                return indexes
            if not indexes.data:
                return Success(None)
            return await self._request(
                "remove_audio_from_playlist",
                lambda: self._client.update_playlist(
                    playlist_id, song_indexes_to_remove=indexes.data
                ),
                _discard,
            )
        finally:
            self._playlists_changed.notify()

    # Plumbing

    async def _request(
        self,
        operation: str,
        call: Callable[[], Awaitable[MethodResult[T]]],
        mapper: Callable[[T], R],
    ) -> RequestStatus[R]:
        try:
            result = await call()
        except (httpx.HTTPError, SubsonicDecodeError) as exc:
            log_event(
                logger,
                "subsonic.request",
                level=logging.WARNING,
                server=self.server,
                operation=operation,
                outcome="io_error",
                error=type(exc).__name__,
            )
            return Error(ErrorType.IO)

        if isinstance(result, MethodSuccess):
            return Success(mapper(result.value))

        error_type = error_type_for(result)
        log_event(
            logger,
            "subsonic.request",
            level=logging.INFO,
            server=self.server,
            operation=operation,
            outcome="error",
            error_type=error_type.value,
        )
        return Error(error_type)

    # Mapping

    def _album(self, album: models.AlbumID3) -> Album:
        return Album(
            uri=self._uri("albums", album.id),
            title=album.name,
            artist_uri=self._uri("artists", album.artist_id) if album.artist_id else "",
            artist_name=album.artist or "",
            year=album.year,
            thumbnail=Thumbnail(
                uri=self._client.get_cover_art(album.id),
                type=ThumbnailType.FRONT_COVER,
            ),
        )

    def _artist(self, artist: models.ArtistID3) -> Artist:
        return Artist(
            uri=self._uri("artists", artist.id),
            name=artist.name,
            thumbnail=Thumbnail(
                uri=self._client.get_cover_art(artist.id),
                type=ThumbnailType.BAND_ARTIST_LOGO,
            ),
        )

    def _audio(self, child: models.Child) -> Audio:
        return Audio(
            uri=self._uri("audio", child.id),
            playback_uri=self._client.stream(child.id),
            mime_type=child.content_type or "",
            title=child.title,
            type=audio_type_for(child.type, item_id=child.id),
            duration_ms=(child.duration or 0) * 1000,
            artist_uri=self._uri("artists", child.artist_id) if child.artist_id else "",
            artist_name=child.artist or "",
            album_uri=self._uri("albums", child.album_id) if child.album_id else "",
            album_title=child.album or "",
            album_track=child.track or 0,
            genre_uri=self._uri("genres", child.genre) if child.genre else None,
            genre_name=child.genre,
            year=child.year,
        )

    def _genre(self, name: str) -> Genre:
        return Genre(uri=self._uri("genres", name), name=name)

    def _playlist(self, playlist: models.Playlist) -> Playlist:
        return Playlist(uri=self._uri("playlists", playlist.id), name=playlist.name)


def _discard(_value: Any) -> None:
    return None


__all__ = [
    "ALBUM_LIST_TYPE",
    "SubsonicDataSource",
    "audio_type_for",
    "error_type_for",
]

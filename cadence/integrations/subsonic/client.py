"""Async HTTP client for the Subsonic REST API."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
import hashlib
import logging
import secrets
import string
from typing import Any, Generic, Optional, TypeVar, Union

import httpx
from pydantic import ValidationError

from cadence.config import DEFAULT_API_VERSION, DEFAULT_CLIENT_NAME, MIN_SALT_LENGTH
from cadence.integrations.subsonic.models import (
    AlbumList2,
    AlbumWithSongsID3,
    ArtistsID3,
    ArtistWithAlbumsID3,
    Child,
    Error,
    Genres,
    License,
    PlaylistWithSongs,
    Playlists,
    ResponseRoot,
    ResponseStatus,
    SearchResult3,
    Songs,
    SubsonicResponse,
)
from cadence.logging import get_logger
from cadence.logging_events import log_event

logger = get_logger(__name__)

T = TypeVar("T")

_SALT_ALPHABET = string.ascii_letters + string.digits

Param = tuple[str, Any]
Projection = Callable[[SubsonicResponse], Optional[T]]


class SubsonicClientError(RuntimeError):
    """Base exception raised for Subsonic client failures."""


class SubsonicDecodeError(SubsonicClientError):
    """Raised when the response body is not a valid Subsonic envelope."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class SubsonicContractError(SubsonicClientError):
    """Raised when the server reported success but omitted the requested payload."""

    def __init__(self, method: str) -> None:
        super().__init__(f"{method}: Successful request with empty result")
        self.method = method


@dataclass(slots=True, frozen=True)
class MethodSuccess(Generic[T]):
    value: T


@dataclass(slots=True, frozen=True)
class HttpError:
    status_code: int


@dataclass(slots=True, frozen=True)
class ProtocolError:
    error: Error | None


MethodResult = Union[MethodSuccess[T], HttpError, ProtocolError]


def generate_salt(length: int = MIN_SALT_LENGTH) -> str:
    """Return a random alphanumeric salt of at least ``MIN_SALT_LENGTH`` characters."""

    size = max(MIN_SALT_LENGTH, int(length))
    return "".join(secrets.choice(_SALT_ALPHABET) for _ in range(size))


def token_for(password: str, salt: str) -> str:
    return hashlib.md5((password + salt).encode("utf-8")).hexdigest()


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _encode_params(params: Iterable[Param]) -> list[tuple[str, str]]:
    encoded: list[tuple[str, str]] = []
    for key, value in params:
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            encoded.extend((key, _encode_value(item)) for item in value if item is not None)
            continue
        encoded.append((key, _encode_value(value)))
    return encoded


class SubsonicClient:
    """Typed access to a single Subsonic server.

    Every request carries freshly generated credentials. Transport failures
    raised by httpx are not intercepted here; callers decide how to surface
    them.
    """

    def __init__(
        self,
        server: str,
        username: str,
        password: str,
        *,
        client_name: str = DEFAULT_CLIENT_NAME,
        use_legacy_authentication: bool = False,
        api_version: str = DEFAULT_API_VERSION,
        salt_length: int = MIN_SALT_LENGTH,
        timeout_ms: int = 15_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.server = server.rstrip("/")
        self.username = username
        self._password = password
        self.client_name = client_name
        self.use_legacy_authentication = use_legacy_authentication
        self.api_version = api_version
        self.salt_length = max(MIN_SALT_LENGTH, int(salt_length))
        self.timeout_ms = timeout_ms
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SubsonicClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            client, self._http = self._http, None
            await client.aclose()

    # Generic plumbing

    def method_url(self, method: str, *params: Param) -> str:
        """Return a signed URL for ``method`` without issuing a request."""

        url = httpx.URL(self._method_endpoint(method), params=self._query(params))
        return str(url)

    async def call(
        self,
        method: str,
        projection: Projection[T] | None,
        *params: Param,
    ) -> MethodResult[T]:
        response = await self._client().get(
            self._method_endpoint(method), params=self._query(params)
        )

        if not response.is_success:
            log_event(
                logger,
                "subsonic.call",
                level=logging.WARNING,
                method=method,
                outcome="http_error",
                status_code=response.status_code,
            )
            return HttpError(response.status_code)

        envelope = self._decode(method, response)
        if envelope.status is ResponseStatus.FAILED:
            error = envelope.error
            log_event(
                logger,
                "subsonic.call",
                level=logging.WARNING,
                method=method,
                outcome="failed",
                error_code=int(error.code) if error is not None else None,
                error_message=error.message if error is not None else None,
            )
            return ProtocolError(error)

        logger.debug("Subsonic %s succeeded", method)
        if projection is None:
            return MethodSuccess(None)
        value = projection(envelope)
        if value is None:
            raise SubsonicContractError(method)
        return MethodSuccess(value)

    def _method_endpoint(self, method: str) -> str:
        return f"{self.server}/rest/{method}"

    def _auth_params(self) -> list[tuple[str, str]]:
        if self.use_legacy_authentication:
            return [("p", self._password)]
        salt = generate_salt(self.salt_length)
        return [("t", token_for(self._password, salt)), ("s", salt)]

    def _query(self, params: Sequence[Param]) -> list[tuple[str, str]]:
        base = [
            ("u", self.username),
            ("v", self.api_version),
            ("c", self.client_name),
            ("f", "json"),
        ]
        return base + self._auth_params() + _encode_params(params)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self._build_timeout(self.timeout_ms),
                headers={"Accept": "application/json"},
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http

    @staticmethod
    def _decode(method: str, response: httpx.Response) -> SubsonicResponse:
        if not response.content:
            raise SubsonicDecodeError(method, "empty response body")
        try:
            root = ResponseRoot.model_validate_json(response.content)
        except ValidationError as exc:
            raise SubsonicDecodeError(method, f"invalid envelope: {exc}") from exc
        return root.subsonic_response

    @staticmethod
    def _build_timeout(timeout_ms: int) -> httpx.Timeout:
        timeout_seconds = max(timeout_ms, 100) / 1000
        connect_timeout = min(timeout_seconds, 5.0)
        return httpx.Timeout(
            timeout_seconds,
            connect=connect_timeout,
            read=timeout_seconds,
            write=timeout_seconds,
        )

    # System

    async def ping(self) -> MethodResult[None]:
        return await self.call("ping", None)

    async def get_license(self) -> MethodResult[License]:
        return await self.call("getLicense", lambda response: response.license)

    # Browsing

    async def get_genres(self) -> MethodResult[Genres]:
        return await self.call("getGenres", lambda response: response.genres)

    async def get_artists(self, music_folder_id: str | None = None) -> MethodResult[ArtistsID3]:
        return await self.call(
            "getArtists",
            lambda response: response.artists,
            ("musicFolderId", music_folder_id),
        )

    async def get_artist(self, artist_id: str) -> MethodResult[ArtistWithAlbumsID3]:
        return await self.call("getArtist", lambda response: response.artist, ("id", artist_id))

    async def get_album(self, album_id: str) -> MethodResult[AlbumWithSongsID3]:
        return await self.call("getAlbum", lambda response: response.album, ("id", album_id))

    async def get_song(self, song_id: str) -> MethodResult[Child]:
        return await self.call("getSong", lambda response: response.song, ("id", song_id))

    # Album/song lists

    async def get_album_list2(
        self,
        list_type: str,
        size: int | None = None,
        offset: int | None = None,
        from_year: int | None = None,
        to_year: int | None = None,
        genre: str | None = None,
        music_folder_id: str | None = None,
    ) -> MethodResult[AlbumList2]:
        return await self.call(
            "getAlbumList2",
            lambda response: response.album_list2,
            ("type", list_type),
            ("size", size),
            ("offset", offset),
            ("fromYear", from_year),
            ("toYear", to_year),
            ("genre", genre),
            ("musicFolderId", music_folder_id),
        )

    async def get_random_songs(
        self,
        size: int | None = None,
        genre: str | None = None,
        from_year: int | None = None,
        to_year: int | None = None,
        music_folder_id: str | None = None,
    ) -> MethodResult[Songs]:
        return await self.call(
            "getRandomSongs",
            lambda response: response.random_songs,
            ("size", size),
            ("genre", genre),
            ("fromYear", from_year),
            ("toYear", to_year),
            ("musicFolderId", music_folder_id),
        )

    async def get_songs_by_genre(
        self,
        genre: str,
        count: int | None = None,
        offset: int | None = None,
        music_folder_id: str | None = None,
    ) -> MethodResult[Songs]:
        return await self.call(
            "getSongsByGenre",
            lambda response: response.songs_by_genre,
            ("genre", genre),
            ("count", count),
            ("offset", offset),
            ("musicFolderId", music_folder_id),
        )

    # Searching

    async def search3(
        self,
        query: str,
        artist_count: int | None = None,
        artist_offset: int | None = None,
        album_count: int | None = None,
        album_offset: int | None = None,
        song_count: int | None = None,
        song_offset: int | None = None,
        music_folder_id: str | None = None,
    ) -> MethodResult[SearchResult3]:
        return await self.call(
            "search3",
            lambda response: response.search_result3,
            ("query", query),
            ("artistCount", artist_count),
            ("artistOffset", artist_offset),
            ("albumCount", album_count),
            ("albumOffset", album_offset),
            ("songCount", song_count),
            ("songOffset", song_offset),
            ("musicFolderId", music_folder_id),
        )

    # Playlists

    async def get_playlists(self, username: str | None = None) -> MethodResult[Playlists]:
        return await self.call(
            "getPlaylists", lambda response: response.playlists, ("username", username)
        )

    async def get_playlist(self, playlist_id: str) -> MethodResult[PlaylistWithSongs]:
        return await self.call(
            "getPlaylist", lambda response: response.playlist, ("id", playlist_id)
        )

    async def create_playlist(
        self,
        playlist_id: str | None = None,
        name: str | None = None,
        song_ids: Sequence[str] = (),
    ) -> MethodResult[PlaylistWithSongs]:
        """Create a playlist, or replace the songs of ``playlist_id``."""

        if playlist_id is None and name is None:
            raise ValueError("Either playlist_id or name must be provided")
        return await self.call(
            "createPlaylist",
            lambda response: response.playlist,
            ("playlistId", playlist_id),
            ("name", name),
            ("songId", list(song_ids)),
        )

    async def update_playlist(
        self,
        playlist_id: str,
        name: str | None = None,
        comment: str | None = None,
        public: bool | None = None,
        song_ids_to_add: Sequence[str] = (),
        song_indexes_to_remove: Sequence[int] = (),
    ) -> MethodResult[None]:
        return await self.call(
            "updatePlaylist",
            None,
            ("playlistId", playlist_id),
            ("name", name),
            ("comment", comment),
            ("public", public),
            ("songIdToAdd", list(song_ids_to_add)),
            ("songIndexToRemove", list(song_indexes_to_remove)),
        )

    async def delete_playlist(self, playlist_id: str) -> MethodResult[None]:
        return await self.call("deletePlaylist", None, ("id", playlist_id))

    # Annotation

    async def star(
        self,
        ids: Sequence[str] = (),
        album_ids: Sequence[str] = (),
        artist_ids: Sequence[str] = (),
    ) -> MethodResult[None]:
        return await self.call(
            "star",
            None,
            ("id", list(ids)),
            ("albumId", list(album_ids)),
            ("artistId", list(artist_ids)),
        )

    async def unstar(
        self,
        ids: Sequence[str] = (),
        album_ids: Sequence[str] = (),
        artist_ids: Sequence[str] = (),
    ) -> MethodResult[None]:
        return await self.call(
            "unstar",
            None,
            ("id", list(ids)),
            ("albumId", list(album_ids)),
            ("artistId", list(artist_ids)),
        )

    async def scrobble(
        self,
        song_id: str,
        time_ms: int | None = None,
        submission: bool | None = None,
    ) -> MethodResult[None]:
        return await self.call(
            "scrobble",
            None,
            ("id", song_id),
            ("time", time_ms),
            ("submission", submission),
        )

    # Media retrieval, URL only

    def stream(
        self,
        song_id: str,
        max_bit_rate: int | None = None,
        format: str | None = None,
        time_offset: int | None = None,
        estimate_content_length: bool | None = None,
    ) -> str:
        return self.method_url(
            "stream",
            ("id", song_id),
            ("maxBitRate", max_bit_rate),
            ("format", format),
            ("timeOffset", time_offset),
            ("estimateContentLength", estimate_content_length),
        )

    def download(self, item_id: str) -> str:
        return self.method_url("download", ("id", item_id))

    def get_cover_art(self, cover_id: str, size: int | None = None) -> str:
        return self.method_url("getCoverArt", ("id", cover_id), ("size", size))


__all__ = [
    "HttpError",
    "MethodResult",
    "MethodSuccess",
    "Param",
    "ProtocolError",
    "SubsonicClient",
    "SubsonicClientError",
    "SubsonicContractError",
    "SubsonicDecodeError",
    "generate_salt",
    "token_for",
]

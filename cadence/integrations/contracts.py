"""Contract shared by every media backend."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from cadence.domain.media import (
    Album,
    Artist,
    ArtistWorks,
    Audio,
    Genre,
    MediaItem,
    Playlist,
)
from cadence.domain.status import RequestStatus

AlbumDetail = tuple[Album, list[Audio]]
ArtistDetail = tuple[Artist, ArtistWorks]
GenreDetail = tuple[Genre, list[Audio]]
PlaylistDetail = tuple[Playlist, list[Audio | None]]
PlaylistMembership = list[tuple[Playlist, bool]]


class MediaDataSource(Protocol):
    """Read and mutate the media of one backend.

    Queries are live: the returned iterators keep yielding a new status every
    time the underlying data changes, until the consumer stops iterating.
    Mutations resolve once and never raise for backend failures; failures are
    reported as ``Error`` statuses.
    """

    def is_media_item_compatible(self, uri: str) -> bool:
        """Return ``True`` when ``uri`` belongs to this backend."""

    def albums(self) -> AsyncIterator[RequestStatus[list[Album]]]: ...

    def artists(self) -> AsyncIterator[RequestStatus[list[Artist]]]: ...

    def genres(self) -> AsyncIterator[RequestStatus[list[Genre]]]: ...

    def playlists(self) -> AsyncIterator[RequestStatus[list[Playlist]]]: ...

    def search(self, query: str) -> AsyncIterator[RequestStatus[list[MediaItem]]]: ...

    def audio(self, audio_uri: str) -> AsyncIterator[RequestStatus[Audio]]: ...

    def album(self, album_uri: str) -> AsyncIterator[RequestStatus[AlbumDetail]]: ...

    def artist(self, artist_uri: str) -> AsyncIterator[RequestStatus[ArtistDetail]]: ...

    def genre(self, genre_uri: str) -> AsyncIterator[RequestStatus[GenreDetail]]: ...

    def playlist(self, playlist_uri: str) -> AsyncIterator[RequestStatus[PlaylistDetail]]: ...

    def audio_playlists_status(
        self, audio_uri: str
    ) -> AsyncIterator[RequestStatus[PlaylistMembership]]: ...

    async def create_playlist(self, name: str) -> RequestStatus[str]: ...

    async def rename_playlist(self, playlist_uri: str, name: str) -> RequestStatus[None]: ...

    async def delete_playlist(self, playlist_uri: str) -> RequestStatus[None]: ...

    async def add_audio_to_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]: ...

    async def remove_audio_from_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]: ...

    async def aclose(self) -> None: ...


__all__ = [
    "AlbumDetail",
    "ArtistDetail",
    "GenreDetail",
    "MediaDataSource",
    "PlaylistDetail",
    "PlaylistMembership",
]

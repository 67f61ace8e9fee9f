"""Media data source backed by the local media index."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TypeVar

from sqlalchemy import ColumnElement, select
from sqlalchemy.orm import Session

from cadence.config import load_config
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
from cadence.domain.status import Error, ErrorType, RequestStatus, Success
from cadence.integrations.artwork import EmbeddedArtworkLoader, ThumbnailLoader
from cadence.integrations.contracts import (
    AlbumDetail,
    ArtistDetail,
    GenreDetail,
    PlaylistDetail,
    PlaylistMembership,
)
from cadence.integrations.media_index import MediaIndex
from cadence.logging import get_logger
from cadence.models import IndexedAlbum, IndexedArtist, IndexedAudio, IndexedGenre
from cadence.services.playlist_store import (
    PlaylistItemExistsError,
    PlaylistNotFoundError,
    PlaylistStore,
    StoredPlaylist,
)
from cadence.utils.streams import combine_latest, flat_map_latest, flow_of, map_stream

logger = get_logger(__name__)

T = TypeVar("T")

MEDIA_AUTHORITY = "media://local"
ALBUMS_URI = f"{MEDIA_AUTHORITY}/albums"
ARTISTS_URI = f"{MEDIA_AUTHORITY}/artists"
AUDIO_URI = f"{MEDIA_AUTHORITY}/audio"
GENRES_URI = f"{MEDIA_AUTHORITY}/genres"
PLAYLISTS_URI = "cadence-db://playlists"


def _child_uri(base: str, row_id: int) -> str:
    return f"{base}/{row_id}"


def _parse_id(uri: str, base: str) -> int | None:
    prefix = f"{base}/"
    if not uri.startswith(prefix):
        return None
    candidate = uri[len(prefix):]
    if not candidate.isdigit():
        return None
    return int(candidate)


def _year(value: int | None) -> int | None:
    return value or None


def _audio_type(row: IndexedAudio) -> AudioType:
    if row.is_music:
        return AudioType.MUSIC
    if row.is_podcast:
        return AudioType.PODCAST
    if row.is_audiobook:
        return AudioType.AUDIOBOOK
    if row.is_recording:
        return AudioType.RECORDING
    return AudioType.MUSIC


class LocalDataSource:
    """Expose the local media index, plus locally stored playlists."""

    def __init__(
        self,
        index: MediaIndex,
        *,
        playlist_store: PlaylistStore | None = None,
        thumbnail_loader: ThumbnailLoader | None = None,
        thumbnail_size: int | None = None,
    ) -> None:
        self._index = index
        self._playlists = playlist_store
        self._thumbnails = thumbnail_loader or EmbeddedArtworkLoader()
        self._thumbnail_size = thumbnail_size or load_config().local.thumbnail_size

    async def aclose(self) -> None:
        return None

    def is_media_item_compatible(self, uri: str) -> bool:
        return any(
            uri.startswith(f"{base}/")
            for base in (ALBUMS_URI, ARTISTS_URI, AUDIO_URI, GENRES_URI, PLAYLISTS_URI)
        )

    # Row mapping. These run on the worker thread inside an index session.

    def _thumbnail(
        self, session: Session, criterion: ColumnElement[bool], kind: ThumbnailType
    ) -> Thumbnail | None:
        try:
            path = session.scalar(
                select(IndexedAudio.data)
                .where(criterion, IndexedAudio.data.is_not(None))
                .order_by(IndexedAudio.track, IndexedAudio.id)
                .limit(1)
            )
            if path is None:
                return None
            payload = self._thumbnails.load(path, kind, self._thumbnail_size)
        except Exception as exc:
            logger.debug("Thumbnail lookup failed: %s", exc)
            return None
        if not payload:
            return None
        return Thumbnail(bitmap=payload, type=kind)

    def _album(self, session: Session, row: IndexedAlbum) -> Album:
        return Album(
            uri=_child_uri(ALBUMS_URI, row.id),
            title=row.album,
            artist_uri=_child_uri(ARTISTS_URI, row.artist_id),
            artist_name=row.artist,
            year=_year(row.last_year),
            thumbnail=self._thumbnail(
                session, IndexedAudio.album_id == row.id, ThumbnailType.FRONT_COVER
            ),
        )

    def _artist(self, session: Session, row: IndexedArtist) -> Artist:
        return Artist(
            uri=_child_uri(ARTISTS_URI, row.id),
            name=row.artist,
            thumbnail=self._thumbnail(
                session, IndexedAudio.artist_id == row.id, ThumbnailType.BAND_ARTIST_LOGO
            ),
        )

    @staticmethod
    def _genre(row: IndexedGenre) -> Genre:
        return Genre(uri=_child_uri(GENRES_URI, row.id), name=row.name)

    @staticmethod
    def _audio(row: IndexedAudio) -> Audio:
        uri = _child_uri(AUDIO_URI, row.id)
        return Audio(
            uri=uri,
            playback_uri=uri,
            mime_type=row.mime_type or "",
            title=row.title,
            type=_audio_type(row),
            duration_ms=int(row.duration or 0),
            artist_uri=_child_uri(ARTISTS_URI, row.artist_id),
            artist_name=row.artist,
            album_uri=_child_uri(ALBUMS_URI, row.album_id),
            album_title=row.album,
            album_track=int(row.track or 0),
            genre_uri=_child_uri(GENRES_URI, row.genre_id) if row.genre_id is not None else None,
            genre_name=row.genre,
            year=_year(row.year),
        )

    def _live(self, query: Callable[[Session], RequestStatus[T]]) -> AsyncIterator[RequestStatus[T]]:
        return self._index.observe(query)

    # Listings

    def albums(self) -> AsyncIterator[RequestStatus[list[Album]]]:
        return self._live(
            lambda session: Success(
                [
                    self._album(session, row)
                    for row in session.scalars(
                        select(IndexedAlbum).order_by(IndexedAlbum.album, IndexedAlbum.id)
                    ).all()
                ]
            )
        )

    def artists(self) -> AsyncIterator[RequestStatus[list[Artist]]]:
        return self._live(
            lambda session: Success(
                [
                    self._artist(session, row)
                    for row in session.scalars(
                        select(IndexedArtist).order_by(IndexedArtist.artist, IndexedArtist.id)
                    ).all()
                ]
            )
        )

    def genres(self) -> AsyncIterator[RequestStatus[list[Genre]]]:
        return self._live(
            lambda session: Success(
                [
                    self._genre(row)
                    for row in session.scalars(
                        select(IndexedGenre).order_by(IndexedGenre.name, IndexedGenre.id)
                    ).all()
                ]
            )
        )

    def search(self, query: str) -> AsyncIterator[RequestStatus[list[MediaItem]]]:
        albums = self._index.observe(
            lambda session: [
                self._album(session, row)
                for row in session.scalars(
                    select(IndexedAlbum)
                    .where(IndexedAlbum.album.contains(query, autoescape=True))
                    .order_by(IndexedAlbum.album, IndexedAlbum.id)
                ).all()
            ]
        )
        artists = self._index.observe(
            lambda session: [
                self._artist(session, row)
                for row in session.scalars(
                    select(IndexedArtist)
                    .where(IndexedArtist.artist.contains(query, autoescape=True))
                    .order_by(IndexedArtist.artist, IndexedArtist.id)
                ).all()
            ]
        )
        audio = self._index.observe(
            lambda session: [
                self._audio(row)
                for row in session.scalars(
                    select(IndexedAudio)
                    .where(IndexedAudio.title.contains(query, autoescape=True))
                    .order_by(IndexedAudio.title, IndexedAudio.id)
                ).all()
            ]
        )
        genres = self._index.observe(
            lambda session: [
                self._genre(row)
                for row in session.scalars(
                    select(IndexedGenre)
                    .where(IndexedGenre.name.contains(query, autoescape=True))
                    .order_by(IndexedGenre.name, IndexedGenre.id)
                ).all()
            ]
        )

        def concatenate(parts: list[Sequence[MediaItem]]) -> RequestStatus[list[MediaItem]]:
            return Success([item for part in parts for item in part])

        return combine_latest([albums, artists, audio, genres], concatenate)

    # Details

    def audio(self, audio_uri: str) -> AsyncIterator[RequestStatus[Audio]]:
        audio_id = _parse_id(audio_uri, AUDIO_URI)
        if audio_id is None:
            return flow_of(Error(ErrorType.NOT_FOUND))

        def query(session: Session) -> RequestStatus[Audio]:
            row = session.get(IndexedAudio, audio_id)
            if row is None:
                return Error(ErrorType.NOT_FOUND)
            return Success(self._audio(row))

        return self._live(query)

    def album(self, album_uri: str) -> AsyncIterator[RequestStatus[AlbumDetail]]:
        album_id = _parse_id(album_uri, ALBUMS_URI)
        if album_id is None:
            return flow_of(Error(ErrorType.NOT_FOUND))

        def query(session: Session) -> RequestStatus[AlbumDetail]:
            row = session.get(IndexedAlbum, album_id)
            if row is None:
                return Error(ErrorType.NOT_FOUND)
            tracks = session.scalars(
                select(IndexedAudio)
                .where(IndexedAudio.album_id == album_id)
                .order_by(IndexedAudio.track, IndexedAudio.title, IndexedAudio.id)
            ).all()
            return Success((self._album(session, row), [self._audio(track) for track in tracks]))

        return self._live(query)

    def artist(self, artist_uri: str) -> AsyncIterator[RequestStatus[ArtistDetail]]:
        artist_id = _parse_id(artist_uri, ARTISTS_URI)
        if artist_id is None:
            return flow_of(Error(ErrorType.NOT_FOUND))

        def query(session: Session) -> RequestStatus[ArtistDetail]:
            row = session.get(IndexedArtist, artist_id)
            if row is None:
                return Error(ErrorType.NOT_FOUND)
            albums = session.scalars(
                select(IndexedAlbum)
                .where(IndexedAlbum.artist_id == artist_id)
                .order_by(IndexedAlbum.album, IndexedAlbum.id)
            ).all()
            # albums credited to someone else that carry tracks by this artist
            album_ids = list(
                session.scalars(
                    select(IndexedAudio.album_id)
                    .where(IndexedAudio.artist_id == artist_id)
                    .group_by(IndexedAudio.album_id)
                )
            )
            appears_in = (
                session.scalars(
                    select(IndexedAlbum)
                    .where(IndexedAlbum.id.in_(album_ids), IndexedAlbum.artist_id != artist_id)
                    .order_by(IndexedAlbum.album, IndexedAlbum.id)
                ).all()
                if album_ids
                else []
            )
            works = ArtistWorks(
                albums=tuple(self._album(session, album) for album in albums),
                appears_in_album=tuple(self._album(session, album) for album in appears_in),
                appears_in_playlist=(),
            )
            return Success((self._artist(session, row), works))

        return self._live(query)

    def genre(self, genre_uri: str) -> AsyncIterator[RequestStatus[GenreDetail]]:
        genre_id = _parse_id(genre_uri, GENRES_URI)
        if genre_id is None:
            return flow_of(Error(ErrorType.NOT_FOUND))

        def query(session: Session) -> RequestStatus[GenreDetail]:
            row = session.get(IndexedGenre, genre_id)
            if row is None:
                return Error(ErrorType.NOT_FOUND)
            tracks = session.scalars(
                select(IndexedAudio)
                .where(IndexedAudio.genre_id == genre_id)
                .order_by(IndexedAudio.title, IndexedAudio.id)
            ).all()
            return Success((self._genre(row), [self._audio(track) for track in tracks]))

        return self._live(query)

    # Playlists

    @staticmethod
    def _playlist(stored: StoredPlaylist) -> Playlist:
        return Playlist(uri=_child_uri(PLAYLISTS_URI, stored.id), name=stored.name)

    def playlists(self) -> AsyncIterator[RequestStatus[list[Playlist]]]:
        if self._playlists is None:
            return flow_of(Success([]))
        return map_stream(
            self._playlists.observe_all(),
            lambda rows: Success([self._playlist(row) for row in rows]),
        )

    def playlist(self, playlist_uri: str) -> AsyncIterator[RequestStatus[PlaylistDetail]]:
        playlist_id = _parse_id(playlist_uri, PLAYLISTS_URI)
        if self._playlists is None or playlist_id is None:
            return flow_of(Error(ErrorType.NOT_FOUND))

        def resolve(
            detail: tuple[StoredPlaylist, list[str]] | None,
        ) -> AsyncIterator[RequestStatus[PlaylistDetail]]:
            if detail is None:
                return flow_of(Error(ErrorType.NOT_FOUND))
            stored, uris = detail

            def query(session: Session) -> RequestStatus[PlaylistDetail]:
                entries: list[Audio | None] = []
                for uri in uris:
                    audio_id = _parse_id(uri, AUDIO_URI)
                    row = session.get(IndexedAudio, audio_id) if audio_id is not None else None
                    entries.append(self._audio(row) if row is not None else None)
                return Success((self._playlist(stored), entries))

            return self._live(query)

        return flat_map_latest(self._playlists.observe_with_items(playlist_id), resolve)

    def audio_playlists_status(
        self, audio_uri: str
    ) -> AsyncIterator[RequestStatus[PlaylistMembership]]:
        if self._playlists is None:
            return flow_of(Success([]))
        return map_stream(
            self._playlists.observe_item_status(audio_uri),
            lambda rows: Success([(self._playlist(row), linked) for row, linked in rows]),
        )

    async def _mutate(
        self, operation: Callable[[PlaylistStore], Awaitable[T]]
    ) -> RequestStatus[T]:
        if self._playlists is None:
            return Error(ErrorType.NOT_IMPLEMENTED)
        try:
            return Success(await operation(self._playlists))
        except PlaylistNotFoundError:
            return Error(ErrorType.NOT_FOUND)
        except PlaylistItemExistsError:
            return Error(ErrorType.ALREADY_EXISTS)

    async def create_playlist(self, name: str) -> RequestStatus[str]:
        async def create(store: PlaylistStore) -> str:
            return _child_uri(PLAYLISTS_URI, await store.create(name))

        return await self._mutate(create)

    async def rename_playlist(self, playlist_uri: str, name: str) -> RequestStatus[None]:
        playlist_id = _parse_id(playlist_uri, PLAYLISTS_URI)
        if playlist_id is None:
            return Error(ErrorType.NOT_FOUND)
        return await self._mutate(lambda store: store.rename(playlist_id, name))

    async def delete_playlist(self, playlist_uri: str) -> RequestStatus[None]:
        playlist_id = _parse_id(playlist_uri, PLAYLISTS_URI)
        if playlist_id is None:
            return Error(ErrorType.NOT_FOUND)
        return await self._mutate(lambda store: store.delete(playlist_id))

    async def add_audio_to_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        playlist_id = _parse_id(playlist_uri, PLAYLISTS_URI)
        if playlist_id is None:
            return Error(ErrorType.NOT_FOUND)
        return await self._mutate(lambda store: store.add_item(playlist_id, audio_uri))

    async def remove_audio_from_playlist(
        self, playlist_uri: str, audio_uri: str
    ) -> RequestStatus[None]:
        playlist_id = _parse_id(playlist_uri, PLAYLISTS_URI)
        if playlist_id is None:
            return Error(ErrorType.NOT_FOUND)

        async def remove(store: PlaylistStore) -> None:
            await store.remove_item(playlist_id, audio_uri)

        return await self._mutate(remove)


__all__ = [
    "ALBUMS_URI",
    "ARTISTS_URI",
    "AUDIO_URI",
    "GENRES_URI",
    "LocalDataSource",
    "PLAYLISTS_URI",
]

"""Pydantic models for the Subsonic JSON wire format.

Only the subset of the protocol used by Cadence is modelled. Unknown fields
are ignored so OpenSubsonic extensions do not break decoding.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cadence.integrations.subsonic.codecs import (
    ErrorCodeAsInt,
    InstantAsString,
    SubsonicId,
    UriAsString,
    VersionAsString,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ResponseStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


class MediaType(str, Enum):
    MUSIC = "music"
    PODCAST = "podcast"
    AUDIOBOOK = "audiobook"
    VIDEO = "video"


class Error(_WireModel):
    code: ErrorCodeAsInt
    message: str | None = None


class Child(_WireModel):
    id: SubsonicId
    parent: SubsonicId | None = None
    is_dir: bool = False
    title: str
    album: str | None = None
    artist: str | None = None
    track: int | None = None
    year: int | None = None
    genre: str | None = None
    cover_art: SubsonicId | None = None
    size: int | None = None
    content_type: str | None = None
    suffix: str | None = None
    transcoded_content_type: str | None = None
    transcoded_suffix: str | None = None
    duration: int | None = None
    bit_rate: int | None = None
    path: str | None = None
    is_video: bool | None = None
    user_rating: int | None = None
    average_rating: float | None = None
    play_count: int | None = None
    disc_number: int | None = None
    created: InstantAsString | None = None
    starred: InstantAsString | None = None
    album_id: SubsonicId | None = None
    artist_id: SubsonicId | None = None
    type: MediaType | None = None
    bookmark_position: int | None = None
    original_width: int | None = None
    original_height: int | None = None
    played: InstantAsString | None = None
    sort_name: str | None = None


class AlbumID3(_WireModel):
    id: SubsonicId
    name: str
    artist: str | None = None
    artist_id: SubsonicId | None = None
    cover_art: SubsonicId | None = None
    song_count: int
    duration: int
    play_count: int | None = None
    created: InstantAsString
    starred: InstantAsString | None = None
    year: int | None = None
    genre: str | None = None
    sort_name: str | None = None


class AlbumWithSongsID3(AlbumID3):
    song: list[Child] = Field(default_factory=list)

    def to_album_id3(self) -> AlbumID3:
        return AlbumID3.model_validate(self.model_dump(exclude={"song"}))


class ArtistID3(_WireModel):
    id: SubsonicId
    name: str
    cover_art: SubsonicId | None = None
    artist_image_url: UriAsString | None = None
    album_count: int | None = None
    starred: InstantAsString | None = None
    sort_name: str | None = None


class ArtistWithAlbumsID3(ArtistID3):
    album: list[AlbumID3] = Field(default_factory=list)

    def to_artist_id3(self) -> ArtistID3:
        return ArtistID3.model_validate(self.model_dump(exclude={"album"}))


class IndexID3(_WireModel):
    name: str
    artist: list[ArtistID3] = Field(default_factory=list)


class ArtistsID3(_WireModel):
    ignored_articles: str = ""
    index: list[IndexID3] = Field(default_factory=list)


class Genre(_WireModel):
    value: str
    song_count: int = 0
    album_count: int = 0


class Genres(_WireModel):
    genre: list[Genre] = Field(default_factory=list)


class AlbumList2(_WireModel):
    album: list[AlbumID3] = Field(default_factory=list)


class Songs(_WireModel):
    song: list[Child] = Field(default_factory=list)


class SearchResult3(_WireModel):
    artist: list[ArtistID3] = Field(default_factory=list)
    album: list[AlbumID3] = Field(default_factory=list)
    song: list[Child] = Field(default_factory=list)


class Playlist(_WireModel):
    allowed_user: list[str] = Field(default_factory=list)
    id: SubsonicId
    name: str
    comment: str | None = None
    owner: str | None = None
    public: bool | None = None
    song_count: int
    duration: int
    created: InstantAsString
    changed: InstantAsString
    cover_art: SubsonicId | None = None


class PlaylistWithSongs(_WireModel):
    allowed_user: list[str] = Field(default_factory=list)
    id: SubsonicId
    name: str
    comment: str | None = None
    owner: str | None = None
    public: bool | None = None
    song_count: int
    duration: int | None = None
    created: InstantAsString
    changed: InstantAsString
    cover_art: SubsonicId | None = None
    entry: list[Child] | None = None

    def to_playlist(self) -> Playlist:
        return Playlist(
            allowed_user=self.allowed_user,
            id=self.id,
            name=self.name,
            comment=self.comment,
            owner=self.owner,
            public=self.public,
            song_count=self.song_count,
            duration=self.duration or 0,
            created=self.created,
            changed=self.changed,
            cover_art=self.cover_art,
        )


class Playlists(_WireModel):
    playlist: list[Playlist] = Field(default_factory=list)


class License(_WireModel):
    valid: bool
    email: str | None = None
    license_expires: InstantAsString | None = None
    trial_expires: InstantAsString | None = None


class SubsonicResponse(_WireModel):
    """The envelope found under ``subsonic-response``."""

    status: ResponseStatus
    version: VersionAsString
    type: str | None = None
    server_version: str | None = None
    open_subsonic: bool | None = None
    error: Error | None = None

    album: AlbumWithSongsID3 | None = None
    album_list2: AlbumList2 | None = None
    artist: ArtistWithAlbumsID3 | None = None
    artists: ArtistsID3 | None = None
    genres: Genres | None = None
    license: License | None = None
    playlist: PlaylistWithSongs | None = None
    playlists: Playlists | None = None
    random_songs: Songs | None = None
    search_result3: SearchResult3 | None = None
    song: Child | None = None
    songs_by_genre: Songs | None = None


class ResponseRoot(_WireModel):
    subsonic_response: SubsonicResponse = Field(alias="subsonic-response")


__all__ = [
    "AlbumID3",
    "AlbumList2",
    "AlbumWithSongsID3",
    "ArtistID3",
    "ArtistWithAlbumsID3",
    "ArtistsID3",
    "Child",
    "Error",
    "Genre",
    "Genres",
    "IndexID3",
    "License",
    "MediaType",
    "Playlist",
    "PlaylistWithSongs",
    "Playlists",
    "ResponseRoot",
    "ResponseStatus",
    "SearchResult3",
    "Songs",
    "SubsonicResponse",
]

"""Provider-agnostic media entities.

Every entity is immutable and built fresh for each query response. Two
comparisons are exposed for list diffing: ``same_identity`` looks only at the
stable URI, ``same_content`` looks at every field a consumer would render.
``same_content`` is only meaningful once ``same_identity`` holds.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, TypeVar, Union


class ThumbnailType(IntEnum):
    """ID3v2 APIC picture types."""

    OTHER = 0
    FILE_ICON = 1
    OTHER_FILE_ICON = 2
    FRONT_COVER = 3
    BACK_COVER = 4
    LEAFLET_PAGE = 5
    MEDIA = 6
    LEAD_ARTIST = 7
    ARTIST = 8
    CONDUCTOR = 9
    BAND = 10
    COMPOSER = 11
    LYRICIST = 12
    RECORDING_LOCATION = 13
    DURING_RECORDING = 14
    DURING_PERFORMANCE = 15
    MOVIE_SCREEN_CAPTURE = 16
    A_BRIGHT_COLORED_FISH = 17
    ILLUSTRATION = 18
    BAND_ARTIST_LOGO = 19
    PUBLISHER_STUDIO_LOGO = 20


@dataclass(slots=True, frozen=True)
class Thumbnail:
    """Artwork reference. When both are set ``uri`` wins over ``bitmap``."""

    uri: str | None = None
    bitmap: bytes | None = None
    type: ThumbnailType = ThumbnailType.OTHER

    def __post_init__(self) -> None:
        if self.uri is None and self.bitmap is None:
            raise ValueError("Thumbnail requires either a uri or a bitmap")

    @property
    def source(self) -> str | bytes:
        if self.uri is not None:
            return self.uri
        if self.bitmap is None:
            raise ValueError("Thumbnail has neither a uri nor a bitmap")
        return self.bitmap

    def same_as(self, other: Thumbnail | None) -> bool:
        if other is None:
            return False
        return self.type == other.type and self.source == other.source


def _same_thumbnail(left: Thumbnail | None, right: Thumbnail | None) -> bool:
    if left is None or right is None:
        return left is None and right is None
    return left.same_as(right)


class _Identified:
    __slots__ = ()

    uri: str

    def same_identity(self, other: Any) -> bool:
        return type(other) is type(self) and self.uri == other.uri


@dataclass(slots=True, frozen=True)
class Album(_Identified):
    uri: str
    title: str
    artist_uri: str
    artist_name: str
    year: int | None = None
    thumbnail: Thumbnail | None = None

    def same_content(self, other: Any) -> bool:
        return (
            type(other) is Album
            and self.title == other.title
            and self.artist_uri == other.artist_uri
            and self.artist_name == other.artist_name
            and self.year == other.year
            and _same_thumbnail(self.thumbnail, other.thumbnail)
        )


@dataclass(slots=True, frozen=True)
class Artist(_Identified):
    uri: str
    name: str
    thumbnail: Thumbnail | None = None

    def same_content(self, other: Any) -> bool:
        return (
            type(other) is Artist
            and self.name == other.name
            and _same_thumbnail(self.thumbnail, other.thumbnail)
        )


class AudioType(str, Enum):
    MUSIC = "music"
    PODCAST = "podcast"
    AUDIOBOOK = "audiobook"
    RECORDING = "recording"


@dataclass(slots=True, frozen=True)
class Audio(_Identified):
    uri: str
    playback_uri: str
    mime_type: str
    title: str
    type: AudioType
    duration_ms: int
    artist_uri: str
    artist_name: str
    album_uri: str
    album_title: str
    album_track: int
    genre_uri: str | None = None
    genre_name: str | None = None
    year: int | None = None

    def same_content(self, other: Any) -> bool:
        return (
            type(other) is Audio
            and self.mime_type == other.mime_type
            and self.title == other.title
            and self.type == other.type
            and self.duration_ms == other.duration_ms
            and self.artist_uri == other.artist_uri
            and self.artist_name == other.artist_name
            and self.album_uri == other.album_uri
            and self.album_title == other.album_title
            and self.album_track == other.album_track
            and self.genre_uri == other.genre_uri
            and self.genre_name == other.genre_name
            and self.year == other.year
        )


@dataclass(slots=True, frozen=True)
class Genre(_Identified):
    uri: str
    name: str | None = None

    def same_content(self, other: Any) -> bool:
        return type(other) is Genre and self.name == other.name


@dataclass(slots=True, frozen=True)
class Playlist(_Identified):
    uri: str
    name: str

    def same_content(self, other: Any) -> bool:
        return type(other) is Playlist and self.name == other.name


@dataclass(slots=True, frozen=True)
class ArtistWorks:
    """Everything an artist is credited on."""

    albums: tuple[Album, ...] = ()
    appears_in_album: tuple[Album, ...] = ()
    appears_in_playlist: tuple[Playlist, ...] = ()


MediaItem = Union[Album, Artist, Audio, Genre, Playlist]

E = TypeVar("E", Album, Artist, Audio, Genre, Playlist)


@dataclass(slots=True, frozen=True)
class ItemsDiff:
    inserted: tuple[Any, ...] = ()
    removed: tuple[Any, ...] = ()
    changed: tuple[Any, ...] = ()
    unchanged: tuple[Any, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.inserted or self.removed or self.changed)


def diff_items(old: Sequence[E], new: Sequence[E]) -> ItemsDiff:
    """Pair rows by identity and classify them for incremental list updates."""

    remaining = list(old)
    inserted: list[E] = []
    changed: list[E] = []
    unchanged: list[E] = []
    for item in new:
        match_index = next(
            (index for index, candidate in enumerate(remaining) if candidate.same_identity(item)),
            None,
        )
        if match_index is None:
            inserted.append(item)
            continue
        previous = remaining.pop(match_index)
        if previous.same_content(item):
            unchanged.append(item)
        else:
            changed.append(item)
    return ItemsDiff(
        inserted=tuple(inserted),
        removed=tuple(remaining),
        changed=tuple(changed),
        unchanged=tuple(unchanged),
    )


__all__ = [
    "Album",
    "Artist",
    "ArtistWorks",
    "Audio",
    "AudioType",
    "Genre",
    "ItemsDiff",
    "MediaItem",
    "Playlist",
    "Thumbnail",
    "ThumbnailType",
    "diff_items",
]

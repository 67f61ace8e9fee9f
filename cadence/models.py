"""Database models for Cadence."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from cadence.db import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp for ORM defaults."""

    return datetime.now(UTC)


# Local media index. Column names mirror the device media store projections.


class IndexedArtist(Base):
    __tablename__ = "media_artists"

    id = Column("_id", Integer, primary_key=True)
    artist = Column(String(1024), nullable=False)


class IndexedAlbum(Base):
    __tablename__ = "media_albums"

    id = Column("_id", Integer, primary_key=True)
    album = Column(String(1024), nullable=False)
    artist_id = Column(Integer, nullable=False, index=True)
    artist = Column(String(1024), nullable=False)
    last_year = Column(Integer, nullable=False, default=0)


class IndexedGenre(Base):
    __tablename__ = "media_genres"

    id = Column("_id", Integer, primary_key=True)
    name = Column(String(512), nullable=True)


class IndexedAudio(Base):
    __tablename__ = "media_audio"
    __table_args__ = (
        Index("ix_media_audio_album_id", "album_id"),
        Index("ix_media_audio_artist_id", "artist_id"),
        Index("ix_media_audio_genre_id", "genre_id"),
    )

    id = Column("_id", Integer, primary_key=True)
    mime_type = Column(String(255), nullable=False, default="")
    title = Column(String(1024), nullable=False)
    is_music = Column(Boolean, nullable=False, default=False)
    is_podcast = Column(Boolean, nullable=False, default=False)
    is_audiobook = Column(Boolean, nullable=False, default=False)
    is_recording = Column(Boolean, nullable=False, default=False)
    duration = Column(Integer, nullable=False, default=0)
    artist_id = Column(Integer, nullable=False)
    artist = Column(String(1024), nullable=False)
    album_id = Column(Integer, nullable=False)
    album = Column(String(1024), nullable=False)
    track = Column(Integer, nullable=False, default=0)
    genre_id = Column(Integer, nullable=True)
    genre = Column(String(512), nullable=True)
    year = Column(Integer, nullable=False, default=0)
    data = Column(String(4096), nullable=True)


# Local playlists.


class Playlist(Base):
    __tablename__ = "playlists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(512), nullable=False)
    last_modified = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    track_count = Column(Integer, nullable=False, default=0)


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (UniqueConstraint("audio_uri", name="uq_items_audio_uri"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    audio_uri = Column(String(2048), nullable=False)
    count = Column(Integer, nullable=False, default=0)


class PlaylistItemCrossRef(Base):
    __tablename__ = "playlist_item_cross_refs"

    playlist_id = Column(
        Integer,
        ForeignKey("playlists.id", ondelete="CASCADE"),
        primary_key=True,
    )
    item_id = Column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    last_modified = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


# Remote provider configuration.


class SubsonicProvider(Base):
    __tablename__ = "subsonic_providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    username = Column(String(255), nullable=False)
    password = Column(String(1024), nullable=False)
    use_legacy_authentication = Column(Boolean, nullable=False, default=False)


__all__ = [
    "IndexedAlbum",
    "IndexedArtist",
    "IndexedAudio",
    "IndexedGenre",
    "Item",
    "Playlist",
    "PlaylistItemCrossRef",
    "SubsonicProvider",
]

from __future__ import annotations

import pytest

from cadence.domain.media import (
    Album,
    Artist,
    Audio,
    AudioType,
    Genre,
    Playlist,
    Thumbnail,
    ThumbnailType,
    diff_items,
)


def _audio(uri: str = "media://local/audio/1", **overrides: object) -> Audio:
    fields: dict[str, object] = {
        "uri": uri,
        "playback_uri": uri,
        "mime_type": "audio/flac",
        "title": "Intro",
        "type": AudioType.MUSIC,
        "duration_ms": 1_000,
        "artist_uri": "media://local/artists/1",
        "artist_name": "The Band",
        "album_uri": "media://local/albums/1",
        "album_title": "First",
        "album_track": 1,
    }
    fields.update(overrides)
    return Audio(**fields)  # type: ignore[arg-type]


def test_thumbnail_requires_a_source() -> None:
    with pytest.raises(ValueError):
        Thumbnail()


def test_thumbnail_prefers_uri_over_bitmap() -> None:
    thumbnail = Thumbnail(uri="https://img/1", bitmap=b"\x89PNG", type=ThumbnailType.FRONT_COVER)

    assert thumbnail.source == "https://img/1"
    assert Thumbnail(bitmap=b"abc").source == b"abc"
    assert thumbnail.same_as(Thumbnail(uri="https://img/1", type=ThumbnailType.FRONT_COVER))
    assert not thumbnail.same_as(Thumbnail(uri="https://img/1", type=ThumbnailType.BACK_COVER))
    assert not thumbnail.same_as(None)


def test_identity_ignores_content() -> None:
    first = Album("u1", "Title", "a1", "Artist", 2001)
    renamed = Album("u1", "Other title", "a1", "Artist", 2001)

    assert first.same_identity(renamed)
    assert not first.same_content(renamed)


def test_identity_requires_same_kind() -> None:
    assert not Artist("u1", "Name").same_identity(Genre("u1", "Name"))
    assert not Playlist("u1", "Name").same_identity(Album("u1", "Name", "", ""))


def test_content_compares_thumbnails() -> None:
    with_cover = Artist("u1", "Name", Thumbnail(uri="https://img/1"))
    other_cover = Artist("u1", "Name", Thumbnail(uri="https://img/2"))
    without_cover = Artist("u1", "Name")

    assert with_cover.same_content(Artist("u1", "Name", Thumbnail(uri="https://img/1")))
    assert not with_cover.same_content(other_cover)
    assert not with_cover.same_content(without_cover)
    assert without_cover.same_content(Artist("u1", "Name"))


@pytest.mark.parametrize(
    "change",
    [
        {"title": "Outro"},
        {"duration_ms": 2_000},
        {"type": AudioType.PODCAST},
        {"genre_name": "Rock"},
        {"year": 1999},
        {"album_track": 2},
    ],
)
def test_audio_content_tracks_every_rendered_field(change: dict[str, object]) -> None:
    base = _audio()
    changed = _audio(**change)

    assert base.same_identity(changed)
    assert base.same_content(_audio())
    assert not base.same_content(changed)


def test_genre_and_playlist_content() -> None:
    assert Genre("g", None).same_content(Genre("g", None))
    assert not Genre("g", "Rock").same_content(Genre("g", "Pop"))
    assert not Playlist("p", "Mix").same_content(Playlist("p", "Mix 2"))


def test_diff_items_classifies_rows() -> None:
    old = [Playlist("p1", "One"), Playlist("p2", "Two"), Playlist("p3", "Three")]
    new = [Playlist("p2", "Two"), Playlist("p3", "Drei"), Playlist("p4", "Four")]

    diff = diff_items(old, new)

    assert [item.uri for item in diff.inserted] == ["p4"]
    assert [item.uri for item in diff.removed] == ["p1"]
    assert [item.name for item in diff.changed] == ["Drei"]
    assert [item.uri for item in diff.unchanged] == ["p2"]
    assert not diff.is_empty
    assert diff_items(new, list(new)).is_empty


def test_audio_content_ignores_playback_uri() -> None:
    signed = _audio("media://subsonic/1/audio/s1", playback_uri="https://music/rest/stream?id=s1&s=a")
    resigned = _audio("media://subsonic/1/audio/s1", playback_uri="https://music/rest/stream?id=s1&s=b")

    assert signed.same_identity(resigned)
    assert signed.same_content(resigned)


def test_thumbnail_source_raises_when_emptied() -> None:
    thumbnail = Thumbnail(uri="https://img/1")
    object.__setattr__(thumbnail, "uri", None)

    with pytest.raises(ValueError):
        thumbnail.source

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from cadence.db import run_session
from cadence.models import Item, PlaylistItemCrossRef
from cadence.services.playlist_store import (
    PlaylistItemExistsError,
    PlaylistNotFoundError,
    PlaylistStore,
)
from tests.support.async_utils import close, next_matching, take


async def _item_uris() -> list[str]:
    return await run_session(
        lambda session: list(session.scalars(select(Item.audio_uri).order_by(Item.id)))
    )


@pytest.mark.asyncio
async def test_create_and_list_sorted_by_name() -> None:
    store = PlaylistStore()

    second = await store.create("Zeta")
    first = await store.create("Alpha")

    playlists = await store.all()
    assert [(playlist.id, playlist.name) for playlist in playlists] == [(first, "Alpha"), (second, "Zeta")]
    assert all(playlist.track_count == 0 for playlist in playlists)


@pytest.mark.asyncio
async def test_add_item_tracks_count_and_order() -> None:
    store = PlaylistStore()
    playlist_id = await store.create("Mix")

    await store.add_item(playlist_id, "media://local/audio/2")
    await store.add_item(playlist_id, "media://local/audio/1")

    detail = await store.get_with_items(playlist_id)
    assert detail is not None
    playlist, uris = detail
    assert playlist.track_count == 2
    assert uris == ["media://local/audio/2", "media://local/audio/1"]


@pytest.mark.asyncio
async def test_add_duplicate_item_is_rejected() -> None:
    store = PlaylistStore()
    playlist_id = await store.create("Mix")
    await store.add_item(playlist_id, "media://local/audio/1")

    with pytest.raises(PlaylistItemExistsError):
        await store.add_item(playlist_id, "media://local/audio/1")

    detail = await store.get_with_items(playlist_id)
    assert detail is not None and detail[0].track_count == 1


@pytest.mark.asyncio
async def test_items_are_shared_between_playlists() -> None:
    store = PlaylistStore()
    first = await store.create("One")
    second = await store.create("Two")

    await store.add_item(first, "media://local/audio/1")
    await store.add_item(second, "media://local/audio/1")

    assert await _item_uris() == ["media://local/audio/1"]
    assert await store.remove_item(first, "media://local/audio/1") is True
    assert await _item_uris() == ["media://local/audio/1"]
    assert await store.remove_item(second, "media://local/audio/1") is True
    assert await _item_uris() == []


@pytest.mark.asyncio
async def test_remove_unknown_item_returns_false() -> None:
    store = PlaylistStore()
    playlist_id = await store.create("Mix")

    assert await store.remove_item(playlist_id, "media://local/audio/1") is False
    with pytest.raises(PlaylistNotFoundError):
        await store.remove_item(playlist_id + 1, "media://local/audio/1")


@pytest.mark.asyncio
async def test_delete_cascades_to_links_and_orphans() -> None:
    store = PlaylistStore()
    doomed = await store.create("Doomed")
    kept = await store.create("Kept")
    await store.add_item(doomed, "media://local/audio/1")
    await store.add_item(doomed, "media://local/audio/2")
    await store.add_item(kept, "media://local/audio/2")

    await store.delete(doomed)

    assert await store.get_with_items(doomed) is None
    assert await _item_uris() == ["media://local/audio/2"]
    links = await run_session(
        lambda session: list(session.scalars(select(PlaylistItemCrossRef.playlist_id)))
    )
    assert links == [kept]


@pytest.mark.asyncio
async def test_rename_missing_playlist_raises() -> None:
    store = PlaylistStore()

    with pytest.raises(PlaylistNotFoundError):
        await store.rename(7, "Ghost")
    with pytest.raises(PlaylistNotFoundError):
        await store.add_item(7, "media://local/audio/1")


@pytest.mark.asyncio
async def test_item_status_marks_linked_playlists() -> None:
    store = PlaylistStore()
    with_item = await store.create("B")
    await store.create("A")
    await store.add_item(with_item, "media://local/audio/9")

    rows = await store.playlists_with_item_status("media://local/audio/9")
    unknown = await store.playlists_with_item_status("media://local/audio/404")

    assert [(playlist.name, linked) for playlist, linked in rows] == [("A", False), ("B", True)]
    assert [linked for _, linked in unknown] == [False, False]


@pytest.mark.asyncio
async def test_observers_see_every_mutation() -> None:
    store = PlaylistStore()
    playlist_id = await store.create("Mix")
    listing = store.observe_all()
    detail = store.observe_with_items(playlist_id)

    try:
        (before,) = await take(listing, 1)
        (empty,) = await take(detail, 1)
        await store.rename(playlist_id, "Renamed")
        await store.add_item(playlist_id, "media://local/audio/1")
        renamed = await next_matching(listing, lambda rows: rows[0].name == "Renamed")
        filled = await next_matching(detail, lambda value: value is not None and value[1] != [])
    finally:
        await close(listing)
        await close(detail)

    assert [row.name for row in before] == ["Mix"]
    assert empty is not None and empty[1] == []
    assert renamed[0].id == playlist_id
    assert filled[1] == ["media://local/audio/1"]


@pytest.mark.asyncio
async def test_concurrent_adds_insert_a_single_item() -> None:
    store = PlaylistStore()
    playlist_ids = [await store.create(f"Mix {index}") for index in range(4)]

    await asyncio.gather(
        *(store.add_item(playlist_id, "media://local/audio/7") for playlist_id in playlist_ids)
    )

    assert await _item_uris() == ["media://local/audio/7"]
    for playlist_id in playlist_ids:
        detail = await store.get_with_items(playlist_id)
        assert detail is not None and detail[1] == ["media://local/audio/7"]

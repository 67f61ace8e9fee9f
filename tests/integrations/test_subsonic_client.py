from __future__ import annotations

import hashlib
import string
from datetime import datetime, timezone

import httpx
import pytest

from cadence.integrations.subsonic import codecs
from cadence.integrations.subsonic.client import (
    HttpError,
    MethodSuccess,
    ProtocolError,
    SubsonicClient,
    SubsonicContractError,
    SubsonicDecodeError,
    generate_salt,
    token_for,
)
from tests.support.subsonic import (
    CREATED,
    FakeSubsonicServer,
    album_json,
    envelope,
    failure,
    song_json,
)


def _client(server: FakeSubsonicServer, **kwargs: object) -> SubsonicClient:
    return SubsonicClient(
        "https://music.example.com/",
        "alice",
        "sesame",
        transport=server.transport(),
        **kwargs,  # type: ignore[arg-type]
    )


def test_generate_salt_is_long_alphanumeric_and_unique() -> None:
    alphabet = set(string.ascii_letters + string.digits)
    salts = {generate_salt() for _ in range(1000)}

    assert len(salts) == 1000
    for salt in salts:
        assert len(salt) >= 20
        assert set(salt) <= alphabet
    assert len(generate_salt(4)) == 20
    assert len(generate_salt(32)) == 32


def test_token_is_md5_of_password_and_salt() -> None:
    expected = hashlib.md5(b"sesamec19b2d").hexdigest()

    assert token_for("sesame", "c19b2d") == expected
    assert token_for("sesame", "c19b2d") == token_for("sesame", "c19b2d")
    assert len(expected) == 32 and expected == expected.lower()


@pytest.mark.asyncio
async def test_requests_carry_token_credentials() -> None:
    server = FakeSubsonicServer()
    server.on("ping", envelope())
    client = _client(server, client_name="Cadence-Test")

    try:
        result = await client.ping()
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    assert result.value is None
    (request,) = server.calls("ping")
    assert request.url.path == "/rest/ping"
    params = request.url.params
    assert params["u"] == "alice"
    assert params["v"] == "1.16.1"
    assert params["c"] == "Cadence-Test"
    assert params["f"] == "json"
    assert "p" not in params
    assert len(params["s"]) >= 20
    assert params["t"] == token_for("sesame", params["s"])


@pytest.mark.asyncio
async def test_each_request_uses_a_fresh_salt() -> None:
    server = FakeSubsonicServer()
    server.on("ping", envelope())
    client = _client(server)

    try:
        await client.ping()
        await client.ping()
    finally:
        await client.aclose()

    first, second = server.calls("ping")
    assert first.url.params["s"] != second.url.params["s"]


@pytest.mark.asyncio
async def test_legacy_authentication_sends_plain_password() -> None:
    server = FakeSubsonicServer()
    server.on("ping", envelope())
    client = _client(server, use_legacy_authentication=True)

    try:
        await client.ping()
    finally:
        await client.aclose()

    params = server.calls("ping")[0].url.params
    assert params["p"] == "sesame"
    assert "t" not in params
    assert "s" not in params


@pytest.mark.asyncio
async def test_list_parameters_are_repeated_and_none_is_omitted() -> None:
    server = FakeSubsonicServer()
    server.on("updatePlaylist", envelope())
    client = _client(server)

    try:
        result = await client.update_playlist(
            "p1", public=False, song_ids_to_add=["a", "b"], song_indexes_to_remove=[3, 1]
        )
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    params = server.calls("updatePlaylist")[0].url.params
    assert params["playlistId"] == "p1"
    assert params["public"] == "false"
    assert params.get_list("songIdToAdd") == ["a", "b"]
    assert params.get_list("songIndexToRemove") == ["3", "1"]
    assert "name" not in params
    assert "comment" not in params


@pytest.mark.asyncio
async def test_projection_extracts_payload() -> None:
    server = FakeSubsonicServer()
    server.on("getAlbumList2", envelope(albumList2={"album": [album_json("1", "A")]}))
    client = _client(server)

    try:
        result = await client.get_album_list2("alphabeticalByName", size=500)
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    assert [album.id for album in result.value.album] == ["1"]
    params = server.calls("getAlbumList2")[0].url.params
    assert params["type"] == "alphabeticalByName"
    assert params["size"] == "500"


@pytest.mark.asyncio
async def test_non_success_status_is_http_error() -> None:
    server = FakeSubsonicServer()
    server.on("ping", httpx.Response(503, text="maintenance"))
    client = _client(server)

    try:
        result = await client.ping()
    finally:
        await client.aclose()

    assert result == HttpError(503)


@pytest.mark.asyncio
async def test_failed_envelope_is_protocol_error() -> None:
    server = FakeSubsonicServer()
    server.on("getAlbumList2", failure(40, "Wrong username or password"))
    client = _client(server)

    try:
        result = await client.get_album_list2("alphabeticalByName")
    finally:
        await client.aclose()

    assert isinstance(result, ProtocolError)
    assert result.error is not None
    assert result.error.code is codecs.ErrorCode.WRONG_CREDENTIALS


@pytest.mark.asyncio
async def test_missing_payload_breaks_the_contract() -> None:
    server = FakeSubsonicServer()
    server.on("getAlbum", envelope())
    client = _client(server)

    try:
        with pytest.raises(SubsonicContractError, match="Successful request with empty result"):
            await client.get_album("1")
    finally:
        await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b""),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
async def test_undecodable_bodies_raise(response: httpx.Response) -> None:
    server = FakeSubsonicServer()
    server.on("ping", lambda _request: response)
    client = _client(server)

    try:
        with pytest.raises(SubsonicDecodeError):
            await client.ping()
    finally:
        await client.aclose()


def test_media_urls_are_signed_and_not_fetched() -> None:
    server = FakeSubsonicServer()
    client = _client(server)

    cover = httpx.URL(client.get_cover_art("al-1", size=256))
    stream = httpx.URL(client.stream("s1"))

    assert cover.path == "/rest/getCoverArt"
    assert cover.params["id"] == "al-1"
    assert cover.params["size"] == "256"
    assert cover.params["t"] == token_for("sesame", cover.params["s"])
    assert stream.path == "/rest/stream"
    assert "maxBitRate" not in stream.params
    assert server.requests == []


@pytest.mark.asyncio
async def test_create_playlist_requires_id_or_name() -> None:
    server = FakeSubsonicServer()
    client = _client(server)

    with pytest.raises(ValueError):
        await client.create_playlist()
    assert server.requests == []


@pytest.mark.asyncio
async def test_license_is_decoded() -> None:
    server = FakeSubsonicServer()
    server.on(
        "getLicense",
        envelope(license={"valid": True, "email": "alice@example.com", "licenseExpires": CREATED}),
    )
    client = _client(server)

    try:
        result = await client.get_license()
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    assert result.value.valid is True
    assert result.value.email == "alice@example.com"
    assert result.value.license_expires == datetime(2023, 1, 1, tzinfo=timezone.utc)
    assert result.value.trial_expires is None


@pytest.mark.asyncio
async def test_random_songs_send_filters_and_decode_children() -> None:
    server = FakeSubsonicServer()
    server.on(
        "getRandomSongs",
        envelope(randomSongs={"song": [song_json("s1", "One"), song_json("s2", "Two")]}),
    )
    client = _client(server)

    try:
        result = await client.get_random_songs(size=2, genre="Rock", from_year=1990, to_year=1999)
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    assert [song.title for song in result.value.song] == ["One", "Two"]
    params = server.calls("getRandomSongs")[0].url.params
    assert params["size"] == "2"
    assert params["genre"] == "Rock"
    assert params["fromYear"] == "1990"
    assert params["toYear"] == "1999"
    assert "musicFolderId" not in params


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["star", "unstar"])
async def test_star_and_unstar_repeat_each_id_kind(method: str) -> None:
    server = FakeSubsonicServer()
    server.on(method, envelope())
    client = _client(server)

    try:
        result = await getattr(client, method)(ids=["s1", "s2"], album_ids=["al-1"])
    finally:
        await client.aclose()

    assert isinstance(result, MethodSuccess)
    assert result.value is None
    params = server.calls(method)[0].url.params
    assert params.get_list("id") == ["s1", "s2"]
    assert params.get_list("albumId") == ["al-1"]
    assert "artistId" not in params


@pytest.mark.asyncio
async def test_scrobble_sends_time_and_submission() -> None:
    server = FakeSubsonicServer()
    server.on("scrobble", envelope())
    client = _client(server)

    try:
        submitted = await client.scrobble("s1", time_ms=1_700_000_000_000, submission=True)
        now_playing = await client.scrobble("s2")
    finally:
        await client.aclose()

    assert isinstance(submitted, MethodSuccess) and isinstance(now_playing, MethodSuccess)
    first, second = server.calls("scrobble")
    assert first.url.params["id"] == "s1"
    assert first.url.params["time"] == "1700000000000"
    assert first.url.params["submission"] == "true"
    assert second.url.params["id"] == "s2"
    assert "time" not in second.url.params
    assert "submission" not in second.url.params


@pytest.mark.asyncio
async def test_annotation_failures_are_protocol_errors() -> None:
    server = FakeSubsonicServer()
    server.on("star", failure(70, "Song not found"))
    client = _client(server)

    try:
        result = await client.star(ids=["missing"])
    finally:
        await client.aclose()

    assert isinstance(result, ProtocolError)
    assert result.error is not None
    assert result.error.code is codecs.ErrorCode.NOT_FOUND


def test_download_url_is_signed() -> None:
    server = FakeSubsonicServer()
    client = _client(server, client_name="Cadence-Test")

    url = httpx.URL(client.download("s 1"))

    assert url.path == "/rest/download"
    params = url.params
    assert params["id"] == "s 1"
    assert params["u"] == "alice"
    assert params["v"] == "1.16.1"
    assert params["c"] == "Cadence-Test"
    assert params["t"] == token_for("sesame", params["s"])
    assert "p" not in params
    assert server.requests == []

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cadence.integrations.subsonic.codecs import (
    ErrorCode,
    Version,
    decode_error_code,
    decode_instant,
    decode_uri,
    decode_version,
    encode_error_code,
    encode_instant,
    encode_uri,
    encode_version,
)


@pytest.mark.parametrize(
    "instant",
    [
        datetime(2023, 1, 1, tzinfo=UTC),
        datetime(2024, 2, 29, 23, 59, 59, 123456, tzinfo=UTC),
        datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC),
    ],
)
def test_instant_round_trips(instant: datetime) -> None:
    encoded = encode_instant(instant)

    assert encoded.endswith("Z")
    assert decode_instant(encoded) == instant


def test_decode_instant_normalises_offsets_to_utc() -> None:
    decoded = decode_instant("2023-06-01T12:00:00+02:00")

    assert decoded == datetime(2023, 6, 1, 10, 0, tzinfo=UTC)
    assert decoded.utcoffset() == timedelta(0)


def test_decode_instant_accepts_millisecond_zulu_timestamps() -> None:
    assert decode_instant("2023-01-01T00:00:00.000Z") == datetime(2023, 1, 1, tzinfo=UTC)


def test_encode_instant_converts_other_zones() -> None:
    value = datetime(2023, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    assert encode_instant(value) == "2023-06-01T10:00:00Z"


def test_decode_instant_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        decode_instant("yesterday")


@pytest.mark.parametrize(
    "raw",
    [
        "https://music.example.com/rest/getCoverArt?id=1&size=",
        "http://host:4533/path%20with%20spaces?",
        "urn:isbn:0451450523",
        "",
    ],
)
def test_uri_codec_is_lossless(raw: str) -> None:
    assert encode_uri(decode_uri(raw)) == raw


def test_uri_exposes_parts() -> None:
    uri = decode_uri("https://music.example.com:8443/rest/ping?u=alice")

    assert uri.parts.hostname == "music.example.com"
    assert uri.parts.port == 8443


def test_error_codes_map_both_ways() -> None:
    for code in ErrorCode:
        assert decode_error_code(encode_error_code(code)) is code
    assert decode_error_code(41) is ErrorCode.TOKEN_AUTHENTICATION_NOT_SUPPORTED


@pytest.mark.parametrize("value", [42, -1, "40", True])
def test_unknown_error_codes_are_rejected(value: object) -> None:
    with pytest.raises(ValueError):
        decode_error_code(value)


def test_version_codec() -> None:
    version = decode_version("1.16.1")

    assert version == Version(1, 16, 1)
    assert encode_version(version) == "1.16.1"
    assert decode_version("1.8") == Version(1, 8, 0)
    assert decode_version("1.16.1") > decode_version("1.15.0")
    with pytest.raises(ValueError):
        decode_version("one.two")

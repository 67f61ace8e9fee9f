"""Pure wire codecs for Subsonic scalar types.

Each value type has a ``decode_*``/``encode_*`` pair. The pydantic models only
reference the annotated aliases at the bottom of this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import IntEnum
from typing import Annotated, Any
from urllib.parse import SplitResult, urlsplit

from pydantic import BeforeValidator, GetCoreSchemaHandler, PlainSerializer
from pydantic_core import core_schema


class ErrorCode(IntEnum):
    """Subsonic API error codes."""

    GENERIC_ERROR = 0
    REQUIRED_PARAMETER_MISSING = 10
    OUTDATED_CLIENT = 20
    OUTDATED_SERVER = 30
    WRONG_CREDENTIALS = 40
    TOKEN_AUTHENTICATION_NOT_SUPPORTED = 41
    USER_NOT_AUTHORIZED = 50
    SUBSONIC_PREMIUM_TRIAL_ENDED = 60
    NOT_FOUND = 70


def decode_error_code(value: Any) -> ErrorCode:
    if isinstance(value, ErrorCode):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"error code must be an integer, got {value!r}")
    try:
        return ErrorCode(value)
    except ValueError as exc:
        raise ValueError(f"unknown Subsonic error code {value}") from exc


def encode_error_code(code: ErrorCode) -> int:
    return int(code)


def decode_instant(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC ``datetime``."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"instant must be an ISO-8601 string, got {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def encode_instant(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


class Uri(str):
    """URI kept verbatim; ``parts`` exposes the parsed components."""

    @property
    def parts(self) -> SplitResult:
        return urlsplit(self)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, _handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            decode_uri,
            serialization=core_schema.plain_serializer_function_ser_schema(
                encode_uri, return_schema=core_schema.str_schema()
            ),
        )


def decode_uri(value: Any) -> Uri:
    if not isinstance(value, str):
        raise ValueError(f"uri must be a string, got {value!r}")
    return Uri(value)


def encode_uri(value: Uri | str) -> str:
    return str(value)


@dataclass(slots=True, frozen=True, order=True)
class Version:
    major: int
    minor: int
    revision: int

    def __str__(self) -> str:
        return encode_version(self)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, _handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            decode_version,
            serialization=core_schema.plain_serializer_function_ser_schema(
                encode_version, return_schema=core_schema.str_schema()
            ),
        )


def decode_version(value: Any) -> Version:
    if isinstance(value, Version):
        return value
    if not isinstance(value, str):
        raise ValueError(f"version must be a string, got {value!r}")
    pieces = value.strip().split(".")
    if len(pieces) not in (2, 3) or not all(piece.isdigit() for piece in pieces):
        raise ValueError(f"invalid version {value!r}")
    numbers = [int(piece) for piece in pieces] + [0] * (3 - len(pieces))
    return Version(*numbers)


def encode_version(value: Version) -> str:
    return f"{value.major}.{value.minor}.{value.revision}"


def _decode_identifier(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("identifier must be a string or integer")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"identifier must be a string or integer, got {value!r}")


InstantAsString = Annotated[
    datetime,
    BeforeValidator(decode_instant),
    PlainSerializer(encode_instant, return_type=str),
]
UriAsString = Uri
VersionAsString = Version
ErrorCodeAsInt = Annotated[
    ErrorCode,
    BeforeValidator(decode_error_code),
    PlainSerializer(encode_error_code, return_type=int),
]
SubsonicId = Annotated[str, BeforeValidator(_decode_identifier)]


__all__ = [
    "ErrorCode",
    "ErrorCodeAsInt",
    "InstantAsString",
    "SubsonicId",
    "Uri",
    "UriAsString",
    "Version",
    "VersionAsString",
    "decode_error_code",
    "decode_instant",
    "decode_uri",
    "decode_version",
    "encode_error_code",
    "encode_instant",
    "encode_uri",
    "encode_version",
]

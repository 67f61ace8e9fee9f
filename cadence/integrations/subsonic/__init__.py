"""Subsonic wire protocol: typed client, envelope models and scalar codecs."""

from .client import (HttpError, MethodResult, MethodSuccess, ProtocolError,
                     SubsonicClient, SubsonicContractError,
                     SubsonicDecodeError)
from .codecs import ErrorCode

__all__ = [
    "ErrorCode",
    "HttpError",
    "MethodResult",
    "MethodSuccess",
    "ProtocolError",
    "SubsonicClient",
    "SubsonicContractError",
    "SubsonicDecodeError",
]

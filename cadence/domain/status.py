"""Request status envelope delivered by every media stream."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")


class ErrorType(str, Enum):
    """Failure categories surfaced to consumers."""

    NOT_IMPLEMENTED = "not_implemented"
    IO = "io"
    AUTHENTICATION_REQUIRED = "authentication_required"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"


@dataclass(slots=True, frozen=True)
class Loading:
    """The request is in flight. ``progress`` is a percentage when known."""

    progress: int | None = None

    def __post_init__(self) -> None:
        if self.progress is not None and not 0 <= self.progress <= 100:
            raise ValueError("progress must be between 0 and 100")


@dataclass(slots=True, frozen=True)
class Success(Generic[T]):
    data: T


@dataclass(slots=True, frozen=True)
class Error:
    type: ErrorType


RequestStatus = Union[Loading, Success[T], Error]


def map_status(status: "RequestStatus[T]", mapper: Callable[[T], R]) -> "RequestStatus[R]":
    """Transform the payload of a ``Success`` leaving other states untouched."""

    if isinstance(status, Success):
        return Success(mapper(status.data))
    return status


def is_terminal(status: Any) -> bool:
    return isinstance(status, (Success, Error))


__all__ = [
    "Error",
    "ErrorType",
    "Loading",
    "RequestStatus",
    "Success",
    "is_terminal",
    "map_status",
]

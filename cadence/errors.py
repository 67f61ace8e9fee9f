"""Exception hierarchy shared across Cadence providers."""

from __future__ import annotations


class CadenceError(RuntimeError):
    """Base exception for Cadence specific failures."""


class ProviderArgumentError(CadenceError, ValueError):
    """Raised when provider arguments are missing or have the wrong type."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key
        self.message = message


class UnsupportedProviderOperation(CadenceError):
    """Raised when a provider kind does not support the requested operation."""

    def __init__(self, provider_type: str, operation: str) -> None:
        super().__init__(f"{provider_type} providers do not support {operation}")
        self.provider_type = provider_type
        self.operation = operation


class InvalidMediaTypeError(CadenceError, ValueError):
    """Raised when a remote item carries a media type the domain cannot represent."""

    def __init__(self, media_type: str, *, item_id: str | None = None) -> None:
        detail = f" (item {item_id})" if item_id else ""
        super().__init__(f"Unsupported media type {media_type!r}{detail}")
        self.media_type = media_type
        self.item_id = item_id


__all__ = [
    "CadenceError",
    "InvalidMediaTypeError",
    "ProviderArgumentError",
    "UnsupportedProviderOperation",
]

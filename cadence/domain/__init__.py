"""Provider-agnostic domain model for Cadence."""

from .media import (Album, Artist, ArtistWorks, Audio, AudioType, Genre,
                    MediaItem, Playlist, Thumbnail, ThumbnailType, diff_items)
from .providers import (ArgumentType, Provider, ProviderArgument,
                        ProviderType, validate_arguments)
from .status import Error, ErrorType, Loading, RequestStatus, Success

__all__ = [
    "Album",
    "ArgumentType",
    "Artist",
    "ArtistWorks",
    "Audio",
    "AudioType",
    "Error",
    "ErrorType",
    "Genre",
    "Loading",
    "MediaItem",
    "Playlist",
    "Provider",
    "ProviderArgument",
    "ProviderType",
    "RequestStatus",
    "Success",
    "Thumbnail",
    "ThumbnailType",
    "diff_items",
    "validate_arguments",
]

"""Best-effort thumbnails for locally indexed media, read from embedded tags."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from mutagen.flac import FLAC
from mutagen.id3 import APIC, ID3, ID3NoHeaderError
from mutagen.mp4 import MP4, MP4Cover

from cadence.domain.media import ThumbnailType
from cadence.logging import get_logger

logger = get_logger(__name__)

_MP4_SUFFIXES = {".m4a", ".mp4", ".aac", ".m4b"}


@dataclass(slots=True, frozen=True)
class EmbeddedPicture:
    data: bytes
    mime: str
    picture_type: int
    width: int | None = None
    height: int | None = None


class ThumbnailLoader(Protocol):
    """Return thumbnail bytes for the audio file at ``path`` or ``None``."""

    def load(self, path: str, kind: ThumbnailType, size: int) -> bytes | None: ...


def _detect_image_dimensions(image_data: bytes) -> tuple[Optional[int], Optional[int]]:
    if not image_data:
        return None, None
    if image_data.startswith(b"\x89PNG\r\n\x1a\n") and len(image_data) >= 24:
        width = int.from_bytes(image_data[16:20], "big")
        height = int.from_bytes(image_data[20:24], "big")
        return width or None, height or None
    if image_data[:2] == b"\xff\xd8":
        return _parse_jpeg_dimensions(image_data)
    return None, None


def _parse_jpeg_dimensions(image_data: bytes) -> tuple[Optional[int], Optional[int]]:
    index = 2
    length = len(image_data)
    while index + 1 < length:
        if image_data[index] != 0xFF:
            index += 1
            continue
        while index < length and image_data[index] == 0xFF:
            index += 1
        if index >= length:
            break
        marker = image_data[index]
        index += 1
        if marker in {0xD8, 0xD9}:
            continue
        if index + 2 > length:
            break
        segment_length = int.from_bytes(image_data[index : index + 2], "big")
        if segment_length < 2:
            break
        # SOF markers, excluding DHT (C4), JPG (C8) and DAC (CC)
        if 0xC0 <= marker <= 0xCF and marker not in {0xC4, 0xC8, 0xCC}:
            if index + segment_length > length:
                break
            height = int.from_bytes(image_data[index + 3 : index + 5], "big")
            width = int.from_bytes(image_data[index + 5 : index + 7], "big")
            return width or None, height or None
        index += segment_length
    return None, None


def _picture(data: bytes, mime: str, picture_type: int) -> EmbeddedPicture:
    width, height = _detect_image_dimensions(data)
    return EmbeddedPicture(
        data=data,
        mime=mime or "image/jpeg",
        picture_type=picture_type,
        width=width,
        height=height,
    )


def _flac_pictures(audio_path: Path) -> list[EmbeddedPicture]:
    try:
        flac = FLAC(audio_path)
    except Exception as exc:
        logger.debug("Failed to load FLAC file for artwork: %s", exc)
        return []
    return [
        _picture(picture.data, picture.mime, int(picture.type))
        for picture in flac.pictures
        if getattr(picture, "data", b"")
    ]


def _mp4_pictures(audio_path: Path) -> list[EmbeddedPicture]:
    try:
        mp4 = MP4(audio_path)
    except Exception as exc:
        logger.debug("Failed to load MP4 file for artwork: %s", exc)
        return []
    covers: Sequence[Any] = (mp4.tags or {}).get("covr") or []
    pictures = []
    for cover in covers:
        mime = "image/png" if getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG else "image/jpeg"
        pictures.append(_picture(bytes(cover), mime, int(ThumbnailType.FRONT_COVER)))
    return pictures


def _id3_pictures(audio_path: Path) -> list[EmbeddedPicture]:
    try:
        tags = ID3(audio_path)
    except ID3NoHeaderError:
        return []
    except Exception as exc:
        logger.debug("Failed to load ID3 tags for artwork: %s", exc)
        return []
    return [
        _picture(frame.data, frame.mime, int(frame.type))
        for frame in tags.values()
        if isinstance(frame, APIC) and getattr(frame, "data", b"")
    ]


def extract_pictures(audio_path: Path | str) -> list[EmbeddedPicture]:
    """Return every embedded picture found in ``audio_path``."""

    audio_path = Path(audio_path)
    if not audio_path.is_file():
        return []

    suffix = audio_path.suffix.lower()
    if suffix == ".flac":
        pictures = _flac_pictures(audio_path)
    elif suffix in _MP4_SUFFIXES:
        pictures = _mp4_pictures(audio_path)
    else:
        pictures = _id3_pictures(audio_path)

    if not pictures and (suffix == ".flac" or suffix in _MP4_SUFFIXES):
        # some taggers write ID3 frames into FLAC and AAC containers
        pictures = _id3_pictures(audio_path)
    return pictures


def select_picture(
    pictures: Sequence[EmbeddedPicture], kind: ThumbnailType, size: int
) -> EmbeddedPicture | None:
    """Prefer pictures of ``kind`` and, among those, the one closest to ``size``."""

    if not pictures:
        return None
    preferred = [picture for picture in pictures if picture.picture_type == int(kind)]
    if not preferred:
        preferred = [
            picture
            for picture in pictures
            if picture.picture_type == int(ThumbnailType.FRONT_COVER)
        ] or list(pictures)

    def distance(picture: EmbeddedPicture) -> int:
        if picture.width is None or picture.height is None:
            return size
        return abs(min(picture.width, picture.height) - size)

    return min(preferred, key=distance)


class EmbeddedArtworkLoader:
    """Thumbnail loader reading artwork embedded in audio files with mutagen."""

    def load(self, path: str, kind: ThumbnailType, size: int) -> bytes | None:
        picture = select_picture(extract_pictures(path), kind, size)
        return picture.data if picture is not None else None


__all__ = [
    "EmbeddedArtworkLoader",
    "EmbeddedPicture",
    "ThumbnailLoader",
    "extract_pictures",
    "select_picture",
]

"""Utilities for file metadata extraction (EXIF, dimensions, size, dates).

Best-effort helpers: they never raise on unreadable files; callers get
`None` or 0 when data is not available.
"""

from __future__ import annotations

from datetime import datetime
import os
from typing import Any

from loguru import logger
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

register_heif_opener()

# EXIF tag 36867 is DateTimeOriginal, 306 is DateTime
_EXIF_DATETIME_TAGS = (36867, 306)
_EXIF_IFD_POINTER = 0x8769

_IMAGE_ERRORS = (OSError, UnidentifiedImageError, ValueError, TypeError, SyntaxError)


def to_epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def get_file_size(path: str) -> int:
    """Size in bytes, or 0 when the file cannot be stat'ed."""
    try:
        return int(os.path.getsize(path))
    except OSError as ex:
        logger.debug("getsize failed for {}: {}", path, ex)
        return 0


def get_filesystem_creation_datetime(path: str) -> datetime | None:
    """Best-effort file creation time.

    Uses `st_birthtime` where the platform has it, else `getctime` (creation
    on Windows, metadata change elsewhere), accepted as a best-effort value.
    """
    try:
        st = os.stat(path)
        ts = getattr(st, "st_birthtime", None) or os.path.getctime(path)
        return datetime.fromtimestamp(ts)
    except (OSError, ValueError) as ex:
        logger.debug("stat failed for {}: {}", path, ex)
        return None


def _parse_exif_datetime(value: Any) -> datetime | None:
    val_str = str(value).strip().rstrip("\x00")
    try:
        # Common EXIF format: "YYYY:MM:DD HH:MM:SS"
        if len(val_str) >= 19 and val_str[4] == ":" and val_str[7] == ":":
            return datetime.strptime(val_str[:19], "%Y:%m:%d %H:%M:%S")
        return datetime.fromisoformat(val_str.replace("/", "-"))
    except ValueError:
        return None


def get_exif_datetime_original(path: str) -> datetime | None:
    """Extract EXIF DateTimeOriginal (or DateTime) if available via Pillow."""
    try:
        with Image.open(path) as im:
            exif = im.getexif()
            if not exif:
                return None
            val = exif.get_ifd(_EXIF_IFD_POINTER).get(_EXIF_DATETIME_TAGS[0])
            val = val or exif.get(_EXIF_DATETIME_TAGS[1])
            return _parse_exif_datetime(val) if val else None
    except _IMAGE_ERRORS as ex:
        logger.debug("EXIF read failed for {}: {}", path, ex)
        return None


def get_creation_millis(path: str) -> int:
    """Capture time in epoch ms: EXIF first, then filesystem time, else 0."""
    dt = get_exif_datetime_original(path) or get_filesystem_creation_datetime(path)
    return to_epoch_ms(dt) if dt else 0


def read_dimensions(path: str) -> tuple[int, int] | None:
    """Return (width, height) honouring EXIF orientation, or None."""
    try:
        with Image.open(path) as im:
            width, height = im.size
            # Orientations 5-8 are rotated by 90 degrees.
            if im.getexif().get(0x0112, 1) in (5, 6, 7, 8):
                width, height = height, width
            return int(width), int(height)
    except _IMAGE_ERRORS as ex:
        logger.debug("Image open failed for {}: {}", path, ex)
        return None

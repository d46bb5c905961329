"""Food photo uploads.

Photos are validated (type and size) before anything is written, then saved
under the uploads directory as ``food_<epoch-ms>_<random>.<ext>`` and
referenced from listings as ``/uploads/<filename>``.
"""

import logging
import os
import re
import secrets
import time
from pathlib import Path
from typing import Optional

import aiofiles

from .exceptions import FoodValidationError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = re.compile(r'jpeg|jpg|png|gif|webp')
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
PUBLIC_PREFIX = '/uploads/'


class PhotoUpload:
    """An uploaded photo held in memory until it is stored."""

    def __init__(self, filename: str, content_type: Optional[str], content: bytes):
        self.filename = filename or ''
        self.content_type = content_type or ''
        self.content = content

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lower()


def validate_photo(photo: PhotoUpload, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    """Reject anything that is not a jpeg/png/gif/webp image within max_bytes.

    Raises:
        FoodValidationError: If the type or size is not allowed
    """
    extension_ok = bool(photo.extension) and bool(ALLOWED_TYPES.fullmatch(photo.extension[1:]))
    mimetype_ok = photo.content_type.startswith('image/') and bool(
        ALLOWED_TYPES.search(photo.content_type)
    )
    if not (extension_ok and mimetype_ok):
        raise FoodValidationError("Only image files are allowed")
    if len(photo.content) > max_bytes:
        raise FoodValidationError(f"Photo exceeds the {max_bytes} byte upload limit")


def photo_filename(extension: str) -> str:
    """Unique stored filename: food_<epoch-ms>_<random><ext>."""
    return f"food_{int(time.time() * 1000)}_{secrets.randbelow(10 ** 9)}{extension}"


async def save_photo(
    photo: PhotoUpload,
    uploads_dir: str,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
) -> str:
    """Validate and write a photo, returning its public reference."""
    validate_photo(photo, max_bytes)

    directory = Path(uploads_dir)
    directory.mkdir(parents=True, exist_ok=True)
    filename = photo_filename(photo.extension)

    async with aiofiles.open(directory / filename, 'wb') as f:
        await f.write(photo.content)

    logger.info(f"Stored photo {filename} ({len(photo.content)} bytes)")
    return PUBLIC_PREFIX + filename


def remove_photo(photo_ref: Optional[str], uploads_dir: str) -> None:
    """Delete a stored photo; missing files are ignored."""
    if not photo_ref or not photo_ref.startswith(PUBLIC_PREFIX):
        return
    path = Path(uploads_dir) / photo_ref[len(PUBLIC_PREFIX):]
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove photo {path}: {e}")

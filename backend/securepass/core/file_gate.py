import logging
from typing import Any

from securepass.core.errors import EmptyFile, FileTooLarge, InvalidFileType, NoFileSelected

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_TYPES = ("application/json", "text/json", "text/plain")
MAX_IMPORT_BYTES = 10 * 1024 * 1024


def is_valid_file_type(file: Any) -> bool:
    if file is None:
        return False
    content_type = (getattr(file, "content_type", None) or "").split(";")[0].strip().lower()
    filename = getattr(file, "filename", None) or ""
    return content_type in ALLOWED_MEDIA_TYPES or filename.endswith(".json")


def validate_upload(file: Any) -> None:
    """
    Check an untrusted upload handle before any of its bytes are read.

    Handles that do not declare a size (``size is None``) pass the size checks
    here; the reader enforces the ceiling for them.
    """
    if file is None:
        raise NoFileSelected()
    if not is_valid_file_type(file):
        logger.info("rejected upload %r with media type %r", getattr(file, "filename", None), getattr(file, "content_type", None))
        raise InvalidFileType()
    size = getattr(file, "size", None)
    if size is None:
        return
    if size == 0:
        raise EmptyFile()
    if size > MAX_IMPORT_BYTES:
        logger.info("rejected upload %r of %d bytes", getattr(file, "filename", None), size)
        raise FileTooLarge()

from __future__ import annotations
from PIL import Image, UnidentifiedImageError
import io


ALLOWED_MIME = {"image/jpeg", "image/png", "image/webp"}
EXT_FOR_MIME = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}
_MIME_FOR_FORMAT = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}

def sniff_mime(data: bytes) -> str | None:
    # Trust the bytes, not the client-declared content type
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _MIME_FOR_FORMAT.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None

def validate_photo(data: bytes) -> str:
    """
    Returns the detected content-type of a photo answer.
    Raises ValueError for empty, unsupported or corrupt images.
    """
    if not data:
        raise ValueError("Photo is empty")
    mime = sniff_mime(data)
    if mime not in ALLOWED_MIME:
        raise ValueError("Unsupported image type")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()  # basic integrity
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValueError("Invalid image file")
    return mime

def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime, "bin")

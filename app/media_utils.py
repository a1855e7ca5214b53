import base64
import io
import mimetypes
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

DEFAULT_MEDIA_TYPE = "image/jpeg"
# Image types the Messages API accepts as base64 sources
PROVIDER_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


def detect_image_type(data: bytes) -> Optional[str]:
    """Return the MIME type Pillow recognises in ``data``, or None if it is not an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            fmt = img.format
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
    return Image.MIME.get(fmt) if fmt else None


def guess_media_type(filename: Optional[str], content_type: Optional[str]) -> str:
    if content_type and content_type.startswith("image/"):
        return content_type
    mime_type, _ = mimetypes.guess_type(filename or "")
    if not mime_type:
        mime_type = DEFAULT_MEDIA_TYPE
    return mime_type


def encode_data_uri(data: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def split_data_uri(data_uri: str) -> Tuple[Optional[str], str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload).

    Everything after the first comma is the payload. The MIME part is None
    when the header does not name one.
    """
    if not isinstance(data_uri, str):
        raise ValueError("Bag image must be a data URI string")
    header, sep, payload = data_uri.partition(",")
    if not sep:
        raise ValueError("Bag image is not a data URI (missing ',' separator)")
    media_type = None
    if header.startswith("data:"):
        declared = header[len("data:"):].split(";", 1)[0].strip().lower()
        media_type = declared or None
    return media_type, payload

"""Image input: files, stdin pipes and data URIs."""

from __future__ import annotations

import base64
import io
import mimetypes
import sys
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from lenslore.common.errors import InvalidImageError
from lenslore.common.logging import get_logger

# Encodings the vision model accepts as inline image data.
SUPPORTED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/gif",
})

_FORMAT_MIME_TYPES = {"MPO": "image/jpeg"}

logger = get_logger("capture")


@dataclass(frozen=True)
class CapturedImage:
    """An image ready to send, kept as a full data URI for display."""

    data_uri: str
    mime_type: str

    @property
    def payload(self) -> str:
        """Base64 part of the data URI."""
        return split_data_uri(self.data_uri)[1]

    @property
    def size_bytes(self) -> int:
        return len(base64.b64decode(self.payload))


def split_data_uri(uri: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` on its first comma.

    Returns:
        Tuple of (header, payload).
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        raise InvalidImageError("Image data is not a data URI")
    return header, payload


def encode_data_uri(data: bytes, mime_type: str) -> str:
    """Build a base64 data URI from raw bytes."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def detect_mime_type(data: bytes, filename: str | None = None) -> str:
    """Work out the image encoding of ``data``.

    Pillow sniffs the bytes first; the file name suffix is only consulted
    for formats Pillow cannot open (HEIC/HEIF without a plugin).

    Raises:
        InvalidImageError: Not an image, or an unsupported encoding.
    """
    mime_type: str | None = None
    try:
        with Image.open(io.BytesIO(data)) as img:
            mime_type = _format_mime_type(img.format)
    except Image.DecompressionBombError:
        # Pixel count is not our concern; the header already named the format.
        mime_type = _sniff_mime_type(data) or _guess_from_name(filename)
    except (UnidentifiedImageError, OSError):
        mime_type = _guess_from_name(filename)

    if not mime_type or not mime_type.startswith("image/"):
        raise InvalidImageError("Selected file is not a recognizable image")
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise InvalidImageError(f"Unsupported image type: {mime_type}")
    return mime_type


def _format_mime_type(image_format: str | None) -> str | None:
    # Multi-picture JPEGs (phone HDR, gain maps) open as MPO but are plain
    # JPEG streams to every consumer.
    return _FORMAT_MIME_TYPES.get(image_format or "") or Image.MIME.get(image_format or "")


def _sniff_mime_type(data: bytes) -> str | None:
    """Match the file signature against Pillow's registered formats."""
    Image.init()
    prefix = data[:16]
    for image_format in Image.ID:
        _, accept = Image.OPEN[image_format]
        if accept is None:
            continue
        # A str result means "recognised but unsupported".
        result = accept(prefix)
        if result and not isinstance(result, str):
            return _format_mime_type(image_format)
    return None


def _guess_from_name(filename: str | None) -> str | None:
    if not filename:
        return None
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type


def from_bytes(data: bytes, filename: str | None = None) -> CapturedImage:
    """Wrap raw image bytes."""
    if not data:
        raise InvalidImageError("Image is empty")
    mime_type = detect_mime_type(data, filename)
    return CapturedImage(data_uri=encode_data_uri(data, mime_type), mime_type=mime_type)


def from_data_uri(uri: str) -> CapturedImage:
    """Wrap an existing data URI, e.g. one produced by a browser camera."""
    header, payload = split_data_uri(uri)
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise InvalidImageError("Image data is not valid base64") from e
    if not data:
        raise InvalidImageError("Image is empty")

    declared = header.removeprefix("data:").split(";", 1)[0]
    try:
        mime_type = detect_mime_type(data)
    except InvalidImageError:
        if declared not in SUPPORTED_MIME_TYPES:
            raise
        mime_type = declared
    return CapturedImage(data_uri=uri, mime_type=mime_type)


def load_image(source: str | Path) -> CapturedImage:
    """Read an image from a path, or from stdin when ``source`` is ``-``.

    Reading stdin lets a camera tool pipe a capture straight in, e.g.
    ``rpicam-still -o - | lenslore identify -``.
    """
    if str(source) == "-":
        data = sys.stdin.buffer.read()
        filename = None
    else:
        path = Path(source).expanduser()
        if not path.is_file():
            raise InvalidImageError(f"No such image file: {path}")
        data = path.read_bytes()
        filename = path.name

    image = from_bytes(data, filename)
    logger.debug("image_loaded", source=str(source), mime_type=image.mime_type, size=len(data))
    return image

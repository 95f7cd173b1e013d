"""Tests for image input."""

import base64
import io

import pytest

from lenslore.capture import (
    CapturedImage,
    detect_mime_type,
    encode_data_uri,
    from_bytes,
    from_data_uri,
    load_image,
    split_data_uri,
)
from lenslore.common.errors import InvalidImageError


def png_bytes() -> bytes:
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestDataUri:
    """Tests for data URI helpers."""

    def test_split_on_first_comma(self):
        header, payload = split_data_uri("data:image/jpeg;base64,AAAA,BBBB")

        assert header == "data:image/jpeg;base64"
        assert payload == "AAAA,BBBB"

    def test_split_without_comma(self):
        with pytest.raises(InvalidImageError):
            split_data_uri("not-a-data-uri")

    def test_encode_round_trip_payload(self):
        uri = encode_data_uri(b"\x01\x02\x03", "image/png")

        assert uri.startswith("data:image/png;base64,")
        assert base64.b64decode(split_data_uri(uri)[1]) == b"\x01\x02\x03"

    def test_payload_property(self):
        image = CapturedImage(data_uri="data:image/jpeg;base64,QUJD", mime_type="image/jpeg")

        assert image.payload == "QUJD"
        assert image.size_bytes == 3


class TestDetectMimeType:
    """Tests for encoding detection."""

    def test_jpeg(self, mock_image_bytes: bytes):
        assert detect_mime_type(mock_image_bytes) == "image/jpeg"

    def test_png(self):
        assert detect_mime_type(png_bytes()) == "image/png"

    def test_not_an_image(self):
        with pytest.raises(InvalidImageError):
            detect_mime_type(b"plain text, not pixels", "notes.txt")

    def test_suffix_fallback_for_unreadable_heic(self, monkeypatch):
        monkeypatch.setattr(
            "lenslore.capture.mimetypes.guess_type",
            lambda name: ("image/heic", None),
        )

        assert detect_mime_type(b"\x00\x00\x00\x18ftypheic", "IMG_0001.heic") == "image/heic"

    def test_unsupported_image_type(self):
        from PIL import Image

        buffer = io.BytesIO()
        Image.new("RGB", (4, 4)).save(buffer, format="BMP")

        with pytest.raises(InvalidImageError, match="Unsupported"):
            detect_mime_type(buffer.getvalue())


class TestLoading:
    """Tests for loading images from files, bytes and data URIs."""

    def test_from_bytes(self, mock_image_bytes: bytes):
        image = from_bytes(mock_image_bytes)

        assert image.mime_type == "image/jpeg"
        assert image.data_uri.startswith("data:image/jpeg;base64,")
        assert base64.b64decode(image.payload) == mock_image_bytes

    def test_from_empty_bytes(self):
        with pytest.raises(InvalidImageError):
            from_bytes(b"")

    def test_load_image_file(self, tmp_path, mock_image_bytes: bytes):
        path = tmp_path / "tower.jpg"
        path.write_bytes(mock_image_bytes)

        image = load_image(path)

        assert image.mime_type == "image/jpeg"
        assert base64.b64decode(image.payload) == mock_image_bytes

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(InvalidImageError, match="No such image file"):
            load_image(tmp_path / "missing.jpg")

    def test_load_from_stdin(self, monkeypatch, mock_image_bytes: bytes):
        class FakeStdin:
            buffer = io.BytesIO(mock_image_bytes)

        monkeypatch.setattr("sys.stdin", FakeStdin())

        image = load_image("-")

        assert image.mime_type == "image/jpeg"

    def test_from_data_uri_detects_real_type(self):
        data = png_bytes()
        uri = "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")

        image = from_data_uri(uri)

        assert image.mime_type == "image/png"
        assert image.data_uri == uri

    def test_from_data_uri_invalid_base64(self):
        with pytest.raises(InvalidImageError):
            from_data_uri("data:image/png;base64,***")

    def test_multi_picture_jpeg_is_jpeg(self):
        from PIL import Image

        buffer = io.BytesIO()
        Image.new("RGB", (16, 16), color=(10, 20, 30)).save(
            buffer,
            format="MPO",
            save_all=True,
            append_images=[Image.new("RGB", (16, 16), color=(200, 200, 200))],
        )
        data = buffer.getvalue()
        assert data[:3] == b"\xff\xd8\xff"

        image = from_bytes(data, "IMG_0001.jpg")

        assert image.mime_type == "image/jpeg"
        assert image.data_uri.startswith("data:image/jpeg;base64,")

    def test_oversized_image_is_accepted(self, monkeypatch, mock_image_bytes: bytes):
        from PIL import Image

        # Both test images exceed twice this limit, so Pillow refuses to open them.
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

        assert detect_mime_type(mock_image_bytes) == "image/jpeg"
        assert from_bytes(png_bytes(), "panorama.png").mime_type == "image/png"

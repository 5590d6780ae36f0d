"""Tests for upload conversion."""

import base64
import io

import pytest
from PIL import Image

from app.backend.services.document_service import (
    DocumentConversionError,
    DocumentService,
)


def png_bytes(size=(100, 100), color="red", mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def decode_data_url(data_url: str) -> Image.Image:
    header, _, payload = data_url.partition(",")
    assert header == "data:image/png;base64"
    return Image.open(io.BytesIO(base64.b64decode(payload)))


class TestDocumentService:
    """Tests for DocumentService class."""

    def test_init_default_values(self):
        """Test DocumentService initializes with default values."""
        service = DocumentService()
        assert service.dpi == 200
        assert service.max_dimension == 2048

    def test_empty_file_raises_error(self):
        """Test that empty file raises DocumentConversionError."""
        service = DocumentService()
        with pytest.raises(DocumentConversionError) as exc_info:
            service.prepare(b"", "empty.png", "image/png")
        assert "Empty" in str(exc_info.value)

    def test_invalid_pdf_raises_error(self):
        """Test that non-PDF content raises DocumentConversionError."""
        service = DocumentService()
        with pytest.raises(DocumentConversionError) as exc_info:
            service.prepare(b"This is not a PDF", "doc.pdf", "application/pdf")
        assert "does not start" in str(exc_info.value)

    def test_text_upload(self):
        prepared = DocumentService().prepare(
            "  Grüße aus Berlin \n".encode("utf-8"), "notes.txt", "text/plain; charset=utf-8"
        )
        assert prepared.content_type == "text/plain"
        assert prepared.text == "Grüße aus Berlin"
        assert prepared.image_data_url is None

    def test_blank_text_upload_rejected(self):
        with pytest.raises(DocumentConversionError):
            DocumentService().prepare(b"  \n ", "blank.txt", "text/plain")

    def test_image_upload_becomes_png_data_url(self):
        prepared = DocumentService().prepare(png_bytes(), "scan.png", "image/png")
        assert prepared.text is None
        image = decode_data_url(prepared.image_data_url)
        assert image.size == (100, 100)

    def test_large_image_downscaled(self):
        """Test that the longest side is capped at max_dimension."""
        service = DocumentService(max_dimension=50)
        prepared = service.prepare(png_bytes(size=(200, 100)), "wide.png", "image/png")
        image = decode_data_url(prepared.image_data_url)
        assert image.size == (50, 25)

    def test_palette_image_converted(self):
        image = Image.new("P", (10, 10))
        data_url = DocumentService().image_to_data_url(image)
        assert decode_data_url(data_url).mode == "RGB"

    def test_corrupt_image_rejected(self):
        with pytest.raises(DocumentConversionError) as exc_info:
            DocumentService().prepare(b"\x89PNG broken", "bad.png", "image/png")
        assert "Invalid or corrupted image" in str(exc_info.value)

    def test_unsupported_type_rejected(self):
        with pytest.raises(DocumentConversionError) as exc_info:
            DocumentService().prepare(b"PK\x03\x04", "a.zip", "application/zip")
        assert "Unsupported" in str(exc_info.value)

    @pytest.mark.parametrize(
        "filename,data,expected",
        [
            ("doc.bin", b"%PDF-1.7 ...", "application/pdf"),
            ("notes.TXT", b"hello", "text/plain"),
            ("photo.jpeg", b"\xff\xd8", "image/jpeg"),
            ("blob", b"\x00\x01", "application/octet-stream"),
        ],
    )
    def test_content_type_guessed_for_octet_stream(self, filename, data, expected):
        assert DocumentService._guess_content_type(filename, data) == expected

    def test_octet_stream_text_detected_by_extension(self):
        prepared = DocumentService().prepare(
            b"Passport of Jane Doe", "notes.txt", "application/octet-stream"
        )
        assert prepared.text == "Passport of Jane Doe"

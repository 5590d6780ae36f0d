"""
Upload conversion using Pillow and pdf2image (poppler).

Turns uploaded files into what the AI service consumes: plain text, or an
image embedded as a base64 data URL.
"""

import base64
import io
import logging
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DocumentConversionError(Exception):
    """Raised when an uploaded document cannot be converted."""

    pass


class PreparedDocument(BaseModel):
    """An upload ready for the AI service: exactly one of text or image is set."""

    filename: str
    content_type: str
    text: str | None = None
    image_data_url: str | None = None


class DocumentService:
    """
    Service for upload conversion.

    Images are downscaled before encoding so they stay under provider payload
    limits. PDFs contribute their first page.
    """

    def __init__(self, max_dimension: int = 2048, dpi: int = 200):
        """
        Initialize the document service.

        Args:
            max_dimension: Longest side in pixels after downscaling.
            dpi: Resolution for PDF to image conversion.
        """
        self.max_dimension = max_dimension
        self.dpi = dpi

    def prepare(
        self, file_bytes: bytes | BinaryIO, filename: str, content_type: str | None
    ) -> PreparedDocument:
        """
        Convert an upload into text or an image data URL.

        Raises:
            DocumentConversionError: For empty, unsupported or corrupt files.
        """
        data = file_bytes.read() if hasattr(file_bytes, "read") else file_bytes
        if not data:
            raise DocumentConversionError("Empty file provided")

        content_type = (content_type or "").split(";")[0].strip().lower()
        if not content_type or content_type == "application/octet-stream":
            content_type = self._guess_content_type(filename, data)

        if content_type.startswith("text/"):
            return PreparedDocument(
                filename=filename,
                content_type=content_type,
                text=self.decode_text(data),
            )
        if content_type == "application/pdf":
            image = self.convert_first_page(data)
        elif content_type.startswith("image/"):
            image = self.open_image(data)
        else:
            raise DocumentConversionError(f"Unsupported file type: {content_type}")

        return PreparedDocument(
            filename=filename,
            content_type=content_type,
            image_data_url=self.image_to_data_url(image),
        )

    @staticmethod
    def _guess_content_type(filename: str, data: bytes) -> str:
        if data[:4] == b"%PDF":
            return "application/pdf"
        lowered = filename.lower()
        if lowered.endswith((".txt", ".text")):
            return "text/plain"
        if lowered.endswith((".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tif", ".tiff")):
            return "image/" + lowered.rsplit(".", 1)[-1]
        return "application/octet-stream"

    @staticmethod
    def decode_text(data: bytes) -> str:
        text = data.decode("utf-8", errors="replace").strip()
        if not text:
            raise DocumentConversionError("Text file contains no text")
        return text

    @staticmethod
    def open_image(data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise DocumentConversionError(f"Invalid or corrupted image: {e}") from e
        return image

    def convert_first_page(self, pdf_bytes: bytes) -> Image.Image:
        """
        Render the first page of a PDF.

        Raises:
            DocumentConversionError: If conversion fails for any reason.
        """
        if pdf_bytes[:4] != b"%PDF":
            raise DocumentConversionError(
                "Invalid PDF file: does not start with PDF header"
            )

        from pdf2image import convert_from_bytes
        from pdf2image.exceptions import (
            PDFInfoNotInstalledError,
            PDFPageCountError,
            PDFSyntaxError,
        )

        try:
            images = convert_from_bytes(
                pdf_bytes, dpi=self.dpi, fmt="png", first_page=1, last_page=1
            )
        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise DocumentConversionError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e
        except PDFPageCountError as e:
            raise DocumentConversionError(f"Could not determine PDF page count: {e}") from e
        except PDFSyntaxError as e:
            raise DocumentConversionError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error during PDF conversion")
            raise DocumentConversionError(f"PDF conversion failed: {e}") from e

        if not images:
            raise DocumentConversionError("No pages found in PDF")
        return images[0]

    def downscale(self, image: Image.Image) -> Image.Image:
        """Resize so the longest side is at most max_dimension."""
        if max(image.size) <= self.max_dimension:
            return image
        ratio = self.max_dimension / max(image.size)
        new_size = (int(image.size[0] * ratio), int(image.size[1] * ratio))
        logger.info("Downscaling image from %s to %s", image.size, new_size)
        return image.resize(new_size, Image.Resampling.LANCZOS)

    def image_to_data_url(self, image: Image.Image) -> str:
        """Encode an image as a PNG base64 data URL."""
        image = self.downscale(image)
        if image.mode not in ("RGB", "RGBA", "L", "LA"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format="PNG", optimize=True)
        encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
        return f"data:image/png;base64,{encoded}"


# Singleton instance for convenience
_document_service: DocumentService | None = None


def get_document_service() -> DocumentService:
    """Get or create the document service singleton."""
    global _document_service
    if _document_service is None:
        from ..config import get_settings

        _document_service = DocumentService(
            max_dimension=get_settings().max_image_dimension
        )
    return _document_service

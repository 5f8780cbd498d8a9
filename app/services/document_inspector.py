"""
Document Inspection Service
===========================
Checks uploaded policy documents before they join a batch.
"""

import logging
import mimetypes
from io import BytesIO
from typing import Optional

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.exceptions import DocumentRejectedError
from app.models.document_model import SourceFile
from app.utils.helpers import sanitize_filename

logger = logging.getLogger(__name__)

_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class DocumentInspector:
    """Service for validating uploaded PDFs and images"""

    @staticmethod
    def resolve_mime_type(filename: str, declared: Optional[str]) -> str:
        """
        Pick the MIME type for a file.

        The declared type wins unless it is generic; then the extension is
        consulted, and finally the PDF default applies.
        """
        declared = (declared or "").split(';')[0].strip().lower()
        if declared not in _GENERIC_MIME_TYPES:
            return declared

        guessed, _ = mimetypes.guess_type(filename)
        return guessed or settings.DEFAULT_MIME_TYPE

    @staticmethod
    def count_pdf_pages(content: bytes) -> int:
        doc = fitz.open(stream=content, filetype="pdf")
        try:
            return doc.page_count
        finally:
            doc.close()

    @staticmethod
    def verify_image(content: bytes) -> None:
        with Image.open(BytesIO(content)) as image:
            image.verify()

    def inspect(self, content: bytes, filename: str, declared_mime_type: Optional[str] = None) -> SourceFile:
        """
        Validate a document and describe it for intake.

        Args:
            content: Raw file bytes
            filename: Name supplied by the uploader
            declared_mime_type: Content type supplied by the uploader

        Returns:
            SourceFile ready for the queue

        Raises:
            DocumentRejectedError: If the file is empty, too large, of an
                unsupported type or unreadable
        """
        display_name = sanitize_filename(filename or "document")
        mime_type = self.resolve_mime_type(display_name, declared_mime_type)

        if not content:
            raise DocumentRejectedError(display_name, "File is empty")

        if len(content) > settings.MAX_FILE_SIZE:
            raise DocumentRejectedError(
                display_name,
                f"File size exceeds maximum allowed ({settings.MAX_FILE_SIZE_MB}MB)",
            )

        if mime_type not in settings.ALLOWED_MIME_TYPES:
            raise DocumentRejectedError(
                display_name,
                f"Unsupported file type {mime_type}. Allowed: {', '.join(settings.ALLOWED_MIME_TYPES)}",
            )

        page_count = None
        if mime_type == "application/pdf":
            try:
                page_count = self.count_pdf_pages(content)
            except Exception as e:
                logger.warning(f"⚠️  Unreadable PDF {display_name}: {e}")
                raise DocumentRejectedError(display_name, f"Invalid PDF file: {e}") from e
            if page_count == 0:
                raise DocumentRejectedError(display_name, "PDF has no pages")
        else:
            try:
                self.verify_image(content)
            except (UnidentifiedImageError, OSError, SyntaxError) as e:
                logger.warning(f"⚠️  Unreadable image {display_name}: {e}")
                raise DocumentRejectedError(display_name, f"Invalid image file: {e}") from e

        logger.info(
            f"📄 Accepted {display_name} ({mime_type}, {len(content)} bytes"
            + (f", {page_count} page(s))" if page_count is not None else ")")
        )
        return SourceFile(
            content=content,
            mime_type=mime_type,
            filename=display_name,
            size=len(content),
            page_count=page_count,
        )


# Create singleton instance
document_inspector = DocumentInspector()

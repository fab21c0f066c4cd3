"""
PDF page utilities for the vision path.

Splits a document into single-page sub-documents and prepares image uploads
for a vision call.
"""

import io
import logging
from typing import List, Tuple

from PIL import Image
from pypdf import PdfReader, PdfWriter

from .errors import DocumentLoadError

logger = logging.getLogger(__name__)


IMAGE_MAX_SIZE = 1568  # Max image dimension accepted by vision models without downscaling
IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


def is_image_mime_type(mime_type: str) -> bool:
    return (mime_type or "").lower() in IMAGE_MIME_TYPES


def get_file_size_mb(document: bytes) -> float:
    """Size of a document payload in megabytes."""
    return len(document) / (1024 * 1024)


def get_page_count(document: bytes) -> int:
    """
    Get page count of a PDF.

    Uses pypdf rather than PyMuPDF, which can hang on some malformed PDFs.
    Returns 0 when the document cannot be read.
    """
    try:
        reader = PdfReader(io.BytesIO(document))
        return len(reader.pages)
    except Exception as e:
        logger.warning(f"Could not read page count: {e}")
        return 0


def split_into_single_pages(document: bytes) -> List[bytes]:
    """
    Isolate every physical page into its own single-page PDF.

    Args:
        document: Raw PDF bytes

    Returns:
        One PDF payload per page, in page order

    Raises:
        DocumentLoadError: if the document cannot be parsed into pages
    """
    try:
        reader = PdfReader(io.BytesIO(document))
        if reader.is_encrypted:
            # Empty user password is common on "protected" but openable PDFs
            reader.decrypt("")
        pages = list(reader.pages)
    except Exception as e:
        raise DocumentLoadError(f"Could not read PDF pages: {e}") from e

    if not pages:
        raise DocumentLoadError("PDF has no pages")

    sub_documents = []
    for page in pages:
        writer = PdfWriter()
        writer.add_page(page)
        buffer = io.BytesIO()
        writer.write(buffer)
        sub_documents.append(buffer.getvalue())

    logger.info(f"Split document into {len(sub_documents)} single-page PDFs")
    return sub_documents


def prepare_image(document: bytes, mime_type: str, max_size: int = IMAGE_MAX_SIZE) -> Tuple[bytes, str]:
    """
    Resize an uploaded image if needed and re-encode it as JPEG.

    Args:
        document: Raw image bytes
        mime_type: Declared MIME type of the upload
        max_size: Maximum dimension (width or height)

    Returns:
        Tuple of (image_bytes, media_type)

    Raises:
        DocumentLoadError: if the bytes are not a readable image
    """
    try:
        img = Image.open(io.BytesIO(document))
        img.load()
    except Exception as e:
        raise DocumentLoadError(f"Could not read {mime_type} image: {e}") from e

    if img.width > max_size or img.height > max_size:
        ratio = min(max_size / img.width, max_size / img.height)
        new_size = (int(img.width * ratio), int(img.height * ratio))
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    # JPEG has no alpha channel
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue(), "image/jpeg"

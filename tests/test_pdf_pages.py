"""
Tests for page splitting and image preparation.
"""

import io

import pytest
import sys
from pathlib import Path

from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.errors import DocumentLoadError
from boq_tools.pdf_pages import get_page_count, is_image_mime_type, prepare_image, split_into_single_pages
from conftest import make_image, make_pdf


class TestSplitIntoSinglePages:
    """Tests for single-page isolation."""

    def test_one_document_per_page(self):
        pages = split_into_single_pages(make_pdf(["", "", ""]))

        assert len(pages) == 3
        assert all(get_page_count(page) == 1 for page in pages)

    def test_unreadable(self):
        with pytest.raises(DocumentLoadError):
            split_into_single_pages(b"%PDF-broken")

    def test_page_count_of_garbage(self):
        assert get_page_count(b"garbage") == 0


class TestPrepareImage:
    """Tests for vision image preparation."""

    def test_large_image_downscaled(self):
        data, media_type = prepare_image(make_image(size=(3136, 1000)), "image/png")

        assert media_type == "image/jpeg"
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == "JPEG"
            assert img.size == (1568, 500)

    def test_small_image_kept(self):
        data, _ = prepare_image(make_image(size=(800, 600)), "image/png")
        with Image.open(io.BytesIO(data)) as img:
            assert img.size == (800, 600)

    def test_alpha_channel_flattened(self):
        buffer = io.BytesIO()
        Image.new("RGBA", (10, 10)).save(buffer, format="PNG")
        data, _ = prepare_image(buffer.getvalue(), "image/png")
        with Image.open(io.BytesIO(data)) as img:
            assert img.mode == "RGB"

    def test_unreadable_image(self):
        with pytest.raises(DocumentLoadError):
            prepare_image(b"not an image", "image/png")

    def test_mime_types(self):
        assert is_image_mime_type("image/PNG")
        assert not is_image_mime_type("application/pdf")
        assert not is_image_mime_type(None)

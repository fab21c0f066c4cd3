"""
Tests for the Text-Layer Probe.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.text_layer import (
    PAGE_BREAK_TEMPLATE,
    probe_text_layer,
    split_page_chunks,
)
from conftest import make_pdf, page_text


class TestProbeTextLayer:
    """Tests for text layer detection."""

    def test_text_pdf_has_text_layer(self):
        """A digital PDF over 500 characters is text-bearing."""
        document = make_pdf([
            page_text("01 DEMOLICIONES", "1.1 Demolicion de tabique m2 10,50"),
            page_text("1.2 Retirada de puerta ud 2,00"),
        ])
        probe = probe_text_layer(document)

        assert probe.has_text_layer
        assert len(probe.page_chunks) == 2
        assert probe.raw_text_length > 500

    def test_chunks_keep_physical_page_numbers(self):
        document = make_pdf([
            page_text("Pagina uno con partidas"),
            "",
            page_text("Pagina tres con partidas"),
        ])
        probe = probe_text_layer(document)

        assert [chunk.page_number for chunk in probe.page_chunks] == [1, 3]
        assert "Pagina tres" in probe.page_chunks[1].text

    def test_scanned_pdf_has_no_text_layer(self):
        probe = probe_text_layer(make_pdf(["", ""]))

        assert not probe.has_text_layer
        assert probe.page_chunks == []

    def test_short_text_is_not_a_text_layer(self):
        """500 characters or fewer falls back to vision."""
        probe = probe_text_layer(make_pdf(["Solo un titulo"]))

        assert not probe.has_text_layer

    def test_unreadable_bytes_are_soft_failure(self):
        """Garbage input means no text layer, never an exception."""
        probe = probe_text_layer(b"definitely not a pdf")

        assert not probe.has_text_layer
        assert probe.page_chunks == []


class TestSplitPageChunks:
    """Tests for splitting raw text along page-break markers."""

    def _marker(self, page):
        return f"\n{PAGE_BREAK_TEMPLATE.format(page=page)}\n"

    def test_noise_chunks_dropped(self):
        raw = "A" * 80 + self._marker(1) + "pie" + self._marker(2) + "B" * 60 + self._marker(3)
        chunks = split_page_chunks(raw)

        assert [c.page_number for c in chunks] == [1, 3]

    def test_text_without_markers_is_one_chunk(self):
        chunks = split_page_chunks("C" * 120)

        assert len(chunks) == 1
        assert chunks[0].page_number == 1

"""
Text-Layer Probe

Decides whether a PDF carries a usable machine-readable text layer and, if
so, returns its text split into page-aligned chunks. Digitally authored PDFs
are far cheaper and more accurate to process as text than as images; scanned
PDFs have no usable text layer and must go through vision.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

import fitz  # PyMuPDF

from .models import PageChunk

logger = logging.getLogger(__name__)


TEXT_LAYER_MIN_CHARS = 500
MIN_CHUNK_CHARS = 50

PAGE_BREAK_TEMPLATE = "----------------Page ({page}) Break----------------"
PAGE_BREAK_RE = re.compile(r"----------------Page \((\d+)\) Break----------------", re.IGNORECASE)


@dataclass
class TextLayerProbe:
    """Result of probing a document for a text layer."""
    has_text_layer: bool
    page_chunks: List[PageChunk] = field(default_factory=list)
    raw_text_length: int = 0

    @property
    def chunk_texts(self) -> List[str]:
        return [chunk.text for chunk in self.page_chunks]


def extract_raw_text(document: bytes) -> str:
    """
    Extract the raw text layer, with a page-break marker after every page.

    Raises whatever PyMuPDF raises for unreadable input; callers decide
    whether that is fatal.
    """
    parts = []
    with fitz.open(stream=document, filetype="pdf") as doc:
        if doc.needs_pass:
            raise ValueError("Encrypted PDF")
        for index, page in enumerate(doc):
            parts.append(page.get_text())
            parts.append(f"\n{PAGE_BREAK_TEMPLATE.format(page=index + 1)}\n")
    return "".join(parts)


def split_page_chunks(raw_text: str, min_chunk_chars: int = MIN_CHUNK_CHARS) -> List[PageChunk]:
    """
    Split raw text along page-break markers.

    Chunks shorter than min_chunk_chars (blank or junk pages) are dropped.
    Each chunk keeps the physical page number it came from.
    """
    chunks = []
    position = 0
    page_number = 1
    for marker in PAGE_BREAK_RE.finditer(raw_text):
        text = raw_text[position:marker.start()].strip()
        if len(text) >= min_chunk_chars:
            chunks.append(PageChunk(page_number=int(marker.group(1)), text=text))
        position = marker.end()
        page_number = int(marker.group(1)) + 1

    # Text after the last marker (or the whole text if there were none)
    tail = raw_text[position:].strip()
    if len(tail) >= min_chunk_chars:
        chunks.append(PageChunk(page_number=page_number, text=tail))

    return chunks


def probe_text_layer(
    document: bytes,
    min_text_chars: int = TEXT_LAYER_MIN_CHARS,
    min_chunk_chars: int = MIN_CHUNK_CHARS
) -> TextLayerProbe:
    """
    Probe a PDF for a text layer.

    This is a soft gate: any extraction failure means "no text layer",
    never an error.

    Args:
        document: Raw PDF bytes
        min_text_chars: Raw text must be longer than this to count as text-bearing
        min_chunk_chars: Chunks shorter than this are discarded as noise pages

    Returns:
        TextLayerProbe with has_text_layer and the page-aligned chunks
    """
    try:
        raw_text = extract_raw_text(document)
    except Exception as e:
        logger.warning(f"Text layer extraction failed, treating as scanned: {e}")
        return TextLayerProbe(has_text_layer=False)

    # Markers are ours, not the document's
    content_length = len(PAGE_BREAK_RE.sub("", raw_text).strip())

    if content_length <= min_text_chars:
        logger.info(f"No usable text layer ({content_length} chars)")
        return TextLayerProbe(has_text_layer=False, raw_text_length=content_length)

    chunks = split_page_chunks(raw_text, min_chunk_chars)
    logger.info(f"Found text layer ({content_length} chars, {len(chunks)} usable page chunks)")

    return TextLayerProbe(
        has_text_layer=True,
        page_chunks=chunks,
        raw_text_length=content_length
    )

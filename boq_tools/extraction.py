"""
Extraction Orchestrator

Chooses between the text path (document has a usable text layer) and the
vision path (scanned PDF or image upload), drives it, and assembles a flat,
ordered list of MeasurementItems tagged with page/chapter/section.

Both paths are strictly sequential: every prompt carries the chapter/section
left by the previous chunk or page, so heading context can only flow forward
if the previous step has finished.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .config import ExtractionConfig
from .errors import DocumentLoadError
from .generation_providers import GenerationClient, GenerationRequest, MediaPart, PDF_MIME_TYPE
from .models import ExtractionContext, ItemKind, MeasurementItem, PageChunk
from .pdf_pages import get_page_count, is_image_mime_type, prepare_image, split_into_single_pages
from .progress import ProgressSink, notify_message
from .prompts import text_chunk_prompt, vision_page_prompt
from .schemas import ExtractedItemOutput, PageExtractionOutput
from .text_layer import TextLayerProbe, probe_text_layer

logger = logging.getLogger(__name__)


class ExtractionMethod(Enum):
    """Which extraction path produced the items."""
    TEXT = "text"
    VISION = "vision"


@dataclass
class ExtractionResult:
    """Items extracted from one document."""
    items: List[MeasurementItem] = field(default_factory=list)
    page_count: int = 0
    method: ExtractionMethod = ExtractionMethod.TEXT
    failed_units: int = 0


def select_extraction_path(probe: TextLayerProbe, mime_type: str = PDF_MIME_TYPE) -> ExtractionMethod:
    """Text path only for PDFs with a usable text layer; everything else goes to vision."""
    if is_image_mime_type(mime_type):
        return ExtractionMethod.VISION
    if probe.has_text_layer and probe.page_chunks:
        return ExtractionMethod.TEXT
    return ExtractionMethod.VISION


def parse_item_kind(value: Optional[str]) -> Optional[ItemKind]:
    if not value:
        return None
    try:
        return ItemKind(value.strip().upper())
    except ValueError:
        return None


class ExtractionOrchestrator:
    """
    Extracts MeasurementItems from a bill-of-quantities document.

    Args:
        client: Generation client used for every chunk/page call
        config: Extraction thresholds
        progress: Optional progress sink
    """

    def __init__(
        self,
        client: GenerationClient,
        config: Optional[ExtractionConfig] = None,
        progress: Optional[ProgressSink] = None
    ):
        self.client = client
        self.config = config or ExtractionConfig()
        self.progress = progress

    def probe(self, document: bytes, mime_type: str = PDF_MIME_TYPE) -> TextLayerProbe:
        """Probe for a text layer. Images never have one."""
        if is_image_mime_type(mime_type):
            return TextLayerProbe(has_text_layer=False)
        return probe_text_layer(
            document,
            min_text_chars=self.config.text_layer_min_chars,
            min_chunk_chars=self.config.min_chunk_chars
        )

    def extract(
        self,
        document: bytes,
        mime_type: str = PDF_MIME_TYPE,
        subscriber_key: Optional[str] = None,
        probe: Optional[TextLayerProbe] = None
    ) -> ExtractionResult:
        """
        Extract all measurement items from a document.

        Args:
            document: Raw PDF or image bytes
            mime_type: MIME type of the document
            subscriber_key: Optional key for progress events
            probe: Result of an earlier probe, to avoid probing twice

        Returns:
            ExtractionResult with items in document order

        Raises:
            DocumentLoadError: if the vision path is selected and no pages can be read
        """
        if probe is None:
            probe = self.probe(document, mime_type)

        if select_extraction_path(probe, mime_type) == ExtractionMethod.TEXT:
            return self.extract_text(document, probe, subscriber_key)
        return self.extract_vision(document, mime_type, subscriber_key)

    def extract_text(
        self,
        document: bytes,
        probe: TextLayerProbe,
        subscriber_key: Optional[str] = None
    ) -> ExtractionResult:
        """Text path over the chunks of an earlier probe."""
        page_count = get_page_count(document) or len(probe.page_chunks)
        notify_message(
            self.progress, subscriber_key,
            f"Text layer detected. Analyzing {len(probe.page_chunks)} blocks..."
        )
        items, failed = self.run_text_path(probe.page_chunks, subscriber_key)
        return self._result(items, page_count, ExtractionMethod.TEXT, failed)

    def extract_vision(
        self,
        document: bytes,
        mime_type: str = PDF_MIME_TYPE,
        subscriber_key: Optional[str] = None
    ) -> ExtractionResult:
        """
        Vision path, one call per physical page.

        Raises:
            DocumentLoadError: if the document cannot be split into pages
        """
        pages = self.load_vision_pages(document, mime_type)
        notify_message(
            self.progress, subscriber_key,
            f"No text layer. Analyzing {len(pages)} pages with vision..."
        )
        items, failed = self.run_vision_path(pages, subscriber_key)
        return self._result(items, len(pages), ExtractionMethod.VISION, failed)

    def _result(
        self,
        items: List[MeasurementItem],
        page_count: int,
        method: ExtractionMethod,
        failed: int
    ) -> ExtractionResult:
        logger.info(
            f"Extracted {len(items)} items from {page_count} pages via {method.value} path"
            + (f" ({failed} units failed)" if failed else "")
        )
        return ExtractionResult(items=items, page_count=page_count, method=method, failed_units=failed)

    def load_vision_pages(self, document: bytes, mime_type: str) -> List[MediaPart]:
        """Single-page media parts for the vision path."""
        if is_image_mime_type(mime_type):
            image, media_type = prepare_image(document, mime_type, self.config.image_max_size)
            return [MediaPart(data=image, mime_type=media_type, filename="page_1.jpg")]

        pages = split_into_single_pages(document)
        return [
            MediaPart(data=page, mime_type=PDF_MIME_TYPE, filename=f"page_{index}.pdf")
            for index, page in enumerate(pages, start=1)
        ]

    def run_text_path(
        self,
        chunks: List[PageChunk],
        subscriber_key: Optional[str] = None
    ) -> Tuple[List[MeasurementItem], int]:
        """
        Extract items from page-aligned text chunks, one chunk at a time.

        Returns:
            Tuple of (items, failed_chunk_count)
        """
        items: List[MeasurementItem] = []
        context = ExtractionContext()
        failed = 0

        for index, chunk in enumerate(chunks, start=1):
            request = GenerationRequest(text=text_chunk_prompt(chunk.text, context))
            try:
                output = self.client.generate(request, PageExtractionOutput)
                context = merge_page_output(output, context, chunk.page_number, items)
            except Exception as e:
                failed += 1
                logger.error(f"Block {index}/{len(chunks)} (page {chunk.page_number}) failed: {e}")

            notify_message(self.progress, subscriber_key, f"Analyzing block {index} of {len(chunks)}")

        return resequence(items), failed

    def run_vision_path(
        self,
        pages: List[MediaPart],
        subscriber_key: Optional[str] = None
    ) -> Tuple[List[MeasurementItem], int]:
        """
        Extract items page by page from single-page documents or images.

        Returns:
            Tuple of (items, failed_page_count)
        """
        if not pages:
            raise DocumentLoadError("No pages to analyze")

        items: List[MeasurementItem] = []
        context = ExtractionContext()
        failed = 0

        for index, page in enumerate(pages):
            page_number = index + 1
            request = GenerationRequest(text=vision_page_prompt(context), media=page)
            try:
                output = self.client.generate(request, PageExtractionOutput)
                context = merge_page_output(output, context, page_number, items)
            except Exception as e:
                failed += 1
                logger.error(f"Page {page_number}/{len(pages)} failed: {e}")

            notify_message(self.progress, subscriber_key, f"Analyzing page {page_number} of {len(pages)}")

        return resequence(items), failed


def merge_page_output(
    output: PageExtractionOutput,
    context: ExtractionContext,
    page_number: Optional[int],
    items: List[MeasurementItem]
) -> ExtractionContext:
    """
    Merge one chunk/page result into items and return the updated context.

    A continuation_description completes the last item already in items, so
    a description split across a chunk boundary stays one item. items is
    only appended to once the whole output has been converted.
    """
    new_items = []
    context = context.absorb(output.detected_chapter, output.detected_section)

    for raw in output.items:
        item, context = to_measurement_item(raw, context, page_number)
        if item is not None:
            new_items.append(item)

    continuation = (output.continuation_description or "").strip()
    if continuation:
        if items:
            items[-1].description = f"{items[-1].description.rstrip()} {continuation}"
        else:
            logger.debug(f"Continuation text on page {page_number} with no previous item, ignored")

    items.extend(new_items)
    logger.debug(
        f"Page {page_number}: {len(new_items)} items "
        f"(context: {context.current_chapter} / {context.current_section})"
    )
    return context


def to_measurement_item(
    raw: ExtractedItemOutput,
    context: ExtractionContext,
    page_number: Optional[int]
) -> Tuple[Optional[MeasurementItem], ExtractionContext]:
    """Convert one model item, returning (item or None, updated context)."""
    description = (raw.description or "").strip()
    if not description:
        return None, context

    # A long enough heading on the item also moves the running context
    context = context.absorb(raw.chapter, raw.section)

    # The item keeps its own heading whatever its length; otherwise it inherits
    item = MeasurementItem(
        order=raw.order,
        code=(raw.code or "").strip() or None,
        description=description,
        unit=raw.unit,
        quantity=raw.quantity,
        kind=parse_item_kind(raw.type),
        page=page_number if page_number is not None else raw.page,
        chapter=(raw.chapter or "").strip() or context.current_chapter,
        section=(raw.section or "").strip() or context.current_section
    )
    return item, context


def resequence(items: List[MeasurementItem]) -> List[MeasurementItem]:
    """Renumber order to the global position in the document."""
    for position, item in enumerate(items, start=1):
        item.order = position
    return items

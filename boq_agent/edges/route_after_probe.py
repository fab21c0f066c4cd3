"""
Extraction Path Router
Conditional routing between the text and vision extraction paths.
"""

import logging
from typing import Literal

from boq_tools.extraction import ExtractionMethod, select_extraction_path
from boq_tools.text_layer import TextLayerProbe

from ..state import PipelineState

logger = logging.getLogger(__name__)


def route_after_probe(state: PipelineState) -> Literal["extract_text", "extract_vision"]:
    """
    Route after the text-layer probe.

    Decision logic:
    - PDF with a usable text layer: extract_text (vision is never called)
    - Scanned PDF or image upload: extract_vision

    Args:
        state: Current workflow state

    Returns:
        Next node: "extract_text" or "extract_vision"
    """
    probe = state.get("probe") or TextLayerProbe(has_text_layer=False)
    method = select_extraction_path(probe, state.get("mime_type") or "application/pdf")

    if method == ExtractionMethod.TEXT:
        logger.info(f"Routing to text path ({len(probe.page_chunks)} chunks)")
        return "extract_text"

    logger.info("Routing to vision path")
    return "extract_vision"

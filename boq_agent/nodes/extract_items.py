"""
Node 2: Item Extraction
Text path for documents with a text layer, vision path for everything else.
"""

import logging
from typing import Dict, Any

from boq_tools.extraction import ExtractionResult

from ..services import PipelineServices
from ..state import PipelineState

logger = logging.getLogger(__name__)


def _to_update(result: ExtractionResult) -> Dict[str, Any]:
    return {
        "items": result.items,
        "page_count": result.page_count,
        "failed_units": result.failed_units,
        "extraction_method": result.method.value
    }


def extract_text_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """
    Extract items chunk by chunk from the text layer.

    Args:
        state: Current workflow state (probe must be set)
        services: Pipeline collaborators

    Returns:
        State updates with items, page_count, failed_units, extraction_method
    """
    result = services.extractor().extract_text(
        state["document"],
        state["probe"],
        state.get("subscriber_key")
    )
    return _to_update(result)


def extract_vision_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """
    Extract items page by page with vision calls.

    DocumentLoadError propagates: without pages there is nothing to return.
    """
    result = services.extractor().extract_vision(
        state["document"],
        state.get("mime_type") or "application/pdf",
        state.get("subscriber_key")
    )
    return _to_update(result)

"""
Node 1: Text-Layer Probe
Checks whether the document carries a usable text layer.
"""

import logging
from typing import Dict, Any

from ..services import PipelineServices
from ..state import PipelineState

logger = logging.getLogger(__name__)


def probe_document_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """
    Probe the document for a text layer.

    Never fails: an unreadable text layer just means the vision path.

    Args:
        state: Current workflow state
        services: Pipeline collaborators

    Returns:
        State updates with probe
    """
    probe = services.extractor().probe(state["document"], state.get("mime_type") or "application/pdf")
    logger.info(
        f"Probe: text layer {'found' if probe.has_text_layer else 'not found'} "
        f"({probe.raw_text_length} chars, {len(probe.page_chunks)} chunks)"
    )
    return {"probe": probe}

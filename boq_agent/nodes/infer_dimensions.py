"""
Node 3: Dimensional Inference
Rewrites generic-unit items ("ud", "pa") into physical units.
"""

import logging
from typing import Dict, Any

from ..services import PipelineServices
from ..state import PipelineState

logger = logging.getLogger(__name__)


def infer_dimensions_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """Refine extracted items in place. Per-item failures leave the item unchanged."""
    items = state.get("items") or []
    if not items:
        logger.warning("No items to refine")
        return {"items": []}

    return {"items": services.interceptor().refine(items, state.get("subscriber_key"))}

"""
Node 4: Price Matching
Prices every item against the catalog, with fallbacks.
"""

import logging
from typing import Dict, Any

from boq_tools.progress import notify_message

from ..services import PipelineServices
from ..state import PipelineState

logger = logging.getLogger(__name__)


def price_items_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """
    Price extracted items.

    Args:
        state: Current workflow state
        services: Pipeline collaborators

    Returns:
        State updates with priced_items
    """
    items = state.get("items") or []
    subscriber_key = state.get("subscriber_key")

    notify_message(
        services.progress, subscriber_key,
        f"Extraction complete. {len(items)} items found. Assigning prices..."
    )

    priced_items = services.pricing_engine().price(
        items,
        use_verification=state.get("use_verification", True),
        subscriber_key=subscriber_key
    )
    return {"priced_items": priced_items}

"""
Node 5: Budget Summary
Rolls priced items into totals and guesses the project type.
"""

import logging
from datetime import datetime
from typing import Dict, Any

from boq_tools.budget_summary import detect_project_type, summarize
from boq_tools.progress import ProgressEventType, notify

from ..services import PipelineServices
from ..state import PipelineState

logger = logging.getLogger(__name__)


def summarize_budget_node(state: PipelineState, services: PipelineServices) -> Dict[str, Any]:
    """
    Compute the budget summary and emit the final progress event.

    Returns:
        State updates with summary, project_type_guess, end_time
    """
    priced_items = state.get("priced_items") or []

    summary = summarize(priced_items, services.config.margins)
    project_type = detect_project_type(priced_items)

    logger.info(
        f"Budget complete: {summary.matched_items}/{summary.total_items} matched, "
        f"total {summary.total:,.2f} EUR ({project_type})"
    )

    notify(
        services.progress,
        state.get("subscriber_key"),
        ProgressEventType.COMPLETE,
        {"item_count": summary.total_items, "total": summary.total}
    )

    return {
        "summary": summary,
        "project_type_guess": project_type,
        "end_time": datetime.now().isoformat()
    }

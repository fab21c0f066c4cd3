"""
Workflow State Schema for the Measurement Pricing Agent
Defines the state that flows through the LangGraph workflow.
"""

from datetime import datetime
from typing import TypedDict, List, Optional, Dict, Any

from boq_tools.models import BudgetSummary, MeasurementItem, PricedMeasurementItem
from boq_tools.text_layer import TextLayerProbe


class PipelineState(TypedDict):
    """
    State schema for the measurement pricing workflow.

    One state per document invocation; nothing is shared between runs.
    """

    # ========================
    # Input
    # ========================
    document: bytes                    # Raw PDF or image bytes
    mime_type: str                     # MIME type of the document
    subscriber_key: Optional[str]      # Progress subscriber (e.g. lead id)
    use_verification: bool             # Let the model pick among catalog candidates

    # ========================
    # Probe
    # ========================
    probe: Optional[TextLayerProbe]    # From probe_document node

    # ========================
    # Extraction
    # ========================
    extraction_method: Optional[str]   # 'text' or 'vision'
    page_count: int                    # Pages in the document
    failed_units: int                  # Chunks/pages whose extraction failed
    items: Optional[List[MeasurementItem]]  # Extracted, then refined in place

    # ========================
    # Pricing
    # ========================
    priced_items: Optional[List[PricedMeasurementItem]]
    summary: Optional[BudgetSummary]
    project_type_guess: Optional[str]

    # ========================
    # Timing
    # ========================
    start_time: Optional[str]          # ISO timestamp when run started
    end_time: Optional[str]            # ISO timestamp when run completed


def create_initial_state(
    document: bytes,
    mime_type: str = "application/pdf",
    subscriber_key: Optional[str] = None,
    use_verification: bool = True,
    items: Optional[List[MeasurementItem]] = None
) -> PipelineState:
    """
    Create initial state for a new workflow run.

    Args:
        document: Raw document bytes (empty when pricing pre-extracted items)
        mime_type: MIME type of the document
        subscriber_key: Optional key for progress events
        use_verification: Enable model verification of catalog candidates
        items: Pre-extracted items, skipping extraction

    Returns:
        Initialized PipelineState
    """
    return PipelineState(
        # Input
        document=document,
        mime_type=mime_type,
        subscriber_key=subscriber_key,
        use_verification=use_verification,

        # Probe
        probe=None,

        # Extraction
        extraction_method=None,
        page_count=0,
        failed_units=0,
        items=items,

        # Pricing
        priced_items=None,
        summary=None,
        project_type_guess=None,

        # Timing
        start_time=datetime.now().isoformat(),
        end_time=None
    )


def get_state_summary(state: PipelineState) -> Dict[str, Any]:
    """
    Get a summary of current state for logging/debugging.
    """
    summary = state.get("summary")
    return {
        "extraction_method": state.get("extraction_method"),
        "page_count": state.get("page_count", 0),
        "items": len(state.get("items") or []),
        "priced_items": len(state.get("priced_items") or []),
        "failed_units": state.get("failed_units", 0),
        "total": summary.total if summary else None
    }

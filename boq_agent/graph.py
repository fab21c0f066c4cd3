"""
LangGraph Workflow Definition
Wires together nodes and edges for the measurement pricing agent.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Iterator, List, Optional, Tuple

from langgraph.graph import StateGraph, END

from boq_tools.errors import PipelineError
from boq_tools.models import BudgetSummary, MeasurementItem, PricedMeasurementItem
from boq_tools.progress import ProgressEventType, notify
from boq_tools.report import result_to_dict

from .edges import route_after_probe
from .nodes import (
    probe_document_node,
    extract_text_node,
    extract_vision_node,
    infer_dimensions_node,
    price_items_node,
    summarize_budget_node,
)
from .services import PipelineServices, build_services
from .state import PipelineState, create_initial_state

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Priced line items of one document plus their budget summary."""
    items: List[PricedMeasurementItem]
    summary: BudgetSummary
    project_type_guess: str
    page_count: int = 0
    extraction_method: Optional[str] = None
    failed_units: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return result_to_dict(
            self.items,
            self.summary,
            self.project_type_guess,
            extra={
                "page_count": self.page_count,
                "extraction_method": self.extraction_method,
                "failed_units": self.failed_units,
                **self.metadata
            }
        )


def create_pipeline_graph(services: PipelineServices, entry_point: str = "probe_document") -> StateGraph:
    """
    Create the LangGraph workflow for a measurement document.

    Graph structure:
    ```
    probe_document
        │
        ▼
    [route_after_probe]
        │ text          │ vision
        ▼               ▼
    extract_text    extract_vision
        │               │
        └───────┬───────┘
                ▼
        infer_dimensions
                │
                ▼
          price_items
                │
                ▼
        summarize_budget
                │
                ▼
               END
    ```

    Args:
        services: Collaborators bound into every node
        entry_point: "probe_document" for documents; "infer_dimensions" or
            "price_items" for items that were extracted elsewhere

    Returns:
        Compiled StateGraph
    """
    workflow = StateGraph(PipelineState)

    # ========================
    # Add Nodes
    # ========================

    # Nodes take the services through closures
    workflow.add_node("probe_document", lambda state: probe_document_node(state, services))
    workflow.add_node("extract_text", lambda state: extract_text_node(state, services))
    workflow.add_node("extract_vision", lambda state: extract_vision_node(state, services))
    workflow.add_node("infer_dimensions", lambda state: infer_dimensions_node(state, services))
    workflow.add_node("price_items", lambda state: price_items_node(state, services))
    workflow.add_node("summarize_budget", lambda state: summarize_budget_node(state, services))

    # ========================
    # Add Edges
    # ========================

    workflow.set_entry_point(entry_point)

    workflow.add_conditional_edges(
        "probe_document",
        route_after_probe,
        {
            "extract_text": "extract_text",
            "extract_vision": "extract_vision"
        }
    )

    workflow.add_edge("extract_text", "infer_dimensions")
    workflow.add_edge("extract_vision", "infer_dimensions")
    workflow.add_edge("infer_dimensions", "price_items")
    workflow.add_edge("price_items", "summarize_budget")
    workflow.add_edge("summarize_budget", END)

    return workflow.compile()


def _to_result(final_state: Dict[str, Any]) -> PipelineResult:
    return PipelineResult(
        items=final_state.get("priced_items") or [],
        summary=final_state["summary"],
        project_type_guess=final_state.get("project_type_guess") or "general",
        page_count=final_state.get("page_count", 0),
        extraction_method=final_state.get("extraction_method"),
        failed_units=final_state.get("failed_units", 0)
    )


def _invoke(graph, initial_state: PipelineState, services: PipelineServices) -> PipelineResult:
    try:
        final_state = graph.invoke(initial_state)
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        notify(services.progress, initial_state.get("subscriber_key"), ProgressEventType.ERROR, {"message": str(e)})
        raise

    logger.info("Pipeline completed successfully")
    return _to_result(final_state)


def run_pipeline(
    document: bytes,
    mime_type: str = "application/pdf",
    subscriber_key: Optional[str] = None,
    services: Optional[PipelineServices] = None,
    use_verification: bool = True
) -> PipelineResult:
    """
    Process a measurement document end to end.

    Args:
        document: Raw PDF or image bytes
        mime_type: MIME type of the document
        subscriber_key: Optional key for progress events
        services: Pipeline collaborators (built from config if None)
        use_verification: Let the model verify catalog candidates

    Returns:
        PipelineResult with priced items, budget summary and project type guess

    Raises:
        DocumentLoadError: if no document content could be obtained at all
    """
    services = services or build_services()
    graph = create_pipeline_graph(services)

    initial_state = create_initial_state(
        document=document,
        mime_type=mime_type,
        subscriber_key=subscriber_key,
        use_verification=use_verification
    )

    logger.info(f"Starting pipeline: {len(document) / 1024:.0f} KB {mime_type}")
    return _invoke(graph, initial_state, services)


def stream_pipeline(
    document: bytes,
    mime_type: str = "application/pdf",
    subscriber_key: Optional[str] = None,
    services: Optional[PipelineServices] = None,
    use_verification: bool = True
) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """
    Stream the pipeline, yielding progress updates after each node.

    Yields:
        Tuple of (node_name, state_update_dict) after each node executes
    """
    services = services or build_services()
    graph = create_pipeline_graph(services)

    initial_state = create_initial_state(
        document=document,
        mime_type=mime_type,
        subscriber_key=subscriber_key,
        use_verification=use_verification
    )

    logger.info(f"Starting pipeline (streaming): {len(document) / 1024:.0f} KB {mime_type}")

    try:
        # Stream with "updates" mode to get state updates after each node
        for update in graph.stream(initial_state, stream_mode="updates"):
            if update:
                node_name = list(update.keys())[0]
                yield (node_name, update[node_name])

        logger.info("Pipeline streaming completed successfully")

    except PipelineError as e:
        logger.error(f"Pipeline streaming failed: {e}")
        notify(services.progress, subscriber_key, ProgressEventType.ERROR, {"message": str(e)})
        raise


def price_extracted_items(
    items: List[MeasurementItem],
    services: Optional[PipelineServices] = None,
    subscriber_key: Optional[str] = None,
    use_verification: bool = True,
    refine_dimensions: bool = False
) -> PipelineResult:
    """
    Price items that were extracted elsewhere (e.g. by a background job).

    Args:
        items: Extracted items
        services: Pipeline collaborators (built from config if None)
        subscriber_key: Optional key for progress events
        use_verification: Let the model verify catalog candidates
        refine_dimensions: Run dimensional inference before pricing

    Returns:
        PipelineResult, same contract as run_pipeline
    """
    services = services or build_services()
    entry_point = "infer_dimensions" if refine_dimensions else "price_items"
    graph = create_pipeline_graph(services, entry_point=entry_point)

    initial_state = create_initial_state(
        document=b"",
        subscriber_key=subscriber_key,
        use_verification=use_verification,
        items=items
    )

    logger.info(f"Pricing {len(items)} pre-extracted items")
    return _invoke(graph, initial_state, services)

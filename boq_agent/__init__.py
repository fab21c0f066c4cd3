# Measurement Pricing Agent
from .graph import (
    create_pipeline_graph,
    run_pipeline,
    stream_pipeline,
    price_extracted_items,
    PipelineResult,
)
from .services import PipelineServices, build_services
from .state import PipelineState, create_initial_state

__all__ = [
    "create_pipeline_graph",
    "run_pipeline",
    "stream_pipeline",
    "price_extracted_items",
    "PipelineResult",
    "PipelineServices",
    "build_services",
    "PipelineState",
    "create_initial_state",
]

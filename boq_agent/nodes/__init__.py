# Workflow nodes
from .probe_document import probe_document_node
from .extract_items import extract_text_node, extract_vision_node
from .infer_dimensions import infer_dimensions_node
from .price_items import price_items_node
from .summarize_budget import summarize_budget_node

__all__ = [
    "probe_document_node",
    "extract_text_node",
    "extract_vision_node",
    "infer_dimensions_node",
    "price_items_node",
    "summarize_budget_node",
]

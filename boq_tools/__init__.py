# Bill-of-quantities extraction and pricing tools
from .budget_summary import summarize, detect_project_type
from .catalog import CatalogSearchPort, CsvCatalog
from .config import PipelineConfig, MarginConfig, load_config
from .dimensional_inference import DimensionalInferenceInterceptor, resolve_inferred_measure
from .errors import (
    PipelineError,
    DocumentLoadError,
    GenerationError,
    UnsupportedCapabilityError,
    ConfigError,
    CatalogError,
)
from .extraction import ExtractionOrchestrator, ExtractionResult, ExtractionMethod
from .generation_providers import GenerationClient, GenerationRequest, MediaPart, get_provider
from .models import (
    MeasurementItem,
    PricedMeasurementItem,
    CatalogEntry,
    MatchedEntry,
    BudgetSummary,
    ExtractionContext,
    ItemKind,
    MatchKind,
)
from .numbers import parse_decimal
from .pricing import PricingEngine, make_batches
from .text_layer import probe_text_layer, TextLayerProbe

__all__ = [
    "summarize",
    "detect_project_type",
    "CatalogSearchPort",
    "CsvCatalog",
    "PipelineConfig",
    "MarginConfig",
    "load_config",
    "DimensionalInferenceInterceptor",
    "resolve_inferred_measure",
    "PipelineError",
    "DocumentLoadError",
    "GenerationError",
    "UnsupportedCapabilityError",
    "ConfigError",
    "CatalogError",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "ExtractionMethod",
    "GenerationClient",
    "GenerationRequest",
    "MediaPart",
    "get_provider",
    "MeasurementItem",
    "PricedMeasurementItem",
    "CatalogEntry",
    "MatchedEntry",
    "BudgetSummary",
    "ExtractionContext",
    "ItemKind",
    "MatchKind",
    "parse_decimal",
    "PricingEngine",
    "make_batches",
    "probe_text_layer",
    "TextLayerProbe",
]

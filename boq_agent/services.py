"""
Collaborators shared by the workflow nodes.

The graph is built per PipelineServices instance; nodes receive it through
closures instead of reading clients from the state.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from boq_tools.catalog import SAMPLE_CATALOG_PATH, CatalogSearchPort, CsvCatalog
from boq_tools.config import PipelineConfig, load_config
from boq_tools.dimensional_inference import DimensionalInferenceInterceptor
from boq_tools.extraction import ExtractionOrchestrator
from boq_tools.generation_providers import GenerationClient, create_client_from_config
from boq_tools.pricing import PricingEngine
from boq_tools.progress import ProgressSink, NullProgressSink

logger = logging.getLogger(__name__)


DEFAULT_CATALOG_PATH = SAMPLE_CATALOG_PATH


@dataclass
class PipelineServices:
    """Generation client, catalog, progress sink and configuration for one pipeline."""
    client: GenerationClient
    catalog: CatalogSearchPort
    config: PipelineConfig = field(default_factory=PipelineConfig)
    progress: ProgressSink = field(default_factory=NullProgressSink)

    def extractor(self) -> ExtractionOrchestrator:
        return ExtractionOrchestrator(self.client, self.config.extraction, self.progress)

    def interceptor(self) -> DimensionalInferenceInterceptor:
        return DimensionalInferenceInterceptor(self.client, self.config.extraction, self.progress)

    def pricing_engine(self) -> PricingEngine:
        return PricingEngine(self.catalog, self.client, self.config.pricing, self.progress)


def build_services(
    config: Optional[PipelineConfig] = None,
    catalog_path: Optional[str] = None,
    progress: Optional[ProgressSink] = None
) -> PipelineServices:
    """
    Wire the default providers.

    Args:
        config: Pipeline config; loaded from the default locations if None
        catalog_path: CSV price book; the bundled sample if None
        progress: Progress sink; events are discarded if None

    Raises:
        ConfigError: if the provider or its API key is not configured
    """
    config = config or load_config()
    client = create_client_from_config(config.provider)

    path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH
    catalog = CsvCatalog.from_csv(path)

    logger.info(f"Using {client.PROVIDER_NAME} provider with catalog {path.name} ({len(catalog)} entries)")
    return PipelineServices(
        client=client,
        catalog=catalog,
        config=config,
        progress=progress or NullProgressSink()
    )

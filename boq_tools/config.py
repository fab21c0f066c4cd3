"""Configuration loader for the measurement pipeline."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_FALLBACK_UNIT_PRICES: Dict[str, float] = {
    "m²": 25.0,
    "m2": 25.0,
    "m": 15.0,
    "ml": 15.0,
    "ud": 50.0,
    "u": 50.0,
    "kg": 2.0,
    "h": 35.0,
    "pa": 100.0,
}

DEFAULT_GENERIC_UNITS: List[str] = [
    "ud", "ud.", "u", "u.", "pa", "pa.", "unidad", "unidades", "und", "uds",
]


@dataclass
class MarginConfig:
    overhead_rate: float = 0.13   # Gastos generales
    profit_rate: float = 0.06     # Beneficio industrial
    tax_rate: float = 0.10        # IVA (reduced rate for renovations)


@dataclass
class ProviderConfig:
    provider: str = "anthropic"
    model: Optional[str] = None
    max_tokens: int = 8192
    temperature: float = 0.1
    timeout: float = 120.0
    max_attempts: int = 3


@dataclass
class ExtractionConfig:
    text_layer_min_chars: int = 500
    min_chunk_chars: int = 50
    image_max_size: int = 1568
    generic_units: List[str] = field(default_factory=lambda: list(DEFAULT_GENERIC_UNITS))


@dataclass
class PricingConfig:
    batch_size: int = 5
    candidate_limit: int = 3
    material_labor_markup: float = 1.4
    verified_labor_confidence: int = 95
    verified_material_confidence: int = 75
    labor_confidence: int = 85
    material_confidence: int = 60
    estimate_confidence: int = 30
    error_confidence: int = 0
    default_fallback_price: float = 30.0
    fallback_unit_prices: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_UNIT_PRICES)
    )


@dataclass
class BackgroundJobConfig:
    max_pages_sync: int = 5
    max_size_mb: float = 2.0


@dataclass
class PipelineConfig:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    margins: MarginConfig = field(default_factory=MarginConfig)
    background: BackgroundJobConfig = field(default_factory=BackgroundJobConfig)


DEFAULT_SEARCH_PATHS = [
    Path.cwd() / "config" / "pipeline.yaml",
    Path.home() / ".boq_pricer" / "pipeline.yaml",
]


def _build_section(section_cls, raw: Optional[Dict[str, Any]], name: str):
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{name}' must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(section_cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {sorted(unknown)}")
    return section_cls(**raw)


def load_config(config_path: Optional[str] = None) -> PipelineConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to config file. If None, looks in default locations
            and falls back to built-in defaults when none exists.

    Returns:
        PipelineConfig object

    Raises:
        ConfigError: if an explicit path is missing or the file is malformed
    """
    if config_path is None:
        for path in DEFAULT_SEARCH_PATHS:
            if path.exists():
                config_path = str(path)
                break
        else:
            logger.debug("No pipeline config found, using defaults")
            return apply_env_overrides(PipelineConfig())

    if not Path(config_path).exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config root in {config_path} must be a mapping")

    logger.info(f"Loaded pipeline config from {config_path}")

    try:
        config = PipelineConfig(
            provider=_build_section(ProviderConfig, raw.get("provider"), "provider"),
            extraction=_build_section(ExtractionConfig, raw.get("extraction"), "extraction"),
            pricing=_build_section(PricingConfig, raw.get("pricing"), "pricing"),
            margins=_build_section(MarginConfig, raw.get("margins"), "margins"),
            background=_build_section(BackgroundJobConfig, raw.get("background"), "background"),
        )
    except TypeError as e:
        raise ConfigError(f"Invalid config in {config_path}: {e}") from e

    return apply_env_overrides(config)


def apply_env_overrides(config: PipelineConfig) -> PipelineConfig:
    """Let BOQ_PROVIDER / BOQ_MODEL override the provider section."""
    provider = os.getenv("BOQ_PROVIDER")
    model = os.getenv("BOQ_MODEL")
    if provider:
        config.provider.provider = provider.lower()
    if model:
        config.provider.model = model
    return config

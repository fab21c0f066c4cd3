"""
Tests for the YAML configuration loader.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools import config as config_module
from boq_tools.config import PipelineConfig, load_config
from boq_tools.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("BOQ_PROVIDER", raising=False)
    monkeypatch.delenv("BOQ_MODEL", raising=False)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "DEFAULT_SEARCH_PATHS", [tmp_path / "none.yaml"])

        config = load_config()

        assert config == PipelineConfig()
        assert config.margins.overhead_rate == 0.13
        assert config.pricing.batch_size == 5
        assert config.extraction.text_layer_min_chars == 500

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "provider:\n"
            "  provider: openai\n"
            "margins:\n"
            "  tax_rate: 0.21\n"
            "pricing:\n"
            "  fallback_unit_prices:\n"
            "    m2: 40.0\n",
            encoding="utf-8"
        )

        config = load_config(str(path))

        assert config.provider.provider == "openai"
        assert config.margins.tax_rate == 0.21
        assert config.margins.profit_rate == 0.06
        assert config.pricing.fallback_unit_prices == {"m2": 40.0}

    def test_search_path_used(self, monkeypatch, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pricing:\n  batch_size: 8\n", encoding="utf-8")
        monkeypatch.setattr(config_module, "DEFAULT_SEARCH_PATHS", [tmp_path / "missing.yaml", path])

        assert load_config().pricing.batch_size == 8

    def test_example_file_loads(self):
        example = Path(__file__).parent.parent / "config" / "pipeline.example.yaml"
        assert load_config(str(example)) == PipelineConfig()

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pricing:\n  batch_sise: 8\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="batch_sise"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pricing: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("margins: 0.13\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "DEFAULT_SEARCH_PATHS", [])
        monkeypatch.setenv("BOQ_PROVIDER", "OpenAI")
        monkeypatch.setenv("BOQ_MODEL", "gpt-4o-mini")

        config = load_config()

        assert config.provider.provider == "openai"
        assert config.provider.model == "gpt-4o-mini"

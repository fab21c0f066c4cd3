"""
Exception hierarchy for the measurement pipeline.

Only DocumentLoadError is fatal to a pipeline run. Everything else is caught
at the unit-of-work boundary (one chunk, one page, one item) and degraded.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class DocumentLoadError(PipelineError):
    """No document content could be obtained at all (e.g. unreadable PDF on the vision path)."""


class GenerationError(PipelineError):
    """A generation call failed or returned output that did not match its schema."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class UnsupportedCapabilityError(PipelineError):
    """The configured generation client does not offer an optional capability."""

    def __init__(self, capability: str, provider: str = "unknown"):
        super().__init__(f"Provider '{provider}' does not support {capability}")
        self.capability = capability
        self.provider = provider


class ConfigError(PipelineError):
    """Invalid or unreadable pipeline configuration."""


class CatalogError(PipelineError):
    """The catalog could not be loaded or searched."""

"""
Generation Provider Abstraction Layer

Provides a unified interface for schema-validated generation calls against
different AI providers (Anthropic Claude, OpenAI GPT-4o). Prompts may carry an
embedded PDF page or image.

Providers own their timeout and retry policy; callers never retry. Every
failure surfaces as a GenerationError.
"""

import base64
import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

import anthropic
import openai
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .config import ProviderConfig
from .errors import ConfigError, GenerationError, UnsupportedCapabilityError

logger = logging.getLogger(__name__)


PDF_MIME_TYPE = "application/pdf"

API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass
class MediaPart:
    """Embedded document or image sent alongside the prompt text."""
    data: bytes
    mime_type: str
    filename: str = "page.pdf"

    @property
    def base64_data(self) -> str:
        return base64.standard_b64encode(self.data).decode("utf-8")

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME_TYPE


@dataclass
class GenerationRequest:
    """Prompt for one generation call."""
    text: str
    media: Optional[MediaPart] = None


# ============================================================================
# Response parsing (shared across providers)
# ============================================================================

def schema_instructions(output_schema: Type[BaseModel]) -> str:
    """Describe the expected output so providers without native schemas can comply."""
    schema = json.dumps(output_schema.model_json_schema(), ensure_ascii=False)
    return (
        "\n\nYour answer MUST be a single JSON object that validates against this JSON Schema:\n"
        f"{schema}"
    )


def parse_json_response(raw_response: str) -> Dict[str, Any]:
    """
    Parse JSON from a model response with multiple fallback strategies.

    Raises:
        GenerationError: if no JSON object can be recovered
    """
    if not raw_response or not raw_response.strip():
        raise GenerationError("Empty response from model", raw_response or "")

    # Strategy 1: Try to parse directly
    try:
        data = json.loads(raw_response)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Strategy 2: JSON inside a markdown code block
    code_block_match = re.search(r'```(?:json)?\s*(\{[\s\S]*?\})\s*```', raw_response)
    if code_block_match:
        try:
            return json.loads(code_block_match.group(1))
        except json.JSONDecodeError:
            pass

    # Strategy 3: First object with balanced braces, ignoring braces inside strings
    start_idx = raw_response.find('{')
    while start_idx != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start_idx, len(raw_response)):
            char = raw_response[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(raw_response[start_idx:i + 1])
                    except json.JSONDecodeError:
                        break
        start_idx = raw_response.find('{', start_idx + 1)

    raise GenerationError("Could not parse JSON from model response", raw_response)


def validate_output(raw_response: str, output_schema: Type[BaseModel]) -> BaseModel:
    """Parse and validate a raw response against the caller's schema."""
    data = parse_json_response(raw_response)
    try:
        return output_schema.model_validate(data)
    except ValidationError as e:
        raise GenerationError(
            f"Response does not match {output_schema.__name__}: {e.error_count()} errors",
            raw_response
        ) from e


# ============================================================================
# Abstract Base Classes
# ============================================================================

@dataclass
class BatchJobStatus:
    """Status of a background batch job."""
    job_id: str
    finished: bool
    succeeded: int = 0
    errored: int = 0


class BatchJobClient(ABC):
    """
    Optional capability: asynchronous batch generation.

    Not every provider offers it; check GenerationClient.batch_client.
    """

    @abstractmethod
    def submit(self, requests: List[Tuple[str, GenerationRequest]], output_schema: Type[BaseModel]) -> str:
        """Submit (custom_id, request) pairs, returning the job id."""
        pass

    @abstractmethod
    def status(self, job_id: str) -> BatchJobStatus:
        pass

    @abstractmethod
    def results(self, job_id: str, output_schema: Type[BaseModel]) -> Dict[str, Optional[BaseModel]]:
        """
        Validated result per custom_id of a finished job.

        Requests that failed or returned invalid output map to None.
        """
        pass


class GenerationClient(ABC):
    """
    Abstract base class for generation providers.

    Implementations must validate the model's output against the
    caller-provided schema before returning it.
    """

    PROVIDER_NAME: str = "unknown"
    DEFAULT_MODEL: str = ""

    @abstractmethod
    def generate(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> BaseModel:
        """
        Run one generation call.

        Args:
            request: Prompt text and optional embedded media
            output_schema: Pydantic model the output must validate against

        Returns:
            Instance of output_schema

        Raises:
            GenerationError: on transport, parse or validation failure
        """
        pass

    @property
    def batch_client(self) -> Optional[BatchJobClient]:
        """Batch capability, or None when the provider has none."""
        return None

    def require_batch_client(self) -> BatchJobClient:
        client = self.batch_client
        if client is None:
            raise UnsupportedCapabilityError("batch jobs", self.PROVIDER_NAME)
        return client


class RetryingProvider(GenerationClient):
    """Shared retry plumbing for the concrete SDK-backed providers."""

    RETRYABLE_ERRORS: Tuple[Type[Exception], ...] = ()

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_tokens: int = 8192,
        temperature: float = 0.1,
        timeout: float = 120.0,
        max_attempts: int = 3
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.max_attempts = max_attempts

    def _call_with_retry(self, make_request):
        """Call make_request, retrying rate limits and timeouts with exponential backoff."""
        @retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type(self.RETRYABLE_ERRORS),
            before_sleep=lambda retry_state: logger.warning(
                f"{self.PROVIDER_NAME} call failed, retrying "
                f"(attempt {retry_state.attempt_number}/{self.max_attempts})..."
            ),
            reraise=True
        )
        def _make_request():
            return make_request()

        return _make_request()

    def generate(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> BaseModel:
        try:
            raw_response = self._call_with_retry(lambda: self._complete(request, output_schema))
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"{self.PROVIDER_NAME} request failed: {e}") from e

        return validate_output(raw_response, output_schema)

    @abstractmethod
    def _complete(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> str:
        """Perform a single API call and return the raw text response."""
        pass


# ============================================================================
# Anthropic Provider
# ============================================================================

class AnthropicProvider(RetryingProvider):
    """Generation provider using Anthropic's Claude API."""

    PROVIDER_NAME = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    RETRYABLE_ERRORS = (anthropic.RateLimitError, anthropic.APITimeoutError, anthropic.APIConnectionError)

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        super().__init__(api_key, model, **kwargs)
        self.client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout)
        self._batch_client = AnthropicBatchClient(self)

    def build_params(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> Dict[str, Any]:
        """Messages API parameters for one request (shared with the batch client)."""
        content: List[Dict[str, Any]] = []
        if request.media is not None:
            if request.media.is_pdf:
                content.append({
                    "type": "document",
                    "source": {
                        "type": "base64",
                        "media_type": PDF_MIME_TYPE,
                        "data": request.media.base64_data
                    }
                })
            else:
                content.append({
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": request.media.mime_type,
                        "data": request.media.base64_data
                    }
                })
        content.append({
            "type": "text",
            "text": request.text + schema_instructions(output_schema)
        })

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": content}]
        }

    def _complete(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> str:
        response = self.client.messages.create(**self.build_params(request, output_schema))
        return message_text(response)

    @property
    def batch_client(self) -> Optional[BatchJobClient]:
        return self._batch_client


def message_text(message: Any) -> str:
    """Concatenate the text blocks of an Anthropic message."""
    return "".join(
        block.text for block in (message.content or [])
        if getattr(block, "type", None) == "text"
    )


class AnthropicBatchClient(BatchJobClient):
    """Background jobs through the Anthropic Message Batches API."""

    def __init__(self, provider: AnthropicProvider):
        self.provider = provider

    def submit(self, requests: List[Tuple[str, GenerationRequest]], output_schema: Type[BaseModel]) -> str:
        try:
            batch = self.provider.client.messages.batches.create(
                requests=[
                    {"custom_id": custom_id, "params": self.provider.build_params(request, output_schema)}
                    for custom_id, request in requests
                ]
            )
        except Exception as e:
            raise GenerationError(f"Batch submission failed: {e}") from e

        logger.info(f"Submitted batch job {batch.id} with {len(requests)} requests")
        return batch.id

    def status(self, job_id: str) -> BatchJobStatus:
        try:
            batch = self.provider.client.messages.batches.retrieve(job_id)
        except Exception as e:
            raise GenerationError(f"Could not retrieve batch job {job_id}: {e}") from e

        counts = batch.request_counts
        return BatchJobStatus(
            job_id=job_id,
            finished=batch.processing_status == "ended",
            succeeded=counts.succeeded if counts else 0,
            errored=counts.errored if counts else 0
        )

    def results(self, job_id: str, output_schema: Type[BaseModel]) -> Dict[str, Optional[BaseModel]]:
        results: Dict[str, Optional[BaseModel]] = {}
        try:
            entries = self.provider.client.messages.batches.results(job_id)
        except Exception as e:
            raise GenerationError(f"Could not fetch results of batch job {job_id}: {e}") from e

        for entry in entries:
            if entry.result.type != "succeeded":
                logger.warning(f"Batch request {entry.custom_id} {entry.result.type}")
                results[entry.custom_id] = None
                continue
            try:
                results[entry.custom_id] = validate_output(message_text(entry.result.message), output_schema)
            except GenerationError as e:
                logger.warning(f"Batch request {entry.custom_id} returned invalid output: {e}")
                results[entry.custom_id] = None

        return results


# ============================================================================
# OpenAI Provider
# ============================================================================

class OpenAIProvider(RetryingProvider):
    """Generation provider using OpenAI's chat completions API."""

    PROVIDER_NAME = "openai"
    DEFAULT_MODEL = "gpt-4o"
    RETRYABLE_ERRORS = (openai.RateLimitError, openai.APITimeoutError, openai.APIConnectionError)

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        super().__init__(api_key, model, **kwargs)
        self.client = openai.OpenAI(api_key=api_key, timeout=self.timeout)

    def _complete(self, request: GenerationRequest, output_schema: Type[BaseModel]) -> str:
        content: List[Dict[str, Any]] = []
        if request.media is not None:
            data_url = f"data:{request.media.mime_type};base64,{request.media.base64_data}"
            if request.media.is_pdf:
                content.append({
                    "type": "file",
                    "file": {"filename": request.media.filename, "file_data": data_url}
                })
            else:
                content.append({
                    "type": "image_url",
                    "image_url": {"url": data_url, "detail": "high"}
                })
        content.append({
            "type": "text",
            "text": request.text + schema_instructions(output_schema)
        })

        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
            messages=[{"role": "user", "content": content}]
        )

        if not response.choices or not response.choices[0].message:
            return ""
        return response.choices[0].message.content or ""


# ============================================================================
# Factory Functions
# ============================================================================

PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider
}


def get_provider(
    provider_name: str,
    api_key: str,
    model: Optional[str] = None,
    **kwargs
) -> GenerationClient:
    """
    Factory function to create a generation provider.

    Args:
        provider_name: Provider name ('anthropic' or 'openai')
        api_key: API key for the provider
        model: Optional model override
        **kwargs: max_tokens, temperature, timeout, max_attempts

    Returns:
        GenerationClient instance

    Raises:
        ValueError: If provider name is unknown
    """
    provider_class = PROVIDERS.get(provider_name.lower())
    if provider_class is None:
        raise ValueError(f"Unknown provider: {provider_name}. Supported: {list(PROVIDERS.keys())}")

    return provider_class(api_key=api_key, model=model, **kwargs)


def create_client_from_config(config: ProviderConfig) -> GenerationClient:
    """Create the configured provider, reading its API key from the environment."""
    name = config.provider.lower()
    env_var = API_KEY_ENV_VARS.get(name)
    if env_var is None:
        raise ConfigError(f"Unknown provider: {config.provider}. Supported: {list(PROVIDERS.keys())}")

    api_key = os.getenv(env_var)
    if not api_key:
        raise ConfigError(f"{env_var} is not set")

    return get_provider(
        name,
        api_key,
        model=config.model,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        timeout=config.timeout,
        max_attempts=config.max_attempts
    )

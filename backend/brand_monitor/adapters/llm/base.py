"""
Base LLM Adapter Interface
All LLM providers must implement this interface
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, TypeVar
from enum import Enum

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class LLMProviderType(str, Enum):
    """Supported LLM providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    PERPLEXITY = "perplexity"


@dataclass
class LLMConfig:
    """Configuration for LLM request"""
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: int = 60  # seconds
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMMessage:
    """A message in the conversation"""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """Standardized LLM response across all providers"""
    content: str
    provider: LLMProviderType
    model: str
    finish_reason: Optional[str] = None


class BaseLLMAdapter(ABC):
    """
    Abstract base class for LLM adapters.
    Each provider (OpenAI, Anthropic, Google, Perplexity) implements this interface.

    An adapter bound to a model (``config`` set) is the model handle the
    analysis services pass around.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.config = config
        self._transport = transport

    def _client(self, timeout: int) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map provider HTTP errors onto the adapter exception hierarchy"""
        if response.status_code in (401, 403):
            raise LLMAuthenticationError(
                "Invalid API key",
                self.provider,
                {"status_code": response.status_code}
            )
        elif response.status_code == 429:
            raise LLMRateLimitError(
                "Rate limit exceeded",
                self.provider,
                {"status_code": response.status_code}
            )
        elif response.status_code == 400:
            raise LLMInvalidRequestError(
                f"Invalid request: {response.text}",
                self.provider,
                {"status_code": response.status_code, "response": response.text}
            )
        elif response.status_code != 200:
            raise LLMAdapterError(
                f"API error: {response.text}",
                self.provider,
                {"status_code": response.status_code, "response": response.text}
            )

    def _read_body(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a successful reply; anything but a JSON object is a provider failure"""
        try:
            data = response.json()
        except ValueError:
            raise LLMAdapterError(
                "Response body is not valid JSON",
                self.provider,
                {"status_code": response.status_code, "response": response.text[:200]}
            )
        if not isinstance(data, dict):
            raise LLMAdapterError(
                "Unexpected response body",
                self.provider,
                {"status_code": response.status_code, "response": response.text[:200]}
            )
        return data

    def _malformed(self, data: Dict[str, Any], error: Exception) -> "LLMAdapterError":
        return LLMAdapterError(
            f"Unexpected response shape: {error!r}",
            self.provider,
            {"response": data}
        )

    @property
    @abstractmethod
    def provider(self) -> LLMProviderType:
        """Return the provider type"""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider"""
        pass

    @property
    def model(self) -> str:
        """Model this handle is bound to"""
        return self.config.model if self.config else self.default_model

    @abstractmethod
    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """
        Execute a prompt against the LLM.

        Args:
            prompt: The user prompt to send
            config: Optional configuration override
            system_prompt: Optional system prompt

        Returns:
            LLMResponse with standardized response data
        """
        pass

    @abstractmethod
    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """
        Execute a multi-turn chat conversation.

        Args:
            messages: List of messages in the conversation
            config: Optional configuration override

        Returns:
            LLMResponse with standardized response data
        """
        pass

    def _request_config(self, temperature: float, max_tokens: int) -> LLMConfig:
        base = self.config or LLMConfig(model=self.default_model)
        return LLMConfig(
            model=base.model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=base.timeout,
            top_p=base.top_p,
            stop_sequences=base.stop_sequences,
            extra_params=dict(base.extra_params),
        )

    def _json_mode_params(self) -> Dict[str, Any]:
        """Provider-specific request parameters that force a JSON reply"""
        return {}

    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> str:
        """
        Ask the model a question and return its answer text.

        Raises:
            LLMEmptyResponseError: The provider answered with no content
            LLMAdapterError: Transport, auth or rate-limit failure
        """
        cfg = self._request_config(temperature, max_tokens)
        response = await self.execute(prompt, cfg, system_prompt=system_prompt)
        text = (response.content or "").strip()
        if not text:
            raise LLMEmptyResponseError(
                f"{self.provider.value} returned empty response",
                self.provider,
                {"model": cfg.model, "finish_reason": response.finish_reason},
            )
        return text

    async def generate_structured(
        self,
        schema: Type[SchemaT],
        prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        max_retries: int = 2,
    ) -> SchemaT:
        """
        Ask the model for a JSON object and validate it against a pydantic schema.

        Validation failures are retried up to ``max_retries`` times; transport
        errors propagate immediately.

        Raises:
            LLMSchemaValidationError: No attempt produced a valid object
            LLMAdapterError: Transport, auth or rate-limit failure
        """
        schema_json = json.dumps(schema.model_json_schema(by_alias=True))
        structured_prompt = (
            f"{prompt}\n\n"
            "Respond ONLY with a JSON object matching this JSON schema, "
            "with no commentary and no code fences:\n"
            f"{schema_json}"
        )
        cfg = self._request_config(temperature, max_tokens)
        cfg.extra_params.update(self._json_mode_params())

        last_error: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            response = await self.execute(structured_prompt, cfg)
            try:
                return self._parse_structured(schema, response.content or "")
            except LLMSchemaValidationError as e:
                last_error = e
                logger.warning(
                    f"{self.provider.value} structured output invalid "
                    f"(attempt {attempt + 1}/{max_retries + 1}): {e}"
                )

        raise LLMSchemaValidationError(
            f"Structured output did not match {schema.__name__}",
            self.provider,
            {"model": cfg.model, "last_error": str(last_error)},
        )

    def _parse_structured(self, schema: Type[SchemaT], content: str) -> SchemaT:
        match = JSON_OBJECT_PATTERN.search(content)
        if not match:
            raise LLMSchemaValidationError(
                "No JSON object found in response",
                self.provider,
                {"content": content[:200]},
            )
        try:
            return schema.model_validate_json(match.group())
        except ValidationError as e:
            raise LLMSchemaValidationError(
                f"Schema validation failed: {e.error_count()} error(s)",
                self.provider,
                {"errors": e.errors(include_url=False)},
            )


class LLMAdapterError(Exception):
    """Base exception for LLM adapter errors"""
    def __init__(self, message: str, provider: Optional[LLMProviderType], details: Optional[Dict] = None):
        super().__init__(message)
        self.provider = provider
        self.details = details or {}


class LLMRateLimitError(LLMAdapterError):
    """Rate limit exceeded"""
    pass


class LLMAuthenticationError(LLMAdapterError):
    """Authentication failed"""
    pass


class LLMTimeoutError(LLMAdapterError):
    """Request timed out"""
    pass


class LLMInvalidRequestError(LLMAdapterError):
    """Invalid request parameters"""
    pass


class LLMEmptyResponseError(LLMAdapterError):
    """Provider returned an empty answer"""
    pass


class LLMSchemaValidationError(LLMAdapterError):
    """Structured output missing or not matching the expected schema"""
    pass


class LLMProviderUnavailableError(LLMAdapterError):
    """Provider not configured or no model handle available"""
    pass


class NoProvidersConfiguredError(LLMAdapterError):
    """No provider is configured at all"""
    def __init__(self, message: str = "No AI providers configured and enabled"):
        super().__init__(message, None)

"""
Perplexity Adapter
"""

from typing import List, Optional

import httpx

from brand_monitor.config import get_settings
from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMProviderType,
    LLMAdapterError,
    LLMTimeoutError,
)


class PerplexityAdapter(BaseLLMAdapter):
    """
    Adapter for Perplexity API
    Perplexity answers from live web search, so its rankings often reflect
    current market coverage rather than training data.
    """

    API_BASE = "https://api.perplexity.ai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key or get_settings().PERPLEXITY_API_KEY, config, transport)

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.PERPLEXITY

    @property
    def default_model(self) -> str:
        return get_settings().PERPLEXITY_DEFAULT_MODEL

    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """Execute a single prompt"""
        messages = []
        if system_prompt:
            messages.append(LLMMessage(role="system", content=system_prompt))
        messages.append(LLMMessage(role="user", content=prompt))
        return await self.execute_chat(messages, config)

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        cfg = config or self.config or LLMConfig(model=self.default_model)

        # OpenAI-compatible request format
        payload = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
        }

        if cfg.top_p is not None:
            payload["top_p"] = cfg.top_p
        payload.update(cfg.extra_params)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/chat/completions",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException:
            raise LLMTimeoutError(
                f"Request timed out after {cfg.timeout}s",
                self.provider,
            )
        except httpx.RequestError as e:
            raise LLMAdapterError(
                f"Request failed: {str(e)}",
                self.provider,
            )

        self._raise_for_status(response)

        data = self._read_body(response)
        try:
            choice = data["choices"][0]
            content = choice["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise self._malformed(data, e)

        return LLMResponse(
            content=content,
            provider=self.provider,
            model=cfg.model,
            finish_reason=choice.get("finish_reason"),
        )

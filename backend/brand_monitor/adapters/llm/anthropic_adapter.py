"""
Anthropic (Claude) Adapter
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


class AnthropicAdapter(BaseLLMAdapter):
    """Adapter for Anthropic Messages API"""

    API_BASE = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key or get_settings().ANTHROPIC_API_KEY, config, transport)

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.ANTHROPIC

    @property
    def default_model(self) -> str:
        return get_settings().ANTHROPIC_DEFAULT_MODEL

    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """Execute a single prompt"""
        messages = [LLMMessage(role="user", content=prompt)]
        return await self._execute_with_system(messages, system_prompt, config)

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        # System prompt travels outside the message list
        system_prompt = None
        chat_messages = []
        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
            else:
                chat_messages.append(msg)
        return await self._execute_with_system(chat_messages, system_prompt, config)

    async def _execute_with_system(
        self,
        messages: List[LLMMessage],
        system_prompt: Optional[str],
        config: Optional[LLMConfig],
    ) -> LLMResponse:
        """Execute with optional system prompt"""
        cfg = config or self.config or LLMConfig(model=self.default_model)

        payload = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
        }

        if system_prompt:
            payload["system"] = system_prompt
        if cfg.top_p is not None:
            payload["top_p"] = cfg.top_p
        if cfg.stop_sequences:
            payload["stop_sequences"] = cfg.stop_sequences
        payload.update(cfg.extra_params)

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/messages",
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
            content = "".join(
                block.get("text", "")
                for block in data.get("content") or []
                if block.get("type") == "text"
            )
        except (TypeError, AttributeError) as e:
            raise self._malformed(data, e)

        return LLMResponse(
            content=content,
            provider=self.provider,
            model=cfg.model,
            finish_reason=data.get("stop_reason"),
        )

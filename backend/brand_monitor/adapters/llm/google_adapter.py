"""
Google (Gemini) Adapter
"""

from typing import Any, Dict, List, Optional

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


class GoogleAdapter(BaseLLMAdapter):
    """Adapter for Google Gemini generateContent API"""

    API_BASE = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key or get_settings().GOOGLE_API_KEY, config, transport)

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.GOOGLE

    @property
    def default_model(self) -> str:
        return get_settings().GOOGLE_DEFAULT_MODEL

    def _json_mode_params(self) -> Dict[str, Any]:
        return {"responseMimeType": "application/json"}

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

        # Gemini keeps the system prompt out of the contents list
        contents = []
        system_instruction = None

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "user" if msg.role == "user" else "model"
                contents.append({
                    "role": role,
                    "parts": [{"text": msg.content}]
                })

        generation_config: Dict[str, Any] = {
            "temperature": cfg.temperature,
            "maxOutputTokens": cfg.max_tokens,
        }
        if cfg.top_p is not None:
            generation_config["topP"] = cfg.top_p
        if cfg.stop_sequences:
            generation_config["stopSequences"] = cfg.stop_sequences
        generation_config.update(cfg.extra_params)

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        url = f"{self.API_BASE}/models/{cfg.model}:generateContent"

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": self.api_key,
                    },
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

        error = data.get("error")
        if error:
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            raise LLMAdapterError(
                message,
                self.provider,
                {"error": error}
            )

        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMAdapterError(
                "No response candidates returned",
                self.provider,
                {"response": data}
            )

        try:
            parts = candidates[0].get("content", {}).get("parts", [])
            content = "".join(part["text"] for part in parts if "text" in part)
            finish_reason = candidates[0].get("finishReason")
        except (KeyError, TypeError, AttributeError) as e:
            raise self._malformed(data, e)

        return LLMResponse(
            content=content,
            provider=self.provider,
            model=cfg.model,
            finish_reason=finish_reason,
        )

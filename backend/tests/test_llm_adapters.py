"""
Tests for the LLM adapters and provider registry

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest
from pydantic import BaseModel

from brand_monitor.adapters.llm import (
    AnthropicAdapter,
    GoogleAdapter,
    LLMAdapterError,
    LLMAuthenticationError,
    LLMEmptyResponseError,
    LLMInvalidRequestError,
    LLMProviderType,
    LLMRateLimitError,
    LLMSchemaValidationError,
    LLMTimeoutError,
    OpenAIAdapter,
    PerplexityAdapter,
    get_adapter,
    get_extraction_handle,
    get_model_handle,
    list_configured_providers,
    normalize_provider_name,
    provider_display_name,
)


class Verdict(BaseModel):
    mentioned: bool
    position: int


def openai_body(content: str) -> dict:
    return {
        "choices": [{"message": {"content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def recording_transport(handler, requests):
    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)
    return httpx.MockTransport(_handler)


class TestOpenAIAdapter:

    async def test_generate_text(self):
        requests = []
        transport = recording_transport(
            lambda r: httpx.Response(200, json=openai_body("Firecrawl ranks first.")), requests
        )
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        text = await adapter.generate_text("Best scraping APIs?", system_prompt="Be brief", max_tokens=50)

        assert text == "Firecrawl ranks first."
        sent = json.loads(requests[0].content)
        assert requests[0].url == "https://api.openai.com/v1/chat/completions"
        assert requests[0].headers["Authorization"] == "Bearer sk-test"
        assert sent["messages"][0] == {"role": "system", "content": "Be brief"}
        assert sent["max_tokens"] == 50

    async def test_empty_content_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json=openai_body("  ")))
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        with pytest.raises(LLMEmptyResponseError):
            await adapter.generate_text("Anything?")

    @pytest.mark.parametrize("status,error", [
        (401, LLMAuthenticationError),
        (403, LLMAuthenticationError),
        (429, LLMRateLimitError),
        (400, LLMInvalidRequestError),
        (500, LLMAdapterError),
    ])
    async def test_status_mapping(self, status, error):
        transport = httpx.MockTransport(lambda r: httpx.Response(status, text="nope"))
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        with pytest.raises(error) as exc_info:
            await adapter.generate_text("Anything?")
        assert exc_info.value.provider == LLMProviderType.OPENAI
        assert exc_info.value.details["status_code"] == status

    async def test_timeout_mapped(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        adapter = OpenAIAdapter(api_key="sk-test", transport=httpx.MockTransport(handler))
        with pytest.raises(LLMTimeoutError):
            await adapter.generate_text("Anything?")


class TestMalformedReplies:
    """A 200 with an unusable body is an adapter error, never a parsing crash."""

    @pytest.mark.parametrize("adapter_cls", [OpenAIAdapter, AnthropicAdapter, GoogleAdapter, PerplexityAdapter])
    async def test_html_body(self, adapter_cls):
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, text="<html>Bad gateway</html>")
        )
        adapter = adapter_cls(api_key="key", transport=transport)

        with pytest.raises(LLMAdapterError) as exc_info:
            await adapter.generate_text("Rank tools")
        assert exc_info.value.details["status_code"] == 200

    @pytest.mark.parametrize("body", [
        {"choices": []},
        {"choices": [{"finish_reason": "stop"}]},
        {"choices": "none"},
        {},
    ])
    async def test_openai_compatible_without_choice(self, body):
        for adapter_cls in (OpenAIAdapter, PerplexityAdapter):
            transport = httpx.MockTransport(lambda r: httpx.Response(200, json=body))
            adapter = adapter_cls(api_key="key", transport=transport)

            with pytest.raises(LLMAdapterError):
                await adapter.generate_text("Rank tools")

    async def test_json_array_body(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json=["Apify"]))
        adapter = OpenAIAdapter(api_key="key", transport=transport)

        with pytest.raises(LLMAdapterError):
            await adapter.generate_text("Rank tools")

    async def test_anthropic_content_blocks_not_objects(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"content": ["Apify"]}))
        adapter = AnthropicAdapter(api_key="key", transport=transport)

        with pytest.raises(LLMAdapterError):
            await adapter.generate_text("Rank tools")


class TestStructuredOutput:

    async def test_valid_json_parsed(self):
        requests = []
        reply = 'Here you go:\n{"mentioned": true, "position": 2}'
        transport = recording_transport(lambda r: httpx.Response(200, json=openai_body(reply)), requests)
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        verdict = await adapter.generate_structured(Verdict, "Judge it")

        assert verdict == Verdict(mentioned=True, position=2)
        sent = json.loads(requests[0].content)
        assert sent["response_format"] == {"type": "json_object"}
        assert sent["temperature"] == 0.3

    async def test_invalid_then_valid_retries(self):
        replies = iter(["not json at all", '{"mentioned": false, "position": 1}'])
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json=openai_body(next(replies))))
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        verdict = await adapter.generate_structured(Verdict, "Judge it", max_retries=1)
        assert verdict.mentioned is False

    async def test_retries_exhausted(self):
        requests = []
        transport = recording_transport(
            lambda r: httpx.Response(200, json=openai_body('{"mentioned": "maybe"}')), requests
        )
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        with pytest.raises(LLMSchemaValidationError):
            await adapter.generate_structured(Verdict, "Judge it", max_retries=2)
        assert len(requests) == 3

    async def test_transport_error_not_retried(self):
        requests = []
        transport = recording_transport(lambda r: httpx.Response(429), requests)
        adapter = OpenAIAdapter(api_key="sk-test", transport=transport)

        with pytest.raises(LLMRateLimitError):
            await adapter.generate_structured(Verdict, "Judge it", max_retries=2)
        assert len(requests) == 1


class TestOtherProviders:

    async def test_anthropic_sends_system_separately(self):
        requests = []
        body = {
            "content": [{"type": "text", "text": "Apify is solid."}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 12, "output_tokens": 4},
        }
        transport = recording_transport(lambda r: httpx.Response(200, json=body), requests)
        adapter = AnthropicAdapter(api_key="ak-test", transport=transport)

        text = await adapter.generate_text("Rank tools", system_prompt="Be objective")

        sent = json.loads(requests[0].content)
        assert text == "Apify is solid."
        assert sent["system"] == "Be objective"
        assert all(m["role"] != "system" for m in sent["messages"])
        assert requests[0].headers["x-api-key"] == "ak-test"

    async def test_google_request_shape(self):
        requests = []
        body = {
            "candidates": [{"content": {"parts": [{"text": "Gemini answer"}]}, "finishReason": "STOP"}],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
        }
        transport = recording_transport(lambda r: httpx.Response(200, json=body), requests)
        adapter = GoogleAdapter(api_key="g-test", transport=transport)

        text = await adapter.generate_text("Rank tools", system_prompt="Be objective")

        sent = json.loads(requests[0].content)
        assert text == "Gemini answer"
        assert requests[0].url.path.endswith(f"models/{adapter.default_model}:generateContent")
        assert requests[0].headers["x-goog-api-key"] == "g-test"
        assert sent["systemInstruction"] == {"parts": [{"text": "Be objective"}]}

    async def test_google_without_candidates_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"candidates": []}))
        adapter = GoogleAdapter(api_key="g-test", transport=transport)

        with pytest.raises(LLMAdapterError):
            await adapter.generate_text("Rank tools")

    async def test_perplexity_request_shape(self):
        requests = []
        transport = recording_transport(lambda r: httpx.Response(200, json=openai_body("Answer with sources")), requests)
        adapter = PerplexityAdapter(api_key="p-test", transport=transport)

        response = await adapter.execute("Rank tools")

        assert response.content == "Answer with sources"
        assert requests[0].url == "https://api.perplexity.ai/chat/completions"
        assert json.loads(requests[0].content)["model"] == adapter.default_model


class TestRegistry:
    """Provider lookup driven by settings."""

    def test_normalize_provider_name(self):
        assert normalize_provider_name("ChatGPT") == "openai"
        assert normalize_provider_name(" claude ") == "anthropic"
        assert normalize_provider_name("google") == "google"
        assert provider_display_name("gemini") == "Google"

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            get_adapter("mistral")

    def test_nothing_configured(self):
        assert list_configured_providers() == []
        assert get_model_handle("openai") is None

    def test_configured_and_enabled(self, configure_env):
        configure_env(
            OPENAI_API_KEY="sk-test",
            ANTHROPIC_API_KEY="ak-test",
            ENABLED_PROVIDERS="openai,google",
        )

        providers = list_configured_providers()

        assert [p.id for p in providers] == ["openai"]
        assert providers[0].name == "OpenAI"
        assert get_model_handle("anthropic") is None

    def test_model_handle_bound_to_model(self, configure_env):
        configure_env(OPENAI_API_KEY="sk-test", LLM_REQUEST_TIMEOUT="15")

        handle = get_model_handle("chatgpt", model="gpt-4o-mini")

        assert isinstance(handle, OpenAIAdapter)
        assert handle.model == "gpt-4o-mini"
        assert handle.config.timeout == 15

    def test_extraction_handle_defaults_to_answering_model(self, configure_env):
        configure_env(OPENAI_API_KEY="sk-test")
        answering = get_model_handle("openai")
        assert get_extraction_handle(answering) is answering

    def test_extraction_handle_rerouted(self, configure_env):
        configure_env(
            OPENAI_API_KEY="sk-test",
            ANTHROPIC_API_KEY="ak-test",
            EXTRACTION_PROVIDER="anthropic",
            EXTRACTION_MODEL="claude-3-5-haiku-20241022",
        )
        extraction = get_extraction_handle(get_model_handle("openai"))

        assert isinstance(extraction, AnthropicAdapter)
        assert extraction.model == "claude-3-5-haiku-20241022"

    def test_unavailable_extraction_provider_falls_back(self, configure_env):
        configure_env(OPENAI_API_KEY="sk-test", EXTRACTION_PROVIDER="anthropic")
        answering = get_model_handle("openai")
        assert get_extraction_handle(answering) is answering

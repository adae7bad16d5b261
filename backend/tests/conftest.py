"""
Pytest Configuration and Shared Fixtures

Provides a scripted model handle and common inputs for all test modules.
"""

import asyncio
from typing import Callable, List, Optional, Union

import pytest

from brand_monitor.adapters.llm import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMProviderType,
    LLMResponse,
)
from brand_monitor.config import get_settings
from brand_monitor.schemas import Company, ScrapedData


API_KEY_VARS = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_API_KEY",
    "PERPLEXITY_API_KEY",
]
ROUTING_VARS = [
    "ENABLED_PROVIDERS",
    "EXTRACTION_PROVIDER",
    "EXTRACTION_MODEL",
]

Reply = Union[str, Exception]


# ============================================================================
# Scripted model handle
# ============================================================================

class FakeAdapter(BaseLLMAdapter):
    """
    Model handle that answers from a script instead of the network.

    ``replies`` are consumed in order; ``responder`` (prompt, system_prompt)
    is used instead when given. An Exception reply is raised.
    """

    def __init__(
        self,
        replies: Optional[List[Reply]] = None,
        responder: Optional[Callable[[str, Optional[str]], Reply]] = None,
        provider: LLMProviderType = LLMProviderType.OPENAI,
        delay: float = 0.0,
    ):
        super().__init__(api_key="test-key", config=LLMConfig(model="fake-model"))
        self.replies = list(replies or [])
        self.responder = responder
        self.delay = delay
        self._provider = provider
        self.calls: List[str] = []

    @property
    def provider(self) -> LLMProviderType:
        return self._provider

    @property
    def default_model(self) -> str:
        return "fake-model"

    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.responder is not None:
            reply = self.responder(prompt, system_prompt)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            raise AssertionError(f"Unscripted model call: {prompt[:80]}")

        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(
            content=reply,
            provider=self.provider,
            model=(config or self.config).model,
        )

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        system = next((m.content for m in messages if m.role == "system"), None)
        user = "\n".join(m.content for m in messages if m.role == "user")
        return await self.execute(user, config, system_prompt=system)


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Every test starts from default settings with no provider keys."""
    # Empty values also override keys from a local .env file
    for key in API_KEY_VARS:
        monkeypatch.setenv(key, "")
    for key in ROUTING_VARS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def configure_env(monkeypatch):
    """Set environment variables and reload settings."""
    def _configure(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        get_settings.cache_clear()
        return get_settings()
    return _configure


# ============================================================================
# Inputs
# ============================================================================

@pytest.fixture
def company() -> Company:
    return Company(
        name="Firecrawl",
        url="https://firecrawl.dev",
        industry="web scraping",
        description="API that turns websites into LLM-ready data",
        scraped_data=ScrapedData(
            title="Firecrawl",
            keywords=["web scraping", "crawler", "llm data"],
            main_products=["Scrape API", "Crawl API"],
            competitors=["Apify"],
        ),
    )


@pytest.fixture
def competitors() -> List[str]:
    return ["Apify", "ScrapingBee", "Bright Data"]

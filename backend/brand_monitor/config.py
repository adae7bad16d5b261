"""
Configuration management for brand-monitor
Environment-based settings plus fixed scoring policy
"""

from functools import lru_cache
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "brand-monitor"
    LOG_LEVEL: str = "INFO"

    # LLM Provider API Keys
    OPENAI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    GOOGLE_API_KEY: Optional[str] = None
    PERPLEXITY_API_KEY: Optional[str] = None

    # Providers that may be used even when a key is present
    ENABLED_PROVIDERS: str = "openai,anthropic,google,perplexity"

    # LLM Default Models
    OPENAI_DEFAULT_MODEL: str = "gpt-4o"
    ANTHROPIC_DEFAULT_MODEL: str = "claude-3-5-sonnet-20241022"
    GOOGLE_DEFAULT_MODEL: str = "gemini-1.5-pro"
    PERPLEXITY_DEFAULT_MODEL: str = "llama-3.1-sonar-large-128k-online"

    # Structured extraction routing (both unset = use the answering provider)
    EXTRACTION_PROVIDER: Optional[str] = None
    EXTRACTION_MODEL: Optional[str] = None

    # LLM Execution Settings
    LLM_REQUEST_TIMEOUT: int = 60  # seconds, per provider call
    LLM_ANSWER_TEMPERATURE: float = 0.7
    LLM_ANSWER_MAX_TOKENS: int = 800
    LLM_EXTRACTION_TEMPERATURE: float = 0.3
    LLM_EXTRACTION_MAX_TOKENS: int = 2000
    LLM_STRUCTURED_MAX_RETRIES: int = 2

    # Orchestration
    MAX_CONCURRENT_PROVIDER_CALLS: int = 8
    ANALYSIS_UNIT_TIMEOUT: int = 180  # seconds, one prompt x provider incl. extraction
    ANALYSIS_MAX_DURATION: int = 300  # seconds, whole run
    MAX_ANALYSIS_PROMPTS: int = 12
    MAX_COMPETITORS: int = 10

    # Mention detection
    DETECTION_FUZZY_THRESHOLD: int = 90
    DETECTION_FUZZY_MIN_LENGTH: int = 8

    # Prompt templates
    PROMPT_TEMPLATE_VERSION: str = "v1"

    @field_validator("ENABLED_PROVIDERS", mode="before")
    @classmethod
    def parse_enabled_providers(cls, v: str) -> str:
        return v or ""

    @property
    def enabled_providers_list(self) -> List[str]:
        return [p.strip().lower() for p in self.ENABLED_PROVIDERS.split(",") if p.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()


# Overall score weights
OVERALL_SCORE_WEIGHTS = {
    "visibility": 0.3,
    "sentiment": 0.2,
    "share_of_voice": 0.3,
    "position": 0.2,
}

# Per-sample sentiment values
SENTIMENT_VALUES = {
    "positive": 100,
    "neutral": 50,
    "negative": 0,
}

# Average position reported for a company that was never ranked
UNRANKED_POSITION = 99

PROVIDER_DISPLAY_NAMES: Dict[str, str] = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "google": "Google",
    "perplexity": "Perplexity",
}

LEGAL_SUFFIXES = [
    "inc", "incorporated", "llc", "llp", "corp", "corporation", "ltd",
    "limited", "co", "company", "gmbh", "ag", "sa", "plc", "pvt", "srl",
]

# Common variations folded onto one canonical company key
COMPANY_NAME_NORMALIZATIONS = {
    "amazon web services": "aws",
    "amazon web services (aws)": "aws",
    "amazon aws": "aws",
    "microsoft azure": "azure",
    "google cloud platform": "google cloud",
    "google cloud platform (gcp)": "google cloud",
    "gcp": "google cloud",
    "digital ocean": "digitalocean",
    "beautiful soup": "beautifulsoup",
    "bright data": "brightdata",
}

"""
Analysis & Scoring Schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SentimentPolarity(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class AnalysisStage(str, Enum):
    """Orchestrator stages, in run order"""
    DISCOVERING_COMPETITORS = "discovering-competitors"
    GENERATING_PROMPTS = "generating-prompts"
    ANALYZING_PROMPTS = "analyzing-prompts"
    AGGREGATING = "aggregating"
    SCORING = "scoring"
    DONE = "done"
    ERROR = "error"


class ScrapedData(BaseModel):
    """What an external scraper learned about the company site"""
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    main_products: List[str] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)


class Company(BaseModel):
    """The company being analyzed. Identity is the name."""
    name: str
    url: str = ""
    industry: Optional[str] = None
    description: Optional[str] = None
    scraped_data: Optional[ScrapedData] = None


class BrandPrompt(BaseModel):
    """A question posed to every provider"""
    id: str
    prompt: str
    category: str = "ranking"


class CompanyRanking(BaseModel):
    """One line of a model's ranked answer. Company is free text."""
    position: int = Field(ge=1)
    company: str
    reason: Optional[str] = None
    sentiment: Optional[SentimentPolarity] = None


class AnalysisResult(BaseModel):
    """Interpretation of one provider's answer to one prompt"""
    provider: str  # Display name, e.g. "OpenAI"
    prompt: str
    response: str  # Raw answer text
    rankings: List[CompanyRanking] = Field(default_factory=list)
    brand_mentioned: bool = False
    brand_position: Optional[int] = None
    competitors_mentioned: List[str] = Field(default_factory=list)
    sentiment: SentimentPolarity = SentimentPolarity.NEUTRAL
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    strategy: str = "structured"  # structured, simple_text, heuristic
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class CompetitorRanking(BaseModel):
    """Aggregated counters for one tracked company within one scope"""
    name: str
    is_own: bool = False
    mentions: int = 0
    average_position: float = 99
    sentiment: SentimentPolarity = SentimentPolarity.NEUTRAL
    sentiment_score: float = 50
    share_of_voice: float = 0.0
    visibility_score: float = 0.0


class ProviderSpecificRanking(BaseModel):
    provider: str
    competitors: List[CompetitorRanking]


class ProviderComparisonEntry(BaseModel):
    visibility_score: float
    position: float
    mentions: int
    sentiment: SentimentPolarity


class ProviderComparisonData(BaseModel):
    """One company across providers; absent providers have no key"""
    competitor: str
    is_own: bool = False
    providers: Dict[str, ProviderComparisonEntry] = Field(default_factory=dict)


class BrandScoreSummary(BaseModel):
    visibility_score: float = 0.0
    sentiment_score: float = 0.0
    share_of_voice: float = 0.0
    average_position: float = 0.0
    overall_score: float = 0.0


class FailedUnit(BaseModel):
    """A prompt x provider pair that produced no result"""
    prompt: str
    provider: str
    error: str


class BrandAnalysis(BaseModel):
    """Everything a finished run produced"""
    company: Company
    competitors: List[str] = Field(default_factory=list)
    prompts: List[BrandPrompt] = Field(default_factory=list)
    responses: List[AnalysisResult] = Field(default_factory=list)
    competitor_rankings: List[CompetitorRanking] = Field(default_factory=list)
    provider_rankings: List[ProviderSpecificRanking] = Field(default_factory=list)
    provider_comparison: List[ProviderComparisonData] = Field(default_factory=list)
    scores: BrandScoreSummary = Field(default_factory=BrandScoreSummary)
    providers_used: List[str] = Field(default_factory=list)
    failed_units: List[FailedUnit] = Field(default_factory=list)
    status: str = "done"  # done, error
    partial: bool = False
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

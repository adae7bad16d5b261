"""
Structured Output Schemas
Shapes requested from models via generate_structured
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from .analysis import SentimentPolarity


class ExtractionModel(BaseModel):
    """Models answer in camelCase; both spellings are accepted"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ExtractedRanking(ExtractionModel):
    # Kept loose here; positions below 1 are dropped by the interpreter
    position: int
    company: str
    reason: Optional[str] = None
    sentiment: Optional[SentimentPolarity] = None

    @field_validator("sentiment", mode="before")
    @classmethod
    def fold_sentiment(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class ExtractedAnalysis(ExtractionModel):
    brand_mentioned: bool
    brand_position: Optional[int] = None
    competitors: List[str] = Field(default_factory=list)
    overall_sentiment: SentimentPolarity = SentimentPolarity.NEUTRAL
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("overall_sentiment", mode="before")
    @classmethod
    def fold_sentiment(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or SentimentPolarity.NEUTRAL
        return v


class RankingExtraction(ExtractionModel):
    """Rankings and brand analysis pulled out of one answer"""
    rankings: List[ExtractedRanking] = Field(default_factory=list)
    analysis: ExtractedAnalysis


class ExtractedCompetitor(ExtractionModel):
    name: str
    description: str = ""
    is_direct_competitor: bool = True
    market_overlap: str = Field(default="medium", pattern="^(high|medium|low)$")
    business_model: str = ""
    competitor_type: str = Field(default="direct", pattern="^(direct|indirect|retailer|platform)$")

    @field_validator("market_overlap", "competitor_type", mode="before")
    @classmethod
    def lowercase_labels(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class CompetitorExtraction(ExtractionModel):
    competitors: List[ExtractedCompetitor] = Field(default_factory=list)

"""
Pydantic Schemas for analysis inputs, results and progress events
"""

from .analysis import (
    SentimentPolarity,
    AnalysisStage,
    ScrapedData,
    Company,
    BrandPrompt,
    CompanyRanking,
    AnalysisResult,
    CompetitorRanking,
    ProviderSpecificRanking,
    ProviderComparisonEntry,
    ProviderComparisonData,
    BrandScoreSummary,
    FailedUnit,
    BrandAnalysis,
)
from .extraction import (
    ExtractedRanking,
    ExtractedAnalysis,
    RankingExtraction,
    ExtractedCompetitor,
    CompetitorExtraction,
)
from .events import (
    ProgressEventType,
    ProgressEvent,
)

__all__ = [
    # Analysis
    "SentimentPolarity",
    "AnalysisStage",
    "ScrapedData",
    "Company",
    "BrandPrompt",
    "CompanyRanking",
    "AnalysisResult",
    "CompetitorRanking",
    "ProviderSpecificRanking",
    "ProviderComparisonEntry",
    "ProviderComparisonData",
    "BrandScoreSummary",
    "FailedUnit",
    "BrandAnalysis",
    # Extraction
    "ExtractedRanking",
    "ExtractedAnalysis",
    "RankingExtraction",
    "ExtractedCompetitor",
    "CompetitorExtraction",
    # Events
    "ProgressEventType",
    "ProgressEvent",
]

"""
Business Logic Services
"""

from .prompt_engine import PromptEngine, PromptGenerationError
from .response_interpreter import ResponseInterpreter
from .aggregator import aggregate, aggregate_by_provider, build_provider_comparison
from .scoring_engine import ScoringEngine
from .competitor_discovery import CompetitorDiscovery
from .orchestrator import AnalysisOrchestrator

__all__ = [
    "PromptEngine",
    "PromptGenerationError",
    "ResponseInterpreter",
    "aggregate",
    "aggregate_by_provider",
    "build_provider_comparison",
    "ScoringEngine",
    "CompetitorDiscovery",
    "AnalysisOrchestrator",
]

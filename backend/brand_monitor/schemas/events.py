"""
Progress Event Schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from .analysis import AnalysisStage


class ProgressEventType(str, Enum):
    START = "start"
    STAGE = "stage"
    COMPETITOR_FOUND = "competitor-found"
    PROMPT_GENERATED = "prompt-generated"
    ANALYSIS_START = "analysis-start"
    ANALYSIS_COMPLETE = "analysis-complete"
    PARTIAL_RESULT = "partial-result"
    SCORING_START = "scoring-start"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """
    One entry of the progress stream. Units of work run concurrently, so
    per-unit events carry ``prompt`` and ``provider`` in ``data``.
    """
    type: ProgressEventType
    stage: AnalysisStage
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

"""
Response Interpreter
Turns one provider's free-text answer into a normalized AnalysisResult
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from brand_monitor.adapters.llm import (
    BaseLLMAdapter,
    LLMAdapterError,
    LLMEmptyResponseError,
    LLMProviderUnavailableError,
)
from brand_monitor.adapters.parsing import (
    DetectionResult,
    SentimentAnalyzer,
    detect_brand_mention,
    get_detection_options,
    normalize_company_name,
)
from brand_monitor.config import get_settings
from brand_monitor.schemas import (
    AnalysisResult,
    CompanyRanking,
    RankingExtraction,
    SentimentPolarity,
)
from .prompt_engine import PromptEngine

logger = logging.getLogger(__name__)

SIMPLE_TEXT_CONFIDENCE = 0.7
HEURISTIC_CONFIDENCE_FACTOR = 0.5

YES_PATTERN = re.compile(r"\byes\b")
ENUMERATION_PREFIX = re.compile(r"^\s*\d+\s*[.)]\s*")
NUMBER_PATTERN = re.compile(r"#?\b(\d{1,3})\b")
# Echoed answer options, e.g. "(yes/no)"
ECHOED_OPTIONS = re.compile(
    r"yes\s*/\s*no|positive\s*/\s*neutral\s*/\s*negative|number\s+or\s+\W?not ranked\W?"
)


@dataclass
class InterpretationContext:
    """Everything the ladder stages need about one answer"""
    raw_text: str
    provider: str
    prompt: str
    brand_name: str
    competitors: List[str]
    model: Optional[BaseLLMAdapter] = None
    extraction_model: Optional[BaseLLMAdapter] = None
    brand_detection: DetectionResult = field(default_factory=lambda: DetectionResult(False, 0.0))
    competitor_detections: Dict[str, DetectionResult] = field(default_factory=dict)

    @property
    def brand_key(self) -> str:
        return normalize_company_name(self.brand_name)

    def detected_competitors(self) -> List[str]:
        return [name for name in self.competitors if self.competitor_detections[name].mentioned]


# ----------------------------------------------------------------------
# Outcomes of the escalation ladder
# ----------------------------------------------------------------------

@dataclass
class StructuredOutcome:
    """Schema-valid extraction from a model"""
    extraction: RankingExtraction
    strategy: str = "structured"

    def build(self, ctx: InterpretationContext) -> AnalysisResult:
        rankings = [
            CompanyRanking(
                position=r.position,
                company=r.company.strip(),
                reason=r.reason,
                sentiment=r.sentiment,
            )
            for r in self.extraction.rankings
            if r.position >= 1 and r.company.strip()
        ]
        analysis = self.extraction.analysis

        if ctx.brand_detection.mentioned and not analysis.brand_mentioned:
            logger.debug(
                f"Detector found {ctx.brand_name} in {ctx.provider} answer missed by extraction: "
                f"{[m.text for m in ctx.brand_detection.matches]}"
            )

        brand_position = analysis.brand_position
        if brand_position is not None and brand_position < 1:
            brand_position = None

        return AnalysisResult(
            provider=ctx.provider,
            prompt=ctx.prompt,
            response=ctx.raw_text,
            rankings=rankings,
            brand_mentioned=analysis.brand_mentioned or ctx.brand_detection.mentioned,
            brand_position=brand_position,
            competitors_mentioned=merge_competitors(ctx, analysis.competitors),
            sentiment=analysis.overall_sentiment,
            confidence=analysis.confidence,
            strategy=self.strategy,
        )


@dataclass
class SimpleTextOutcome:
    """Plain-text reply to the four-question follow-up"""
    reply: str
    sentiment_analyzer: SentimentAnalyzer = field(default_factory=SentimentAnalyzer)
    strategy: str = "simple_text"

    def _lines(self) -> List[str]:
        cleaned = ECHOED_OPTIONS.sub(" ", self.reply.lower())
        return [line.strip() for line in cleaned.splitlines() if line.strip()]

    def says_mentioned(self) -> bool:
        return any(YES_PATTERN.search(line) for line in self._lines())

    def position(self) -> Optional[int]:
        for line in self._lines():
            if "position" not in line and "rank" not in line:
                continue
            if "not ranked" in line:
                return None
            match = NUMBER_PATTERN.search(ENUMERATION_PREFIX.sub("", line))
            if match and int(match.group(1)) >= 1:
                return int(match.group(1))
        return None

    def sentiment(self, ctx: InterpretationContext) -> SentimentPolarity:
        lines = self._lines()
        for line in lines:
            if "sentiment" in line:
                label = self.sentiment_analyzer.parse_label(line)
                if label:
                    return label

        label = self.sentiment_analyzer.parse_label("\n".join(lines))
        if label:
            return label

        # No label in the reply: read the answer around the brand itself
        spans = [(m.index, m.end) for m in ctx.brand_detection.matches]
        if not spans:
            return SentimentPolarity.NEUTRAL
        return self.sentiment_analyzer.analyze_mentions(ctx.raw_text, spans).polarity

    def build(self, ctx: InterpretationContext) -> AnalysisResult:
        brand_mentioned = self.says_mentioned() or ctx.brand_detection.mentioned
        return AnalysisResult(
            provider=ctx.provider,
            prompt=ctx.prompt,
            response=ctx.raw_text,
            rankings=[],
            brand_mentioned=brand_mentioned,
            brand_position=self.position() if brand_mentioned else None,
            competitors_mentioned=merge_competitors(ctx, []),
            sentiment=self.sentiment(ctx) if brand_mentioned else SentimentPolarity.NEUTRAL,
            confidence=SIMPLE_TEXT_CONFIDENCE,
            strategy=self.strategy,
        )


@dataclass
class HeuristicOutcome:
    """Detector-only reading of the answer"""
    strategy: str = "heuristic"

    def build(self, ctx: InterpretationContext) -> AnalysisResult:
        return AnalysisResult(
            provider=ctx.provider,
            prompt=ctx.prompt,
            response=ctx.raw_text,
            rankings=[],
            brand_mentioned=ctx.brand_detection.mentioned,
            brand_position=None,
            competitors_mentioned=merge_competitors(ctx, []),
            sentiment=SentimentPolarity.NEUTRAL,
            confidence=round(ctx.brand_detection.confidence * HEURISTIC_CONFIDENCE_FACTOR, 4),
            strategy=self.strategy,
        )


AnalysisOutcome = Union[StructuredOutcome, SimpleTextOutcome, HeuristicOutcome]
LadderStep = Callable[[InterpretationContext], Awaitable[AnalysisOutcome]]


def merge_competitors(ctx: InterpretationContext, reported: Sequence[str]) -> List[str]:
    """
    Union of model-reported and detected competitors, restricted to the
    known competitor list and returned in its order. The brand is never
    its own competitor.
    """
    reported_keys = {normalize_company_name(name) for name in reported}
    detected = set(ctx.detected_competitors())
    merged = []
    for name in ctx.competitors:
        key = normalize_company_name(name)
        if key == ctx.brand_key:
            continue
        if name in detected or key in reported_keys:
            merged.append(name)
    return merged


async def try_in_order(
    steps: Sequence[Tuple[str, LadderStep]],
    ctx: InterpretationContext,
) -> AnalysisOutcome:
    """
    Run fallible steps until one succeeds. Only adapter errors move on to
    the next step; anything else propagates.

    Raises:
        LLMAdapterError: Every step failed (the last error is re-raised)
    """
    last_error: Optional[LLMAdapterError] = None
    for name, step in steps:
        try:
            return await step(ctx)
        except LLMAdapterError as e:
            last_error = e
            logger.warning(f"{name} interpretation failed for {ctx.provider}: {e}")
    if last_error is None:
        raise ValueError("No interpretation steps given")
    raise last_error


class ResponseInterpreter:
    """
    Interprets raw answers through a three-stage ladder:

    1. structured extraction (schema-validated JSON from a model)
    2. a plain-text follow-up question parsed line by line
    3. the mention detector alone

    Whatever the stage, detector hits for the brand and known competitors
    are unioned into the result.
    """

    def __init__(
        self,
        prompt_engine: Optional[PromptEngine] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
    ):
        self.prompt_engine = prompt_engine or PromptEngine()
        self.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer()
        self.settings = get_settings()

    def build_context(
        self,
        raw_text: str,
        provider: str,
        brand_name: str,
        known_competitors: Sequence[str],
        prompt: str = "",
        model: Optional[BaseLLMAdapter] = None,
        extraction_model: Optional[BaseLLMAdapter] = None,
    ) -> InterpretationContext:
        competitors = list(dict.fromkeys(c for c in known_competitors if c and c.strip()))
        return InterpretationContext(
            raw_text=raw_text,
            provider=provider,
            prompt=prompt,
            brand_name=brand_name,
            competitors=competitors,
            model=model,
            extraction_model=extraction_model or model,
            brand_detection=detect_brand_mention(raw_text, brand_name, get_detection_options(brand_name)),
            competitor_detections={
                name: detect_brand_mention(raw_text, name, get_detection_options(name))
                for name in competitors
            },
        )

    # ------------------------------------------------------------------
    # Ladder stages
    # ------------------------------------------------------------------

    async def structured_step(self, ctx: InterpretationContext) -> AnalysisOutcome:
        if ctx.extraction_model is None:
            raise LLMProviderUnavailableError("No model available for structured extraction", None)
        extraction = await ctx.extraction_model.generate_structured(
            RankingExtraction,
            self.prompt_engine.extraction_prompt(ctx.raw_text, ctx.brand_name, ctx.competitors),
            temperature=self.settings.LLM_EXTRACTION_TEMPERATURE,
            max_tokens=self.settings.LLM_EXTRACTION_MAX_TOKENS,
            max_retries=self.settings.LLM_STRUCTURED_MAX_RETRIES,
        )
        return StructuredOutcome(extraction)

    async def simple_text_step(self, ctx: InterpretationContext) -> AnalysisOutcome:
        if ctx.model is None:
            raise LLMProviderUnavailableError("No model available for follow-up question", None)
        reply = await ctx.model.generate_text(
            self.prompt_engine.simple_followup_prompt(ctx.raw_text, ctx.brand_name, ctx.competitors),
            temperature=self.settings.LLM_EXTRACTION_TEMPERATURE,
            max_tokens=400,
        )
        return SimpleTextOutcome(reply, self.sentiment_analyzer)

    async def heuristic_step(self, ctx: InterpretationContext) -> AnalysisOutcome:
        return HeuristicOutcome()

    def ladder(self) -> List[Tuple[str, LadderStep]]:
        return [
            ("structured", self.structured_step),
            ("simple_text", self.simple_text_step),
            ("heuristic", self.heuristic_step),
        ]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def interpret(
        self,
        raw_text: str,
        provider: str,
        brand_name: str,
        known_competitors: Sequence[str],
        prompt: str = "",
        model: Optional[BaseLLMAdapter] = None,
        extraction_model: Optional[BaseLLMAdapter] = None,
    ) -> AnalysisResult:
        """
        Interpret an answer already obtained from ``provider``.

        Raises:
            LLMEmptyResponseError: ``raw_text`` is empty
        """
        if not raw_text or not raw_text.strip():
            raise LLMEmptyResponseError(f"{provider} returned empty response", None, {"prompt": prompt})

        ctx = self.build_context(
            raw_text, provider, brand_name, known_competitors, prompt, model, extraction_model
        )
        outcome = await try_in_order(self.ladder(), ctx)
        return enforce_ranking_mention(outcome.build(ctx), ctx.brand_key)

    async def analyze_prompt(
        self,
        prompt: str,
        provider: str,
        model: BaseLLMAdapter,
        brand_name: str,
        known_competitors: Sequence[str],
        extraction_model: Optional[BaseLLMAdapter] = None,
    ) -> AnalysisResult:
        """
        Ask ``model`` the prompt, then interpret its answer.

        Raises:
            LLMAdapterError: The answer call failed or came back empty
        """
        raw_text = await model.generate_text(
            prompt,
            system_prompt=self.prompt_engine.answer_system_prompt(),
            temperature=self.settings.LLM_ANSWER_TEMPERATURE,
            max_tokens=self.settings.LLM_ANSWER_MAX_TOKENS,
        )
        return await self.interpret(
            raw_text, provider, brand_name, known_competitors, prompt, model, extraction_model
        )


def enforce_ranking_mention(result: AnalysisResult, brand_key: str) -> AnalysisResult:
    """A brand that appears in the rankings is mentioned, whatever the flag says"""
    ranked = [r for r in result.rankings if normalize_company_name(r.company) == brand_key]
    if not ranked:
        return result

    update = {"brand_mentioned": True}
    if result.brand_position is None:
        update["brand_position"] = min(r.position for r in ranked)
    return result.model_copy(update=update)

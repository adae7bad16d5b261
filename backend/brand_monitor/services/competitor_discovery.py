"""
Competitor Discovery Service
Asks a model who the company competes with and filters the answer
"""

import asyncio
import logging
from typing import List, Optional

from brand_monitor.adapters.llm import BaseLLMAdapter, LLMAdapterError
from brand_monitor.adapters.parsing import normalize_company_name
from brand_monitor.config import get_settings
from brand_monitor.schemas import (
    AnalysisStage,
    Company,
    CompetitorExtraction,
    ExtractedCompetitor,
    ProgressEvent,
    ProgressEventType,
)
from brand_monitor.utils.progress import NullProgressSink, ProgressSink
from .prompt_engine import PromptEngine

logger = logging.getLogger(__name__)

# Industries whose own business is selling other companies' products
RESELLER_INDUSTRY_TERMS = ("marketplace", "platform", "retailer")


class CompetitorDiscovery:
    """
    Model-backed competitor identification.

    Keeps direct competitors and high-overlap indirect ones; retailers and
    platforms are dropped unless the company itself is one.
    """

    def __init__(self, prompt_engine: Optional[PromptEngine] = None):
        self.prompt_engine = prompt_engine or PromptEngine()
        self.settings = get_settings()

    @staticmethod
    def is_reseller(company: Company) -> bool:
        industry = (company.industry or "").lower()
        return any(term in industry for term in RESELLER_INDUSTRY_TERMS)

    def keep_competitor(self, candidate: ExtractedCompetitor, reseller: bool) -> bool:
        if candidate.is_direct_competitor and candidate.market_overlap == "high":
            return True
        if not reseller and candidate.competitor_type in ("retailer", "platform"):
            return False
        return candidate.competitor_type == "direct" or (
            candidate.competitor_type == "indirect" and candidate.market_overlap == "high"
        )

    def select_competitors(
        self,
        company: Company,
        extraction: Optional[CompetitorExtraction],
        limit: Optional[int] = None,
    ) -> List[str]:
        """
        Filtered model picks followed by scraped competitors, deduplicated
        by normalized name, never including the company itself.
        """
        limit = limit or self.settings.MAX_COMPETITORS
        reseller = self.is_reseller(company)

        candidates = []
        if extraction is not None:
            candidates = [c.name for c in extraction.competitors if self.keep_competitor(c, reseller)]
        if company.scraped_data:
            candidates += company.scraped_data.competitors

        seen = {normalize_company_name(company.name)}
        selected = []
        for name in candidates:
            name = (name or "").strip()
            key = normalize_company_name(name)
            if not key or key in seen:
                continue
            seen.add(key)
            selected.append(name)

        return selected[:limit]

    async def identify_competitors(
        self,
        company: Company,
        model: Optional[BaseLLMAdapter],
        sink: Optional[ProgressSink] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        """
        Discover competitors and emit one competitor-found event per
        competitor. A failed model call falls back to scraped competitors.
        """
        sink = sink or NullProgressSink()
        extraction = None

        if model is not None:
            try:
                extraction = await asyncio.wait_for(
                    model.generate_structured(
                        CompetitorExtraction,
                        self.prompt_engine.competitor_discovery_prompt(company),
                        temperature=self.settings.LLM_EXTRACTION_TEMPERATURE,
                        max_tokens=self.settings.LLM_EXTRACTION_MAX_TOKENS,
                        max_retries=self.settings.LLM_STRUCTURED_MAX_RETRIES,
                    ),
                    timeout=self.settings.LLM_REQUEST_TIMEOUT,
                )
            except (LLMAdapterError, asyncio.TimeoutError) as e:
                logger.warning(f"Competitor discovery failed for {company.name}, using scraped list: {e}")

        competitors = self.select_competitors(company, extraction, limit)

        for index, name in enumerate(competitors):
            sink.emit(ProgressEvent(
                type=ProgressEventType.COMPETITOR_FOUND,
                stage=AnalysisStage.DISCOVERING_COMPETITORS,
                data={"competitor": name, "index": index + 1, "total": len(competitors)},
            ))

        logger.info(f"Identified {len(competitors)} competitors for {company.name}")
        return competitors

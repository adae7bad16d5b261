"""
Cross-Response Aggregator
Folds interpreted answers into per-company counters for a scope
(all providers pooled, or one provider at a time)
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from functools import reduce
from statistics import mean
from typing import Dict, Iterable, List, Optional, Sequence

from brand_monitor.adapters.parsing import normalize_company_name
from brand_monitor.config import SENTIMENT_VALUES, UNRANKED_POSITION
from brand_monitor.schemas import (
    AnalysisResult,
    CompetitorRanking,
    ProviderComparisonData,
    ProviderComparisonEntry,
    ProviderSpecificRanking,
    SentimentPolarity,
)
from brand_monitor.utils import group_by, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class CompanyCounter:
    """Raw evidence for one tracked company"""
    name: str
    is_own: bool = False
    mentions: int = 0
    positions: List[int] = field(default_factory=list)
    sentiments: List[SentimentPolarity] = field(default_factory=list)


# Normalized company key -> counter, in tracking order (brand first)
Accumulator = Dict[str, CompanyCounter]


def new_accumulator(brand_name: str, tracked_companies: Iterable[str]) -> Accumulator:
    """One empty bucket per tracked company; names that normalize alike share a bucket"""
    accumulator: Accumulator = {
        normalize_company_name(brand_name): CompanyCounter(name=brand_name, is_own=True)
    }
    for name in tracked_companies:
        key = normalize_company_name(name)
        if key and key not in accumulator:
            accumulator[key] = CompanyCounter(name=name)
    return accumulator


def fold_response(accumulator: Accumulator, result: AnalysisResult) -> Accumulator:
    """
    Add one answer's evidence. Each company gains at most one mention per
    answer however many times, or ways, it was found.
    """
    brand_key = next(key for key, counter in accumulator.items() if counter.is_own)
    counted = set()

    for ranking in result.rankings:
        key = normalize_company_name(ranking.company)
        counter = accumulator.get(key)
        if counter is None:
            continue
        if key not in counted:
            counter.mentions += 1
            counted.add(key)
        counter.positions.append(ranking.position)
        if ranking.sentiment:
            counter.sentiments.append(SentimentPolarity(ranking.sentiment))

    # Brand flag only counts when the rankings did not already cover the brand
    if result.brand_mentioned and brand_key not in counted:
        brand = accumulator[brand_key]
        brand.mentions += 1
        counted.add(brand_key)
        if result.brand_position:
            brand.positions.append(result.brand_position)
        brand.sentiments.append(SentimentPolarity(result.sentiment))

    for name in result.competitors_mentioned:
        key = normalize_company_name(name)
        if key in accumulator and key not in counted and key != brand_key:
            accumulator[key].mentions += 1
            counted.add(key)

    return accumulator


def plurality_sentiment(samples: Sequence[SentimentPolarity]) -> SentimentPolarity:
    """Strict plurality; any tie, or no samples, is neutral"""
    counts = Counter(samples)
    positive = counts[SentimentPolarity.POSITIVE]
    negative = counts[SentimentPolarity.NEGATIVE]
    neutral = counts[SentimentPolarity.NEUTRAL]

    if positive > negative and positive > neutral:
        return SentimentPolarity.POSITIVE
    if negative > positive and negative > neutral:
        return SentimentPolarity.NEGATIVE
    return SentimentPolarity.NEUTRAL


def sentiment_score(samples: Sequence[SentimentPolarity]) -> float:
    if not samples:
        return SENTIMENT_VALUES["neutral"]
    return round_half_up(mean(SENTIMENT_VALUES[s.value] for s in samples), 0)


def finalize(accumulator: Accumulator, total_responses: int) -> List[CompetitorRanking]:
    """Turn counters into rankings sorted by visibility, ties in tracking order"""
    total_mentions = sum(counter.mentions for counter in accumulator.values())
    rankings = []

    for counter in accumulator.values():
        rankings.append(CompetitorRanking(
            name=counter.name,
            is_own=counter.is_own,
            mentions=counter.mentions,
            average_position=(
                round_half_up(mean(counter.positions)) if counter.positions else UNRANKED_POSITION
            ),
            sentiment=plurality_sentiment(counter.sentiments),
            sentiment_score=sentiment_score(counter.sentiments),
            share_of_voice=(
                round_half_up(counter.mentions / total_mentions * 100) if total_mentions else 0.0
            ),
            visibility_score=(
                round_half_up(counter.mentions / total_responses * 100) if total_responses else 0.0
            ),
        ))

    return sorted(rankings, key=lambda r: -r.visibility_score)


def aggregate(
    results: Sequence[AnalysisResult],
    brand_name: str,
    tracked_companies: Iterable[str],
) -> List[CompetitorRanking]:
    """
    Rankings for every tracked company over ``results``. The visibility
    denominator is the number of results passed in, so callers scope by
    choosing which results to pass.
    """
    accumulator = reduce(fold_response, results, new_accumulator(brand_name, tracked_companies))
    logger.debug(f"Aggregated {len(results)} responses over {len(accumulator)} companies")
    return finalize(accumulator, len(results))


def aggregate_by_provider(
    results: Sequence[AnalysisResult],
    brand_name: str,
    tracked_companies: Iterable[str],
    providers: Optional[Sequence[str]] = None,
) -> List[ProviderSpecificRanking]:
    """
    Same aggregation, run separately on each provider's results.
    Providers listed in ``providers`` but without results still get a
    (zero) ranking.
    """
    tracked = list(tracked_companies)
    partitions = group_by(results, lambda r: r.provider)

    ordered = list(providers or [])
    ordered += sorted(p for p in partitions if p not in ordered)

    return [
        ProviderSpecificRanking(
            provider=provider,
            competitors=aggregate(partitions.get(provider, []), brand_name, tracked),
        )
        for provider in ordered
    ]


def build_provider_comparison(
    provider_rankings: Sequence[ProviderSpecificRanking],
) -> List[ProviderComparisonData]:
    """One row per company, one column per provider, best mean visibility first"""
    rows: Dict[str, ProviderComparisonData] = {}

    for provider_ranking in provider_rankings:
        for ranking in provider_ranking.competitors:
            row = rows.setdefault(
                ranking.name,
                ProviderComparisonData(competitor=ranking.name, is_own=ranking.is_own),
            )
            row.providers[provider_ranking.provider] = ProviderComparisonEntry(
                visibility_score=ranking.visibility_score,
                position=ranking.average_position,
                mentions=ranking.mentions,
                sentiment=ranking.sentiment,
            )

    def mean_visibility(row: ProviderComparisonData) -> float:
        if not row.providers:
            return 0.0
        return mean(entry.visibility_score for entry in row.providers.values())

    # Stable sort keeps first-seen order among equal means
    return sorted(rows.values(), key=lambda row: -mean_visibility(row))

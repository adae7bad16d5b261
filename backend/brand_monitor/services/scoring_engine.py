"""
Brand Scoring Engine
Turns the brand's aggregated ranking into published, explainable scores
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from brand_monitor.config import OVERALL_SCORE_WEIGHTS, UNRANKED_POSITION
from brand_monitor.schemas import (
    BrandScoreSummary,
    CompetitorRanking,
    ProviderSpecificRanking,
)
from brand_monitor.utils import round_half_up


@dataclass
class ScoreComponent:
    """A component of the overall score with explanation"""
    name: str
    raw_value: float  # 0-100, before weighting
    weight: float
    weighted_value: float  # raw_value * weight
    explanation: str


@dataclass
class ScoreBreakdown:
    """Complete breakdown of an overall score"""
    components: List[ScoreComponent] = field(default_factory=list)
    overall_score: float = 0.0
    explanation: str = ""


class ScoringEngine:
    """
    Calculates brand scores with full transparency.

    Scoring Model (each input on a 0-100 scale):
    - Visibility:     30%
    - Sentiment:      20%
    - Share of voice: 30%
    - Position:       20%

    Position score: (11 - position) x 10 for positions 1-10,
    100 - 2 x position beyond that, never below 0. An unranked brand
    (sentinel position 99) therefore scores 0 on position.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self.weights = weights or OVERALL_SCORE_WEIGHTS

    @staticmethod
    def position_score(average_position: float) -> float:
        if average_position <= 0:
            return 0.0
        if average_position <= 10:
            score = (11 - average_position) * 10
        else:
            score = 100 - average_position * 2
        return max(0.0, min(100.0, score))

    def explain(
        self,
        brand_ranking: Optional[CompetitorRanking],
        total_responses: int,
    ) -> ScoreBreakdown:
        """Weighted components behind the overall score"""
        if brand_ranking is None or total_responses == 0:
            return ScoreBreakdown(explanation="No responses in scope; all scores are zero")

        raw = {
            "visibility": brand_ranking.visibility_score,
            "sentiment": brand_ranking.sentiment_score,
            "share_of_voice": brand_ranking.share_of_voice,
            "position": self.position_score(brand_ranking.average_position),
        }
        explanations = {
            "visibility": f"Mentioned in {brand_ranking.mentions} of {total_responses} responses",
            "sentiment": f"Overall sentiment {brand_ranking.sentiment.value}",
            "share_of_voice": f"{brand_ranking.share_of_voice}% of all tracked-company mentions",
            "position": (
                "Never ranked"
                if brand_ranking.average_position >= UNRANKED_POSITION
                else f"Average position {brand_ranking.average_position}"
            ),
        }

        components = [
            ScoreComponent(
                name=name,
                raw_value=raw[name],
                weight=weight,
                weighted_value=raw[name] * weight,
                explanation=explanations[name],
            )
            for name, weight in self.weights.items()
        ]
        overall = round_half_up(sum(c.weighted_value for c in components))

        return ScoreBreakdown(
            components=components,
            overall_score=overall,
            explanation="; ".join(f"{c.name}: {c.explanation}" for c in components),
        )

    def score(
        self,
        brand_ranking: Optional[CompetitorRanking],
        total_responses: int,
    ) -> BrandScoreSummary:
        """
        Summary for the brand's own ranking. Zero responses in scope is a
        distinct state: every field is 0, not the 99 / 50 sentinels.
        """
        if brand_ranking is None or total_responses == 0:
            return BrandScoreSummary()

        breakdown = self.explain(brand_ranking, total_responses)
        return BrandScoreSummary(
            visibility_score=round_half_up(brand_ranking.visibility_score),
            sentiment_score=round_half_up(brand_ranking.sentiment_score),
            share_of_voice=round_half_up(brand_ranking.share_of_voice),
            average_position=round_half_up(brand_ranking.average_position),
            overall_score=breakdown.overall_score,
        )

    def score_rankings(
        self,
        rankings: Sequence[CompetitorRanking],
        total_responses: int,
    ) -> BrandScoreSummary:
        """Score the own-brand entry of a ranking list"""
        brand = next((r for r in rankings if r.is_own), None)
        return self.score(brand, total_responses)

    def score_by_provider(
        self,
        provider_rankings: Sequence[ProviderSpecificRanking],
        responses_per_provider: Dict[str, int],
    ) -> Dict[str, BrandScoreSummary]:
        """Brand summary per provider, each over that provider's responses only"""
        return {
            pr.provider: self.score_rankings(pr.competitors, responses_per_provider.get(pr.provider, 0))
            for pr in provider_rankings
        }

"""
Tests for cross-response aggregation
"""

import random
from typing import List, Optional, Sequence

import pytest

from brand_monitor.schemas import (
    AnalysisResult,
    CompanyRanking,
    CompetitorRanking,
    ProviderSpecificRanking,
    SentimentPolarity,
)
from brand_monitor.services import (
    ScoringEngine,
    aggregate,
    aggregate_by_provider,
    build_provider_comparison,
)
from brand_monitor.services.aggregator import plurality_sentiment, sentiment_score


BRAND = "Firecrawl"


def make_result(
    provider: str = "OpenAI",
    rankings: Sequence[tuple] = (),
    mentioned: bool = False,
    position: Optional[int] = None,
    competitors: Sequence[str] = (),
    sentiment: str = "neutral",
) -> AnalysisResult:
    return AnalysisResult(
        provider=provider,
        prompt="best web scraping api",
        response="...",
        rankings=[
            CompanyRanking(position=r[0], company=r[1], sentiment=r[2] if len(r) > 2 else None)
            for r in rankings
        ],
        brand_mentioned=mentioned,
        brand_position=position,
        competitors_mentioned=list(competitors),
        sentiment=SentimentPolarity(sentiment),
    )


def by_name(rankings: List[CompetitorRanking]) -> dict:
    return {r.name: r for r in rankings}


@pytest.fixture
def scenario_a() -> List[AnalysisResult]:
    """10 responses over 2 providers; brand ranked #2 in 6, Acme mentioned in 4."""
    results = []
    for provider in ("OpenAI", "Google"):
        for i in range(5):
            brand_hit = i < 3
            acme_hit = i >= 3
            results.append(make_result(
                provider=provider,
                rankings=[(2, BRAND)] if brand_hit else [],
                mentioned=brand_hit,
                position=2 if brand_hit else None,
                competitors=["Acme"] if acme_hit else [],
            ))
    return results


class TestScenarioA:

    def test_global_counts(self, scenario_a):
        rankings = by_name(aggregate(scenario_a, BRAND, ["Acme"]))

        brand = rankings[BRAND]
        assert brand.is_own is True
        assert brand.mentions == 6
        assert brand.visibility_score == 60.0
        assert brand.share_of_voice == 60.0
        assert brand.average_position == 2.0

        acme = rankings["Acme"]
        assert acme.mentions == 4
        assert acme.visibility_score == 40.0
        assert acme.share_of_voice == 40.0
        assert acme.average_position == 99

    def test_sorted_by_visibility(self, scenario_a):
        rankings = aggregate(scenario_a, BRAND, ["Acme", "Apify"])
        assert [r.name for r in rankings] == [BRAND, "Acme", "Apify"]


class TestCountingRules:

    def test_every_tracked_company_has_a_bucket(self):
        rankings = by_name(aggregate([make_result()], BRAND, ["Acme", "Apify"]))
        assert set(rankings) == {BRAND, "Acme", "Apify"}
        assert rankings["Apify"].mentions == 0

    def test_duplicate_ranking_counts_once(self):
        result = make_result(rankings=[(1, "Acme"), (3, "Acme")])
        acme = by_name(aggregate([result], BRAND, ["Acme"]))["Acme"]

        assert acme.mentions == 1
        assert acme.average_position == 2.0

    def test_brand_flag_ignored_when_ranked(self):
        result = make_result(rankings=[(1, BRAND, "positive")], mentioned=True, position=1, sentiment="negative")
        brand = by_name(aggregate([result], BRAND, []))[BRAND]

        assert brand.mentions == 1
        assert brand.sentiment == SentimentPolarity.POSITIVE
        assert brand.sentiment_score == 100

    def test_brand_flag_counts_when_not_ranked(self):
        result = make_result(mentioned=True, position=4, sentiment="positive")
        brand = by_name(aggregate([result], BRAND, []))[BRAND]

        assert brand.mentions == 1
        assert brand.average_position == 4.0
        assert brand.sentiment == SentimentPolarity.POSITIVE

    def test_unranked_mention_reports_sentinel(self):
        result = make_result(mentioned=True)
        brand = by_name(aggregate([result], BRAND, []))[BRAND]

        assert brand.mentions == 1
        assert brand.average_position == 99

    def test_untracked_companies_ignored(self):
        result = make_result(rankings=[(1, "Octoparse")], competitors=["Octoparse"])
        rankings = aggregate([result], BRAND, ["Acme"])
        assert all(r.name != "Octoparse" for r in rankings)

    def test_names_matched_after_normalization(self):
        result = make_result(rankings=[(1, "ACME, Inc.")], competitors=["acme"])
        rankings = aggregate([result], BRAND, ["Acme Inc", "acme"])

        assert len(rankings) == 2
        assert by_name(rankings)["Acme Inc"].mentions == 1

    def test_competitor_list_never_counts_brand(self):
        result = make_result(competitors=[BRAND])
        brand = by_name(aggregate([result], BRAND, []))[BRAND]
        assert brand.mentions == 0


class TestProperties:

    def test_shuffle_invariance(self, scenario_a):
        extra = [
            make_result(rankings=[(1, "Acme", "positive"), (3, BRAND, "negative")]),
            make_result(provider="Google", rankings=[(5, "Apify")], mentioned=True, sentiment="positive"),
        ]
        results = scenario_a + extra
        tracked = ["Acme", "Apify"]
        scorer = ScoringEngine()

        expected = aggregate(results, BRAND, tracked)
        expected_score = scorer.score_rankings(expected, len(results))

        rng = random.Random(7)
        for _ in range(5):
            shuffled = results[:]
            rng.shuffle(shuffled)
            rankings = aggregate(shuffled, BRAND, tracked)
            assert rankings == expected
            assert scorer.score_rankings(rankings, len(shuffled)) == expected_score

    def test_share_of_voice_closure(self):
        results = [
            make_result(mentioned=True),
            make_result(competitors=["Acme"]),
            make_result(competitors=["Apify"]),
        ]
        rankings = aggregate(results, BRAND, ["Acme", "Apify"])
        assert sum(r.share_of_voice for r in rankings) == pytest.approx(100, abs=0.1 + 1e-9)

    def test_aggregation_is_repeatable(self, scenario_a):
        assert aggregate(scenario_a, BRAND, ["Acme"]) == aggregate(scenario_a, BRAND, ["Acme"])

    def test_zero_responses(self):
        rankings = aggregate([], BRAND, ["Acme"])

        for ranking in rankings:
            assert ranking.mentions == 0
            assert ranking.visibility_score == 0.0
            assert ranking.share_of_voice == 0.0
            assert ranking.average_position == 99
            assert ranking.sentiment_score == 50


class TestSentiment:

    @pytest.mark.parametrize("samples,expected", [
        ([], SentimentPolarity.NEUTRAL),
        (["positive", "positive", "negative"], SentimentPolarity.POSITIVE),
        (["positive", "negative"], SentimentPolarity.NEUTRAL),
        (["negative", "negative", "neutral"], SentimentPolarity.NEGATIVE),
        (["positive", "neutral"], SentimentPolarity.NEUTRAL),
    ])
    def test_plurality(self, samples, expected):
        assert plurality_sentiment([SentimentPolarity(s) for s in samples]) == expected

    @pytest.mark.parametrize("samples,expected", [
        ([], 50),
        (["positive", "neutral"], 75),
        (["positive", "negative", "negative"], 33),
        (["positive", "positive", "negative"], 67),
    ])
    def test_score(self, samples, expected):
        assert sentiment_score([SentimentPolarity(s) for s in samples]) == expected


class TestPerProvider:

    def test_denominator_is_provider_local(self):
        results = (
            [make_result(provider="OpenAI", mentioned=True) for _ in range(4)]
            + [make_result(provider="Google", mentioned=True) for _ in range(2)]
            + [make_result(provider="Google") for _ in range(4)]
        )

        per_provider = {
            pr.provider: by_name(pr.competitors)[BRAND]
            for pr in aggregate_by_provider(results, BRAND, [])
        }
        global_brand = by_name(aggregate(results, BRAND, []))[BRAND]

        assert per_provider["OpenAI"].visibility_score == 100.0
        assert per_provider["Google"].visibility_score == 33.3
        assert global_brand.visibility_score == 60.0

    def test_matches_global_aggregation_of_partition(self, scenario_a):
        openai_only = [r for r in scenario_a if r.provider == "OpenAI"]
        per_provider = aggregate_by_provider(scenario_a, BRAND, ["Acme"])

        openai = next(pr for pr in per_provider if pr.provider == "OpenAI")
        assert openai.competitors == aggregate(openai_only, BRAND, ["Acme"])

    def test_provider_order_and_empty_providers(self, scenario_a):
        per_provider = aggregate_by_provider(
            scenario_a, BRAND, ["Acme"], providers=["Anthropic", "OpenAI"]
        )

        assert [pr.provider for pr in per_provider] == ["Anthropic", "OpenAI", "Google"]
        anthropic = by_name(per_provider[0].competitors)
        assert anthropic[BRAND].visibility_score == 0.0


class TestProviderComparison:

    def test_pivot_and_sort(self):
        provider_rankings = [
            ProviderSpecificRanking(provider="OpenAI", competitors=[
                CompetitorRanking(name=BRAND, is_own=True, mentions=2, visibility_score=40.0, average_position=2),
                CompetitorRanking(name="Acme", mentions=4, visibility_score=80.0),
            ]),
            ProviderSpecificRanking(provider="Google", competitors=[
                CompetitorRanking(name=BRAND, is_own=True, mentions=5, visibility_score=100.0),
            ]),
        ]

        rows = build_provider_comparison(provider_rankings)

        assert [row.competitor for row in rows] == ["Acme", BRAND]
        acme, brand = rows
        assert set(acme.providers) == {"OpenAI"}
        assert set(brand.providers) == {"OpenAI", "Google"}
        assert brand.is_own is True
        assert brand.providers["OpenAI"].position == 2
        assert brand.providers["Google"].mentions == 5

    def test_equal_means_keep_first_seen_order(self):
        provider_rankings = [
            ProviderSpecificRanking(provider="OpenAI", competitors=[
                CompetitorRanking(name=BRAND, is_own=True, visibility_score=50.0),
                CompetitorRanking(name="Acme", visibility_score=50.0),
            ]),
        ]
        rows = build_provider_comparison(provider_rankings)
        assert [row.competitor for row in rows] == [BRAND, "Acme"]

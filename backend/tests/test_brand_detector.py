"""
Tests for the brand mention detector and company name normalization
"""

import pytest

from brand_monitor.adapters.parsing import (
    DetectionOptions,
    detect_brand_mention,
    detect_multiple_brands,
    get_detection_options,
    name_variations,
    normalize_company_name,
    strip_legal_suffix,
)


class TestNormalization:
    """Canonical company keys."""

    @pytest.mark.parametrize("name,expected", [
        ("Acme, Inc.", "acme"),
        ("Acme Corp", "acme"),
        ("Foo Co Ltd", "foo"),
        ("OpenAI's", "openai"),
        ("  Firecrawl  ", "firecrawl"),
        ("Amazon Web Services", "aws"),
        ("Bright Data", "brightdata"),
        ("Node.js", "node js"),
    ])
    def test_normalize_company_name(self, name, expected):
        assert normalize_company_name(name) == expected

    def test_strip_legal_suffix_keeps_bare_suffix(self):
        """A name that is only a suffix word is left alone."""
        assert strip_legal_suffix("Corp") == "Corp"
        assert strip_legal_suffix("Acme Corp.") == "Acme"

    def test_name_variations_split_on_space(self):
        assert name_variations("Open AI") == ["OpenAI", "Open-AI"]

    def test_name_variations_split_camel_case(self):
        assert name_variations("HubSpot") == ["Hub Spot", "Hub-Spot"]

    def test_single_word_has_no_variations(self):
        assert name_variations("Apify") == []


class TestDetectionTiers:
    """Each match path and its confidence."""

    def test_exact_match(self):
        result = detect_brand_mention("We recommend Firecrawl for scraping.", "Firecrawl")
        assert result.mentioned is True
        assert result.confidence == 1.0
        assert len(result.matches) == 1
        assert result.matches[0].match_type == "exact"
        assert result.matches[0].index == 13

    def test_case_insensitive_match(self):
        result = detect_brand_mention("firecrawl is great", "Firecrawl")
        assert result.mentioned is True
        assert result.confidence == 0.9
        assert result.matches[0].match_type == "case_insensitive"

    def test_case_sensitive_option_rejects_lowercase(self):
        options = DetectionOptions(case_sensitive=True)
        assert detect_brand_mention("firecrawl is great", "Firecrawl", options).mentioned is False

    def test_legal_suffix_tolerated(self):
        result = detect_brand_mention("Acme is popular with enterprises", "Acme Corp")
        assert result.mentioned is True
        assert result.matches[0].match_type == "base_name"
        assert result.confidence == 0.85

    def test_possessive_form(self):
        result = detect_brand_mention("compare to OpenAI's offering", "OpenAI")
        assert result.mentioned is True
        assert result.matches[0].text == "OpenAI's"
        assert result.confidence == 1.0

    def test_no_space_variant(self):
        """'Open AI' is found as 'OpenAI'."""
        result = detect_brand_mention("Many teams build on OpenAI today", "Open AI")
        assert result.mentioned is True
        assert result.matches[0].match_type == "variation"
        assert result.confidence == 0.8

    def test_confidence_is_max_not_sum(self):
        result = detect_brand_mention("Bright Data and BrightData again", "Bright Data")
        assert len(result.matches) == 2
        assert result.confidence == 1.0


class TestWordBoundaries:
    """Whole-word matching."""

    def test_substring_of_larger_word_rejected(self):
        assert detect_brand_mention("the apifying process", "Apify").mentioned is False

    def test_substring_allowed_when_whole_word_disabled(self):
        options = DetectionOptions(whole_word_only=False)
        assert detect_brand_mention("the apifying process", "Apify", options).mentioned is True

    @pytest.mark.parametrize("text", [
        "(Apify) is a platform",
        "Try Apify, ScrapingBee or others",
        "Best pick: Apify.",
        '"Apify"',
    ])
    def test_punctuation_counts_as_boundary(self, text):
        assert detect_brand_mention(text, "Apify").mentioned is True


class TestEdgeCases:

    def test_empty_text(self):
        result = detect_brand_mention("", "Apify")
        assert result.mentioned is False
        assert result.confidence == 0.0

    def test_name_below_minimum_length(self):
        assert detect_brand_mention("X marks the spot", "X").mentioned is False

    def test_deterministic(self):
        text = "Apify, apify and Apify's store"
        first = detect_brand_mention(text, "Apify")
        second = detect_brand_mention(text, "Apify")
        assert first == second
        assert [m.index for m in first.matches] == [0, 7, 17]


class TestFuzzyMatching:
    """Near misses for long names."""

    def test_fuzzy_only_for_long_names(self):
        assert get_detection_options("Apify").fuzzy is False
        assert get_detection_options("ScrapingBee").fuzzy is True

    def test_misspelling_found_with_lower_confidence(self):
        result = detect_brand_mention(
            "I like Scrapingbe a lot", "ScrapingBee", get_detection_options("ScrapingBee")
        )
        assert result.mentioned is True
        assert result.matches[0].match_type == "fuzzy"
        assert 0.6 < result.confidence < 0.8

    def test_unrelated_word_not_fuzzy_matched(self):
        result = detect_brand_mention(
            "Scraping tools compared", "ScrapingBee", get_detection_options("ScrapingBee")
        )
        assert result.mentioned is False


class TestMultipleBrands:

    def test_each_name_detected_independently(self):
        text = "Apify beats ScrapingBee on price"
        results = detect_multiple_brands(text, ["Apify", "ScrapingBee", "Octoparse"])

        assert results["Apify"].mentioned is True
        assert results["ScrapingBee"].mentioned is True
        assert results["Octoparse"].mentioned is False
        assert results["Apify"] == detect_brand_mention(text, "Apify", get_detection_options("Apify"))

"""
Sentiment Analyzer
Rule-based polarity for the text around a company mention
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from brand_monitor.schemas.analysis import SentimentPolarity

LABEL_PATTERN = re.compile(r"\b(positive|negative|neutral)\b", re.IGNORECASE)


@dataclass
class SentimentResult:
    """Result of sentiment analysis"""
    polarity: SentimentPolarity
    score: float  # -1.0 to 1.0
    confidence: float  # 0.0 to 1.0
    matched_indicators: List[str] = field(default_factory=list)


class SentimentAnalyzer:
    """
    Lexicon scorer for recommendation-style answers ("X is the best option
    for...", "Y is pricey and limited"). Each indicator carries a weight;
    a negation shortly before an indicator flips it at reduced strength.
    """

    POSITIVE_INDICATORS: Dict[str, float] = {
        # Strong
        "best": 1.5, "excellent": 1.5, "outstanding": 1.5, "exceptional": 1.5,
        "market leader": 1.5, "industry standard": 1.5, "top choice": 1.5,
        "highly recommended": 1.5, "best-in-class": 1.5, "top pick": 1.5,
        # Moderate
        "great": 1.0, "good": 1.0, "reliable": 1.0, "leading": 1.0,
        "recommended": 1.0, "trusted": 1.0, "popular": 1.0, "powerful": 1.0,
        "innovative": 1.0, "standout": 1.0, "stands out": 1.0, "excels": 1.0,
        "go-to": 1.0, "well-known": 1.0, "widely used": 1.0,
        # Mild
        "solid": 0.5, "strong": 0.5, "robust": 0.5, "intuitive": 0.5,
        "user-friendly": 0.5, "easy to use": 0.5, "affordable": 0.5,
        "comprehensive": 0.5, "efficient": 0.5, "effective": 0.5, "decent": 0.5,
    }

    NEGATIVE_INDICATORS: Dict[str, float] = {
        # Strong
        "worst": 1.5, "terrible": 1.5, "awful": 1.5, "poor": 1.5,
        "not recommended": 1.5, "avoid": 1.5, "stay away": 1.5,
        # Moderate
        "bad": 1.0, "weak": 1.0, "unreliable": 1.0, "outdated": 1.0,
        "overpriced": 1.0, "buggy": 1.0, "disappointing": 1.0, "frustrating": 1.0,
        "falls short": 1.0, "struggles": 1.0, "lacks": 1.0, "losing ground": 1.0,
        # Mild
        "expensive": 0.5, "pricey": 0.5, "limited": 0.5, "slow": 0.5,
        "complicated": 0.5, "difficult": 0.5, "steep learning curve": 0.5,
        "mediocre": 0.5, "inconsistent": 0.5, "basic": 0.5,
    }

    NEGATION_WORDS = [
        "not", "no", "never", "hardly", "barely", "isn't", "aren't",
        "doesn't", "don't", "wasn't", "lacking",
    ]

    # Score beyond which a text is called positive / negative
    POLARITY_THRESHOLD = 0.2

    def __init__(self, negation_window: int = 30):
        self.negation_window = negation_window
        self._positive_pattern = self._build_pattern(self.POSITIVE_INDICATORS)
        self._negative_pattern = self._build_pattern(self.NEGATIVE_INDICATORS)
        self._negation_pattern = self._build_pattern(self.NEGATION_WORDS)

    def _build_pattern(self, words: Iterable[str]) -> re.Pattern:
        # Longest first so phrases win over their own words
        escaped = [re.escape(w) for w in sorted(words, key=len, reverse=True)]
        return re.compile(r"\b(" + "|".join(escaped) + r")\b", re.IGNORECASE)

    def _is_negated(self, text: str, match_start: int) -> bool:
        context = text[max(0, match_start - self.negation_window):match_start]
        return bool(self._negation_pattern.search(context))

    def _score_indicators(self, text: str) -> Tuple[float, float, List[str]]:
        positive = 0.0
        negative = 0.0
        matched = []

        for match in self._positive_pattern.finditer(text):
            word = match.group().lower()
            weight = self.POSITIVE_INDICATORS.get(word, 0.5)
            if self._is_negated(text, match.start()):
                negative += weight / 2
                matched.append(f"NOT {word}")
            else:
                positive += weight
                matched.append(word)

        for match in self._negative_pattern.finditer(text):
            word = match.group().lower()
            weight = self.NEGATIVE_INDICATORS.get(word, 0.5)
            if self._is_negated(text, match.start()):
                positive += weight / 4
                matched.append(f"NOT {word}")
            else:
                negative += weight
                matched.append(word)

        return positive, negative, matched

    def _to_result(self, positive: float, negative: float, matched: List[str]) -> SentimentResult:
        total = positive + negative
        if total == 0:
            return SentimentResult(polarity=SentimentPolarity.NEUTRAL, score=0.0, confidence=0.0)

        score = max(-1.0, min(1.0, (positive - negative) / total))
        confidence = min(1.0, len(matched) / 5.0)

        if score > self.POLARITY_THRESHOLD:
            polarity = SentimentPolarity.POSITIVE
        elif score < -self.POLARITY_THRESHOLD:
            polarity = SentimentPolarity.NEGATIVE
        else:
            polarity = SentimentPolarity.NEUTRAL

        return SentimentResult(
            polarity=polarity,
            score=score,
            confidence=confidence,
            matched_indicators=matched,
        )

    def analyze(self, text: str) -> SentimentResult:
        """
        Analyze sentiment of text.

        Args:
            text: Text to analyze

        Returns:
            SentimentResult with polarity and score
        """
        if not text:
            return SentimentResult(polarity=SentimentPolarity.NEUTRAL, score=0.0, confidence=0.0)
        return self._to_result(*self._score_indicators(text))

    def analyze_mention_context(
        self,
        full_text: str,
        mention_start: int,
        mention_end: int,
        context_window: int = 150
    ) -> SentimentResult:
        """Analyze sentiment of the text surrounding one mention"""
        context_start = max(0, mention_start - context_window)
        context_end = min(len(full_text), mention_end + context_window)
        return self.analyze(full_text[context_start:context_end])

    def analyze_mentions(
        self,
        full_text: str,
        spans: Iterable[Tuple[int, int]],
        context_window: int = 150,
    ) -> SentimentResult:
        """
        Pool the indicators found around every mention of a company.
        Overlapping windows are merged so shared text is counted once.
        """
        windows: List[Tuple[int, int]] = []
        for start, end in sorted(spans):
            lo = max(0, start - context_window)
            hi = min(len(full_text), end + context_window)
            if windows and lo <= windows[-1][1]:
                windows[-1] = (windows[-1][0], max(windows[-1][1], hi))
            else:
                windows.append((lo, hi))

        positive = negative = 0.0
        matched: List[str] = []
        for lo, hi in windows:
            pos, neg, found = self._score_indicators(full_text[lo:hi])
            positive += pos
            negative += neg
            matched.extend(found)

        return self._to_result(positive, negative, matched)

    @staticmethod
    def parse_label(text: str) -> Optional[SentimentPolarity]:
        """First explicit positive/neutral/negative label in a model reply"""
        match = LABEL_PATTERN.search(text or "")
        if not match:
            return None
        return SentimentPolarity(match.group(1).lower())

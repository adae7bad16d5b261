"""
Brand Mention Detector
Decides whether, and how confidently, a company name appears in free text
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

from brand_monitor.config import COMPANY_NAME_NORMALIZATIONS, LEGAL_SUFFIXES, get_settings

# Confidence per match tier
EXACT_CONFIDENCE = 1.0
CASE_INSENSITIVE_CONFIDENCE = 0.9
BASE_NAME_CONFIDENCE = 0.85
VARIATION_CONFIDENCE = 0.8
FUZZY_CONFIDENCE = 0.7

MIN_NAME_LENGTH = 2

POSSESSIVE = r"(?:['’]s)?"
WORD_BOUNDARY_BEFORE = r"(?<![A-Za-z0-9])"
WORD_BOUNDARY_AFTER = r"(?![A-Za-z0-9])"

# Words in running text, keeping internal punctuation ("Node.js", "AT&T", "Coca-Cola")
TEXT_WORD_PATTERN = re.compile(r"[A-Za-z0-9]+(?:[.&'’-][A-Za-z0-9]+)*")
CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
POSSESSIVE_SUFFIX = re.compile(r"['’]s$")
LEGAL_SUFFIX_PATTERN = re.compile(
    r"[,\s]+(?:" + "|".join(re.escape(s) for s in LEGAL_SUFFIXES) + r")\.?$",
    re.IGNORECASE,
)


@dataclass
class DetectionOptions:
    """How a single name is searched for"""
    case_sensitive: bool = False
    whole_word_only: bool = True
    include_variations: bool = True
    fuzzy: bool = False
    fuzzy_threshold: int = 90


@dataclass
class BrandMatch:
    """A detected occurrence of a name"""
    text: str            # Exact text found in the response
    index: int           # Character offset
    confidence: float    # 0.0 - 1.0
    match_type: str      # "exact", "case_insensitive", "base_name", "variation", "fuzzy"

    @property
    def end(self) -> int:
        return self.index + len(self.text)


@dataclass
class DetectionResult:
    """Outcome of searching one name in one text"""
    mentioned: bool
    confidence: float
    matches: List[BrandMatch] = field(default_factory=list)


def strip_legal_suffix(name: str) -> str:
    """ "Acme Corp." -> "Acme"; repeated suffixes ("Foo Co Ltd") are all removed """
    base = name.strip()
    while True:
        stripped = LEGAL_SUFFIX_PATTERN.sub("", base).strip()
        if stripped == base or not stripped:
            return base
        base = stripped


def normalize_company_name(name: str) -> str:
    """
    Canonical key for a company name.

    Lowercases, drops possessive and legal suffixes, turns punctuation into
    spaces, collapses whitespace and folds known variations
    ("Amazon Web Services" -> "aws").
    """
    key = re.sub(r"\s+", " ", (name or "").strip().lower())
    key = POSSESSIVE_SUFFIX.sub("", key)
    if key in COMPANY_NAME_NORMALIZATIONS:
        return COMPANY_NAME_NORMALIZATIONS[key]

    key = strip_legal_suffix(key).lower()
    key = re.sub(r"[^\w\s&+]", " ", key)
    key = re.sub(r"\s+", " ", key).strip()
    return COMPANY_NAME_NORMALIZATIONS.get(key, key)


def name_variations(name: str) -> List[str]:
    """
    Spacing variants of a multi-part name: "Open AI" -> ["OpenAI", "Open-AI"],
    "HubSpot" -> ["Hub Spot", "Hub-Spot"]. The name itself is not included.
    """
    parts: List[str] = []
    for chunk in re.split(r"[\s\-_]+", name.strip()):
        parts.extend(p for p in CAMEL_BOUNDARY.split(chunk) if p)

    if len(parts) < 2:
        return []

    variations = []
    for candidate in ("".join(parts), " ".join(parts), "-".join(parts)):
        if candidate.lower() != name.strip().lower() and candidate not in variations:
            variations.append(candidate)
    return variations


def get_detection_options(name: str) -> DetectionOptions:
    """
    Per-name options. Fuzzy matching is only switched on for long names,
    where a near miss is unlikely to be a different word.
    """
    settings = get_settings()
    compact = normalize_company_name(name).replace(" ", "")
    return DetectionOptions(
        fuzzy=len(compact) >= settings.DETECTION_FUZZY_MIN_LENGTH,
        fuzzy_threshold=settings.DETECTION_FUZZY_THRESHOLD,
    )


def _compile(term: str, options: DetectionOptions, ignore_case: bool) -> re.Pattern:
    pattern = re.escape(term) + POSSESSIVE
    if options.whole_word_only:
        pattern = WORD_BOUNDARY_BEFORE + pattern + WORD_BOUNDARY_AFTER
    return re.compile(pattern, re.IGNORECASE if ignore_case else 0)


def _find_all(
    text: str,
    term: str,
    options: DetectionOptions,
    ignore_case: bool,
    confidence: float,
    match_type: str,
) -> List[BrandMatch]:
    return [
        BrandMatch(text=m.group(), index=m.start(), confidence=confidence, match_type=match_type)
        for m in _compile(term, options, ignore_case).finditer(text)
    ]


def _find_fuzzy(text: str, base: str, threshold: int) -> List[BrandMatch]:
    """Compare every run of words as long as the name against the name"""
    words = list(TEXT_WORD_PATTERN.finditer(text))
    width = len(base.split())
    target = base.lower()
    matches = []

    for i in range(len(words) - width + 1):
        start, end = words[i].start(), words[i + width - 1].end()
        window = text[start:end]
        ratio = fuzz.ratio(window.lower(), target)
        if ratio >= threshold:
            matches.append(BrandMatch(
                text=window,
                index=start,
                confidence=round(FUZZY_CONFIDENCE * ratio / 100, 4),
                match_type="fuzzy",
            ))
    return matches


def _resolve_overlaps(candidates: Iterable[BrandMatch]) -> List[BrandMatch]:
    """Keep the strongest match for any overlapping span, ordered by offset"""
    accepted: List[BrandMatch] = []
    spans: List[Tuple[int, int]] = []

    for match in sorted(candidates, key=lambda m: (-m.confidence, m.index, -len(m.text))):
        if any(match.index < e and s < match.end for s, e in spans):
            continue
        accepted.append(match)
        spans.append((match.index, match.end))

    return sorted(accepted, key=lambda m: m.index)


def detect_brand_mention(
    text: str,
    brand_name: str,
    options: Optional[DetectionOptions] = None,
) -> DetectionResult:
    """
    Search ``text`` for ``brand_name``.

    Tiers, strongest first: exact case-sensitive, case-insensitive, name
    without legal suffix, spacing variants, fuzzy. Overall confidence is the
    best single match, not a sum.
    """
    options = options or DetectionOptions()
    name = (brand_name or "").strip()

    if not text or len(name) < MIN_NAME_LENGTH:
        return DetectionResult(mentioned=False, confidence=0.0)

    ignore_case = not options.case_sensitive
    candidates = _find_all(text, name, options, False, EXACT_CONFIDENCE, "exact")

    if ignore_case:
        candidates += _find_all(
            text, name, options, True, CASE_INSENSITIVE_CONFIDENCE, "case_insensitive"
        )

    base = strip_legal_suffix(name)
    if base != name and len(base) >= MIN_NAME_LENGTH:
        candidates += _find_all(text, base, options, ignore_case, BASE_NAME_CONFIDENCE, "base_name")

    if options.include_variations:
        for variation in name_variations(base):
            candidates += _find_all(
                text, variation, options, ignore_case, VARIATION_CONFIDENCE, "variation"
            )

    if options.fuzzy:
        candidates += _find_fuzzy(text, base, options.fuzzy_threshold)

    matches = _resolve_overlaps(candidates)
    confidence = min(1.0, max((m.confidence for m in matches), default=0.0))

    return DetectionResult(mentioned=bool(matches), confidence=confidence, matches=matches)


def detect_multiple_brands(
    text: str,
    brand_names: Iterable[str],
    options: Optional[DetectionOptions] = None,
) -> Dict[str, DetectionResult]:
    """
    Run the detector for each name independently. Without explicit options
    each name gets its own ``get_detection_options``.
    """
    return {
        name: detect_brand_mention(text, name, options or get_detection_options(name))
        for name in brand_names
    }

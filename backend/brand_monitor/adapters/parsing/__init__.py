"""
Response Parsing Adapters
"""

from .brand_detector import (
    BrandMatch,
    DetectionOptions,
    DetectionResult,
    detect_brand_mention,
    detect_multiple_brands,
    get_detection_options,
    name_variations,
    normalize_company_name,
    strip_legal_suffix,
)
from .sentiment_analyzer import SentimentAnalyzer, SentimentResult

__all__ = [
    "BrandMatch",
    "DetectionOptions",
    "DetectionResult",
    "detect_brand_mention",
    "detect_multiple_brands",
    "get_detection_options",
    "name_variations",
    "normalize_company_name",
    "strip_legal_suffix",
    "SentimentAnalyzer",
    "SentimentResult",
]

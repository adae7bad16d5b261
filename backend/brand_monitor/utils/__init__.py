"""
Utility helpers for brand-monitor
"""

import hashlib
import math
from collections import defaultdict
from typing import Callable, Dict, Hashable, Iterable, List, TypeVar

from .progress import (
    ProgressSink,
    NullProgressSink,
    QueueProgressSink,
    CallbackProgressSink,
    create_sse_message,
)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def round_half_up(value: float, digits: int = 1) -> float:
    """
    Round half away from zero. Built-in round() uses banker's rounding,
    which would turn 12.25 into 12.2.
    """
    scale = 10 ** digits
    rounded = math.floor(abs(value) * scale + 0.5) / scale
    return math.copysign(rounded, value) if rounded else 0.0


def group_by(items: Iterable[T], key: Callable[[T], K]) -> Dict[K, List[T]]:
    """Partition items by key, keeping first-seen key order"""
    groups: Dict[K, List[T]] = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)
    return dict(groups)


def generate_prompt_id(prompt_text: str, template_version: str = "v1") -> str:
    """Deterministic id for a prompt"""
    content = f"{prompt_text.strip()}|{template_version}"
    return hashlib.sha256(content.encode()).hexdigest()[:16]


__all__ = [
    "round_half_up",
    "group_by",
    "generate_prompt_id",
    "ProgressSink",
    "NullProgressSink",
    "QueueProgressSink",
    "CallbackProgressSink",
    "create_sse_message",
]

"""
Question analysis result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QuestionType(str, Enum):
    IDEATION = "product_ideation"
    STRATEGY = "strategy"
    TECHNICAL = "technical"
    GENERAL = "general"
    # Board-specific extensions
    CLINICAL = "clinical"
    EDUCATIONAL = "educational"
    REMEDIAL = "remedial"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    CONCERNED = "concerned"


# Domain tag for questions that match no board
GENERAL_DOMAIN = "general"


@dataclass(frozen=True)
class QuestionAnalysis:
    """Classification of one question; shared read-only across a batch."""

    type: QuestionType
    domain: str
    keywords: List[str]
    confidence: float
    complexity: Complexity = Complexity.MEDIUM
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: Urgency = Urgency.LOW
    follow_up_indicators: List[str] = field(default_factory=list)
    matched_domains: List[str] = field(default_factory=list)
    domain_hint: Optional[str] = None

    @property
    def is_follow_up(self) -> bool:
        return bool(self.follow_up_indicators)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "domain": self.domain,
            "keywords": list(self.keywords),
            "confidence": self.confidence,
            "complexity": self.complexity.value,
            "sentiment": self.sentiment.value,
            "urgency": self.urgency.value,
            "follow_up": self.is_follow_up,
            "matched_domains": list(self.matched_domains),
        }

    @classmethod
    def safe_default(cls, domain_hint: Optional[str] = None) -> "QuestionAnalysis":
        return cls(
            type=QuestionType.GENERAL,
            domain=domain_hint or GENERAL_DOMAIN,
            keywords=[],
            confidence=0.5,
            domain_hint=domain_hint,
        )

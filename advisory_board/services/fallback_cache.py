"""
Fallback Cache
In-memory store of last-known-good answers per (advisor, question), used
when the model is unavailable.

Entries carry a quality tier that sets their TTL and the confidence reported
when they are served. Expired high-quality entries can still be served in
emergency mode when the caller asks for them explicitly.
"""

import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import structlog

from advisory_board.core.config import (
    EMERGENCY_CACHE_TTL_SEC,
    FALLBACK_CACHE_LOW_WATERMARK,
    FALLBACK_CACHE_MAX_ENTRIES,
    FALLBACK_CACHE_TTL_SEC,
)
from advisory_board.models.responses import (
    AdvisorProfile,
    AdvisorResponse,
    ErrorInfo,
    PersonaSnapshot,
    ResponseMetadata,
    ResponseType,
)
from advisory_board.services.question_analyzer import normalize_question

logger = structlog.get_logger(__name__)


class CacheQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


QUALITY_CONFIDENCE = {
    CacheQuality.HIGH: 0.8,
    CacheQuality.MEDIUM: 0.6,
    CacheQuality.LOW: 0.4,
}

EMERGENCY_CONFIDENCE = 0.3

EMERGENCY_TEMPLATES = {
    "productboard": (
        "Thank you for your product-related question. As {name}, I understand you're looking for "
        "insights about product strategy and development. While our advanced AI system is temporarily "
        "unavailable, I recommend focusing on user needs, market validation, and iterative development "
        "approaches. Please try again shortly for more detailed guidance."
    ),
    "cliniboard": (
        "Thank you for your clinical research question. As {name}, I recognize the importance of "
        "rigorous clinical processes and regulatory compliance. While our detailed analysis system is "
        "temporarily unavailable, I recommend consulting current clinical guidelines and regulatory "
        "frameworks. Please try again shortly for comprehensive clinical insights."
    ),
    "eduboard": (
        "Thank you for your educational question. As {name}, I understand the importance of effective "
        "learning design and educational outcomes. While our advanced analysis is temporarily "
        "unavailable, I recommend focusing on learner-centered approaches and evidence-based "
        "educational practices. Please try again shortly for detailed educational guidance."
    ),
    "remediboard": (
        "Thank you for your wellness question. As {name}, I appreciate your interest in holistic health "
        "approaches. While our comprehensive analysis system is temporarily unavailable, I recommend "
        "consulting with qualified healthcare practitioners and considering integrative approaches to "
        "wellness. Please try again shortly for detailed guidance."
    ),
}
DEFAULT_EMERGENCY_TEMPLATE = (
    "Thank you for your question. As {name}, I'm here to help with {expertise}. While our advanced "
    "response system is temporarily unavailable, please try again shortly for detailed insights. In "
    "the meantime, consider consulting relevant professional resources in this area."
)


@dataclass
class CacheEntry:
    key: str
    advisor_id: str
    response: AdvisorResponse
    quality: CacheQuality
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def fallback_key(advisor_id: str, question: Optional[str]) -> str:
    """Stable key over advisor id and the normalised question."""
    raw = f"{advisor_id}\x1f{normalize_question(question)}"
    return "fallback:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


class FallbackCache:
    def __init__(
        self,
        max_entries: int = FALLBACK_CACHE_MAX_ENTRIES,
        low_watermark: int = FALLBACK_CACHE_LOW_WATERMARK,
        ttl: float = FALLBACK_CACHE_TTL_SEC,
        emergency_ttl: float = EMERGENCY_CACHE_TTL_SEC,
        time_func: Callable[[], float] = time.time,
    ):
        self.max_entries = max_entries
        self.low_watermark = min(low_watermark, max_entries)
        self.ttl = ttl
        self.emergency_ttl = emergency_ttl
        self._now = time_func
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.hit_count = 0
        self.miss_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def try_get(
        self,
        advisor_id: str,
        question: Optional[str],
        allow_expired: bool = False,
    ) -> Optional[CacheEntry]:
        """Fresh entry, or an expired high-quality one when ``allow_expired``; never raises."""
        try:
            entry = self._entries.get(fallback_key(advisor_id, question))
            if entry is None:
                self.miss_count += 1
                return None
            if not entry.is_expired(self._now()):
                self.hit_count += 1
                return entry
            if allow_expired and entry.quality == CacheQuality.HIGH:
                self.hit_count += 1
                logger.info(
                    "Serving expired high-quality entry",
                    stage="fallback_cache",
                    advisor_id=advisor_id,
                    emergency_cache=True,
                )
                return entry
            self.miss_count += 1
            return None
        except Exception as e:
            logger.warning("Fallback cache lookup failed", stage="fallback_cache", error=str(e))
            self.miss_count += 1
            return None

    def put(
        self,
        advisor_id: str,
        question: Optional[str],
        response: AdvisorResponse,
        quality: Union[CacheQuality, str] = CacheQuality.MEDIUM,
        ttl: Optional[float] = None,
    ) -> None:
        key = fallback_key(advisor_id, question)
        now = self._now()
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            key=key,
            advisor_id=advisor_id,
            response=response,
            quality=CacheQuality(quality),
            created_at=now,
            expires_at=now + (self.ttl if ttl is None else ttl),
        )
        if len(self._entries) > self.max_entries:
            self._evict()

    def preload(self, advisor_id: str, question: Optional[str], response: AdvisorResponse) -> None:
        self.put(advisor_id, question, response, CacheQuality.HIGH)

    def _evict(self) -> None:
        """Drop expired entries, then the oldest, down to the low watermark."""
        removed = self.clear_expired()
        while len(self._entries) > self.low_watermark:
            self._entries.popitem(last=False)
            removed += 1
        logger.debug(
            "Fallback cache trimmed",
            stage="fallback_cache",
            removed=removed,
            size=len(self._entries),
        )

    def clear_expired(self) -> int:
        now = self._now()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self.hit_count = 0
        self.miss_count = 0

    def get_stats(self) -> Dict[str, Any]:
        now = self._now()
        stats = {"size": len(self._entries), "high": 0, "medium": 0, "low": 0, "expired": 0}
        for entry in self._entries.values():
            if entry.is_expired(now):
                stats["expired"] += 1
            else:
                stats[entry.quality.value] += 1
        return stats

    # ---------------------- serving ----------------------

    def serve(self, entry: CacheEntry, processing_time: float, kind: str) -> AdvisorResponse:
        """Copy of a cached answer tagged ``cached`` with tier confidence."""
        emergency = entry.is_expired(self._now())
        extras = dict(entry.response.metadata.extras)
        extras["cache_quality"] = entry.quality.value
        if emergency:
            extras["emergency_cache"] = True
        metadata = replace(
            entry.response.metadata,
            response_type=ResponseType.CACHED,
            processing_time=processing_time,
            confidence=QUALITY_CONFIDENCE[entry.quality],
            error_info=ErrorInfo(
                kind=kind,
                message="Using cached response due to service unavailability",
                fallback_used=True,
            ),
            extras=extras,
        )
        return replace(
            entry.response,
            metadata=metadata,
            timestamp=datetime.now(timezone.utc),
        )

    def emergency_response(
        self,
        advisor: AdvisorProfile,
        question: Optional[str],
        domain: Optional[str],
        kind: str = "service_unavailable",
        cache: bool = True,
    ) -> AdvisorResponse:
        """Simplified board template, cached at low quality for a long TTL unless ``cache`` is False."""
        start = time.perf_counter()
        name = advisor.name or advisor.role or "your advisor"
        expertise = ", ".join(advisor.specialties) or advisor.role or "this area"
        board = domain if domain in EMERGENCY_TEMPLATES else advisor.domain
        template = EMERGENCY_TEMPLATES.get(board or "", DEFAULT_EMERGENCY_TEMPLATE)

        response = AdvisorResponse(
            advisor_id=advisor.id,
            content=template.format(name=name, expertise=expertise),
            persona=PersonaSnapshot(name=name, expertise=expertise, tone="professional"),
            metadata=ResponseMetadata(
                response_type=ResponseType.STATIC,
                processing_time=time.perf_counter() - start,
                confidence=EMERGENCY_CONFIDENCE,
                error_info=ErrorInfo(
                    kind=kind,
                    message="Using emergency response due to system unavailability",
                    fallback_used=True,
                ),
                extras={"emergency": True},
            ),
        )
        if cache:
            self.put(advisor.id, question, response, CacheQuality.LOW, ttl=self.emergency_ttl)
        logger.warning(
            "Emergency simplified response generated",
            stage="fallback_cache",
            advisor_id=advisor.id,
            original_error=kind,
        )
        return response

"""
Advisor profiles, responses and batch results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from advisory_board.models.analysis import QuestionAnalysis


class ResponseType(str, Enum):
    MODEL = "model"
    STATIC = "static"
    CACHED = "cached"


class AdvisorProfile(BaseModel):
    """Minimal external shape of an advisor supplied by the caller."""

    id: str
    name: str = ""
    role: str = ""
    background: str = ""
    specialties: List[str] = Field(default_factory=list)
    domain: Optional[str] = None
    credentials: str = ""


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelResponse(BaseModel):
    """Normalised output of a ModelClient call."""

    content: str
    model: str
    provider: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    usage: TokenUsage = Field(default_factory=TokenUsage)


@dataclass(frozen=True)
class PersonaSnapshot:
    """Copy of persona fields taken when the response is produced."""

    name: str
    expertise: str
    tone: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "expertise": self.expertise, "tone": self.tone}


@dataclass
class ErrorInfo:
    kind: str
    message: str
    fallback_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "fallback_used": self.fallback_used}


@dataclass
class ResponseMetadata:
    response_type: ResponseType
    processing_time: float
    confidence: float
    frameworks: List[str] = field(default_factory=list)
    error_info: Optional[ErrorInfo] = None
    attempts: int = 1
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_type": self.response_type.value,
            "processing_time": self.processing_time,
            "confidence": self.confidence,
            "frameworks": list(self.frameworks),
            "error_info": self.error_info.to_dict() if self.error_info else None,
            "attempts": self.attempts,
            **self.extras,
        }


@dataclass
class AdvisorResponse:
    advisor_id: str
    content: str
    persona: PersonaSnapshot
    metadata: ResponseMetadata
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.content or not self.content.strip():
            raise ValueError(f"Empty response content for advisor {self.advisor_id}")

    @property
    def response_type(self) -> ResponseType:
        return self.metadata.response_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "advisor_id": self.advisor_id,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "persona": self.persona.to_dict(),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class BatchResult:
    """Aggregate for one multi-advisor request, ordered like the input advisors."""

    responses: List[AdvisorResponse]
    success_count: int
    failure_count: int
    analysis: QuestionAnalysis
    total_time: float
    from_cache: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def by_advisor(self) -> Dict[str, AdvisorResponse]:
        return {r.advisor_id: r for r in self.responses}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "responses": [r.to_dict() for r in self.responses],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "analysis": self.analysis.to_dict(),
            "total_time": self.total_time,
            "from_cache": self.from_cache,
            **self.metadata,
        }

"""
Error taxonomy, normalisation and lightweight logging helpers.

Every failure raised anywhere in the pipeline (model call, prompt building,
persona lookup, caching) is normalised into an :class:`AdvisoryBoardError`
carrying one :class:`ErrorKind` before recovery logic runs.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

import openai
import structlog

_logger = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    API_UNAVAILABLE = "api_unavailable"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    NETWORK_ERROR = "network_error"
    CONFIGURATION_ERROR = "configuration_error"
    AUTHENTICATION_ERROR = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    PERSONA_NOT_FOUND = "persona_not_found"
    PERSONA_VALIDATION_ERROR = "persona_validation_error"
    PROMPT_GENERATION_ERROR = "prompt_generation_error"
    QUESTION_ANALYSIS_ERROR = "question_analysis_error"
    INVALID_QUESTION_FORMAT = "invalid_question_format"
    RESPONSE_TIMEOUT = "response_timeout"
    RESPONSE_VALIDATION_ERROR = "response_validation_error"
    CONCURRENT_PROCESSING_ERROR = "concurrent_processing_error"
    CACHE_ERROR = "cache_error"
    CONFIGURATION_LOAD_ERROR = "configuration_load_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN_ERROR = "unknown_error"

    @classmethod
    def coerce(cls, value: Any) -> "ErrorKind":
        """Map a string or enum to a kind; unrecognised values become UNKNOWN_ERROR."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN_ERROR


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryStrategy(str, Enum):
    RETRY = "retry"
    FALLBACK = "fallback"
    GRACEFUL_DEGRADATION = "graceful_degradation"
    FAIL_FAST = "fail_fast"
    USER_INTERVENTION = "user_intervention"


DEFAULT_USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.API_UNAVAILABLE: "The AI service is temporarily unavailable. We'll use our backup system to provide you with a response.",
    ErrorKind.RATE_LIMITED: "We're experiencing high demand. Please wait a moment and try again.",
    ErrorKind.NETWORK_ERROR: "Connection issue detected. Retrying with backup systems...",
    ErrorKind.AUTHENTICATION_ERROR: "Authentication failed. Please check your API configuration.",
    ErrorKind.QUOTA_EXCEEDED: "API quota exceeded. Switching to backup response system.",
    ErrorKind.PERSONA_NOT_FOUND: "Advisor configuration not found. Using default advisor settings.",
    ErrorKind.RESPONSE_TIMEOUT: "Response is taking longer than expected. Generating alternative response...",
    ErrorKind.INVALID_RESPONSE: "Received invalid response from AI service. Using backup system.",
    ErrorKind.CONFIGURATION_ERROR: "System configuration issue detected. Using default settings.",
    ErrorKind.PROMPT_GENERATION_ERROR: "Error generating personalized prompt. Using standard prompt.",
    ErrorKind.PERSONA_VALIDATION_ERROR: "Advisor persona validation failed. Using default persona.",
    ErrorKind.QUESTION_ANALYSIS_ERROR: "Question analysis failed. Proceeding with standard processing.",
    ErrorKind.INVALID_QUESTION_FORMAT: "Question format not recognized. Processing as general inquiry.",
    ErrorKind.RESPONSE_VALIDATION_ERROR: "Response validation failed. Generating alternative response.",
    ErrorKind.CONCURRENT_PROCESSING_ERROR: "Processing error occurred. Retrying with reduced load.",
    ErrorKind.CACHE_ERROR: "Cache system error. Proceeding without cache.",
    ErrorKind.CONFIGURATION_LOAD_ERROR: "Configuration loading failed. Using default settings.",
    ErrorKind.SERVICE_UNAVAILABLE: "Service temporarily unavailable. Using backup systems.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred. Our team has been notified.",
}


class AdvisoryBoardError(Exception):
    """Classified pipeline failure."""

    def __init__(
        self,
        kind: Any,
        message: str = "",
        *,
        context: Optional[Dict[str, Any]] = None,
        original: Optional[BaseException] = None,
        user_message: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        self.kind = ErrorKind.coerce(kind)
        self.message = message or self.kind.value.replace("_", " ")
        super().__init__(self.message)
        self.context: Dict[str, Any] = dict(context or {})
        self.original = original
        self.user_message = user_message or DEFAULT_USER_MESSAGES[self.kind]
        self.request_id = request_id or f"req_{uuid.uuid4().hex[:12]}"
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "context": self.context,
            "original": type(self.original).__name__ if self.original else None,
        }

    def __repr__(self) -> str:
        return f"AdvisoryBoardError(kind={self.kind.value!r}, message={self.message!r})"


class ConfigurationError(AdvisoryBoardError):
    """Structurally invalid configuration; the only error surfaced to callers."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(ErrorKind.CONFIGURATION_ERROR, message, context=context)


def _kind_from_status(status: Optional[int], message: str) -> ErrorKind:
    if status is None:
        return ErrorKind.UNKNOWN_ERROR
    if status == 401:
        return ErrorKind.AUTHENTICATION_ERROR
    if status in (402, 403):
        return ErrorKind.QUOTA_EXCEEDED
    if status == 429:
        return ErrorKind.QUOTA_EXCEEDED if "quota" in message else ErrorKind.RATE_LIMITED
    if status == 408:
        return ErrorKind.RESPONSE_TIMEOUT
    if status >= 500:
        return ErrorKind.API_UNAVAILABLE
    if status >= 400:
        return ErrorKind.INVALID_RESPONSE
    return ErrorKind.UNKNOWN_ERROR


def identify_error_kind(error: BaseException) -> ErrorKind:
    """Heuristic classification of provider and runtime errors.

    Provider SDK errors are mapped by HTTP status first; anything else falls
    back to matching on the exception's type name and message.
    """
    if isinstance(error, AdvisoryBoardError):
        return error.kind

    msg = str(error).lower()
    name = type(error).__name__.lower()

    # APITimeoutError subclasses APIConnectionError, check it first
    if isinstance(error, openai.APITimeoutError):
        return ErrorKind.RESPONSE_TIMEOUT
    if isinstance(error, openai.APIConnectionError):
        return ErrorKind.NETWORK_ERROR
    if isinstance(error, openai.APIStatusError):
        return _kind_from_status(getattr(error, "status_code", None), msg)

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.RESPONSE_TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorKind.NETWORK_ERROR

    if ("rate" in name and "limit" in name) or "rate limit" in msg or "429" in msg:
        return ErrorKind.QUOTA_EXCEEDED if "quota" in msg else ErrorKind.RATE_LIMITED
    if "quota" in msg:
        return ErrorKind.QUOTA_EXCEEDED
    if "timeout" in name or "timed out" in msg:
        return ErrorKind.RESPONSE_TIMEOUT
    if "unauthorized" in msg or "401" in msg or "authentication" in name:
        return ErrorKind.AUTHENTICATION_ERROR
    if "network" in msg or "connection" in name:
        return ErrorKind.NETWORK_ERROR
    return ErrorKind.UNKNOWN_ERROR


def classify_exception(
    error: BaseException,
    context: Optional[Dict[str, Any]] = None,
) -> AdvisoryBoardError:
    """Normalise any exception into an AdvisoryBoardError.

    Already-classified errors pass through with the extra context merged in.
    The original message is preserved for logging.
    """
    if isinstance(error, AdvisoryBoardError):
        if context:
            for k, v in context.items():
                error.context.setdefault(k, v)
        return error
    kind = identify_error_kind(error)
    return AdvisoryBoardError(
        kind,
        str(error) or type(error).__name__,
        context=context,
        original=error,
    )


def log_exception(context: str, exc: BaseException, **fields: Any) -> None:
    """Log an exception with context; never raises."""
    try:
        _logger.warning(context, error=str(exc), error_type=type(exc).__name__, **fields)
    except Exception:
        pass


def add_warning(
    meta: Optional[Dict[str, Any]],
    code: str,
    message: str,
    **extra: Any,
) -> Dict[str, Any]:
    """Append a warning to a metadata dict; creates the list if missing."""
    meta = meta if meta is not None else {}
    warnings: List[Dict[str, Any]] = list(meta.get("warnings", []) or [])
    warnings.append({"code": code, "message": message, **extra})
    meta["warnings"] = warnings
    meta["degraded"] = True
    return meta


@contextmanager
def safely(
    context: str,
    *,
    non_fatal: bool = False,
    **fields: Any,
) -> Iterator[None]:
    """Context manager that logs and re-raises by default.

    Set non_fatal=True to swallow after logging.
    """
    try:
        yield
    except Exception as exc:
        log_exception(context, exc, **fields)
        if not non_fatal:
            raise

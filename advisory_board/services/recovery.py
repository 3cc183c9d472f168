"""
Error recovery for advisor responses.

``StrategyTable`` maps every error kind to one immutable policy (severity,
recovery strategy, retry timings, fallback type, log level, notification
flags, messages). ``RecoveryManager`` runs an advisor operation under that
policy and always produces an outcome:

    Attempting -> Succeeded
    Attempting -> Retrying -> Attempting
    Attempting -> FallbackInvoked -> Succeeded | Degraded
    Attempting -> FailedFast
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception

from advisory_board.core.config import RECOVERY_STALE_AFTER_SEC, RetryPolicy
from advisory_board.models.analysis import QuestionAnalysis
from advisory_board.models.responses import (
    AdvisorProfile,
    AdvisorResponse,
    ErrorInfo,
    PersonaSnapshot,
    ResponseMetadata,
    ResponseType,
)
from advisory_board.services.fallback_cache import FallbackCache
from advisory_board.services.static_responses import StaticResponseGenerator
from advisory_board.services.telemetry import NullTelemetry
from advisory_board.utils.error_handling import (
    AdvisoryBoardError,
    ConfigurationError,
    ErrorKind,
    RecoveryStrategy,
    Severity,
    add_warning,
    classify_exception,
)

logger = structlog.get_logger(__name__)

STATIC_RESPONSE = "static_response"

APOLOGY_TEXT = (
    "I apologize, but I'm currently unable to provide a detailed response. "
    "Please try again later or contact support if the issue persists."
)
MINIMAL_MODE_TEXT = (
    "I apologize, but I'm currently experiencing technical difficulties. "
    "Please try again in a few moments. If the issue persists, please contact support."
)
APOLOGY_CONFIDENCE = 0.1
DEGRADED_CONFIDENCE_CAP = 0.7
INTERVENTION_CONFIDENCE = 0.2


@dataclass(frozen=True)
class StrategyPolicy:
    kind: ErrorKind
    severity: Severity
    strategy: RecoveryStrategy
    retry_policy: Optional[RetryPolicy] = None
    fallback_type: Optional[str] = None
    log_level: str = "warning"
    notify_user: bool = False
    report_telemetry: bool = True
    user_message: str = ""
    technical_message: str = ""

    @property
    def retries(self) -> bool:
        return self.strategy == RecoveryStrategy.RETRY and self.retry_policy is not None


def _retry(max_retries: int, base: float, cap: float, mult: float, *kinds: ErrorKind) -> RetryPolicy:
    return RetryPolicy(
        max_retries=max_retries,
        base_delay=base,
        max_delay=cap,
        backoff_multiplier=mult,
        retryable=frozenset(kinds),
    )


_DEFAULT_POLICIES = (
    # Model provider errors
    StrategyPolicy(
        ErrorKind.API_UNAVAILABLE, Severity.HIGH, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="warning", notify_user=True,
        user_message="AI service temporarily unavailable. Using our enhanced backup system to provide you with expert insights.",
        technical_message="Model API unavailable, falling back to static response generation",
    ),
    StrategyPolicy(
        ErrorKind.RATE_LIMITED, Severity.MEDIUM, RecoveryStrategy.RETRY,
        retry_policy=_retry(3, 2.0, 10.0, 2, ErrorKind.RATE_LIMITED),
        fallback_type=STATIC_RESPONSE, log_level="info", notify_user=True,
        user_message="High demand detected. Please wait a moment while we process your request...",
        technical_message="Rate limit exceeded, retrying with exponential backoff",
    ),
    StrategyPolicy(
        ErrorKind.NETWORK_ERROR, Severity.HIGH, RecoveryStrategy.RETRY,
        retry_policy=_retry(3, 1.0, 8.0, 2, ErrorKind.NETWORK_ERROR),
        fallback_type=STATIC_RESPONSE, log_level="warning", notify_user=True,
        user_message="Connection issue detected. Retrying with backup systems...",
        technical_message="Network connectivity issue, retrying with fallback",
    ),
    StrategyPolicy(
        ErrorKind.AUTHENTICATION_ERROR, Severity.CRITICAL, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="error", notify_user=False,
        user_message="Authentication issue detected. Using backup response system to ensure you receive quality insights.",
        technical_message="API authentication failed, switching to static response generation",
    ),
    StrategyPolicy(
        ErrorKind.QUOTA_EXCEEDED, Severity.HIGH, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="warning", notify_user=False,
        user_message="Switching to our premium backup system to ensure you receive comprehensive responses.",
        technical_message="API quota exceeded, using static response generation",
    ),
    StrategyPolicy(
        ErrorKind.INVALID_RESPONSE, Severity.MEDIUM, RecoveryStrategy.RETRY,
        retry_policy=_retry(2, 0.5, 2.0, 2, ErrorKind.INVALID_RESPONSE),
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Optimizing response quality. Please wait a moment...",
        technical_message="Invalid response received, retrying with fallback",
    ),
    # Persona and prompt errors
    StrategyPolicy(
        ErrorKind.PERSONA_NOT_FOUND, Severity.MEDIUM, RecoveryStrategy.GRACEFUL_DEGRADATION,
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Using default advisor configuration to provide you with expert insights.",
        technical_message="Persona not found, using default persona configuration",
    ),
    StrategyPolicy(
        ErrorKind.PERSONA_VALIDATION_ERROR, Severity.MEDIUM, RecoveryStrategy.GRACEFUL_DEGRADATION,
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Advisor persona validation failed. Using default persona.",
        technical_message="Persona failed validation, using default persona configuration",
    ),
    StrategyPolicy(
        ErrorKind.PROMPT_GENERATION_ERROR, Severity.MEDIUM, RecoveryStrategy.GRACEFUL_DEGRADATION,
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Generating response using standard advisor approach...",
        technical_message="Persona prompt generation failed, using default prompt",
    ),
    # Question analysis errors
    StrategyPolicy(
        ErrorKind.QUESTION_ANALYSIS_ERROR, Severity.LOW, RecoveryStrategy.GRACEFUL_DEGRADATION,
        log_level="info", report_telemetry=False,
        user_message="Processing your question with standard analysis...",
        technical_message="Question analysis failed, proceeding with basic categorization",
    ),
    StrategyPolicy(
        ErrorKind.INVALID_QUESTION_FORMAT, Severity.LOW, RecoveryStrategy.GRACEFUL_DEGRADATION,
        log_level="info", report_telemetry=False,
        user_message="Processing your inquiry as a general question...",
        technical_message="Question format not recognized, using general processing",
    ),
    # Response generation errors
    StrategyPolicy(
        ErrorKind.RESPONSE_TIMEOUT, Severity.MEDIUM, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Generating response using our rapid-response system...",
        technical_message="Response timeout exceeded, using static response generation",
    ),
    StrategyPolicy(
        ErrorKind.RESPONSE_VALIDATION_ERROR, Severity.MEDIUM, RecoveryStrategy.RETRY,
        retry_policy=_retry(2, 0.5, 2.0, 2, ErrorKind.RESPONSE_VALIDATION_ERROR),
        fallback_type=STATIC_RESPONSE, log_level="warning",
        user_message="Ensuring response quality. Please wait...",
        technical_message="Response validation failed, retrying with fallback",
    ),
    StrategyPolicy(
        ErrorKind.CONCURRENT_PROCESSING_ERROR, Severity.MEDIUM, RecoveryStrategy.RETRY,
        retry_policy=_retry(2, 1.0, 3.0, 1.5, ErrorKind.CONCURRENT_PROCESSING_ERROR),
        log_level="warning",
        user_message="Processing your request with optimized resource allocation...",
        technical_message="Concurrent processing error, retrying with reduced load",
    ),
    # System errors
    StrategyPolicy(
        ErrorKind.CACHE_ERROR, Severity.LOW, RecoveryStrategy.GRACEFUL_DEGRADATION,
        log_level="info", report_telemetry=False,
        user_message="Processing your request without cache optimization...",
        technical_message="Cache system error, proceeding without cache",
    ),
    StrategyPolicy(
        ErrorKind.CONFIGURATION_ERROR, Severity.HIGH, RecoveryStrategy.GRACEFUL_DEGRADATION,
        fallback_type=STATIC_RESPONSE, log_level="error",
        user_message="Using default system configuration to ensure service availability.",
        technical_message="Configuration error detected, using default settings",
    ),
    StrategyPolicy(
        ErrorKind.SERVICE_UNAVAILABLE, Severity.CRITICAL, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="error", notify_user=True,
        user_message="Service temporarily unavailable. Using backup systems to provide you with expert insights.",
        technical_message="Core service unavailable, using all available fallbacks",
    ),
    StrategyPolicy(
        ErrorKind.UNKNOWN_ERROR, Severity.HIGH, RecoveryStrategy.FALLBACK,
        fallback_type=STATIC_RESPONSE, log_level="error",
        user_message="An unexpected situation occurred. Our backup systems are ensuring you receive quality responses.",
        technical_message="Unknown error encountered, using comprehensive fallback strategy",
    ),
)


class StrategyTable:
    """Immutable kind -> policy table; overrides return a new table."""

    def __init__(self, policies: Optional[Mapping[ErrorKind, StrategyPolicy]] = None):
        if policies is None:
            policies = {p.kind: p for p in _DEFAULT_POLICIES}
        if ErrorKind.UNKNOWN_ERROR not in policies:
            raise ConfigurationError("Strategy table must define unknown_error")
        self._policies: Mapping[ErrorKind, StrategyPolicy] = MappingProxyType(dict(policies))

    def __len__(self) -> int:
        return len(self._policies)

    def __contains__(self, kind: object) -> bool:
        return kind in self._policies

    def resolve(self, kind: Any) -> StrategyPolicy:
        """Policy for ``kind``; unmapped kinds use the unknown_error policy."""
        return self._policies.get(ErrorKind.coerce(kind)) or self._policies[ErrorKind.UNKNOWN_ERROR]

    def items(self):
        return self._policies.items()

    def with_override(self, kind: Any, **changes: Any) -> "StrategyTable":
        kind = ErrorKind.coerce(kind)
        current = self._policies.get(kind) or replace(self.resolve(kind), kind=kind)
        if "strategy" in changes:
            changes["strategy"] = RecoveryStrategy(changes["strategy"])
        if "severity" in changes:
            changes["severity"] = Severity(changes["severity"])
        updated = dict(self._policies)
        updated[kind] = replace(current, **changes)
        return StrategyTable(updated)

    def with_retry_policy(self, policy: Optional[RetryPolicy]) -> "StrategyTable":
        """Retrying kinds take ``policy``'s timings and keep their own retryable sets."""
        if policy is None:
            return self
        updated: Dict[ErrorKind, StrategyPolicy] = {}
        for kind, entry in self._policies.items():
            if entry.retries:
                timings = replace(policy, retryable=entry.retry_policy.retryable)
                entry = replace(entry, retry_policy=timings)
            updated[kind] = entry
        return StrategyTable(updated)

    def retryable_kinds(self) -> List[str]:
        return sorted(k.value for k, p in self._policies.items() if p.retries)


default_strategy_table = StrategyTable()


class RecoveryState(str, Enum):
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    FAILED_FAST = "failed_fast"


@dataclass
class RecoveryContext:
    advisor: AdvisorProfile
    question: str
    domain_id: str
    analysis: Optional[QuestionAnalysis] = None
    request_id: str = field(default_factory=lambda: f"rec_{uuid.uuid4().hex[:12]}")
    started_at: float = field(default_factory=time.time)
    allow_static: bool = True
    # False keeps the fallback cache out of the recovery path entirely
    use_cache: bool = True


@dataclass
class RecoveryOutcome:
    state: RecoveryState
    response: Optional[AdvisorResponse]
    attempts: int
    total_time: float
    strategy: Optional[RecoveryStrategy] = None
    fallback_used: bool = False
    error: Optional[AdvisoryBoardError] = None

    @property
    def success(self) -> bool:
        return self.state != RecoveryState.FAILED_FAST and self.response is not None


Operation = Callable[[], Awaitable[AdvisorResponse]]


def apology_response(
    advisor: AdvisorProfile,
    kind: Any,
    processing_time: float,
    text: str = APOLOGY_TEXT,
    message: str = "System operating in minimal mode",
) -> AdvisorResponse:
    """Last-resort response; confidence 0.1, never empty."""
    return AdvisorResponse(
        advisor_id=advisor.id,
        content=text,
        persona=PersonaSnapshot(
            name=advisor.name or advisor.id,
            expertise=", ".join(advisor.specialties) or advisor.role,
            tone="apologetic",
        ),
        metadata=ResponseMetadata(
            response_type=ResponseType.STATIC,
            processing_time=processing_time,
            confidence=APOLOGY_CONFIDENCE,
            error_info=ErrorInfo(
                kind=ErrorKind.coerce(kind).value,
                message=message,
                fallback_used=True,
            ),
            extras={"minimal": True},
        ),
    )


class RecoveryManager:
    def __init__(
        self,
        static_generator: StaticResponseGenerator,
        fallback_cache: FallbackCache,
        table: Optional[StrategyTable] = None,
        telemetry: Any = None,
        time_func: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.static_generator = static_generator
        self.fallback_cache = fallback_cache
        self.table = table or default_strategy_table
        self.telemetry = telemetry or NullTelemetry()
        self._now = time_func
        self._sleep = sleep
        self._active: Dict[str, RecoveryContext] = {}

    # ---------------------- entry point ----------------------

    async def execute(
        self,
        operation: Operation,
        context: RecoveryContext,
        table: Optional[StrategyTable] = None,
    ) -> RecoveryOutcome:
        """Run ``operation`` and recover from its failures.

        The first call and every retry run under one tenacity loop whose
        stop/wait settings come from the policy of the first failure's kind.
        """
        table = table or self.table
        started = time.perf_counter()
        context.started_at = self._now()
        self._active[context.request_id] = context

        attempts = 0
        policy: Dict[str, StrategyPolicy] = {}
        last_error: Dict[str, AdvisoryBoardError] = {}

        def _should_retry(exc: BaseException) -> bool:
            error = classify_exception(exc, {"advisor_id": context.advisor.id})
            last_error["error"] = error
            if "first" not in policy:
                policy["first"] = table.resolve(error.kind)
            entry = policy["first"]
            retry = entry.retries and entry.retry_policy.allows(error.kind)
            if entry.retries and not retry:
                logger.warning(
                    "Non-retryable error encountered, stopping retries",
                    stage="recovery",
                    error_kind=error.kind.value,
                    attempt=attempts,
                    request_id=context.request_id,
                )
            return retry

        def _stop(retry_state: RetryCallState) -> bool:
            entry = policy.get("first")
            if entry is None or entry.retry_policy is None:
                return True
            return retry_state.attempt_number >= max(1, entry.retry_policy.max_retries)

        def _wait(retry_state: RetryCallState) -> float:
            entry = policy["first"]
            delay = entry.retry_policy.delay_for(retry_state.attempt_number)
            logger.debug(
                "Retrying after backoff",
                stage="recovery",
                retry=retry_state.attempt_number,
                delay=delay,
                request_id=context.request_id,
            )
            return delay

        retrying_kwargs: Dict[str, Any] = dict(
            stop=_stop,
            wait=_wait,
            retry=retry_if_exception(_should_retry),
            reraise=True,
        )
        if self._sleep is not None:
            retrying_kwargs["sleep"] = self._sleep

        try:
            try:
                async for attempt in AsyncRetrying(**retrying_kwargs):
                    with attempt:
                        attempts += 1
                        response = await operation()
                response.metadata.attempts = attempts
                if attempts > 1:
                    logger.info(
                        "Retry successful",
                        stage="recovery",
                        attempts=attempts,
                        advisor_id=context.advisor.id,
                        request_id=context.request_id,
                    )
                return RecoveryOutcome(
                    state=RecoveryState.SUCCEEDED,
                    response=response,
                    attempts=attempts,
                    total_time=time.perf_counter() - started,
                    strategy=RecoveryStrategy.RETRY if attempts > 1 else None,
                )
            except Exception as exc:
                error = last_error.get("error") or classify_exception(exc)
                entry = policy.get("first") or table.resolve(error.kind)

            self._report(error, entry, context)
            outcome = await self._recover(error, entry, context, started)
            outcome.attempts = max(attempts, 1)
            if outcome.response is not None:
                outcome.response.metadata.attempts = outcome.attempts
            return outcome
        finally:
            self._active.pop(context.request_id, None)

    async def _recover(
        self,
        error: AdvisoryBoardError,
        entry: StrategyPolicy,
        context: RecoveryContext,
        started: float,
    ) -> RecoveryOutcome:
        strategy = entry.strategy
        if strategy in (RecoveryStrategy.RETRY, RecoveryStrategy.FALLBACK):
            if entry.fallback_type is None and strategy == RecoveryStrategy.RETRY:
                return self._degrade(error, context, started, strategy)
            return self._fallback(error, context, started, strategy)
        if strategy == RecoveryStrategy.GRACEFUL_DEGRADATION:
            return self._degrade(error, context, started, strategy)
        if strategy == RecoveryStrategy.FAIL_FAST:
            logger.error(
                "Executing fail fast strategy",
                stage="recovery",
                error_kind=error.kind.value,
                request_id=context.request_id,
                advisor_id=context.advisor.id,
            )
            return RecoveryOutcome(
                state=RecoveryState.FAILED_FAST,
                response=None,
                attempts=1,
                total_time=time.perf_counter() - started,
                strategy=strategy,
                error=error,
            )
        if strategy == RecoveryStrategy.USER_INTERVENTION:
            return self._user_intervention(error, context, started)
        raise ConfigurationError(
            f"Unknown recovery strategy: {strategy}",
            context={"request_id": context.request_id},
        )

    # ---------------------- strategies ----------------------

    def fallback_response(
        self,
        error: AdvisoryBoardError,
        context: RecoveryContext,
        allow_expired: bool = True,
    ) -> AdvisorResponse:
        """Fresh cache, expired high-quality cache, static answer, emergency template."""
        start = time.perf_counter()
        advisor = context.advisor

        if context.use_cache:
            entry = self.fallback_cache.try_get(advisor.id, context.question, allow_expired=allow_expired)
            self.telemetry.record_cache_hit(entry is not None, cache="fallback")
            if entry is not None:
                return self.fallback_cache.serve(entry, time.perf_counter() - start, error.kind.value)

        if context.allow_static:
            try:
                result = self.static_generator.generate(
                    advisor, context.question, context.domain_id, analysis=context.analysis
                )
                metadata = replace(
                    result.metadata,
                    processing_time=time.perf_counter() - start,
                    error_info=ErrorInfo(
                        kind=error.kind.value,
                        message="Using enhanced static response due to service issue",
                        fallback_used=True,
                    ),
                )
                response = AdvisorResponse(
                    advisor_id=advisor.id,
                    content=result.content,
                    persona=result.persona,
                    metadata=metadata,
                )
                if context.use_cache:
                    self.fallback_cache.put(advisor.id, context.question, response, "medium")
                return response
            except Exception as e:
                logger.error(
                    "Static response generation failed",
                    stage="recovery",
                    advisor_id=advisor.id,
                    error=str(e),
                )

        return self.fallback_cache.emergency_response(
            advisor,
            context.question,
            context.domain_id,
            kind=error.kind.value,
            cache=context.use_cache,
        )

    def _fallback(
        self,
        error: AdvisoryBoardError,
        context: RecoveryContext,
        started: float,
        strategy: RecoveryStrategy,
    ) -> RecoveryOutcome:
        try:
            response = self.fallback_response(error, context)
        except Exception as e:
            logger.error(
                "Fallback strategy failed",
                stage="recovery",
                request_id=context.request_id,
                advisor_id=context.advisor.id,
                error=str(e),
            )
            return self._minimal(error, context, started, strategy)

        self.telemetry.record_fallback_usage(context.advisor.id, error.kind.value)
        logger.info(
            "Fallback strategy successful",
            stage="recovery",
            response_type=response.response_type.value,
            request_id=context.request_id,
            advisor_id=context.advisor.id,
        )
        return RecoveryOutcome(
            state=RecoveryState.DEGRADED,
            response=response,
            attempts=1,
            total_time=time.perf_counter() - started,
            strategy=strategy,
            fallback_used=True,
            error=error,
        )

    def _degrade(
        self,
        error: AdvisoryBoardError,
        context: RecoveryContext,
        started: float,
        strategy: RecoveryStrategy,
    ) -> RecoveryOutcome:
        logger.info(
            "Executing graceful degradation",
            stage="recovery",
            error_kind=error.kind.value,
            request_id=context.request_id,
        )
        try:
            response = self.fallback_response(error, context)
            metadata = replace(
                response.metadata,
                confidence=min(response.metadata.confidence, DEGRADED_CONFIDENCE_CAP),
                error_info=ErrorInfo(
                    kind=error.kind.value,
                    message="Service operating in degraded mode",
                    fallback_used=True,
                ),
                extras=add_warning(
                    dict(response.metadata.extras),
                    "degraded_mode",
                    "Service operating in degraded mode",
                    error_kind=error.kind.value,
                ),
            )
            self.telemetry.record_fallback_usage(context.advisor.id, error.kind.value)
            return RecoveryOutcome(
                state=RecoveryState.DEGRADED,
                response=replace(response, metadata=metadata),
                attempts=1,
                total_time=time.perf_counter() - started,
                strategy=RecoveryStrategy.GRACEFUL_DEGRADATION,
                fallback_used=True,
                error=error,
            )
        except Exception as e:
            logger.error("Graceful degradation failed", stage="recovery", error=str(e))
            return self._minimal(error, context, started, strategy, text=MINIMAL_MODE_TEXT)

    def _minimal(
        self,
        error: AdvisoryBoardError,
        context: RecoveryContext,
        started: float,
        strategy: RecoveryStrategy,
        text: str = APOLOGY_TEXT,
    ) -> RecoveryOutcome:
        elapsed = time.perf_counter() - started
        return RecoveryOutcome(
            state=RecoveryState.DEGRADED,
            response=apology_response(context.advisor, error.kind, elapsed, text=text),
            attempts=1,
            total_time=elapsed,
            strategy=strategy,
            fallback_used=True,
            error=error,
        )

    def _user_intervention(
        self,
        error: AdvisoryBoardError,
        context: RecoveryContext,
        started: float,
    ) -> RecoveryOutcome:
        logger.warning(
            "User intervention required",
            stage="recovery",
            error_kind=error.kind.value,
            request_id=context.request_id,
        )
        elapsed = time.perf_counter() - started
        advisor = context.advisor
        response = AdvisorResponse(
            advisor_id=advisor.id,
            content=(
                "I'm currently experiencing technical difficulties that require attention. "
                "Please try again later or contact support if this issue persists. "
                f"Error ID: {context.request_id}"
            ),
            persona=PersonaSnapshot(
                name=advisor.name or advisor.id,
                expertise=", ".join(advisor.specialties) or advisor.role,
                tone="informative",
            ),
            metadata=ResponseMetadata(
                response_type=ResponseType.STATIC,
                processing_time=elapsed,
                confidence=INTERVENTION_CONFIDENCE,
                error_info=ErrorInfo(
                    kind=error.kind.value,
                    message="User intervention required",
                    fallback_used=True,
                ),
            ),
        )
        return RecoveryOutcome(
            state=RecoveryState.DEGRADED,
            response=response,
            attempts=1,
            total_time=elapsed,
            strategy=RecoveryStrategy.USER_INTERVENTION,
            fallback_used=True,
            error=error,
        )

    # ---------------------- bookkeeping ----------------------

    def _report(self, error: AdvisoryBoardError, entry: StrategyPolicy, context: RecoveryContext) -> None:
        log = getattr(logger, entry.log_level, logger.warning)
        log(
            entry.technical_message or "Recovering from error",
            stage="recovery",
            error_kind=error.kind.value,
            severity=entry.severity.value,
            strategy=entry.strategy.value,
            notify_user=entry.notify_user,
            advisor_id=context.advisor.id,
            request_id=context.request_id,
            error=error.message,
        )
        if entry.report_telemetry:
            self.telemetry.record_error(error, entry.severity)

    def user_message(self, kind: Any) -> str:
        return self.table.resolve(kind).user_message

    def active_recoveries(self) -> List[RecoveryContext]:
        return list(self._active.values())

    def cleanup_stale_recoveries(self, max_age: float = RECOVERY_STALE_AFTER_SEC) -> int:
        now = self._now()
        stale = [rid for rid, ctx in self._active.items() if now - ctx.started_at > max_age]
        for rid in stale:
            self._active.pop(rid, None)
        if stale:
            logger.debug("Cleaned up stale recoveries", stage="recovery", count=len(stale))
        return len(stale)

    def get_recovery_stats(self) -> Dict[str, Any]:
        return {
            "active_recoveries": len(self._active),
            "strategies": len(self.table),
            "retryable_kinds": self.table.retryable_kinds(),
        }

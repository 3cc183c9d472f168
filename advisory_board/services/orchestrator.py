"""
Response Orchestrator
Top-level coordinator for one question answered by a board of advisors.

Per batch:
  1. validate the effective configuration (fail fast on misconfiguration)
  2. analyse the question once and share the analysis
  3. short-circuit identical requests through the result cache
  4. per advisor, in a bounded window: prompt -> model call -> recovery
  5. aggregate into a BatchResult ordered like the input advisors
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import os
import time
import uuid
from collections import Counter, OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import structlog

from advisory_board.core.config import OrchestratorConfig, ensure_valid
from advisory_board.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from advisory_board.models.analysis import QuestionAnalysis
from advisory_board.models.personas import PersonaDescriptor
from advisory_board.models.responses import (
    AdvisorProfile,
    AdvisorResponse,
    BatchResult,
    ModelResponse,
    ResponseMetadata,
    ResponseType,
)
from advisory_board.services.fallback_cache import FallbackCache
from advisory_board.services.llm_client import ModelClient, OpenAIModelClient, ProviderChain
from advisory_board.services.persona_catalog import PersonaCatalog
from advisory_board.services.prompt_builder import DomainPolicy, PromptBuilder
from advisory_board.services.question_analyzer import QuestionAnalyzer, normalize_question
from advisory_board.services.recovery import (
    RecoveryContext,
    RecoveryManager,
    StrategyTable,
    apology_response,
)
from advisory_board.services.static_responses import StaticResponseGenerator
from advisory_board.services.telemetry import TelemetryRecorder
from advisory_board.utils.error_handling import (
    AdvisoryBoardError,
    ConfigurationError,
    ErrorKind,
    log_exception,
    safely,
)

logger = structlog.get_logger(__name__)

MODEL_CONFIDENCE = 0.9

DOMAIN_FRAMEWORKS: Dict[str, List[str]] = {
    "productboard": ["Jobs-to-be-Done", "North Star Framework", "OKRs"],
    "cliniboard": ["ICH Guidelines", "FDA Guidance", "Clinical Development Plan"],
    "eduboard": ["Bloom's Taxonomy", "Backward Design", "Learning Analytics"],
    "remediboard": ["Integrative Medicine", "Holistic Assessment", "Natural Healing"],
}

HEALTH_PROBE_QUESTION = "How should we approach this decision?"

AdvisorInput = Union[AdvisorProfile, Dict[str, Any], str]


@dataclass
class _CachedBatch:
    result: BatchResult
    expires_at: float


def result_cache_key(question: Optional[str], advisor_ids: Sequence[str], domain_id: Optional[str]) -> str:
    """Batch key over the normalised question, the advisor id set and the domain."""
    raw = "\x1f".join((normalize_question(question), ",".join(sorted(set(advisor_ids))), domain_id or ""))
    return "batch:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _is_minimal(response: AdvisorResponse) -> bool:
    return bool(response.metadata.extras.get("minimal"))


class ResponseOrchestrator:
    def __init__(
        self,
        model_client: ModelClient,
        *,
        config: Optional[OrchestratorConfig] = None,
        analyzer: Optional[QuestionAnalyzer] = None,
        catalog: Optional[PersonaCatalog] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        static_generator: Optional[StaticResponseGenerator] = None,
        fallback_cache: Optional[FallbackCache] = None,
        strategy_table: Optional[StrategyTable] = None,
        telemetry: Any = None,
        time_func: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.model_client = model_client
        self.config = config or OrchestratorConfig()
        self.analyzer = analyzer or QuestionAnalyzer()
        self.catalog = catalog or PersonaCatalog()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.static_generator = static_generator or StaticResponseGenerator(
            catalog=self.catalog, analyzer=self.analyzer
        )
        self.fallback_cache = fallback_cache or FallbackCache(time_func=time_func)
        self.telemetry = telemetry if telemetry is not None else TelemetryRecorder()
        self.recovery = RecoveryManager(
            static_generator=self.static_generator,
            fallback_cache=self.fallback_cache,
            table=strategy_table,
            telemetry=self.telemetry,
            time_func=time_func,
            sleep=sleep,
        )
        self._now = time_func
        self._result_cache: "OrderedDict[str, _CachedBatch]" = OrderedDict()
        self._stats = self._empty_stats()

    # ---------------------- public API ----------------------

    async def generate(
        self,
        question: Optional[str],
        advisors: Sequence[AdvisorInput],
        domain_id: Optional[str],
        options: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        """Answer ``question`` once per advisor; one response per advisor, always.

        Only ``ConfigurationError`` escapes; every model or recovery failure is
        absorbed into the affected advisor's response metadata.
        """
        config = self.config.merged(options)
        for warning in ensure_valid(config):
            logger.warning("Configuration warning", stage="config", warning=warning)

        profiles = [self._coerce_advisor(a) for a in advisors]
        batch_id = f"batch_{uuid.uuid4().hex[:12]}"
        bind_request_context(batch_id=batch_id)
        start = time.perf_counter()
        try:
            analysis = self.analyzer.analyze(question, domain_id)
            self._stats["total_requests"] += 1
            self._stats["question_types"][analysis.type.value] += 1
            logger.info(
                "Batch started",
                stage="batch_start",
                advisors=len(profiles),
                domain_id=domain_id,
                question_length=len(question or ""),
                question_preview="[redacted]",
                question_type=analysis.type.value,
            )

            key = result_cache_key(question, [p.id for p in profiles], domain_id)
            if config.enable_caching:
                cached = self._cache_lookup(key)
                self.telemetry.record_cache_hit(cached is not None, cache="result")
                if cached is not None:
                    self._stats["cache_hit_count"] += 1
                    logger.info("Result cache hit", stage="batch_complete", advisors=len(profiles))
                    return replace(copy.deepcopy(cached), from_cache=True)

            responses = await self._respond_all(question or "", profiles, domain_id, analysis, config)
            failures = sum(1 for r in responses if _is_minimal(r))
            total_time = time.perf_counter() - start
            result = BatchResult(
                responses=responses,
                success_count=len(responses) - failures,
                failure_count=failures,
                analysis=analysis,
                total_time=total_time,
                metadata={"batch_id": batch_id, "domain_id": domain_id},
            )

            self._stats["success_count"] += result.success_count
            self._stats["error_count"] += result.failure_count
            self._stats["processing_time_total"] += total_time
            if config.enable_caching and profiles:
                self._cache_store(key, copy.deepcopy(result), config)

            logger.info(
                "Batch complete",
                stage="batch_complete",
                success_count=result.success_count,
                failure_count=result.failure_count,
                response_types=dict(Counter(r.response_type.value for r in responses)),
                duration_ms=round(total_time * 1000, 2),
            )
            return result
        finally:
            clear_request_context()

    async def _respond_all(
        self,
        question: str,
        profiles: List[AdvisorProfile],
        domain_id: Optional[str],
        analysis: QuestionAnalysis,
        config: OrchestratorConfig,
    ) -> List[AdvisorResponse]:
        window = asyncio.Semaphore(max(1, config.max_concurrent_requests))
        table = self.recovery.table.with_retry_policy(config.retry_policy)

        boards = [p.domain or domain_id or "" for p in profiles]
        multi_board = len({b for b in boards if b}) > 1

        tasks = []
        for profile, board in zip(profiles, boards):
            policy = DomainPolicy.for_batch(boards, board) if multi_board else None
            tasks.append(
                self._respond(question, profile, board or domain_id, analysis, policy, config, table, window)
            )
        # gather keeps input order regardless of completion order
        return list(await asyncio.gather(*tasks))

    async def _respond(
        self,
        question: str,
        advisor: AdvisorProfile,
        board: Optional[str],
        analysis: QuestionAnalysis,
        policy: Optional[DomainPolicy],
        config: OrchestratorConfig,
        table: StrategyTable,
        window: asyncio.Semaphore,
    ) -> AdvisorResponse:
        start = time.perf_counter()
        persona = self.catalog.get(advisor.id)

        async def _call_model() -> AdvisorResponse:
            try:
                prompt = self.prompt_builder.build(
                    persona, question, analysis, domain_policy=policy, profile=advisor
                )
            except Exception as e:
                raise AdvisoryBoardError(
                    ErrorKind.PROMPT_GENERATION_ERROR,
                    f"Prompt generation failed: {e}",
                    context={"advisor_id": advisor.id},
                    original=e,
                ) from e

            async with window:
                try:
                    result = await asyncio.wait_for(
                        self.model_client.call(
                            prompt,
                            temperature=config.temperature,
                            max_tokens=config.max_tokens,
                            timeout=config.response_timeout,
                        ),
                        timeout=config.response_timeout,
                    )
                except asyncio.TimeoutError as e:
                    raise AdvisoryBoardError(
                        ErrorKind.RESPONSE_TIMEOUT,
                        f"Model call exceeded {config.response_timeout}s",
                        context={"advisor_id": advisor.id},
                        original=e,
                    ) from e
            if not (result.content or "").strip():
                raise AdvisoryBoardError(
                    ErrorKind.INVALID_RESPONSE,
                    "Empty completion from model",
                    context={"advisor_id": advisor.id, "provider": result.provider},
                )
            return self._model_response(advisor, persona, result, analysis, board, start)

        context = RecoveryContext(
            advisor=advisor,
            question=question,
            domain_id=board or "",
            analysis=analysis,
            allow_static=config.fallback_to_static,
            use_cache=config.enable_caching,
        )
        try:
            outcome = await self.recovery.execute(_call_model, context, table=table)
            response = outcome.response
            if response is None:
                kind = outcome.error.kind if outcome.error else ErrorKind.UNKNOWN_ERROR
                response = apology_response(advisor, kind, time.perf_counter() - start)
        except ConfigurationError:
            raise
        except Exception as e:
            log_exception("advisor_response", e, advisor_id=advisor.id)
            response = apology_response(advisor, ErrorKind.UNKNOWN_ERROR, time.perf_counter() - start)

        if response.response_type == ResponseType.MODEL and config.enable_caching:
            with safely("fallback_cache.preload", non_fatal=True, advisor_id=advisor.id):
                self.fallback_cache.preload(advisor.id, question, response)
        self.telemetry.record_response_time(
            advisor.id,
            (time.perf_counter() - start) * 1000,
            response.response_type.value,
        )
        return response

    def _model_response(
        self,
        advisor: AdvisorProfile,
        persona: Optional[PersonaDescriptor],
        result: ModelResponse,
        analysis: QuestionAnalysis,
        board: Optional[str],
        start: float,
    ) -> AdvisorResponse:
        return AdvisorResponse(
            advisor_id=advisor.id,
            content=result.content,
            persona=self.static_generator.snapshot(persona, advisor),
            metadata=ResponseMetadata(
                response_type=ResponseType.MODEL,
                processing_time=time.perf_counter() - start,
                confidence=MODEL_CONFIDENCE,
                frameworks=list(DOMAIN_FRAMEWORKS.get(board or "", [])),
                extras={
                    "provider": result.provider,
                    "model": result.model,
                    "usage": result.usage.model_dump(),
                    "question_type": analysis.type.value,
                },
            ),
        )

    @staticmethod
    def _coerce_advisor(advisor: AdvisorInput) -> AdvisorProfile:
        if isinstance(advisor, AdvisorProfile):
            return advisor
        if isinstance(advisor, dict):
            return AdvisorProfile.model_validate(advisor)
        return AdvisorProfile(id=str(advisor))

    # ---------------------- result cache ----------------------

    def _cache_lookup(self, key: str) -> Optional[BatchResult]:
        entry = self._result_cache.get(key)
        if entry is None:
            return None
        if self._now() >= entry.expires_at:
            del self._result_cache[key]
            return None
        return entry.result

    def _cache_store(self, key: str, result: BatchResult, config: OrchestratorConfig) -> None:
        self._result_cache.pop(key, None)
        self._result_cache[key] = _CachedBatch(result=result, expires_at=self._now() + config.result_cache_ttl)
        if len(self._result_cache) > config.result_cache_max_entries:
            self._prune_result_cache(config.result_cache_max_entries)

    def _prune_result_cache(self, max_entries: Optional[int] = None) -> int:
        now = self._now()
        expired = [k for k, e in self._result_cache.items() if now >= e.expires_at]
        for k in expired:
            del self._result_cache[k]
        removed = len(expired)
        if max_entries is not None:
            while len(self._result_cache) > max_entries:
                self._result_cache.popitem(last=False)
                removed += 1
        return removed

    def clear_cache(self) -> None:
        self._result_cache.clear()
        self.fallback_cache.clear()
        logger.info("Caches cleared", stage="cache")

    def sweep(self) -> Dict[str, int]:
        """Prune expired cache entries and stale recovery bookkeeping."""
        swept = {
            "result_cache": self._prune_result_cache(),
            "fallback_cache": self.fallback_cache.clear_expired(),
            "recoveries": self.recovery.cleanup_stale_recoveries(),
        }
        logger.debug("Sweep complete", stage="sweep", **swept)
        return swept

    async def run_periodic_sweep(self, interval: float = 60.0) -> None:
        """Optional low-frequency sweep loop; cancel the task to stop it."""
        while True:
            await asyncio.sleep(interval)
            with safely("periodic_sweep", non_fatal=True):
                self.sweep()

    # ---------------------- health & stats ----------------------

    def health_check(self) -> Dict[str, Any]:
        """Probe each subsystem in isolation; one failing probe never hides the rest."""
        status: Dict[str, Any] = {
            "model_providers": {},
            "static_generator": True,
            "question_analyzer": True,
            "persona_service": True,
        }

        try:
            get_status = getattr(self.model_client, "get_provider_status", None)
            if callable(get_status):
                providers = dict(get_status())
            else:
                providers = {self.model_client.name: bool(self.model_client.is_available())}
            status["model_providers"] = providers
            for name, available in providers.items():
                self.telemetry.record_provider_availability(name, available)
        except Exception as e:
            log_exception("health_check.model_providers", e)

        try:
            result = self.static_generator.generate("health-check", HEALTH_PROBE_QUESTION, None)
            status["static_generator"] = bool(result.content)
        except Exception as e:
            log_exception("health_check.static_generator", e)
            status["static_generator"] = False

        try:
            analysis = self.analyzer.analyze(HEALTH_PROBE_QUESTION)
            status["question_analyzer"] = analysis.confidence > 0
        except Exception as e:
            log_exception("health_check.question_analyzer", e)
            status["question_analyzer"] = False

        try:
            status["persona_service"] = len(self.catalog) > 0
        except Exception as e:
            log_exception("health_check.persona_service", e)
            status["persona_service"] = False

        return status

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "total_requests": 0,
            "success_count": 0,
            "error_count": 0,
            "cache_hit_count": 0,
            "processing_time_total": 0.0,
            "question_types": Counter(),
        }

    def get_stats(self) -> Dict[str, Any]:
        s = self._stats
        computed = s["total_requests"] - s["cache_hit_count"]
        return {
            "total_requests": s["total_requests"],
            "success_count": s["success_count"],
            "error_count": s["error_count"],
            "cache_hit_count": s["cache_hit_count"],
            "average_processing_time": (s["processing_time_total"] / computed) if computed else 0.0,
            "question_types": dict(s["question_types"]),
            "result_cache_size": len(self._result_cache),
            "fallback_cache": self.fallback_cache.get_stats(),
            "recovery": self.recovery.get_recovery_stats(),
        }

    def reset_stats(self) -> None:
        self._stats = self._empty_stats()
        self.telemetry.reset()


def _default_model_client() -> ProviderChain:
    providers: List[ModelClient] = [OpenAIModelClient()]
    local_url = os.getenv("LOCAL_LLM_BASE_URL")
    if local_url:
        providers.append(
            OpenAIModelClient(
                name="local",
                base_url=local_url,
                model=os.getenv("LOCAL_LLM_MODEL") or None,
            )
        )
    return ProviderChain(providers)


def build_orchestrator(
    config: Optional[OrchestratorConfig] = None,
    model_client: Optional[ModelClient] = None,
    **overrides: Any,
) -> ResponseOrchestrator:
    """Composition root: logging, config from env, default provider chain."""
    configure_logging()
    config = config or OrchestratorConfig.from_env()
    ensure_valid(config)
    orchestrator = ResponseOrchestrator(
        model_client or _default_model_client(),
        config=config,
        **overrides,
    )
    logger.info(
        "✓ Response orchestrator initialized",
        stage="startup",
        max_concurrent=config.max_concurrent_requests,
        response_timeout=config.response_timeout,
        caching=config.enable_caching,
    )
    return orchestrator

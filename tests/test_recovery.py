import pytest

from advisory_board.core.config import RetryPolicy
from advisory_board.models.responses import (
    AdvisorProfile,
    AdvisorResponse,
    PersonaSnapshot,
    ResponseMetadata,
    ResponseType,
)
from advisory_board.services.recovery import (
    APOLOGY_TEXT,
    MINIMAL_MODE_TEXT,
    RecoveryContext,
    RecoveryManager,
    RecoveryState,
    StrategyTable,
    apology_response,
)
from advisory_board.utils.error_handling import (
    AdvisoryBoardError,
    ConfigurationError,
    ErrorKind,
    RecoveryStrategy,
    Severity,
)


def _model_response(advisor_id="advisor-1"):
    return AdvisorResponse(
        advisor_id=advisor_id,
        content="A model answer.",
        persona=PersonaSnapshot(name="Advisor", expertise="Strategy"),
        metadata=ResponseMetadata(response_type=ResponseType.MODEL, processing_time=0.0, confidence=0.9),
    )


def _operation(*outcomes):
    """Async operation that raises or returns per scripted outcome; records calls."""
    script = list(outcomes)
    calls = []

    async def op():
        calls.append(1)
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, ErrorKind):
            raise AdvisoryBoardError(outcome, f"scripted {outcome.value}")
        if isinstance(outcome, BaseException):
            raise outcome
        return _model_response()

    return op, calls


@pytest.fixture
def manager(static_generator, cache, sleeper, telemetry, clock):
    return RecoveryManager(
        static_generator=static_generator,
        fallback_cache=cache,
        telemetry=telemetry,
        time_func=clock,
        sleep=sleeper,
    )


@pytest.fixture
def context():
    advisor = AdvisorProfile(id="advisor-1", name="Advisor One", role="Consultant", domain="productboard")
    return RecoveryContext(advisor=advisor, question="How do we grow?", domain_id="productboard")


class TestStrategyTable:
    def test_every_kind_resolves(self):
        table = StrategyTable()
        for kind in ErrorKind:
            policy = table.resolve(kind)
            assert policy.strategy in set(RecoveryStrategy)
            assert policy.user_message

    def test_unmapped_kinds_use_unknown_policy(self):
        table = StrategyTable()
        assert table.resolve("configuration_load_error").kind == ErrorKind.UNKNOWN_ERROR
        assert table.resolve("made_up").kind == ErrorKind.UNKNOWN_ERROR

    @pytest.mark.parametrize(
        "kind,strategy,severity,max_retries",
        [
            (ErrorKind.RATE_LIMITED, RecoveryStrategy.RETRY, Severity.MEDIUM, 3),
            (ErrorKind.NETWORK_ERROR, RecoveryStrategy.RETRY, Severity.HIGH, 3),
            (ErrorKind.INVALID_RESPONSE, RecoveryStrategy.RETRY, Severity.MEDIUM, 2),
            (ErrorKind.API_UNAVAILABLE, RecoveryStrategy.FALLBACK, Severity.HIGH, None),
            (ErrorKind.AUTHENTICATION_ERROR, RecoveryStrategy.FALLBACK, Severity.CRITICAL, None),
            (ErrorKind.CACHE_ERROR, RecoveryStrategy.GRACEFUL_DEGRADATION, Severity.LOW, None),
        ],
    )
    def test_policies(self, kind, strategy, severity, max_retries):
        policy = StrategyTable().resolve(kind)
        assert policy.strategy == strategy
        assert policy.severity == severity
        if max_retries is None:
            assert policy.retry_policy is None
        else:
            assert policy.retry_policy.max_retries == max_retries

    def test_override_returns_new_table(self):
        table = StrategyTable()
        changed = table.with_override("rate_limited", strategy="fail_fast")
        assert changed.resolve(ErrorKind.RATE_LIMITED).strategy == RecoveryStrategy.FAIL_FAST
        assert table.resolve(ErrorKind.RATE_LIMITED).strategy == RecoveryStrategy.RETRY

    def test_retry_policy_override_keeps_retryable_sets(self):
        policy = RetryPolicy(max_retries=5, base_delay=0.1, max_delay=0.4, backoff_multiplier=3)
        table = StrategyTable().with_retry_policy(policy)

        rate = table.resolve(ErrorKind.RATE_LIMITED).retry_policy
        assert rate.max_retries == 5
        assert rate.base_delay == 0.1
        assert rate.retryable == frozenset({ErrorKind.RATE_LIMITED})
        # non-retrying kinds are untouched
        assert table.resolve(ErrorKind.API_UNAVAILABLE).retry_policy is None
        assert table.resolve(ErrorKind.AUTHENTICATION_ERROR).retry_policy is None

    def test_table_requires_unknown_policy(self):
        with pytest.raises(ConfigurationError):
            StrategyTable({})

    def test_retryable_kinds(self):
        assert StrategyTable().retryable_kinds() == sorted([
            "concurrent_processing_error",
            "invalid_response",
            "network_error",
            "rate_limited",
            "response_validation_error",
        ])


class TestRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self, manager, context):
        op, calls = _operation("ok")
        outcome = await manager.execute(op, context)
        assert outcome.state == RecoveryState.SUCCEEDED
        assert outcome.attempts == 1
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self, manager, context, sleeper):
        op, calls = _operation(ErrorKind.RATE_LIMITED, ErrorKind.RATE_LIMITED, "ok")
        outcome = await manager.execute(op, context)

        assert outcome.success
        assert outcome.state == RecoveryState.SUCCEEDED
        assert outcome.strategy == RecoveryStrategy.RETRY
        assert outcome.attempts == 3
        assert outcome.response.metadata.attempts == 3
        assert sleeper.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_falls_back_to_static(self, manager, context, sleeper):
        op, calls = _operation(ErrorKind.NETWORK_ERROR)
        outcome = await manager.execute(op, context)

        assert len(calls) == 3
        assert sleeper.delays == [1.0, 2.0]
        assert outcome.state == RecoveryState.DEGRADED
        assert outcome.fallback_used
        assert outcome.response.response_type == ResponseType.STATIC
        assert outcome.response.metadata.error_info.message == "Using enhanced static response due to service issue"

    @pytest.mark.asyncio
    async def test_non_retryable_kind_mid_sequence_aborts(self, manager, context, sleeper):
        op, calls = _operation(ErrorKind.RATE_LIMITED, ErrorKind.AUTHENTICATION_ERROR, "ok")
        outcome = await manager.execute(op, context)

        assert len(calls) == 2
        assert sleeper.delays == [2.0]
        assert outcome.response.response_type == ResponseType.STATIC

    @pytest.mark.asyncio
    async def test_fallback_kind_not_retried(self, manager, context, sleeper):
        op, calls = _operation(ErrorKind.API_UNAVAILABLE)
        outcome = await manager.execute(op, context)
        assert len(calls) == 1
        assert sleeper.delays == []
        assert outcome.response.metadata.error_info.kind == "api_unavailable"

    @pytest.mark.asyncio
    async def test_untyped_exception_classified(self, manager, context):
        op, calls = _operation(RuntimeError("mystery"))
        outcome = await manager.execute(op, context)
        assert outcome.error.kind == ErrorKind.UNKNOWN_ERROR
        assert outcome.error.message == "mystery"
        assert outcome.response.content


class TestStrategies:
    @pytest.mark.asyncio
    async def test_static_answer_cached_at_medium(self, manager, context, cache):
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        await manager.execute(op, context)
        entry = cache.try_get(context.advisor.id, context.question)
        assert entry is not None
        assert entry.quality.value == "medium"

        # second failure is served from the cache
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        outcome = await manager.execute(op, context)
        assert outcome.response.response_type == ResponseType.CACHED
        assert outcome.response.metadata.confidence == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_fallback_miss_counted_once(self, manager, context, cache):
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        await manager.execute(op, context)
        assert cache.miss_count == 1
        assert cache.hit_count == 0

    @pytest.mark.asyncio
    async def test_cache_disabled_context_bypasses_fallback_cache(self, manager, context, cache):
        context.use_cache = False
        for _ in range(2):
            op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
            outcome = await manager.execute(op, context)
            assert outcome.response.response_type == ResponseType.STATIC
        assert len(cache) == 0
        assert cache.miss_count == 0

    @pytest.mark.asyncio
    async def test_graceful_degradation_caps_confidence(self, manager, context):
        op, _ = _operation(ErrorKind.PERSONA_NOT_FOUND)
        outcome = await manager.execute(op, context)

        assert outcome.strategy == RecoveryStrategy.GRACEFUL_DEGRADATION
        assert outcome.response.metadata.confidence <= 0.7
        assert outcome.response.metadata.error_info.message == "Service operating in degraded mode"
        assert outcome.response.metadata.extras["degraded"] is True
        assert outcome.response.metadata.extras["warnings"][0]["code"] == "degraded_mode"

    @pytest.mark.asyncio
    async def test_degradation_falls_to_minimal_mode(self, manager, context, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("everything is down")

        monkeypatch.setattr(manager, "fallback_response", broken)
        op, _ = _operation(ErrorKind.CACHE_ERROR)
        outcome = await manager.execute(op, context)

        assert outcome.response.content == MINIMAL_MODE_TEXT
        assert outcome.response.metadata.confidence == pytest.approx(0.1)
        assert outcome.response.persona.tone == "apologetic"

    @pytest.mark.asyncio
    async def test_fail_fast(self, manager, context):
        table = StrategyTable().with_override(ErrorKind.QUOTA_EXCEEDED, strategy=RecoveryStrategy.FAIL_FAST)
        op, _ = _operation(ErrorKind.QUOTA_EXCEEDED)
        outcome = await manager.execute(op, context, table=table)

        assert outcome.state == RecoveryState.FAILED_FAST
        assert not outcome.success
        assert outcome.response is None
        assert outcome.error.kind == ErrorKind.QUOTA_EXCEEDED

    @pytest.mark.asyncio
    async def test_user_intervention(self, manager, context):
        table = StrategyTable().with_override(
            ErrorKind.SERVICE_UNAVAILABLE, strategy=RecoveryStrategy.USER_INTERVENTION
        )
        op, _ = _operation(ErrorKind.SERVICE_UNAVAILABLE)
        outcome = await manager.execute(op, context, table=table)

        assert context.request_id in outcome.response.content
        assert outcome.response.metadata.confidence == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_static_disabled_uses_emergency(self, manager, context):
        context.allow_static = False
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        outcome = await manager.execute(op, context)
        assert outcome.response.metadata.extras.get("emergency") is True

    @pytest.mark.asyncio
    async def test_fallback_failure_yields_apology(self, manager, context, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("cache and static both down")

        monkeypatch.setattr(manager, "fallback_response", broken)
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        outcome = await manager.execute(op, context)
        assert outcome.response.content == APOLOGY_TEXT


class TestBookkeeping:
    @pytest.mark.asyncio
    async def test_active_recoveries_cleared_after_execute(self, manager, context):
        op, _ = _operation("ok")
        await manager.execute(op, context)
        assert manager.active_recoveries() == []

    def test_cleanup_stale(self, manager, context, clock):
        manager._active[context.request_id] = context
        context.started_at = clock()
        clock.advance(301)
        assert manager.cleanup_stale_recoveries() == 1
        assert manager.get_recovery_stats()["active_recoveries"] == 0

    @pytest.mark.asyncio
    async def test_errors_reported_to_telemetry(self, manager, context, telemetry):
        op, _ = _operation(ErrorKind.AUTHENTICATION_ERROR)
        await manager.execute(op, context)
        snap = telemetry.snapshot()
        assert snap["errors_by_severity"] == {"critical": 1}
        assert snap["errors_by_kind"] == {"authentication_error": 1}

    @pytest.mark.asyncio
    async def test_low_severity_not_reported(self, manager, context, telemetry):
        op, _ = _operation(ErrorKind.CACHE_ERROR)
        await manager.execute(op, context)
        assert telemetry.snapshot()["errors_by_kind"] == {}


def test_apology_response():
    advisor = AdvisorProfile(id="a", name="Ann")
    response = apology_response(advisor, "network_error", 0.5)
    assert response.content == APOLOGY_TEXT
    assert response.metadata.confidence == pytest.approx(0.1)
    assert response.metadata.extras["minimal"] is True
    assert response.metadata.error_info.kind == "network_error"

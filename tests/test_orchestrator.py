import asyncio
import math
import time

import pytest

from advisory_board.core.config import OrchestratorConfig, RetryPolicy
from advisory_board.models.responses import AdvisorProfile, ResponseType
from advisory_board.services.orchestrator import (
    DOMAIN_FRAMEWORKS,
    MODEL_CONFIDENCE,
    ResponseOrchestrator,
    build_orchestrator,
    result_cache_key,
)
from advisory_board.services.recovery import APOLOGY_TEXT, StrategyTable
from advisory_board.utils.error_handling import ConfigurationError, ErrorKind, RecoveryStrategy

from tests.conftest import FakeModelClient, PerAdvisorModelClient


def _advisors(n, domain="productboard"):
    return [
        AdvisorProfile(id=f"advisor-{i}", name=f"Advisor {i}", role="Consultant", domain=domain)
        for i in range(n)
    ]


class TestTotalCoverage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("default", ["A thoughtful model answer.", ErrorKind.API_UNAVAILABLE, ValueError("boom")])
    async def test_one_response_per_advisor(self, make_orchestrator, default):
        orch = make_orchestrator(FakeModelClient(default=default))
        advisors = _advisors(4)
        result = await orch.generate("How should we prioritise the roadmap?", advisors, "productboard")

        assert len(result.responses) == len(advisors)
        assert [r.advisor_id for r in result.responses] == [a.id for a in advisors]
        for response in result.responses:
            assert response.content.strip()
            assert response.response_type in set(ResponseType)

    @pytest.mark.asyncio
    async def test_accepts_dicts_and_ids(self, orchestrator):
        result = await orchestrator.generate(
            "What should our pricing strategy be?",
            [{"id": "sarah-kim", "name": "Sarah Kim"}, "marcus-chen"],
            "productboard",
        )
        assert [r.advisor_id for r in result.responses] == ["sarah-kim", "marcus-chen"]

    @pytest.mark.asyncio
    async def test_model_response_metadata(self, orchestrator, product_advisors):
        result = await orchestrator.generate("How do we scale the platform?", product_advisors, "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.MODEL
        assert response.metadata.confidence == MODEL_CONFIDENCE
        assert response.metadata.frameworks == DOMAIN_FRAMEWORKS["productboard"]
        assert response.metadata.attempts == 1
        assert response.metadata.error_info is None
        assert response.persona.name == "Sarah Kim"
        assert result.success_count == 2
        assert result.failure_count == 0


class TestFallback:
    @pytest.mark.asyncio
    async def test_non_retryable_error_falls_back_without_retry(self, make_orchestrator, product_advisors):
        model = FakeModelClient(default=ErrorKind.AUTHENTICATION_ERROR)
        orch = make_orchestrator(model)

        result = await orch.generate("How should we approach pricing?", product_advisors, "productboard")

        assert model.call_count == len(product_advisors)
        for response in result.responses:
            assert response.response_type == ResponseType.STATIC
            assert response.metadata.error_info.fallback_used is True
            assert response.metadata.error_info.kind == "authentication_error"
            assert response.metadata.attempts == 1
        assert result.success_count == 2

    @pytest.mark.asyncio
    async def test_clinical_trial_fallback_mentions_regulation(self, make_orchestrator):
        orch = make_orchestrator(FakeModelClient(default=ErrorKind.SERVICE_UNAVAILABLE))
        advisor = AdvisorProfile(
            id="regulatory-director",
            name="Dana Reyes",
            role="Regulatory Affairs Director",
            domain="cliniboard",
        )

        result = await orch.generate("How do we design a Phase III clinical trial?", [advisor], "cliniboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.STATIC
        assert "FDA" in response.content or "regulatory" in response.content.lower()
        assert len(response.content) > 100

    @pytest.mark.asyncio
    async def test_timeout_becomes_response_timeout(self, make_orchestrator):
        orch = make_orchestrator(FakeModelClient(delay=0.5), response_timeout=0.05)
        result = await orch.generate("How do we grow retention?", _advisors(1), "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.STATIC
        assert response.metadata.error_info.kind == "response_timeout"

    @pytest.mark.asyncio
    async def test_static_disabled_uses_emergency_template(self, make_orchestrator):
        orch = make_orchestrator(
            FakeModelClient(default=ErrorKind.AUTHENTICATION_ERROR), fallback_to_static=False
        )
        result = await orch.generate("How do we grow retention?", _advisors(1), "productboard")
        response = result.responses[0]

        assert response.metadata.extras.get("emergency") is True
        assert response.metadata.confidence == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_earlier_model_answer_served_from_fallback_cache(self, make_orchestrator, product_advisors):
        model = FakeModelClient(script=["First answer from the model."])
        orch = make_orchestrator(model)
        await orch.generate("How should we price?", product_advisors[:1], "productboard")

        model.default = ErrorKind.AUTHENTICATION_ERROR
        orch._result_cache.clear()
        result = await orch.generate("How should we price?", product_advisors[:1], "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.CACHED
        assert response.content == "First answer from the model."
        assert response.metadata.confidence == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_fail_fast_yields_apology_and_counts_failure(self, catalog, analyzer, sleeper):
        table = StrategyTable().with_override(ErrorKind.AUTHENTICATION_ERROR, strategy=RecoveryStrategy.FAIL_FAST)
        orch = ResponseOrchestrator(
            FakeModelClient(default=ErrorKind.AUTHENTICATION_ERROR),
            catalog=catalog,
            analyzer=analyzer,
            strategy_table=table,
            sleep=sleeper,
        )
        result = await orch.generate("Any question?", _advisors(2), "productboard")

        assert result.failure_count == 2
        assert result.success_count == 0
        assert all(r.content == APOLOGY_TEXT for r in result.responses)
        assert all(r.metadata.confidence == pytest.approx(0.1) for r in result.responses)

    @pytest.mark.asyncio
    async def test_blank_model_answer_is_retried(self, make_orchestrator, sleeper):
        model = FakeModelClient(script=["   ", "Real answer."])
        orch = make_orchestrator(model)
        result = await orch.generate("How do we grow retention?", _advisors(1), "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.MODEL
        assert response.content == "Real answer."
        assert response.metadata.attempts == 2
        assert model.call_count == 2
        assert sleeper.delays == [0.5]

    @pytest.mark.asyncio
    async def test_blank_model_answers_fall_back_as_invalid_response(self, make_orchestrator):
        model = FakeModelClient(default="")
        orch = make_orchestrator(model)
        result = await orch.generate("How do we grow retention?", _advisors(1), "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.STATIC
        assert response.metadata.error_info.kind == "invalid_response"
        assert model.call_count == 2


class TestRetry:
    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self, make_orchestrator, sleeper):
        model = FakeModelClient(script=[ErrorKind.RATE_LIMITED, "Recovered answer."])
        orch = make_orchestrator(model)

        result = await orch.generate("How do we scale?", _advisors(1), "productboard")
        response = result.responses[0]

        assert response.response_type == ResponseType.MODEL
        assert response.metadata.attempts == 2
        assert model.call_count == 2
        assert sleeper.delays == [2.0]

    @pytest.mark.asyncio
    async def test_elapsed_time_includes_backoff(self, catalog, analyzer):
        policy = RetryPolicy(max_retries=3, base_delay=0.2, max_delay=1.0, backoff_multiplier=2.0)
        orch = ResponseOrchestrator(
            FakeModelClient(script=[ErrorKind.RATE_LIMITED, "Recovered answer."]),
            catalog=catalog,
            analyzer=analyzer,
            config=OrchestratorConfig(retry_policy=policy),
        )

        start = time.perf_counter()
        result = await orch.generate("How do we scale?", _advisors(1), "productboard")
        elapsed = time.perf_counter() - start

        assert result.responses[0].metadata.attempts == 2
        assert 0.2 <= elapsed < 1.0

    @pytest.mark.asyncio
    async def test_network_error_exhausts_then_falls_back(self, make_orchestrator, product_advisors, sleeper):
        model = PerAdvisorModelClient(
            {"Sarah Kim": ["Model answer for Sarah."], "Marcus Chen": [ErrorKind.NETWORK_ERROR]}
        )
        orch = make_orchestrator(model)

        result = await orch.generate("What is our go-to-market plan?", product_advisors, "productboard")
        by_id = result.by_advisor()

        assert result.success_count == 2
        assert result.failure_count == 0
        assert by_id["sarah-kim"].response_type == ResponseType.MODEL
        assert by_id["marcus-chen"].response_type == ResponseType.STATIC
        assert by_id["marcus-chen"].metadata.attempts == 3
        assert model.calls_by_marker["Marcus Chen"] == 3
        assert sleeper.delays == [1.0, 2.0]


class TestBatching:
    @pytest.mark.asyncio
    async def test_latency_follows_concurrency_window(self, make_orchestrator):
        delay, window, count = 0.1, 3, 10
        orch = make_orchestrator(FakeModelClient(delay=delay), max_concurrent_requests=window)

        start = time.perf_counter()
        result = await orch.generate("How should we plan the launch?", _advisors(count), "productboard")
        elapsed = time.perf_counter() - start

        expected = math.ceil(count / window) * delay
        assert len(result.responses) == count
        assert expected * 0.9 <= elapsed < expected + delay * 2
        assert elapsed < count * delay

    @pytest.mark.asyncio
    async def test_multi_board_prompts_carry_lane_rules(self, make_orchestrator):
        model = FakeModelClient()
        orch = make_orchestrator(model)
        advisors = [
            AdvisorProfile(id="p1", name="Pat Product", role="VP Product", domain="productboard"),
            AdvisorProfile(id="c1", name="Cam Clinic", role="Clinical Lead", domain="cliniboard"),
        ]
        await orch.generate("How do we launch a digital therapeutic?", advisors, "productboard")

        assert model.call_count == 2
        assert all("Stay in your lane" in prompt for prompt in model.calls)

    @pytest.mark.asyncio
    async def test_single_board_prompts_have_no_lane_rules(self, orchestrator, model, product_advisors):
        await orchestrator.generate("How do we launch?", product_advisors, "productboard")
        assert not any("Stay in your lane" in prompt for prompt in model.calls)


class TestResultCache:
    @pytest.mark.asyncio
    async def test_identical_requests_hit_cache_until_ttl(self, make_orchestrator, clock):
        model = FakeModelClient()
        orch = make_orchestrator(model, result_cache_ttl=60.0)
        advisors = _advisors(1)

        first = await orch.generate("How do we grow?", advisors, "productboard")
        second = await orch.generate("  how do we GROW? ", advisors, "productboard")
        assert model.call_count == 1
        assert first.from_cache is False
        assert second.from_cache is True

        clock.advance(61.0)
        await orch.generate("How do we grow?", advisors, "productboard")
        assert model.call_count == 2

    @pytest.mark.asyncio
    async def test_caching_disabled(self, make_orchestrator):
        model = FakeModelClient()
        orch = make_orchestrator(model, enable_caching=False)
        for _ in range(2):
            await orch.generate("How do we grow?", _advisors(1), "productboard")
        assert model.call_count == 2

    def test_key_ignores_advisor_order(self):
        assert result_cache_key("Q", ["b", "a"], "productboard") == result_cache_key("q", ["a", "b"], "productboard")
        assert result_cache_key("Q", ["a"], "productboard") != result_cache_key("Q", ["a"], "eduboard")

    @pytest.mark.asyncio
    async def test_cache_pruned_above_ceiling(self, make_orchestrator):
        orch = make_orchestrator(FakeModelClient(), result_cache_max_entries=2)
        for i in range(4):
            await orch.generate(f"Question number {i}?", _advisors(1), "productboard")
        assert orch.get_stats()["result_cache_size"] == 2

    @pytest.mark.asyncio
    async def test_sweep_prunes_expired(self, make_orchestrator, clock):
        orch = make_orchestrator(FakeModelClient(), result_cache_ttl=10.0)
        await orch.generate("How do we grow?", _advisors(1), "productboard")
        clock.advance(11.0)
        swept = orch.sweep()
        assert swept["result_cache"] == 1
        assert orch.get_stats()["result_cache_size"] == 0

    @pytest.mark.asyncio
    async def test_caching_disabled_skips_fallback_cache(self, make_orchestrator):
        orch = make_orchestrator(FakeModelClient(default=ErrorKind.AUTHENTICATION_ERROR), enable_caching=False)
        for _ in range(2):
            result = await orch.generate("How do we grow?", _advisors(1), "productboard")
            response = result.responses[0]
            assert response.response_type == ResponseType.STATIC
        assert len(orch.fallback_cache) == 0
        assert orch.fallback_cache.miss_count == 0

    @pytest.mark.asyncio
    async def test_caching_disabled_emergency_template_not_stored(self, make_orchestrator):
        orch = make_orchestrator(
            FakeModelClient(default=ErrorKind.AUTHENTICATION_ERROR),
            enable_caching=False,
            fallback_to_static=False,
        )
        result = await orch.generate("How do we grow?", _advisors(1), "productboard")
        assert result.responses[0].metadata.extras.get("emergency") is True
        assert len(orch.fallback_cache) == 0

    @pytest.mark.asyncio
    async def test_cache_hit_is_independent_copy(self, make_orchestrator):
        orch = make_orchestrator(FakeModelClient())
        advisors = _advisors(2)
        first = await orch.generate("How do we grow?", advisors, "productboard")
        first.responses.pop()

        hit = await orch.generate("How do we grow?", advisors, "productboard")
        hit.responses.clear()
        again = await orch.generate("How do we grow?", advisors, "productboard")
        again.responses[0].metadata.extras["tampered"] = True

        final = await orch.generate("How do we grow?", advisors, "productboard")
        assert len(final.responses) == 2
        assert "tampered" not in final.responses[0].metadata.extras


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_invalid_options_raise(self, orchestrator):
        with pytest.raises(ConfigurationError):
            await orchestrator.generate("Q?", _advisors(1), "productboard", {"max_concurrent_requests": 0})

    @pytest.mark.asyncio
    async def test_unknown_option_raises(self, orchestrator):
        with pytest.raises(ConfigurationError):
            await orchestrator.generate("Q?", _advisors(1), "productboard", {"not_an_option": True})

    @pytest.mark.asyncio
    async def test_invalid_retry_policy_raises(self, orchestrator):
        bad = RetryPolicy(max_retries=2, base_delay=5.0, max_delay=1.0)
        with pytest.raises(ConfigurationError):
            await orchestrator.generate("Q?", _advisors(1), "productboard", {"retry_policy": bad})

    @pytest.mark.asyncio
    async def test_retry_policy_accepts_plain_mapping(self, make_orchestrator, sleeper):
        model = FakeModelClient(script=[ErrorKind.RATE_LIMITED, "Recovered answer."])
        orch = make_orchestrator(model)
        options = {"retry_policy": {"max_retries": 2, "base_delay": 0.1, "max_delay": 1.0, "backoff_multiplier": 2}}

        result = await orch.generate("How do we scale?", _advisors(1), "productboard", options)

        assert result.responses[0].response_type == ResponseType.MODEL
        assert sleeper.delays == [0.1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "retry_policy",
        [
            {"max_retries": 2, "jitter": "full"},
            {"max_retries": "many"},
            {"retryable": ["not_a_kind"]},
            {"max_retries": 2, "base_delay": 5.0, "max_delay": 1.0},
            "3 retries please",
        ],
    )
    async def test_malformed_retry_policy_raises_configuration_error(self, orchestrator, retry_policy):
        with pytest.raises(ConfigurationError):
            await orchestrator.generate("Q?", _advisors(1), "productboard", {"retry_policy": retry_policy})

    def test_build_orchestrator_reads_env(self, monkeypatch):
        monkeypatch.setenv("ADVISOR_MAX_CONCURRENT", "3")
        monkeypatch.setenv("ADVISOR_ENABLE_CACHING", "false")
        orch = build_orchestrator(model_client=FakeModelClient())
        assert orch.config.max_concurrent_requests == 3
        assert orch.config.enable_caching is False


class TestHealthAndStats:
    def test_health_check_reports_all_subsystems(self, orchestrator):
        status = orchestrator.health_check()
        assert status == {
            "model_providers": {"fake": True},
            "static_generator": True,
            "question_analyzer": True,
            "persona_service": True,
        }

    def test_health_check_isolates_failures(self, orchestrator, monkeypatch):
        class BrokenClient(FakeModelClient):
            def get_provider_status(self):
                raise RuntimeError("provider probe failed")

        def broken_generate(*args, **kwargs):
            raise RuntimeError("static generator down")

        orchestrator.model_client = BrokenClient()
        monkeypatch.setattr(orchestrator.static_generator, "generate", broken_generate)

        status = orchestrator.health_check()
        assert status["model_providers"] == {}
        assert status["static_generator"] is False
        assert status["question_analyzer"] is True
        assert status["persona_service"] is True

    @pytest.mark.asyncio
    async def test_stats_track_requests(self, orchestrator, product_advisors):
        await orchestrator.generate("How should we brainstorm new features?", product_advisors, "productboard")
        await orchestrator.generate("How should we brainstorm new features?", product_advisors, "productboard")

        stats = orchestrator.get_stats()
        assert stats["total_requests"] == 2
        assert stats["cache_hit_count"] == 1
        assert stats["success_count"] == 2
        assert stats["error_count"] == 0
        assert sum(stats["question_types"].values()) == 2
        assert stats["average_processing_time"] > 0

        orchestrator.reset_stats()
        assert orchestrator.get_stats()["total_requests"] == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self, orchestrator, model):
        await orchestrator.generate("How do we grow?", _advisors(1), "productboard")
        orchestrator.clear_cache()
        await orchestrator.generate("How do we grow?", _advisors(1), "productboard")
        assert model.call_count == 2

    @pytest.mark.asyncio
    async def test_telemetry_records_responses(self, orchestrator, telemetry, product_advisors):
        await orchestrator.generate("How do we grow?", product_advisors, "productboard")
        snap = telemetry.snapshot()
        assert snap["responses"] == 2
        assert "model" in snap["latency"]

    @pytest.mark.asyncio
    async def test_periodic_sweep_can_be_cancelled(self, orchestrator):
        task = asyncio.ensure_future(orchestrator.run_periodic_sweep(interval=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

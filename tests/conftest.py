"""Shared fixtures for the advisory pipeline tests.

Components are built fresh per test so module-level singletons never leak
state between tests. ``FakeModelClient`` stands in for the model provider.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence, Union

import pytest

from advisory_board.core.config import OrchestratorConfig
from advisory_board.models.responses import AdvisorProfile, ModelResponse, TokenUsage
from advisory_board.services.fallback_cache import FallbackCache
from advisory_board.services.orchestrator import ResponseOrchestrator
from advisory_board.services.persona_catalog import PersonaCatalog
from advisory_board.services.question_analyzer import QuestionAnalyzer
from advisory_board.services.static_responses import StaticResponseGenerator
from advisory_board.services.telemetry import TelemetryRecorder
from advisory_board.utils.error_handling import AdvisoryBoardError, ErrorKind

Outcome = Union[str, BaseException, ErrorKind]


class FakeModelClient:
    """Scripted model client.

    ``script`` is consumed one item per call: a string is returned as the
    completion, an exception or ErrorKind is raised. Once exhausted, ``default``
    applies the same way.
    """

    def __init__(
        self,
        script: Optional[Sequence[Outcome]] = None,
        default: Outcome = "Model answer with concrete, actionable guidance.",
        delay: float = 0.0,
        name: str = "fake",
        available: bool = True,
    ):
        self.script: List[Outcome] = list(script or [])
        self.default = default
        self.delay = delay
        self.name = name
        self.available = available
        self.calls: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def is_available(self) -> bool:
        return self.available

    async def call(self, prompt, *, temperature=0.7, max_tokens=800, timeout=None) -> ModelResponse:
        self.calls.append(prompt)
        outcome = self.script.pop(0) if self.script else self.default
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(outcome, ErrorKind):
            raise AdvisoryBoardError(outcome, f"scripted {outcome.value}")
        if isinstance(outcome, BaseException):
            raise outcome
        return ModelResponse(
            content=outcome,
            model="fake-model",
            provider=self.name,
            usage=TokenUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
        )


class PerAdvisorModelClient(FakeModelClient):
    """Outcome chosen by a marker found in the prompt (the advisor's name)."""

    def __init__(self, outcomes: dict, **kwargs: Any):
        super().__init__(**kwargs)
        # The last outcome of each script repeats once the others are used
        self.outcomes = {k: list(v) for k, v in outcomes.items()}
        self.calls_by_marker = {k: 0 for k in outcomes}

    async def call(self, prompt, *, temperature=0.7, max_tokens=800, timeout=None) -> ModelResponse:
        for marker, script in self.outcomes.items():
            if marker in prompt:
                self.calls_by_marker[marker] += 1
                self.script = [script.pop(0) if len(script) > 1 else script[0]]
                break
        return await super().call(prompt, temperature=temperature, max_tokens=max_tokens, timeout=timeout)


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Injectable async sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def analyzer() -> QuestionAnalyzer:
    return QuestionAnalyzer()


@pytest.fixture
def catalog() -> PersonaCatalog:
    return PersonaCatalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> FallbackCache:
    return FallbackCache(max_entries=10, low_watermark=8, ttl=60.0, emergency_ttl=3600.0, time_func=clock)


@pytest.fixture
def static_generator(catalog, analyzer) -> StaticResponseGenerator:
    return StaticResponseGenerator(catalog=catalog, analyzer=analyzer)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def telemetry() -> TelemetryRecorder:
    return TelemetryRecorder()


@pytest.fixture
def model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def make_orchestrator(catalog, analyzer, clock, sleeper, telemetry):
    def _make(model_client, **config_overrides) -> ResponseOrchestrator:
        return ResponseOrchestrator(
            model_client,
            config=OrchestratorConfig().merged(config_overrides),
            analyzer=analyzer,
            catalog=catalog,
            telemetry=telemetry,
            time_func=clock,
            sleep=sleeper,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator, model) -> ResponseOrchestrator:
    return make_orchestrator(model)


@pytest.fixture
def product_advisors() -> List[AdvisorProfile]:
    return [
        AdvisorProfile(id="sarah-kim", name="Sarah Kim", role="Chief Product Officer", domain="productboard"),
        AdvisorProfile(id="marcus-chen", name="Marcus Chen", role="Senior Product Manager", domain="productboard"),
    ]

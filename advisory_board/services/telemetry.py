"""Lightweight Telemetry Recorder

In-process instrumentation for the advisory pipeline. Safe under failure:
all public methods swallow exceptions so a broken recorder never changes
control flow in the orchestrator.

Records:
 - response times per advisor and response type (bounded ring buffer)
 - fallback usage by error kind
 - result/fallback cache hits and misses
 - provider availability
 - classified errors by severity and kind
 - free-form counters with capped label cardinality
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

import structlog

from advisory_board.utils.error_handling import AdvisoryBoardError, Severity

logger = structlog.get_logger(__name__)

MAX_EVENTS = 5000
MAX_LABEL_CARDINALITY = 50


@dataclass
class ResponseEvent:
    ts: float
    advisor_id: str
    duration_ms: float
    response_type: str


class TelemetryRecorder:
    def __init__(self):
        self._lock = threading.RLock()
        self._events: Deque[ResponseEvent] = deque(maxlen=MAX_EVENTS)
        self._counters: Dict[str, Dict[Tuple[str, ...], int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._label_values: Dict[str, set] = defaultdict(set)
        self._providers: Dict[str, bool] = {}

    # ---------------------- hooks ----------------------

    def record_response_time(self, advisor_id: str, duration_ms: float, response_type: str) -> None:
        try:
            with self._lock:
                self._events.append(
                    ResponseEvent(
                        ts=time.time(),
                        advisor_id=advisor_id,
                        duration_ms=max(0.0, float(duration_ms)),
                        response_type=str(getattr(response_type, "value", response_type)),
                    )
                )
        except Exception:
            pass

    def record_fallback_usage(self, advisor_id: str, kind: str) -> None:
        self.increment("fallback_used", str(getattr(kind, "value", kind)))

    def record_cache_hit(self, hit: bool, cache: str = "result") -> None:
        self.increment("cache_hits" if hit else "cache_misses", cache)

    def record_provider_availability(self, provider: str, available: bool) -> None:
        try:
            with self._lock:
                self._providers[provider] = bool(available)
        except Exception:
            pass

    def record_error(self, error: AdvisoryBoardError, severity: Severity) -> None:
        try:
            self.increment("errors_by_severity", Severity(severity).value)
            self.increment("errors_by_kind", error.kind.value)
        except Exception:
            pass

    def increment(self, name: str, *label_values: str, amount: int = 1) -> None:
        try:
            label_values = tuple(str(getattr(v, "value", v)) for v in label_values)
            with self._lock:
                if label_values:
                    for v in label_values:
                        if len(self._label_values[name]) < MAX_LABEL_CARDINALITY:
                            self._label_values[name].add(v)
                        elif v not in self._label_values[name]:
                            return
                key = tuple(label_values) if label_values else tuple()
                self._counters[name][key] += amount
        except Exception:
            pass

    # ---------------------- snapshots ----------------------

    def _percentiles(self, values: List[float]) -> Dict[str, float]:
        if not values:
            return {"p50": 0.0, "p95": 0.0, "p99": 0.0}
        values_sorted = sorted(values)

        def pct(p: float) -> float:
            k = (len(values_sorted) - 1) * (p / 100.0)
            f = int(k)
            c = min(f + 1, len(values_sorted) - 1)
            if f == c:
                return float(values_sorted[f])
            return float(values_sorted[f] + (values_sorted[c] - values_sorted[f]) * (k - f))

        return {
            "p50": round(pct(50), 2),
            "p95": round(pct(95), 2),
            "p99": round(pct(99), 2),
        }

    def _counter(self, name: str) -> Dict[str, int]:
        return {
            ":".join(labels) or "_": value
            for labels, value in self._counters.get(name, {}).items()
        }

    def _total(self, name: str) -> int:
        return sum(self._counters.get(name, {}).values())

    def snapshot(self) -> Dict[str, Any]:
        try:
            with self._lock:
                by_type: Dict[str, List[float]] = defaultdict(list)
                for ev in self._events:
                    by_type[ev.response_type].append(ev.duration_ms)
                hits, misses = self._total("cache_hits"), self._total("cache_misses")
                responses = len(self._events)
                fallbacks = self._total("fallback_used")
                return {
                    "counters": {name: self._counter(name) for name in self._counters},
                    "errors_by_severity": self._counter("errors_by_severity"),
                    "errors_by_kind": self._counter("errors_by_kind"),
                    "cache_hit_rate": round(hits / (hits + misses), 4) if hits + misses else 0.0,
                    "fallback_rate": round(fallbacks / responses, 4) if responses else 0.0,
                    "provider_availability": dict(self._providers),
                    "latency": {t: self._percentiles(v) for t, v in by_type.items()},
                    "responses": responses,
                }
        except Exception as e:
            logger.debug("Telemetry snapshot failed", error=str(e))
            return {}

    def reset(self) -> None:
        try:
            with self._lock:
                self._events.clear()
                self._counters.clear()
                self._label_values.clear()
                self._providers.clear()
        except Exception:
            pass


class NullTelemetry:
    """No-op recorder with the same surface."""

    def record_response_time(self, advisor_id: str, duration_ms: float, response_type: str) -> None:
        return None

    def record_fallback_usage(self, advisor_id: str, kind: str) -> None:
        return None

    def record_cache_hit(self, hit: bool, cache: str = "result") -> None:
        return None

    def record_provider_availability(self, provider: str, available: bool) -> None:
        return None

    def record_error(self, error: Optional[AdvisoryBoardError], severity: Optional[Severity]) -> None:
        return None

    def increment(self, name: str, *label_values: str, amount: int = 1) -> None:
        return None

    def snapshot(self) -> Dict[str, Any]:
        return {}

    def reset(self) -> None:
        return None

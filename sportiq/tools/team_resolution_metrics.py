from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Dict


class TeamResolutionMetrics:
    """Thread-safe in-memory counters for team resolution and query outcomes."""

    def __init__(self, emit_every: int = 100) -> None:
        self._lock = threading.RLock()
        self._emit_every = max(1, emit_every)

        self._event_total = 0
        self._last_emitted_event = 0

        self._resolution_total = 0
        self._resolution_miss_total = 0
        self._team_counts: Dict[str, int] = defaultdict(int)

        self._query_total = 0
        self._query_miss_total = 0
        self._intent_totals: Dict[str, int] = defaultdict(int)
        self._intent_misses: Dict[str, int] = defaultdict(int)

    def record_resolution_event(self, *, team: str | None) -> None:
        with self._lock:
            self._event_total += 1
            self._resolution_total += 1
            if team is None:
                self._resolution_miss_total += 1
            else:
                self._team_counts[team] += 1

    def record_query_result(self, *, intent: str, found: bool) -> None:
        with self._lock:
            self._event_total += 1
            self._query_total += 1
            self._intent_totals[intent] += 1
            if not found:
                self._query_miss_total += 1
                self._intent_misses[intent] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            resolution_miss_rate = (
                self._resolution_miss_total / self._resolution_total
                if self._resolution_total > 0
                else 0.0
            )
            query_miss_rate = (
                self._query_miss_total / self._query_total
                if self._query_total > 0
                else 0.0
            )

            return {
                "resolution_total": self._resolution_total,
                "resolution_miss_total": self._resolution_miss_total,
                "team_resolution_miss_rate": resolution_miss_rate,
                "query_total": self._query_total,
                "query_miss_total": self._query_miss_total,
                "query_miss_rate": query_miss_rate,
                "team_counts": dict(self._team_counts),
                "intent_totals": dict(self._intent_totals),
                "intent_misses": dict(self._intent_misses),
            }

    def maybe_log(self, logger: Any, source: str) -> None:
        with self._lock:
            if (self._event_total - self._last_emitted_event) < self._emit_every:
                return
            self._last_emitted_event = self._event_total
            snapshot = self.snapshot()

        logger.info(
            "[TeamResolutionMetrics] source=%s resolution_total=%s query_total=%s "
            "team_resolution_miss_rate=%.6f query_miss_rate=%.6f",
            source,
            snapshot["resolution_total"],
            snapshot["query_total"],
            snapshot["team_resolution_miss_rate"],
            snapshot["query_miss_rate"],
        )

    def reset(self) -> None:
        with self._lock:
            self._event_total = 0
            self._last_emitted_event = 0
            self._resolution_total = 0
            self._resolution_miss_total = 0
            self._team_counts.clear()
            self._query_total = 0
            self._query_miss_total = 0
            self._intent_totals.clear()
            self._intent_misses.clear()


_TEAM_RESOLUTION_METRICS = TeamResolutionMetrics()


def get_team_resolution_metrics() -> TeamResolutionMetrics:
    return _TEAM_RESOLUTION_METRICS

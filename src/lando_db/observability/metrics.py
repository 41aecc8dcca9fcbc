from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from typing import Any


class PanelMetrics:
    """Query counters for the health endpoint, overall and per database service.

    Counters incremented with a ``service_id`` also count toward the overall
    total of the same name. Query latency is kept per service as a running sum
    so ``get_stats`` can report an average without storing every sample.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._by_service: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._elapsed_ms: dict[str, float] = defaultdict(float)
        self._timed: dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()
        self._start_time = time.monotonic()

    async def increment(self, name: str, amount: int = 1, *, service_id: str | None = None) -> None:
        async with self._lock:
            self._counters[name] += amount
            if service_id is not None:
                self._by_service[service_id][name] += amount

    async def observe_query(self, service_id: str, elapsed_ms: float) -> None:
        async with self._lock:
            self._elapsed_ms[service_id] += elapsed_ms
            self._timed[service_id] += 1

    async def get_stats(self) -> dict[str, Any]:
        async with self._lock:
            stats: dict[str, Any] = dict(self._counters)
            by_service: dict[str, dict[str, int | float]] = {
                service_id: dict(counters) for service_id, counters in self._by_service.items()
            }
            for service_id, timed in self._timed.items():
                by_service.setdefault(service_id, {})["avg_elapsed_ms"] = round(
                    self._elapsed_ms[service_id] / timed, 1
                )
        stats["by_service"] = by_service
        stats["uptime_seconds"] = round(time.monotonic() - self._start_time, 1)
        return stats

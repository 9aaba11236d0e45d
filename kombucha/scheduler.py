"""Countdown scheduling for active batches.

One heap drives every countdown. Each arming takes a fresh revision number
from one sequence, so once a batch is re-armed or cancelled, ticks captured
under its earlier revision are recognised as stale and dropped instead of
acting on an outdated end date. Stopped batches keep no bookkeeping.
"""
from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Tick:
    batch_id: str
    revision: int
    due_at: datetime


class CountdownScheduler:
    def __init__(self, period_seconds: float = 1.0):
        if period_seconds <= 0:
            raise ValueError("Tick period must be positive")
        self.period = timedelta(seconds=period_seconds)
        self._heap: List[Tuple[datetime, int, str, int]] = []
        self._sequence = itertools.count()
        self._revisions = itertools.count(1)
        self._running: Dict[str, int] = {}

    def arm(self, batch_id: str, now: datetime, delay: Optional[timedelta] = None) -> int:
        """Start (or restart) a countdown; the first tick is due after `delay`, one period by default."""
        revision = next(self._revisions)
        self._running[batch_id] = revision
        due_at = now + (self.period if delay is None else delay)
        heapq.heappush(self._heap, (due_at, next(self._sequence), batch_id, revision))
        return revision

    def cancel(self, batch_id: str) -> None:
        self._running.pop(batch_id, None)

    def cancel_all(self) -> None:
        for batch_id in list(self._running):
            self.cancel(batch_id)
        self._heap.clear()

    def is_running(self, batch_id: str) -> bool:
        return batch_id in self._running

    def is_current(self, tick: Tick) -> bool:
        return self._running.get(tick.batch_id) == tick.revision

    def revision(self, batch_id: str) -> int:
        return self._running.get(batch_id, 0)

    @property
    def running(self) -> List[str]:
        return list(self._running)

    def next_due(self):
        self._discard_stale()
        if not self._heap:
            return None
        return self._heap[0][0]

    def pop_due(self, now: datetime) -> List[Tick]:
        due: List[Tick] = []
        while self._heap and self._heap[0][0] <= now:
            due_at, _, batch_id, revision = heapq.heappop(self._heap)
            if self._running.get(batch_id) != revision:
                continue
            due.append(Tick(batch_id=batch_id, revision=revision, due_at=due_at))
            heapq.heappush(self._heap, (now + self.period, next(self._sequence), batch_id, revision))
        return due

    def _discard_stale(self) -> None:
        while self._heap:
            _, _, batch_id, revision = self._heap[0]
            if self._running.get(batch_id) == revision:
                return
            heapq.heappop(self._heap)


__all__ = ["CountdownScheduler", "Tick"]

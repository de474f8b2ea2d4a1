"""Rolling time-domain HRV engine.

A thin stateful wrapper around the pure functions in
:mod:`hrvsleep.analytics.features`: it keeps a time-bounded buffer of
``(timestamp, interval)`` pairs and computes RMSSD / SDNN / pNN50 over the
most recent computation window.

The buffer is trimmed on every insert, so memory is bounded by the retention
period regardless of session length.  Instances must be fed in timestamp
order by a single owner.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from hrvsleep.analytics.features import (
    TimeDomainMetrics,
    compute_rmssd,
    time_domain_metrics,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HRVEngineConfig:
    """Retention and computation windows for :class:`HRVEngine`."""

    max_buffer_sec: float = 600.0  # 10 minutes retained
    computation_window_sec: float = 300.0  # 5 minutes used for metrics
    min_intervals: int = 30

    def __post_init__(self) -> None:
        if self.max_buffer_sec <= 0 or self.computation_window_sec <= 0:
            raise ValueError("buffer and computation windows must be positive")
        if self.computation_window_sec > self.max_buffer_sec:
            raise ValueError("computation window cannot exceed the buffer retention")
        if self.min_intervals < 2:
            raise ValueError("min_intervals must be at least 2")


class HRVEngine:
    """Rolling buffer of RR intervals with windowed time-domain metrics."""

    def __init__(self, config: HRVEngineConfig | None = None) -> None:
        self.config = config or HRVEngineConfig()
        self._buffer: deque[tuple[datetime, float]] = deque()
        self._latest: datetime | None = None

    def __len__(self) -> int:
        return len(self._buffer)

    def add_intervals(self, intervals: Iterable[float], timestamp: datetime) -> None:
        """Append intervals observed at *timestamp* and trim expired entries.

        Raises:
            ValueError: if *timestamp* is older than the last insert.
        """
        if self._latest is not None and timestamp < self._latest:
            raise ValueError(
                f"intervals must be added in timestamp order "
                f"({timestamp.isoformat()} < {self._latest.isoformat()})"
            )
        self._latest = timestamp
        for interval in intervals:
            self._buffer.append((timestamp, float(interval)))
        self._trim(timestamp)

    def recent_intervals(self, now: datetime | None = None) -> list[float]:
        """Intervals inside the computation window ending at *now*.

        *now* defaults to the timestamp of the latest insert.
        """
        reference = now or self._latest
        if reference is None:
            return []
        cutoff = reference - timedelta(seconds=self.config.computation_window_sec)
        return [value for ts, value in self._buffer if cutoff <= ts <= reference]

    def compute_rmssd(self, now: datetime | None = None) -> float | None:
        intervals = self.recent_intervals(now)
        if len(intervals) < self.config.min_intervals:
            logger.debug(f"Insufficient intervals for RMSSD: {len(intervals)}")
            return None
        return compute_rmssd(intervals)

    def compute_metrics(self, now: datetime | None = None) -> TimeDomainMetrics | None:
        """RMSSD / SDNN / pNN50 over the computation window, or None."""
        intervals = self.recent_intervals(now)
        if len(intervals) < self.config.min_intervals:
            logger.debug(f"Insufficient intervals for metrics: {len(intervals)}")
            return None
        return time_domain_metrics(intervals, window_sec=self.config.computation_window_sec)

    def reset(self) -> None:
        self._buffer.clear()
        self._latest = None
        logger.info("HRV buffer reset")

    def _trim(self, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.config.max_buffer_sec)
        while self._buffer and self._buffer[0][0] < cutoff:
            self._buffer.popleft()

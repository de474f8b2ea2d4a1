"""Stateless time-domain HRV metrics.

These are the pure-function forms of the rolling metrics kept by
:class:`hrvsleep.analytics.time_domain.HRVEngine`.  They operate directly on
an arbitrary sequence of RR intervals (ms) and are used for one-shot
snapshot measurements as well as by the rolling engine itself.

  - RMSSD  -- root mean square of successive differences
  - SDNN   -- sample standard deviation of the intervals
  - pNN50  -- percentage of successive differences larger than 50 ms
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

# Successive-difference threshold for pNN50 (ms)
NN50_THRESHOLD_MS = 50.0


@dataclass(frozen=True)
class TimeDomainMetrics:
    """RMSSD / SDNN / pNN50 computed over a window of clean intervals."""

    rmssd: float
    sdnn: float
    pnn50: float
    sample_count: int
    window_sec: float | None = None  # None for one-shot (non-rolling) metrics

    def __repr__(self) -> str:
        return (
            f"TimeDomainMetrics(rmssd={self.rmssd:.1f}ms, "
            f"sdnn={self.sdnn:.1f}ms, pnn50={self.pnn50:.1f}%, "
            f"n={self.sample_count})"
        )


def compute_rmssd(rr_intervals: Sequence[float]) -> float | None:
    """Root mean square of successive RR-interval differences (ms).

    Returns None if fewer than 2 intervals are provided.
    """
    if len(rr_intervals) < 2:
        return None
    arr = np.asarray(rr_intervals, dtype=np.float64)
    diffs = np.diff(arr)
    return float(np.sqrt(np.mean(diffs ** 2)))


def sdnn(rr_intervals: Sequence[float]) -> float | None:
    """Standard deviation of NN (RR) intervals (ms), N-1 denominator.

    Returns None if fewer than 2 intervals.
    """
    if len(rr_intervals) < 2:
        return None
    arr = np.asarray(rr_intervals, dtype=np.float64)
    return float(np.std(arr, ddof=1))


def pnn50(rr_intervals: Sequence[float]) -> float | None:
    """Percentage of successive RR differences > 50 ms.

    Returns None if fewer than 2 intervals.
    """
    if len(rr_intervals) < 2:
        return None
    arr = np.asarray(rr_intervals, dtype=np.float64)
    diffs = np.abs(np.diff(arr))
    return float(np.sum(diffs > NN50_THRESHOLD_MS) / len(diffs) * 100.0)


def time_domain_metrics(
    rr_intervals: Sequence[float],
    window_sec: float | None = None,
) -> TimeDomainMetrics | None:
    """Compute all three time-domain metrics at once.

    Returns None if fewer than 2 intervals are provided.
    """
    rmssd = compute_rmssd(rr_intervals)
    if rmssd is None:
        return None
    return TimeDomainMetrics(
        rmssd=rmssd,
        sdnn=sdnn(rr_intervals),
        pnn50=pnn50(rr_intervals),
        sample_count=len(rr_intervals),
        window_sec=window_sec,
    )

"""RR interval validation and repair.

Raw inter-beat intervals from a chest strap or wrist sensor contain three
kinds of garbage that must be removed before any HRV metric is computed:

1. Ectopic / missed beats producing intervals outside the physiological
   range [300, 2000] ms.  These are dropped outright.
2. Motion artifacts: an interval that jumps more than 20 % away from its
   predecessor.  These are kept in place but their value is replaced.
3. The replacement uses a Catmull-Rom cubic through the two nearest
   non-artifact neighbours on each side, falling back to linear
   interpolation (or a nearest-neighbour copy at the sequence edges) when
   fewer neighbours are available.

The result is only considered valid when at least two minutes of clean
data remain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

# Physiological bounds (ms)
MIN_RR_MS = 300.0
MAX_RR_MS = 2000.0

# Relative jump vs. the previous interval that marks an artifact
ARTIFACT_THRESHOLD = 0.20

# Minimum cumulative clean duration for a valid result (seconds)
MIN_CLEAN_DURATION_SEC = 120.0


@dataclass(frozen=True)
class RRProcessorConfig:
    """Tunable thresholds for :func:`process_rr_intervals`."""

    min_rr_ms: float = MIN_RR_MS
    max_rr_ms: float = MAX_RR_MS
    artifact_threshold: float = ARTIFACT_THRESHOLD
    min_clean_duration_sec: float = MIN_CLEAN_DURATION_SEC

    def __post_init__(self) -> None:
        if not 0 < self.min_rr_ms < self.max_rr_ms:
            raise ValueError("require 0 < min_rr_ms < max_rr_ms")
        if self.artifact_threshold <= 0:
            raise ValueError("artifact_threshold must be positive")


class DataQuality(str, Enum):
    """Five-level categorical quality derived from the retained fraction."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    UNUSABLE = "unusable"

    @property
    def is_usable(self) -> bool:
        return self is not DataQuality.UNUSABLE

    @classmethod
    def from_score(cls, score: float) -> DataQuality:
        if score >= 95:
            return cls.EXCELLENT
        if score >= 85:
            return cls.GOOD
        if score >= 70:
            return cls.ACCEPTABLE
        if score >= 50:
            return cls.POOR
        return cls.UNUSABLE


@dataclass(frozen=True)
class ProcessedIntervalSet:
    """Cleaned intervals plus bookkeeping about what was removed or repaired."""

    clean_intervals: tuple[float, ...]
    original_count: int
    removed_ectopic_count: int = 0
    ectopic_indices: tuple[int, ...] = ()  # indices into the raw input
    artifact_count: int = 0
    interpolated_count: int = 0
    clean_duration_sec: float = 0.0
    is_valid: bool = False

    @property
    def quality_score(self) -> float:
        """Retained intervals as a percentage of the raw input (0-100)."""
        if self.original_count == 0:
            return 0.0
        return len(self.clean_intervals) / self.original_count * 100.0

    @property
    def quality(self) -> DataQuality:
        return DataQuality.from_score(self.quality_score)

    def __repr__(self) -> str:
        return (
            f"ProcessedIntervalSet(clean={len(self.clean_intervals)}/"
            f"{self.original_count}, ectopic={self.removed_ectopic_count}, "
            f"artifacts={self.artifact_count}, "
            f"duration={self.clean_duration_sec:.1f}s, valid={self.is_valid})"
        )


def assess_quality(result: ProcessedIntervalSet) -> DataQuality:
    """Map a processed set to its categorical quality."""
    return result.quality


# ---------------------------------------------------------------------------
# Interpolation helpers
# ---------------------------------------------------------------------------


def _valid_neighbours(
    n: int,
    index: int,
    artifacts: set[int],
    count: int = 2,
) -> tuple[list[int], list[int]]:
    """Up to *count* non-artifact indices on each side of *index*."""
    left: list[int] = []
    i = index - 1
    while i >= 0 and len(left) < count:
        if i not in artifacts:
            left.insert(0, i)
        i -= 1

    right: list[int] = []
    i = index + 1
    while i < n and len(right) < count:
        if i not in artifacts:
            right.append(i)
        i += 1

    return left, right


def _catmull_rom(values: np.ndarray, left: list[int], right: list[int], target: int) -> float:
    """Catmull-Rom spline through two points on each side of *target*."""
    p0, p1 = values[left[0]], values[left[1]]
    p2, p3 = values[right[0]], values[right[1]]

    # position of the target between p1 and p2
    t = (target - left[1]) / (right[0] - left[1])
    t2 = t * t
    t3 = t2 * t

    return float(0.5 * (
        2.0 * p1
        + (-p0 + p2) * t
        + (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t2
        + (-p0 + 3.0 * p1 - 3.0 * p2 + p3) * t3
    ))


def _linear(values: np.ndarray, left: list[int], right: list[int], target: int) -> float:
    """Linear interpolation between the nearest neighbours (or a copy)."""
    if not left:
        return float(values[right[0]])
    if not right:
        return float(values[left[-1]])
    lo, hi = left[-1], right[0]
    t = (target - lo) / (hi - lo)
    return float(values[lo] + t * (values[hi] - values[lo]))


def _interpolate_artifacts(
    values: np.ndarray,
    artifacts: set[int],
    lo: float,
    hi: float,
) -> tuple[np.ndarray, int]:
    """Replace each artifact using only the original (unrepaired) values.

    Returns the repaired array and the number of values actually replaced.
    """
    result = values.copy()
    n = len(values)
    repaired_count = 0

    for idx in sorted(artifacts):
        if idx == n - 1:
            # trailing edge: nearest-neighbour copy
            result[idx] = values[idx - 1]
            repaired_count += 1
            continue

        left, right = _valid_neighbours(n, idx, artifacts)
        if not left and not right:
            continue  # every neighbour is an artifact; leave the value as is
        if len(left) >= 2 and len(right) >= 2:
            repaired = _catmull_rom(values, left, right, idx)
        else:
            repaired = _linear(values, left, right, idx)
        result[idx] = min(hi, max(lo, repaired))
        repaired_count += 1

    return result, repaired_count


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def process_rr_intervals(
    intervals: Sequence[float],
    config: RRProcessorConfig | None = None,
) -> ProcessedIntervalSet:
    """Validate and repair a batch of raw RR intervals.

    Args:
        intervals: Raw RR intervals in milliseconds, in arrival order.
        config: Processing thresholds (defaults to the physiological ones).

    Returns:
        A ProcessedIntervalSet.  An empty input yields an empty, invalid set.

    Raises:
        ValueError: if the input is not one-dimensional or holds non-finite
            values.
    """
    cfg = config or RRProcessorConfig()
    raw = np.asarray(intervals, dtype=np.float64)
    if raw.ndim != 1:
        raise ValueError("intervals must be a flat sequence of numbers")
    if not np.all(np.isfinite(raw)):
        raise ValueError("intervals must be finite")

    if raw.size == 0:
        logger.debug("No RR intervals to process")
        return ProcessedIntervalSet(clean_intervals=(), original_count=0)

    # 1) Ectopic rejection
    in_range = (raw >= cfg.min_rr_ms) & (raw <= cfg.max_rr_ms)
    ectopic_indices = tuple(int(i) for i in np.flatnonzero(~in_range))
    valid = raw[in_range]
    for i in ectopic_indices:
        logger.debug(f"Ectopic removed at index {i}: {raw[i]:.0f}ms")

    # 2) Artifact detection against the immediately preceding valid interval
    artifacts: set[int] = set()
    if valid.size > 1:
        change = np.abs(np.diff(valid)) / valid[:-1]
        artifacts = {int(i) + 1 for i in np.flatnonzero(change > cfg.artifact_threshold)}

    # 3) Repair
    clean = valid
    interpolated = 0
    if artifacts:
        clean, interpolated = _interpolate_artifacts(
            valid, artifacts, cfg.min_rr_ms, cfg.max_rr_ms,
        )
        logger.debug(f"Interpolated {interpolated} of {len(artifacts)} artifact(s)")

    # 4) Validity gate
    duration = float(np.sum(clean)) / 1000.0
    is_valid = duration >= cfg.min_clean_duration_sec

    logger.info(
        f"RR processing complete: {clean.size} clean intervals, "
        f"duration={duration:.1f}s, valid={is_valid}"
    )

    return ProcessedIntervalSet(
        clean_intervals=tuple(float(v) for v in clean),
        original_count=int(raw.size),
        removed_ectopic_count=len(ectopic_indices),
        ectopic_indices=ectopic_indices,
        artifact_count=len(artifacts),
        interpolated_count=interpolated,
        clean_duration_sec=duration,
        is_valid=is_valid,
    )


class RRStreamFilter:
    """Per-packet gate for live RR intervals feeding a rolling buffer.

    Applies the same two checks as :func:`process_rr_intervals` without the
    repair step: out-of-range intervals are dropped, and an interval that
    jumps more than the artifact threshold from the previous in-range
    interval is withheld.  A sustained step change is accepted from its
    second beat on.
    """

    def __init__(self, config: RRProcessorConfig | None = None) -> None:
        self.config = config or RRProcessorConfig()
        self.ectopic_count = 0
        self.artifact_count = 0
        self._previous: float | None = None

    def filter(self, intervals: Sequence[float]) -> list[float]:
        """Return the intervals from one packet that are safe to buffer."""
        cfg = self.config
        accepted: list[float] = []
        for value in intervals:
            value = float(value)
            if not cfg.min_rr_ms <= value <= cfg.max_rr_ms:
                self.ectopic_count += 1
                logger.debug(f"Live ectopic dropped: {value:.0f}ms")
                continue
            previous, self._previous = self._previous, value
            if previous is not None and abs(value - previous) / previous > cfg.artifact_threshold:
                self.artifact_count += 1
                logger.debug(f"Live artifact withheld: {previous:.0f} -> {value:.0f}ms")
                continue
            accepted.append(value)
        return accepted

    def reset(self) -> None:
        self.ectopic_count = 0
        self.artifact_count = 0
        self._previous = None

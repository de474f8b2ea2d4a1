"""RR data coverage and gap tracking for a recording session.

The connectivity layer does not buffer while the strap is out of range, so
an overnight stream simply goes quiet.  The tracker counts RR samples as
they arrive and records every stretch without one that lasts longer than
the gap threshold, so a finished session can report how much of the night
was actually observed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from hrvsleep.analytics.rr_processing import DataQuality

logger = logging.getLogger(__name__)

GAP_THRESHOLD_SEC = 30.0
EXPECTED_SAMPLES_PER_MINUTE = 60.0  # one beat per second at ~60 bpm
LOW_COVERAGE_PERCENT = 80.0


@dataclass(frozen=True)
class CoverageConfig:
    gap_threshold_sec: float = GAP_THRESHOLD_SEC
    expected_samples_per_minute: float = EXPECTED_SAMPLES_PER_MINUTE
    low_coverage_percent: float = LOW_COVERAGE_PERCENT

    def __post_init__(self) -> None:
        if self.gap_threshold_sec <= 0:
            raise ValueError("gap_threshold_sec must be positive")
        if self.expected_samples_per_minute <= 0:
            raise ValueError("expected_samples_per_minute must be positive")


@dataclass(frozen=True)
class DataGap:
    """A stretch with no RR samples."""

    start: datetime
    end: datetime

    @property
    def duration_sec(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_sec": round(self.duration_sec, 1),
        }


@dataclass(frozen=True)
class CoverageReport:
    """Received vs. expected RR samples over a session."""

    tracking_minutes: float
    received_samples: int
    expected_samples: int
    coverage_percent: float
    gaps: tuple[DataGap, ...] = ()
    low_coverage_percent: float = LOW_COVERAGE_PERCENT

    @property
    def gap_count(self) -> int:
        return len(self.gaps)

    @property
    def total_gap_sec(self) -> float:
        return sum(g.duration_sec for g in self.gaps)

    @property
    def longest_gap_sec(self) -> float:
        return max((g.duration_sec for g in self.gaps), default=0.0)

    @property
    def is_low_coverage(self) -> bool:
        return self.coverage_percent < self.low_coverage_percent

    @property
    def quality(self) -> DataQuality:
        return DataQuality.from_score(self.coverage_percent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tracking_minutes": round(self.tracking_minutes, 1),
            "received_samples": self.received_samples,
            "expected_samples": self.expected_samples,
            "coverage_percent": round(self.coverage_percent, 1),
            "quality": self.quality.value,
            "low_coverage": self.is_low_coverage,
            "gap_count": self.gap_count,
            "total_gap_sec": round(self.total_gap_sec, 1),
            "longest_gap_sec": round(self.longest_gap_sec, 1),
            "gaps": [g.to_dict() for g in self.gaps],
        }

    def __repr__(self) -> str:
        return (
            f"CoverageReport(coverage={self.coverage_percent:.1f}%, "
            f"samples={self.received_samples}/{self.expected_samples}, "
            f"gaps={self.gap_count})"
        )


class RRCoverageTracker:
    """Counts RR samples and detects gaps, fed in timestamp order."""

    def __init__(self, config: CoverageConfig | None = None) -> None:
        self.config = config or CoverageConfig()
        self.reset()

    def reset(self) -> None:
        self.received_samples = 0
        self.gaps: list[DataGap] = []
        self._start: datetime | None = None
        self._latest: datetime | None = None
        self._last_sample: datetime | None = None

    def record(self, count: int, timestamp: datetime) -> DataGap | None:
        """Note *count* RR samples arriving at *timestamp*.

        Packets without RR still advance the session clock.  Returns the
        gap this arrival closed, if any.

        Raises:
            ValueError: if *timestamp* is older than the previous record.
        """
        if self._latest is not None and timestamp < self._latest:
            raise ValueError("coverage samples must be recorded in timestamp order")
        if self._start is None:
            self._start = timestamp
        self._latest = timestamp
        if count <= 0:
            return None

        self.received_samples += count
        gap = self._close_gap(timestamp)
        self._last_sample = timestamp
        return gap

    def report(self, end: datetime | None = None) -> CoverageReport:
        """Coverage from the first record up to *end* (default: the last record).

        A silent stretch at the end of the session counts as a gap.
        """
        if self._start is None:
            return CoverageReport(
                0.0, 0, 0, 0.0, low_coverage_percent=self.config.low_coverage_percent,
            )

        end = max(end or self._latest, self._start)
        gaps = list(self.gaps)
        trailing = self._gap_until(end)
        if trailing is not None:
            gaps.append(trailing)

        minutes = (end - self._start).total_seconds() / 60.0
        expected = int(round(minutes * self.config.expected_samples_per_minute))
        coverage = min(100.0, self.received_samples / expected * 100.0) if expected > 0 else 0.0

        report = CoverageReport(
            tracking_minutes=minutes,
            received_samples=self.received_samples,
            expected_samples=expected,
            coverage_percent=coverage,
            gaps=tuple(gaps),
            low_coverage_percent=self.config.low_coverage_percent,
        )
        logger.info(f"RR coverage: {report!r}")
        return report

    def _gap_until(self, timestamp: datetime) -> DataGap | None:
        since = self._last_sample or self._start
        if since is None:
            return None
        if timestamp - since > timedelta(seconds=self.config.gap_threshold_sec):
            return DataGap(start=since, end=timestamp)
        return None

    def _close_gap(self, timestamp: datetime) -> DataGap | None:
        gap = self._gap_until(timestamp)
        if gap is not None:
            self.gaps.append(gap)
            logger.warning(
                f"RR data gap of {gap.duration_sec:.0f}s "
                f"({gap.start.isoformat()} - {gap.end.isoformat()})"
            )
        return gap

"""Session confidence: how far the night's sleep metrics can be trusted.

Three 0-100 components, combined with fixed weights:

    rr_coverage          -- share of expected RR samples actually received
    hr_smoothness        -- heart-rate coefficient of variation minus a
                            penalty for beat-to-beat spikes
    detection_stability  -- sleep-state transitions per hour
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

import numpy as np

logger = logging.getLogger(__name__)

W_RR_COVERAGE = 0.50
W_HR_SMOOTHNESS = 0.30
W_STABILITY = 0.20

HR_SPIKE_BPM = 20.0
MIN_HR_SAMPLES = 10
RELIABLE_SCORE = 40.0


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    VERY_LOW = "very_low"

    @classmethod
    def from_score(cls, score: float) -> ConfidenceLevel:
        if score >= 85:
            return cls.HIGH
        if score >= 65:
            return cls.MODERATE
        if score >= 40:
            return cls.LOW
        return cls.VERY_LOW

    @property
    def description(self) -> str:
        return {
            ConfidenceLevel.HIGH: "Data quality is excellent. Sleep metrics are reliable.",
            ConfidenceLevel.MODERATE: "Some data gaps detected. Metrics are reasonably accurate.",
            ConfidenceLevel.LOW: "Significant data quality issues. Interpret metrics with caution.",
            ConfidenceLevel.VERY_LOW: "Major data problems. Consider this session unreliable.",
        }[self]


@dataclass
class SleepConfidence:
    score: float  # 0-100
    rr_coverage: float
    hr_smoothness: float
    detection_stability: float
    warnings: list[str] = field(default_factory=list)

    @property
    def level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.score)

    @property
    def is_reliable(self) -> bool:
        return self.score >= RELIABLE_SCORE

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 1),
            "level": self.level.value,
            "reliable": self.is_reliable,
            "components": {
                "rr_coverage": round(self.rr_coverage, 1),
                "hr_smoothness": round(self.hr_smoothness, 1),
                "detection_stability": round(self.detection_stability, 1),
            },
            "warnings": list(self.warnings),
        }

    def __repr__(self) -> str:
        return f"SleepConfidence(score={self.score:.0f}, level={self.level.value})"


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def _rr_coverage_score(coverage_percent: float) -> float:
    # Full credit down to 50 %, halved below it
    if coverage_percent >= 50:
        return min(100.0, coverage_percent)
    return max(0.0, coverage_percent * 0.5)


def count_hr_spikes(heart_rates: Sequence[float], threshold: float = HR_SPIKE_BPM) -> int:
    """Consecutive samples that differ by more than *threshold* bpm."""
    hr = np.asarray(heart_rates, dtype=np.float64)
    if hr.size < 2:
        return 0
    return int(np.sum(np.abs(np.diff(hr)) > threshold))


def _hr_smoothness_score(heart_rates: Sequence[float]) -> float:
    hr = np.asarray(heart_rates, dtype=np.float64)
    if hr.size < MIN_HR_SAMPLES:
        return 50.0
    mean = float(np.mean(hr))
    if mean <= 0:
        return 50.0

    cv = float(np.std(hr)) / mean
    # CV 0.05 -> 100, 0.20 -> 50, 0.35 -> 0
    cv_score = float(np.interp(cv, [0.05, 0.20, 0.35], [100.0, 50.0, 0.0]))
    penalty = min(30.0, count_hr_spikes(hr) * 2.0)
    return max(0.0, cv_score - penalty)


def _stability_score(transitions: int, session_minutes: float) -> float:
    per_hour = transitions / max(1.0, session_minutes / 60.0)
    if per_hour <= 1:
        return 100.0
    if per_hour <= 2:
        return 90.0 - (per_hour - 1) * 10.0
    if per_hour <= 5:
        return 80.0 - (per_hour - 2) * 10.0
    if per_hour <= 10:
        return 50.0 - (per_hour - 5) * 10.0
    return 0.0


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def score_confidence(
    coverage_percent: float,
    heart_rates: Sequence[float],
    transition_count: int,
    session_minutes: float,
) -> SleepConfidence:
    """Combine coverage, HR smoothness and detection stability into 0-100.

    Args:
        coverage_percent: Received / expected RR samples, 0-100.
        heart_rates: Every heart-rate reading of the session.
        transition_count: Sleep-state changes over the session.
        session_minutes: Session length used to normalize transitions.
    """
    rr = _rr_coverage_score(coverage_percent)
    hr = _hr_smoothness_score(heart_rates)
    stability = _stability_score(transition_count, session_minutes)

    warnings = []
    if coverage_percent < 80:
        warnings.append(f"Only {coverage_percent:.0f}% of expected heart data received")
    spikes = count_hr_spikes(heart_rates)
    if spikes > 10:
        warnings.append(f"Detected {spikes} abnormal HR spikes")
    if transition_count > 20:
        warnings.append(f"Unstable sleep detection ({transition_count} state changes)")

    score = W_RR_COVERAGE * rr + W_HR_SMOOTHNESS * hr + W_STABILITY * stability
    result = SleepConfidence(
        score=float(np.clip(score, 0.0, 100.0)),
        rr_coverage=rr,
        hr_smoothness=hr,
        detection_stability=stability,
        warnings=warnings,
    )
    logger.info(
        f"Session confidence {result.score:.0f} ({result.level.value}): "
        f"rr={rr:.0f} hr={hr:.0f} stability={stability:.0f}"
    )
    return result

"""Sleep summary and score from phase-annotated epochs.

The score (0-100) weights four sub-scores:

    duration      30 %   100 * (1 - |hours - 7.5| / 7.5)
    deep sleep    25 %   100 * (1 - |deep_ratio - 0.20| / 0.20)
    HRV recovery  25 %   night RMSSD / baseline RMSSD, piecewise
    continuity    20 %   100 - 5 per awakening, floor 50
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Sequence

import numpy as np

from hrvsleep.analytics.epochs import Epoch
from hrvsleep.analytics.phases import SleepPhase

logger = logging.getLogger(__name__)

W_DURATION = 0.30
W_DEEP = 0.25
W_HRV = 0.25
W_CONTINUITY = 0.20

OPTIMAL_SLEEP_HOURS = 7.5
OPTIMAL_DEEP_RATIO = 0.20

# Consecutive awake epochs (30 s each) that make up one awakening
AWAKENING_EPOCHS = 4


@dataclass
class SleepSummary:
    """Night-level statistics derived from classified epochs."""

    total_duration_min: float
    sleep_score: int
    awake_min: float
    light_min: float
    deep_min: float
    rem_min: float
    average_hr: float
    min_hr: float
    max_hr: float
    average_rmssd: float | None  # over non-awake epochs
    hrv_recovery_ratio: float | None
    awakenings: int

    @property
    def sleep_efficiency(self) -> float:
        """Non-awake time as a percentage of the total."""
        if self.total_duration_min <= 0:
            return 0.0
        asleep = self.light_min + self.deep_min + self.rem_min
        return asleep / self.total_duration_min * 100.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict, rounded for display."""
        d = asdict(self)
        for key in ("total_duration_min", "awake_min", "light_min", "deep_min",
                    "rem_min", "average_hr", "average_rmssd"):
            if d[key] is not None:
                d[key] = round(d[key], 1)
        if d["hrv_recovery_ratio"] is not None:
            d["hrv_recovery_ratio"] = round(d["hrv_recovery_ratio"], 3)
        d["sleep_efficiency"] = round(self.sleep_efficiency, 1)
        return d

    def __repr__(self) -> str:
        return (
            f"SleepSummary(score={self.sleep_score}, "
            f"total={self.total_duration_min:.0f}min, deep={self.deep_min:.0f}min, "
            f"rem={self.rem_min:.0f}min, awakenings={self.awakenings})"
        )


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------


def _duration_score(hours: float) -> float:
    score = 100.0 * (1.0 - abs(hours - OPTIMAL_SLEEP_HOURS) / OPTIMAL_SLEEP_HOURS)
    return max(0.0, min(100.0, score))


def _deep_score(deep_min: float, total_min: float) -> float:
    if total_min <= 0:
        return 0.0
    ratio = deep_min / total_min
    score = 100.0 * (1.0 - abs(ratio - OPTIMAL_DEEP_RATIO) / OPTIMAL_DEEP_RATIO)
    return max(0.0, min(100.0, score))


def _hrv_recovery_score(ratio: float | None) -> float:
    if ratio is None:
        return 85.0
    if ratio >= 1.10:
        return 100.0
    if ratio >= 1.00:
        return 85.0 + (ratio - 1.00) * 150.0
    if ratio >= 0.90:
        return 70.0 + (ratio - 0.90) * 150.0
    if ratio >= 0.80:
        return 50.0 + (ratio - 0.80) * 200.0
    return 50.0


def _continuity_score(awakenings: int) -> float:
    return max(50.0, min(100.0, 100.0 - 5.0 * awakenings))


def count_awakenings(epochs: Sequence[Epoch]) -> int:
    """Count awake runs of at least two minutes that follow sleep."""
    awakenings = 0
    awake_run = 0
    was_asleep = False
    for epoch in epochs:
        if epoch.phase is SleepPhase.AWAKE:
            awake_run += 1
            if was_asleep and awake_run >= AWAKENING_EPOCHS:
                awakenings += 1
                was_asleep = False
        else:
            was_asleep = True
            awake_run = 0
    return awakenings


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def summarize_sleep(
    epochs: Sequence[Epoch],
    baseline_rmssd: float | None = None,
) -> SleepSummary | None:
    """Build a SleepSummary from classified epochs.

    Epochs without a phase are ignored.  Returns None when no classified
    epoch remains.
    """
    classified = [e for e in epochs if e.phase is not None]
    if not classified:
        logger.debug("No classified epochs to summarize")
        return None

    minutes = {phase: 0.0 for phase in SleepPhase}
    for epoch in classified:
        minutes[epoch.phase] += epoch.duration_sec / 60.0
    total_min = sum(minutes.values())

    hrs = np.asarray([e.average_hr for e in classified], dtype=np.float64)
    sleep_rmssd = [
        e.average_rmssd for e in classified
        if e.phase is not SleepPhase.AWAKE and e.average_rmssd is not None
    ]
    avg_rmssd = float(np.mean(sleep_rmssd)) if sleep_rmssd else None

    ratio = None
    if avg_rmssd is not None and baseline_rmssd is not None and baseline_rmssd > 0:
        ratio = avg_rmssd / baseline_rmssd

    awakenings = count_awakenings(classified)

    duration_s = _duration_score(total_min / 60.0)
    deep_s = _deep_score(minutes[SleepPhase.DEEP], total_min)
    hrv_s = _hrv_recovery_score(ratio)
    continuity_s = _continuity_score(awakenings)
    raw = (
        W_DURATION * duration_s
        + W_DEEP * deep_s
        + W_HRV * hrv_s
        + W_CONTINUITY * continuity_s
    )
    score = int(min(100, max(0, round(raw))))

    logger.info(
        f"Sleep score {score} (duration={duration_s:.0f}, deep={deep_s:.0f}, "
        f"hrv={hrv_s:.0f}, continuity={continuity_s:.0f})"
    )

    return SleepSummary(
        total_duration_min=total_min,
        sleep_score=score,
        awake_min=minutes[SleepPhase.AWAKE],
        light_min=minutes[SleepPhase.LIGHT],
        deep_min=minutes[SleepPhase.DEEP],
        rem_min=minutes[SleepPhase.REM],
        average_hr=float(np.mean(hrs)),
        min_hr=float(np.min(hrs)),
        max_hr=float(np.max(hrs)),
        average_rmssd=avg_rmssd,
        hrv_recovery_ratio=ratio,
        awakenings=awakenings,
    )

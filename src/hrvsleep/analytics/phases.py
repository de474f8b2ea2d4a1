"""Rule-based sleep phase classification of single epochs.

Each epoch's HR and RMSSD are normalized against a waking baseline and
matched against fixed rules, first match wins:

    deep   HR_norm < 0.95, HRV_norm > 1.10, HR std-dev < 3
    REM    HR_norm in [0.95, 1.05], HRV_norm in [0.95, 1.10], HR std-dev >= 3
    light  HR_norm < 1.05, HRV_norm >= 0.90
    awake  otherwise
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from hrvsleep.analytics.epochs import Epoch

logger = logging.getLogger(__name__)

# Fallback baseline when none can be derived
DEFAULT_BASELINE_HR = 70.0
DEFAULT_BASELINE_RMSSD = 40.0

# Sanity floors for a derived baseline
MIN_BASELINE_HR = 40.0
MIN_BASELINE_RMSSD = 10.0

# Number of leading (presumed awake) epochs used for the baseline
BASELINE_EPOCHS = 10

# HR std-dev (bpm) separating calm from variable epochs
STD_DEV_SPLIT = 3.0


class SleepPhase(str, Enum):
    AWAKE = "awake"
    LIGHT = "light"
    DEEP = "deep"
    REM = "rem"

    @property
    def short_name(self) -> str:
        return {"awake": "W", "light": "L", "deep": "D", "rem": "R"}[self.value]


@dataclass(frozen=True)
class Baseline:
    """Waking reference values used to normalize epochs."""

    heart_rate: float = DEFAULT_BASELINE_HR
    rmssd: float = DEFAULT_BASELINE_RMSSD


def classify(epoch: Epoch, baseline: Baseline | None = None) -> SleepPhase | None:
    """Classify one epoch.

    Returns None when the epoch has no RMSSD to normalize.
    """
    base = baseline or Baseline()
    if epoch.average_rmssd is None:
        logger.debug("Epoch has no RMSSD; leaving it unclassified")
        return None

    hr_norm = epoch.average_hr / base.heart_rate
    hrv_norm = epoch.average_rmssd / base.rmssd
    sd = epoch.hr_std_dev

    if hr_norm < 0.95 and hrv_norm > 1.10 and sd < STD_DEV_SPLIT:
        return SleepPhase.DEEP
    if 0.95 <= hr_norm <= 1.05 and 0.95 <= hrv_norm <= 1.10 and sd >= STD_DEV_SPLIT:
        return SleepPhase.REM
    if hr_norm < 1.05 and hrv_norm >= 0.90:
        return SleepPhase.LIGHT
    return SleepPhase.AWAKE


def classify_epoch(epoch: Epoch, baseline: Baseline | None = None) -> Epoch:
    """Return a copy of *epoch* with its phase set."""
    return epoch.with_phase(classify(epoch, baseline))


def classify_epochs(epochs: Sequence[Epoch], baseline: Baseline | None = None) -> list[Epoch]:
    return [classify_epoch(e, baseline) for e in epochs]


def calculate_baseline(epochs: Sequence[Epoch]) -> Baseline:
    """Waking baseline from the first few epochs of a session.

    Uses the mean HR / RMSSD of the first ten epochs.  Values below the
    sanity floors (HR 40 bpm, RMSSD 10 ms) fall back to the defaults.
    """
    if not epochs:
        return Baseline()

    head = epochs[:BASELINE_EPOCHS]
    avg_hr = float(np.mean([e.average_hr for e in head]))
    rmssd_values = [e.average_rmssd for e in head if e.average_rmssd is not None]
    avg_rmssd = float(np.mean(rmssd_values)) if rmssd_values else 0.0

    baseline = Baseline(
        heart_rate=avg_hr if avg_hr > MIN_BASELINE_HR else DEFAULT_BASELINE_HR,
        rmssd=avg_rmssd if avg_rmssd > MIN_BASELINE_RMSSD else DEFAULT_BASELINE_RMSSD,
    )
    logger.info(f"Baseline calculated: HR={baseline.heart_rate:.1f} RMSSD={baseline.rmssd:.1f}")
    return baseline

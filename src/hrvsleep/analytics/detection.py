"""Online sleep onset / wake detection.

A hysteresis state machine fed one epoch (HR, RMSSD, HR std-dev) every
30 seconds:

    awake -> preSleep -> sleeping -> waking -> awake

Each update is scored with a sleep probability relative to an adaptive
pre-bed baseline:

    p = 0.40 * hr_drop + 0.30 * rmssd_rise + 0.30 * stability

where each component ramps linearly between 0 and 1:

    hr_drop     HR ratio       0.95 -> 0.0 ... 0.85 -> 1.0
    rmssd_rise  RMSSD ratio    1.00 -> 0.0 ... 1.15 -> 1.0
    stability   HR-sd ratio    1.00 -> 0.0 ... 0.50 -> 1.0

Transitions require sustained runs of decisively high (>= sleep threshold)
or decisively low (< wake threshold) readings; an in-between reading resets
both runs.  Every transition restarts the runs.  Leaving ``waking`` back to
``sleeping`` needs only a short run of high readings, while confirming wake
needs a long run of low ones, which biases the machine towards keeping a
sleep session open.

The baseline is only ever changed by :meth:`SleepDetector.set_baseline` or
:meth:`SleepDetector.recalculate_baseline`.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

import numpy as np

from hrvsleep.analytics.epochs import Epoch

logger = logging.getLogger(__name__)

# Probability weights
W_HR_DROP = 0.40
W_RMSSD_RISE = 0.30
W_STABILITY = 0.30

# Ratio ramps: (ratio where score is 1.0, ratio where score is 0.0)
HR_DROP_RAMP = (0.85, 0.95)
RMSSD_RISE_RAMP = (1.15, 1.00)
STABILITY_RAMP = (0.5, 1.0)

# Stand-in baseline used (at reduced confidence) before one is available
DEFAULT_HR = 70.0
DEFAULT_RMSSD = 40.0
DEFAULT_HR_STD = 3.0

# Floor on the baseline HR std-dev when forming the stability ratio (bpm)
MIN_BASELINE_HR_STD = 0.5


class SleepState(str, Enum):
    AWAKE = "awake"
    PRE_SLEEP = "preSleep"
    SLEEPING = "sleeping"
    WAKING = "waking"


@dataclass(frozen=True)
class AdaptiveBaseline:
    """Pre-bed reference physiology."""

    heart_rate: float
    rmssd: float
    hr_std_dev: float

    def to_dict(self) -> dict[str, float]:
        return {"heart_rate": self.heart_rate, "rmssd": self.rmssd, "hr_std_dev": self.hr_std_dev}


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds and confirmation windows for :class:`SleepDetector`."""

    sleep_onset_minutes: float = 10.0
    sleep_confirm_minutes: float = 15.0
    wake_onset_minutes: float = 10.0
    wake_confirm_minutes: float = 15.0

    sleep_threshold: float = 0.6  # p >= this counts as a sleep reading
    wake_threshold: float = 0.4  # p < this counts as a wake reading
    confirm_threshold: float = 0.6  # p needed to revert waking -> sleeping
    revert_samples: int = 3

    # Local (start_hour, end_hour); None disables the circadian gate
    sleep_window: tuple[int, int] | None = (18, 10)

    baseline_hours: float = 2.0
    min_baseline_samples: int = 5
    no_baseline_confidence: float = 0.5
    min_sleep_minutes: float = 60.0
    sample_sec: float = 30.0

    def __post_init__(self) -> None:
        for name in (
            "sleep_onset_minutes",
            "sleep_confirm_minutes",
            "wake_onset_minutes",
            "wake_confirm_minutes",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if not 0.0 <= self.wake_threshold < self.sleep_threshold <= 1.0:
            raise ValueError("require 0 <= wake_threshold < sleep_threshold <= 1")
        if not 0.0 < self.confirm_threshold <= 1.0:
            raise ValueError("confirm_threshold must be in (0, 1]")
        if self.revert_samples < 1:
            raise ValueError("revert_samples must be at least 1")
        if self.sleep_window is not None:
            start, end = self.sleep_window
            if not (0 <= start < 24 and 0 <= end < 24) or start == end:
                raise ValueError("sleep_window hours must be distinct values in [0, 24)")
        if self.sample_sec <= 0:
            raise ValueError("sample_sec must be positive")

    def samples_for(self, minutes: float) -> int:
        """Number of consecutive updates spanning *minutes*."""
        return max(1, math.ceil(minutes * 60.0 / self.sample_sec))


@dataclass(frozen=True)
class StateChange:
    old: SleepState
    new: SleepState
    timestamp: datetime

    def __repr__(self) -> str:
        return f"StateChange({self.old.value} -> {self.new.value} @ {self.timestamp.isoformat()})"


@dataclass
class SleepDetectionState:
    """Everything the machine mutates; owned by one detector."""

    state: SleepState = SleepState.AWAKE
    sleep_probability: float = 0.0
    sleep_start_time: datetime | None = None
    consecutive_high: int = 0
    consecutive_low: int = 0
    consecutive_confirm: int = 0
    manual_override: bool = False
    last_update: datetime | None = None


@dataclass(frozen=True)
class _MetricSample:
    timestamp: datetime
    heart_rate: float
    rmssd: float | None
    hr_std_dev: float


def _ramp(value: float, full: float, zero: float) -> float:
    """Linear 0..1 score that is 1 at *full* and 0 at *zero*, clamped."""
    if full < zero:
        return float(np.interp(value, [full, zero], [1.0, 0.0]))
    return float(np.interp(value, [zero, full], [0.0, 1.0]))


def sleep_probability(
    heart_rate: float,
    rmssd: float | None,
    hr_std_dev: float,
    baseline: AdaptiveBaseline,
) -> float:
    """Weighted sleep likelihood in [0, 1] relative to *baseline*.

    A missing RMSSD contributes no evidence for sleep.
    """
    hr_drop = _ramp(heart_rate / baseline.heart_rate, *HR_DROP_RAMP)
    rmssd_rise = 0.0
    if rmssd is not None and baseline.rmssd > 0:
        rmssd_rise = _ramp(rmssd / baseline.rmssd, *RMSSD_RISE_RAMP)
    std_ratio = hr_std_dev / max(baseline.hr_std_dev, MIN_BASELINE_HR_STD)
    stability = _ramp(std_ratio, *STABILITY_RAMP)

    p = W_HR_DROP * hr_drop + W_RMSSD_RISE * rmssd_rise + W_STABILITY * stability
    return min(1.0, max(0.0, p))


StateChangeCallback = Callable[[StateChange], None]
TimeCallback = Callable[[datetime], None]


class SleepDetector:
    """Hysteresis sleep-state machine.

    Updates must be applied in timestamp order by a single owner.
    """

    def __init__(
        self,
        config: DetectionConfig | None = None,
        baseline: AdaptiveBaseline | None = None,
        on_state_change: StateChangeCallback | None = None,
        on_sleep_start: TimeCallback | None = None,
        on_wake_detected: TimeCallback | None = None,
    ) -> None:
        self.config = config or DetectionConfig()
        self.baseline = baseline
        self.on_state_change = on_state_change
        self.on_sleep_start = on_sleep_start
        self.on_wake_detected = on_wake_detected

        self.status = SleepDetectionState()
        self.transitions: list[StateChange] = []
        self.last_sleep_start: datetime | None = None
        self.last_wake_time: datetime | None = None
        self._history: deque[_MetricSample] = deque()

    # -- read-only views ----------------------------------------------------

    @property
    def state(self) -> SleepState:
        return self.status.state

    @property
    def sleep_start_time(self) -> datetime | None:
        return self.status.sleep_start_time

    @property
    def has_baseline(self) -> bool:
        return self.baseline is not None

    def in_sleep_window(self, timestamp: datetime) -> bool:
        window = self.config.sleep_window
        if window is None:
            return True
        start, end = window
        hour = timestamp.hour
        if start < end:
            return start <= hour < end
        return hour >= start or hour < end

    def current_sleep_duration(self, now: datetime) -> timedelta | None:
        start = self.status.sleep_start_time
        if start is None:
            return None
        return now - start

    def should_stop_recording(self) -> bool:
        """True once awake again after a long enough sleep period."""
        if self.state is not SleepState.AWAKE:
            return False
        if self.last_sleep_start is None or self.last_wake_time is None:
            return False
        slept = self.last_wake_time - self.last_sleep_start
        return slept >= timedelta(minutes=self.config.min_sleep_minutes)

    # -- updates ------------------------------------------------------------

    def update_with_epoch(self, epoch: Epoch) -> StateChange | None:
        return self.update(
            heart_rate=epoch.average_hr,
            rmssd=epoch.average_rmssd,
            hr_std_dev=epoch.hr_std_dev,
            timestamp=epoch.end_time,
        )

    def update(
        self,
        heart_rate: float,
        rmssd: float | None,
        hr_std_dev: float,
        timestamp: datetime,
    ) -> StateChange | None:
        """Score one 30 s sample and advance the machine.

        Returns the transition this update caused, if any.

        Raises:
            ValueError: if *timestamp* precedes the previous update.
        """
        st = self.status
        if st.last_update is not None and timestamp < st.last_update:
            raise ValueError(
                f"updates must be applied in timestamp order "
                f"({timestamp.isoformat()} < {st.last_update.isoformat()})"
            )
        st.last_update = timestamp

        if st.state in (SleepState.AWAKE, SleepState.PRE_SLEEP):
            self._remember(_MetricSample(timestamp, heart_rate, rmssd, hr_std_dev))

        started = st.state in (SleepState.SLEEPING, SleepState.WAKING)
        if not started and not self.in_sleep_window(timestamp):
            logger.debug(f"Update at {timestamp.isoformat()} outside sleep window; ignored")
            return None

        if self.baseline is not None:
            p = sleep_probability(heart_rate, rmssd, hr_std_dev, self.baseline)
        else:
            fallback = AdaptiveBaseline(DEFAULT_HR, DEFAULT_RMSSD, DEFAULT_HR_STD)
            p = self.config.no_baseline_confidence * sleep_probability(
                heart_rate, rmssd, hr_std_dev, fallback,
            )
        st.sleep_probability = p

        if st.manual_override:
            return None

        self._count(p)
        return self._step(timestamp)

    def _count(self, p: float) -> None:
        st = self.status
        cfg = self.config
        if p >= cfg.sleep_threshold:
            st.consecutive_high += 1
            st.consecutive_low = 0
        elif p < cfg.wake_threshold:
            st.consecutive_low += 1
            st.consecutive_high = 0
        else:
            st.consecutive_high = 0
            st.consecutive_low = 0
        st.consecutive_confirm = st.consecutive_confirm + 1 if p >= cfg.confirm_threshold else 0

    def _step(self, timestamp: datetime) -> StateChange | None:
        st = self.status
        cfg = self.config
        high, low = st.consecutive_high, st.consecutive_low

        if st.state is SleepState.AWAKE:
            if high >= cfg.samples_for(cfg.sleep_onset_minutes):
                return self._transition(SleepState.PRE_SLEEP, timestamp)

        elif st.state is SleepState.PRE_SLEEP:
            if high >= cfg.samples_for(cfg.sleep_confirm_minutes):
                onset = timestamp - timedelta(minutes=cfg.sleep_confirm_minutes)
                return self._enter_sleep(timestamp, onset)
            if low >= cfg.samples_for(cfg.wake_onset_minutes):
                return self._transition(SleepState.AWAKE, timestamp)

        elif st.state is SleepState.SLEEPING:
            if low >= cfg.samples_for(cfg.wake_onset_minutes):
                return self._transition(SleepState.WAKING, timestamp)

        elif st.state is SleepState.WAKING:
            if low >= cfg.samples_for(cfg.wake_confirm_minutes):
                return self._enter_awake(timestamp)
            if st.consecutive_confirm >= cfg.revert_samples:
                return self._transition(SleepState.SLEEPING, timestamp)

        return None

    # -- manual override ----------------------------------------------------

    def start_manual_sleep(self, timestamp: datetime) -> StateChange | None:
        """Force the machine into sleeping, bypassing probability evaluation."""
        self.status.manual_override = True
        logger.info("Manual sleep mode started")
        if self.state is SleepState.SLEEPING:
            return None
        if self.state is SleepState.WAKING:
            return self._transition(SleepState.SLEEPING, timestamp)
        return self._enter_sleep(timestamp, timestamp)

    def stop_manual_sleep(self, timestamp: datetime) -> StateChange | None:
        """Leave manual mode; an active sleep period ends immediately."""
        self.status.manual_override = False
        logger.info("Manual sleep mode stopped")
        if self.state in (SleepState.SLEEPING, SleepState.WAKING):
            return self._enter_awake(timestamp)
        return None

    # -- baseline -----------------------------------------------------------

    def set_baseline(self, baseline: AdaptiveBaseline) -> None:
        self.baseline = baseline
        logger.info(
            f"Baseline set: HR={baseline.heart_rate:.1f} RMSSD={baseline.rmssd:.1f} "
            f"HR-sd={baseline.hr_std_dev:.2f}"
        )

    def recalculate_baseline(
        self,
        now: datetime | None = None,
        hours: float | None = None,
    ) -> AdaptiveBaseline | None:
        """Re-derive the baseline from recent pre-sleep samples (medians).

        Only samples from the last *hours* (default ``baseline_hours``) that
        carry an RMSSD qualify.  With fewer than ``min_baseline_samples`` the
        current baseline is kept and None is returned.
        """
        reference = now or self.status.last_update
        if reference is None:
            logger.debug("No samples yet; baseline not recalculated")
            return None
        window = timedelta(hours=hours if hours is not None else self.config.baseline_hours)
        cutoff = reference - window

        qualifying = [
            s for s in self._history
            if cutoff <= s.timestamp <= reference and s.rmssd is not None
        ]
        if len(qualifying) < self.config.min_baseline_samples:
            logger.debug(f"Insufficient samples for baseline: {len(qualifying)}")
            return None

        baseline = AdaptiveBaseline(
            heart_rate=float(np.median([s.heart_rate for s in qualifying])),
            rmssd=float(np.median([s.rmssd for s in qualifying])),
            hr_std_dev=float(np.median([s.hr_std_dev for s in qualifying])),
        )
        self.set_baseline(baseline)
        return baseline

    def reset(self) -> None:
        """Return to a fresh awake machine; the baseline is kept."""
        self.status = SleepDetectionState()
        self.transitions.clear()
        self.last_sleep_start = None
        self.last_wake_time = None
        self._history.clear()
        logger.info("Sleep detection reset")

    # -- internals ----------------------------------------------------------

    def _remember(self, sample: _MetricSample) -> None:
        self._history.append(sample)
        cutoff = sample.timestamp - timedelta(hours=self.config.baseline_hours)
        while self._history and self._history[0].timestamp < cutoff:
            self._history.popleft()

    def _enter_sleep(self, timestamp: datetime, onset: datetime) -> StateChange | None:
        change = self._transition(SleepState.SLEEPING, timestamp)
        self.status.sleep_start_time = onset
        self.last_sleep_start = onset
        if self.on_sleep_start is not None:
            self.on_sleep_start(onset)
        return change

    def _enter_awake(self, timestamp: datetime) -> StateChange | None:
        change = self._transition(SleepState.AWAKE, timestamp)
        self.status.manual_override = False
        self.status.sleep_start_time = None
        self.last_wake_time = timestamp
        if self.on_wake_detected is not None:
            self.on_wake_detected(timestamp)
        return change

    def _transition(self, new: SleepState, timestamp: datetime) -> StateChange | None:
        st = self.status
        if new is st.state:
            return None
        change = StateChange(old=st.state, new=new, timestamp=timestamp)
        st.state = new
        st.consecutive_high = 0
        st.consecutive_low = 0
        st.consecutive_confirm = 0

        logger.info(f"Sleep state transition: {change.old.value} -> {change.new.value}")
        self.transitions.append(change)
        if self.on_state_change is not None:
            self.on_state_change(change)
        return change

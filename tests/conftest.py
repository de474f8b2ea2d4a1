"""Shared fixtures and helpers for the hrvsleep test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Sequence

import numpy as np

from hrvsleep.analytics.epochs import Epoch
from hrvsleep.analytics.phases import SleepPhase
from hrvsleep.packets import Packet

# An evening start inside the default 18:00-10:00 sleep window
EVENING = datetime(2026, 2, 13, 21, 0, 0)


# ---------------------------------------------------------------------------
# RR interval generators
# ---------------------------------------------------------------------------


def make_rr(
    n: int = 300,
    mean_ms: float = 800.0,
    sd_ms: float = 25.0,
    seed: int = 0,
) -> np.ndarray:
    """Gaussian RR intervals, clipped to the physiological range."""
    rng = np.random.default_rng(seed)
    return np.clip(rng.normal(mean_ms, sd_ms, n), 400.0, 1500.0)


def make_sinus_rr(
    n: int = 400,
    mean_ms: float = 1000.0,
    amplitude_ms: float = 40.0,
    freq_hz: float = 0.25,
    noise_ms: float = 2.0,
    seed: int = 0,
) -> np.ndarray:
    """RR intervals modulated by a single breathing-like sinusoid.

    The modulation is evaluated at each beat's onset time, so the
    oscillation lands at *freq_hz* in the resampled signal.
    """
    rng = np.random.default_rng(seed)
    rr = np.empty(n)
    t = 0.0
    for i in range(n):
        rr[i] = mean_ms + amplitude_ms * np.sin(2 * np.pi * freq_hz * t)
        rr[i] += rng.normal(0.0, noise_ms)
        t += rr[i] / 1000.0
    return rr


# ---------------------------------------------------------------------------
# Packet and epoch builders
# ---------------------------------------------------------------------------


def make_packets(
    count: int,
    start: datetime = EVENING,
    heart_rate: int = 60,
    rr_ms: float | None = 1000.0,
    rmssd: float | None = None,
    step_sec: float = 1.0,
    jitter_ms: float = 0.0,
    seed: int = 0,
) -> list[Packet]:
    """One packet per *step_sec* with a constant HR and one RR interval each."""
    rng = np.random.default_rng(seed)
    packets = []
    for i in range(count):
        rr: Sequence[float] = ()
        if rr_ms is not None:
            rr = (rr_ms + (rng.normal(0.0, jitter_ms) if jitter_ms else 0.0),)
        packets.append(Packet.create(
            heart_rate=heart_rate,
            rr_intervals=rr,
            timestamp=start + timedelta(seconds=i * step_sec),
            rmssd=rmssd,
        ))
    return packets


def make_epoch(
    start: datetime = EVENING,
    average_hr: float = 70.0,
    average_rmssd: float | None = 40.0,
    hr_std_dev: float = 2.0,
    duration_sec: float = 30.0,
    phase: SleepPhase | None = None,
    sample_count: int = 30,
) -> Epoch:
    return Epoch(
        start_time=start,
        end_time=start + timedelta(seconds=duration_sec),
        average_hr=average_hr,
        average_rmssd=average_rmssd,
        hr_std_dev=hr_std_dev,
        sample_count=sample_count,
        phase=phase,
    )


def make_phase_epochs(phases: Sequence[SleepPhase], start: datetime = EVENING) -> list[Epoch]:
    """Back-to-back 30 s epochs with the given phases."""
    return [
        make_epoch(start=start + timedelta(seconds=30 * i), phase=p)
        for i, p in enumerate(phases)
    ]


# ---------------------------------------------------------------------------
# Trace file helpers
# ---------------------------------------------------------------------------


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


def write_trace(path: Path, packets: Sequence[Packet]) -> Path:
    return write_jsonl(path, [p.to_dict() for p in packets])

"""Frequency-domain HRV (LF / HF power) via Welch's method.

RR intervals are irregularly sampled (one value per beat), so the spectrum
cannot be taken directly.  The pipeline is:

1. Build a cumulative time axis from the intervals themselves.
2. Linearly resample to a uniform 4 Hz grid and remove the mean.
3. Apply a Hamming window to the whole record.
4. Split into 256-sample segments with 50 % overlap; each segment is
   windowed again, transformed with an FFT, and its power accumulated.
5. Average the segments and scale by 1 / (segments * window * fs).
6. Integrate the PSD over the LF [0.04, 0.15) Hz and HF [0.15, 0.40] Hz
   bands.

The LF/HF ratio is a proxy for sympathovagal balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np
from scipy import signal as sig

logger = logging.getLogger(__name__)

# Frequency bands (Hz)
LF_LO = 0.04
LF_HI = 0.15
HF_LO = 0.15
HF_HI = 0.40

# Resampling target rate
RESAMPLE_FS = 4.0  # Hz

# Welch segment length (samples)
WINDOW_SIZE = 256


@dataclass(frozen=True)
class FrequencyConfig:
    """Resampling and Welch segmentation parameters."""

    resampling_hz: float = RESAMPLE_FS
    window_size: int = WINDOW_SIZE
    overlap: float = 0.5

    def __post_init__(self) -> None:
        if self.resampling_hz <= 0:
            raise ValueError("resampling_hz must be positive")
        if self.window_size < 4:
            raise ValueError("window_size must be at least 4 samples")
        if not 0.0 <= self.overlap < 1.0:
            raise ValueError("overlap must be in [0, 1)")


class LFHFInterpretation(str, Enum):
    """Coarse reading of the LF/HF ratio."""

    PARASYMPATHETIC_DOMINANT = "parasympathetic_dominant"
    BALANCED = "balanced"
    SYMPATHETIC_DOMINANT = "sympathetic_dominant"
    HIGHLY_STRESSED = "highly_stressed"

    @classmethod
    def from_ratio(cls, ratio: float) -> LFHFInterpretation:
        if ratio < 0.5:
            return cls.PARASYMPATHETIC_DOMINANT
        if ratio < 2.0:
            return cls.BALANCED
        if ratio < 4.0:
            return cls.SYMPATHETIC_DOMINANT
        return cls.HIGHLY_STRESSED


@dataclass(frozen=True)
class FrequencyDomainMetrics:
    """Band powers (ms^2) and their ratio."""

    lf_power: float
    hf_power: float
    lf_hf_ratio: float
    total_power: float  # LF + HF

    @property
    def lf_normalized(self) -> float:
        """LF as a percentage of LF + HF."""
        if self.total_power <= 0:
            return 0.0
        return self.lf_power / self.total_power * 100.0

    @property
    def hf_normalized(self) -> float:
        """HF as a percentage of LF + HF."""
        if self.total_power <= 0:
            return 0.0
        return self.hf_power / self.total_power * 100.0

    @property
    def interpretation(self) -> LFHFInterpretation:
        return LFHFInterpretation.from_ratio(self.lf_hf_ratio)

    def __repr__(self) -> str:
        return (
            f"FrequencyDomainMetrics(lf={self.lf_power:.1f}, "
            f"hf={self.hf_power:.1f}, ratio={self.lf_hf_ratio:.2f})"
        )


# ---------------------------------------------------------------------------
# Signal preparation
# ---------------------------------------------------------------------------


def _resample_rr(
    rr_intervals_ms: Sequence[float],
    fs: float = RESAMPLE_FS,
) -> np.ndarray:
    """Resample RR intervals to a uniform grid and remove the mean.

    Each interval is placed at the time its beat started; values between two
    beats are linearly interpolated and the final interval is held until the
    end of the record.
    """
    rr = np.asarray(rr_intervals_ms, dtype=np.float64)
    if rr.size < 2:
        return np.empty(0)

    t_beats = np.concatenate(([0.0], np.cumsum(rr) / 1000.0))
    t_uniform = np.arange(0.0, t_beats[-1], 1.0 / fs)
    resampled = np.interp(t_uniform, t_beats[:-1], rr)
    return resampled - np.mean(resampled)


def _hamming(n: int) -> np.ndarray:
    """Symmetric Hamming window: 0.54 - 0.46 cos(2 pi i / (n - 1))."""
    return sig.get_window("hamming", n, fftbins=False)


# ---------------------------------------------------------------------------
# Welch PSD
# ---------------------------------------------------------------------------


def welch_psd(
    data: np.ndarray,
    fs: float = RESAMPLE_FS,
    window_size: int = WINDOW_SIZE,
    overlap: float = 0.5,
) -> tuple[np.ndarray, np.ndarray] | None:
    """Averaged periodogram over overlapping Hamming-windowed segments.

    Incomplete trailing segments are skipped.

    Returns:
        ``(frequencies, psd)`` for the first ``window_size // 2`` bins, or
        None if not a single full segment fits.
    """
    hop = max(1, int(window_size * (1.0 - overlap)))
    if len(data) < window_size:
        return None
    num_segments = (len(data) - window_size) // hop + 1

    window = _hamming(window_size)
    half = window_size // 2
    accumulated = np.zeros(half)

    for seg in range(num_segments):
        start = seg * hop
        segment = data[start:start + window_size]
        spectrum = np.fft.fft(segment * window)[:half]
        accumulated += spectrum.real ** 2 + spectrum.imag ** 2

    psd = accumulated / (num_segments * window_size * fs)
    freqs = np.arange(half) * fs / window_size
    return freqs, psd


def band_power(
    freqs: np.ndarray,
    psd: np.ndarray,
    lo: float,
    hi: float,
    include_hi: bool = False,
) -> float:
    """Rectangular integration of *psd* over ``[lo, hi)`` (or ``[lo, hi]``)."""
    if len(freqs) == 0 or len(freqs) != len(psd):
        return 0.0
    df = freqs[1] - freqs[0] if len(freqs) > 1 else 1.0
    upper = freqs <= hi if include_hi else freqs < hi
    mask = (freqs >= lo) & upper
    return float(np.sum(psd[mask]) * df)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_frequency_domain(
    rr_intervals_ms: Sequence[float],
    config: FrequencyConfig | None = None,
) -> FrequencyDomainMetrics | None:
    """Compute LF / HF power from clean RR intervals.

    Args:
        rr_intervals_ms: Clean RR intervals in milliseconds.
        config: Resampling / segmentation parameters.

    Returns:
        FrequencyDomainMetrics, or None when fewer than ``window_size``
        intervals are supplied or no full Welch segment can be formed.
    """
    cfg = config or FrequencyConfig()

    if len(rr_intervals_ms) < cfg.window_size:
        logger.debug(
            f"Insufficient RR intervals for frequency analysis: "
            f"{len(rr_intervals_ms)} < {cfg.window_size}"
        )
        return None

    resampled = _resample_rr(rr_intervals_ms, cfg.resampling_hz)
    if len(resampled) < cfg.window_size:
        logger.debug(f"Resampled signal too short: {len(resampled)}")
        return None

    windowed = resampled * _hamming(len(resampled))

    result = welch_psd(windowed, cfg.resampling_hz, cfg.window_size, cfg.overlap)
    if result is None:
        logger.debug("No complete Welch segment could be formed")
        return None
    freqs, psd = result

    lf = band_power(freqs, psd, LF_LO, LF_HI)
    hf = band_power(freqs, psd, HF_LO, HF_HI, include_hi=True)
    ratio = lf / hf if hf > 0 else 0.0

    logger.info(f"Frequency analysis complete: LF={lf:.2f} HF={hf:.2f} ratio={ratio:.2f}")

    return FrequencyDomainMetrics(
        lf_power=lf,
        hf_power=hf,
        lf_hf_ratio=ratio,
        total_power=lf + hf,
    )

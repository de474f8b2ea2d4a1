"""One-shot HRV snapshot from a batch of raw RR intervals.

Runs the RR processor once, then every metric group on the resulting
immutable clean-interval tuple.  The frequency and DFA analyses are
independent and side-effect free, so they run concurrently.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

from hrvsleep.analytics.dfa import DFAConfig, DFAResult, calculate_alpha1
from hrvsleep.analytics.features import TimeDomainMetrics, time_domain_metrics
from hrvsleep.analytics.frequency import (
    FrequencyConfig,
    FrequencyDomainMetrics,
    analyze_frequency_domain,
)
from hrvsleep.analytics.rr_processing import (
    DataQuality,
    ProcessedIntervalSet,
    RRProcessorConfig,
    process_rr_intervals,
)

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="hrv_snapshot")


@dataclass(frozen=True)
class HRVSnapshot:
    processed: ProcessedIntervalSet
    time_domain: TimeDomainMetrics | None = None
    frequency: FrequencyDomainMetrics | None = None
    dfa: DFAResult | None = None

    @property
    def quality(self) -> DataQuality:
        return self.processed.quality

    def to_dict(self) -> dict[str, Any]:
        p = self.processed
        out: dict[str, Any] = {
            "quality": self.quality.value,
            "quality_score": round(p.quality_score, 1),
            "valid": p.is_valid,
            "original_count": p.original_count,
            "clean_count": len(p.clean_intervals),
            "ectopic_count": p.removed_ectopic_count,
            "artifact_count": p.artifact_count,
            "interpolated_count": p.interpolated_count,
            "clean_duration_sec": round(p.clean_duration_sec, 1),
            "time_domain": None,
            "frequency": None,
            "dfa": None,
        }
        if self.time_domain is not None:
            td = self.time_domain
            out["time_domain"] = {
                "rmssd": round(td.rmssd, 2),
                "sdnn": round(td.sdnn, 2),
                "pnn50": round(td.pnn50, 1),
            }
        if self.frequency is not None:
            fd = self.frequency
            out["frequency"] = {
                "lf_power": round(fd.lf_power, 2),
                "hf_power": round(fd.hf_power, 2),
                "lf_hf_ratio": round(fd.lf_hf_ratio, 3),
                "total_power": round(fd.total_power, 2),
                "lf_normalized": round(fd.lf_normalized, 1),
                "hf_normalized": round(fd.hf_normalized, 1),
                "interpretation": fd.interpretation.value,
            }
        if self.dfa is not None:
            out["dfa"] = {
                "alpha1": round(self.dfa.alpha1, 3),
                "r_squared": round(self.dfa.r_squared, 3),
                "interpretation": self.dfa.interpretation.value,
            }
        return out


def analyze_snapshot(
    raw_intervals: Sequence[float],
    rr_config: RRProcessorConfig | None = None,
    frequency_config: FrequencyConfig | None = None,
    dfa_config: DFAConfig | None = None,
) -> HRVSnapshot:
    """Clean *raw_intervals* and compute every metric group that has enough data.

    An invalid processed set (less than two minutes of clean data) carries
    its quality bookkeeping but no metrics.
    """
    processed = process_rr_intervals(raw_intervals, rr_config)
    if not processed.is_valid:
        logger.debug(
            f"Snapshot skipped: only {processed.clean_duration_sec:.1f}s of clean data"
        )
        return HRVSnapshot(processed=processed)

    clean = processed.clean_intervals
    freq_future = _executor.submit(analyze_frequency_domain, clean, frequency_config)
    dfa_future = _executor.submit(calculate_alpha1, clean, dfa_config)
    time_domain = time_domain_metrics(clean)

    return HRVSnapshot(
        processed=processed,
        time_domain=time_domain,
        frequency=freq_future.result(),
        dfa=dfa_future.result(),
    )

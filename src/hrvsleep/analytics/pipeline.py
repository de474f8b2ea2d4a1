"""Session pipeline: wire a live packet stream into the sleep analytics.

One :class:`SleepSessionPipeline` per recording session.  Packets go in
through :meth:`SleepSessionPipeline.feed`; :meth:`SleepSessionPipeline.finish`
closes the session and produces a :class:`SessionReport`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from hrvsleep.analytics.confidence import SleepConfidence, score_confidence
from hrvsleep.analytics.coverage import CoverageConfig, CoverageReport, RRCoverageTracker
from hrvsleep.analytics.detection import (
    AdaptiveBaseline,
    DetectionConfig,
    SleepDetector,
    SleepState,
    StateChange,
)
from hrvsleep.analytics.epochs import Epoch, EpochAggregator, EpochConfig
from hrvsleep.analytics.phases import Baseline, calculate_baseline, classify_epochs
from hrvsleep.analytics.rr_processing import RRProcessorConfig, RRStreamFilter
from hrvsleep.analytics.summary import SleepSummary, summarize_sleep
from hrvsleep.analytics.time_domain import HRVEngine, HRVEngineConfig
from hrvsleep.packets import Packet

logger = logging.getLogger(__name__)


@dataclass
class SessionReport:
    """Everything a finished session produced."""

    epochs: list[Epoch]
    transitions: list[StateChange]
    baseline: Baseline
    sleep_start: datetime | None = None
    wake_time: datetime | None = None
    final_state: SleepState = SleepState.AWAKE
    summary: SleepSummary | None = None
    detector_baseline: AdaptiveBaseline | None = None
    packet_count: int = 0
    coverage: CoverageReport | None = None
    confidence: SleepConfidence | None = None
    rejected_intervals: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly)."""
        return {
            "packet_count": self.packet_count,
            "epoch_count": len(self.epochs),
            "final_state": self.final_state.value,
            "sleep_start": self.sleep_start.isoformat() if self.sleep_start else None,
            "wake_time": self.wake_time.isoformat() if self.wake_time else None,
            "baseline": {
                "heart_rate": round(self.baseline.heart_rate, 1),
                "rmssd": round(self.baseline.rmssd, 1),
            },
            "detector_baseline": (
                self.detector_baseline.to_dict() if self.detector_baseline else None
            ),
            "transitions": [
                {"from": t.old.value, "to": t.new.value, "timestamp": t.timestamp.isoformat()}
                for t in self.transitions
            ],
            "hypnogram": "".join(
                e.phase.short_name if e.phase is not None else "-" for e in self.epochs
            ),
            "summary": self.summary.to_dict() if self.summary else None,
            "rejected_intervals": self.rejected_intervals,
            "coverage": self.coverage.to_dict() if self.coverage else None,
            "confidence": self.confidence.to_dict() if self.confidence else None,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        score = self.summary.sleep_score if self.summary else None
        return (
            f"SessionReport(epochs={len(self.epochs)}, "
            f"transitions={len(self.transitions)}, score={score})"
        )


class SleepSessionPipeline:
    """Rolling HRV engine + epoch aggregator + sleep detector for one session.

    Not thread-safe: a single owner feeds packets in timestamp order.
    """

    def __init__(
        self,
        baseline: AdaptiveBaseline | None = None,
        engine_config: HRVEngineConfig | None = None,
        epoch_config: EpochConfig | None = None,
        detection_config: DetectionConfig | None = None,
        rr_config: RRProcessorConfig | None = None,
        coverage_config: CoverageConfig | None = None,
    ) -> None:
        self.rr_filter = RRStreamFilter(rr_config)
        self.engine = HRVEngine(engine_config)
        self.aggregator = EpochAggregator(epoch_config)
        self.detector = SleepDetector(detection_config, baseline=baseline)
        self.coverage = RRCoverageTracker(coverage_config)
        self.epochs: list[Epoch] = []
        self.heart_rates: list[int] = []
        self.packet_count = 0
        self.aggregator.subscribe(self._on_epoch)

    @property
    def state(self) -> SleepState:
        return self.detector.state

    def feed(self, packet: Packet) -> Epoch | None:
        """Push one packet through the pipeline; return the epoch it completed."""
        self.coverage.record(len(packet.rr_intervals), packet.timestamp)
        self.packet_count += 1
        self.heart_rates.append(packet.heart_rate)
        intervals = self.rr_filter.filter(packet.rr_intervals)
        if intervals:
            self.engine.add_intervals(intervals, packet.timestamp)
        rmssd = packet.rmssd
        if rmssd is None:
            rmssd = self.engine.compute_rmssd(packet.timestamp)
        return self.aggregator.add_packet(packet, rmssd=rmssd)

    def feed_all(self, packets: Iterable[Packet]) -> int:
        """Feed every packet; return how many epochs were completed."""
        completed = 0
        for packet in packets:
            if self.feed(packet) is not None:
                completed += 1
        return completed

    def finish(self, timestamp: datetime | None = None) -> SessionReport:
        """Close the open epoch, classify the night and build the report."""
        self.aggregator.force_complete(timestamp)

        baseline = calculate_baseline(self.epochs) if self.epochs else Baseline()
        classified = classify_epochs(self.epochs, baseline)
        summary = summarize_sleep(classified, baseline.rmssd)

        coverage = None
        confidence = None
        if self.packet_count:
            coverage = self.coverage.report(timestamp)
            confidence = score_confidence(
                coverage.coverage_percent,
                self.heart_rates,
                len(self.detector.transitions),
                coverage.tracking_minutes,
            )

        report = SessionReport(
            epochs=classified,
            transitions=list(self.detector.transitions),
            baseline=baseline,
            sleep_start=self.detector.last_sleep_start,
            wake_time=self.detector.last_wake_time,
            final_state=self.detector.state,
            summary=summary,
            detector_baseline=self.detector.baseline,
            packet_count=self.packet_count,
            coverage=coverage,
            confidence=confidence,
            rejected_intervals=self.rr_filter.ectopic_count + self.rr_filter.artifact_count,
        )
        logger.info(f"Session finished: {report!r}")
        return report

    def reset(self) -> None:
        """Start a new session; the detector keeps its baseline."""
        self.rr_filter.reset()
        self.engine.reset()
        self.aggregator.reset()
        self.detector.reset()
        self.coverage.reset()
        self.epochs.clear()
        self.heart_rates.clear()
        self.packet_count = 0

    def _on_epoch(self, epoch: Epoch) -> None:
        self.epochs.append(epoch)
        self.detector.update_with_epoch(epoch)
        # Learn a pre-bed baseline from the first awake epochs of a fresh session
        if not self.detector.has_baseline and self.detector.state is SleepState.AWAKE:
            self.detector.recalculate_baseline(epoch.end_time)


def run_session(
    packets: Iterable[Packet],
    baseline: AdaptiveBaseline | None = None,
    detection_config: DetectionConfig | None = None,
) -> SessionReport:
    """Run a whole packet sequence through a fresh pipeline."""
    pipeline = SleepSessionPipeline(baseline=baseline, detection_config=detection_config)
    pipeline.feed_all(packets)
    return pipeline.finish()

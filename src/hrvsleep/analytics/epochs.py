"""30-second epoch aggregation of the live packet stream.

Samples accumulate until 30 s have elapsed since the epoch started; the
epoch is then finalized (mean HR, mean of the available RMSSD values,
population std-dev of HR) and emitted to every subscriber.  Epochs with
fewer than ten samples are discarded.  The next epoch starts at the
completion timestamp, so emitted epochs are contiguous and never overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Sequence

import numpy as np

from hrvsleep.packets import Packet

if TYPE_CHECKING:
    from hrvsleep.analytics.phases import SleepPhase

logger = logging.getLogger(__name__)

EPOCH_SEC = 30.0
MIN_SAMPLES_PER_EPOCH = 10


@dataclass(frozen=True)
class EpochConfig:
    epoch_sec: float = EPOCH_SEC
    min_samples: int = MIN_SAMPLES_PER_EPOCH

    def __post_init__(self) -> None:
        if self.epoch_sec <= 0:
            raise ValueError("epoch_sec must be positive")
        if self.min_samples < 1:
            raise ValueError("min_samples must be at least 1")


@dataclass(frozen=True)
class Epoch:
    """One finalized aggregation window."""

    start_time: datetime
    end_time: datetime
    average_hr: float
    average_rmssd: float | None  # None when no sample carried an RMSSD
    hr_std_dev: float
    sample_count: int = 0
    phase: SleepPhase | None = None

    @property
    def duration_sec(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def with_phase(self, phase: SleepPhase | None) -> Epoch:
        """Copy of this epoch annotated with *phase*."""
        return replace(self, phase=phase)

    def __repr__(self) -> str:
        rmssd = f"{self.average_rmssd:.1f}ms" if self.average_rmssd is not None else "n/a"
        phase = f", {self.phase.value}" if self.phase is not None else ""
        return (
            f"Epoch({self.start_time.isoformat()} hr={self.average_hr:.1f} "
            f"rmssd={rmssd} sd={self.hr_std_dev:.2f}{phase})"
        )


@dataclass
class _Sample:
    timestamp: datetime
    heart_rate: int
    rr_intervals: Sequence[float] = field(default_factory=tuple)
    rmssd: float | None = None


EpochListener = Callable[[Epoch], None]


class EpochAggregator:
    """Buckets timestamped HR / RMSSD samples into fixed-duration epochs.

    Samples must arrive in timestamp order from a single producer.
    """

    def __init__(self, config: EpochConfig | None = None) -> None:
        self.config = config or EpochConfig()
        self._samples: list[_Sample] = []
        self._epoch_start: datetime | None = None
        self._last_timestamp: datetime | None = None
        self._listeners: list[EpochListener] = []

    @property
    def pending_samples(self) -> int:
        return len(self._samples)

    def subscribe(self, listener: EpochListener) -> None:
        """Register a callback invoked with every emitted epoch."""
        self._listeners.append(listener)

    def add_sample(
        self,
        heart_rate: int,
        rr_intervals: Sequence[float] = (),
        rmssd: float | None = None,
        timestamp: datetime | None = None,
    ) -> Epoch | None:
        """Add one sample; return the epoch it completed, if any.

        Raises:
            ValueError: if *timestamp* precedes the previous sample.
        """
        ts = timestamp or datetime.now()
        if self._last_timestamp is not None and ts < self._last_timestamp:
            raise ValueError(
                f"samples must arrive in timestamp order "
                f"({ts.isoformat()} < {self._last_timestamp.isoformat()})"
            )
        self._last_timestamp = ts

        if self._epoch_start is None:
            self._epoch_start = ts

        self._samples.append(_Sample(ts, heart_rate, tuple(rr_intervals), rmssd))

        if (ts - self._epoch_start).total_seconds() >= self.config.epoch_sec:
            return self._complete(ts)
        return None

    def add_packet(self, packet: Packet, rmssd: float | None = None) -> Epoch | None:
        """Add a packet; *rmssd* overrides the packet's own value when given."""
        return self.add_sample(
            heart_rate=packet.heart_rate,
            rr_intervals=packet.rr_intervals,
            rmssd=rmssd if rmssd is not None else packet.rmssd,
            timestamp=packet.timestamp,
        )

    def force_complete(self, timestamp: datetime | None = None) -> Epoch | None:
        """Finalize the open epoch early (e.g. at session end).

        *timestamp* defaults to the last sample's timestamp.
        """
        if not self._samples:
            return None
        return self._complete(timestamp or self._samples[-1].timestamp)

    def reset(self) -> None:
        self._samples.clear()
        self._epoch_start = None
        self._last_timestamp = None
        logger.info("Epoch aggregator reset")

    def _complete(self, end_time: datetime) -> Epoch | None:
        start = self._epoch_start
        samples = self._samples
        self._samples = []
        self._epoch_start = end_time

        if len(samples) < self.config.min_samples:
            logger.info(f"Epoch discarded: insufficient samples ({len(samples)})")
            return None

        hr = np.asarray([s.heart_rate for s in samples], dtype=np.float64)
        rmssd_values = [s.rmssd for s in samples if s.rmssd is not None]

        epoch = Epoch(
            start_time=start,
            end_time=end_time,
            average_hr=float(np.mean(hr)),
            average_rmssd=float(np.mean(rmssd_values)) if rmssd_values else None,
            hr_std_dev=float(np.std(hr, ddof=0)) if len(hr) > 1 else 0.0,
            sample_count=len(samples),
        )
        logger.debug(f"Epoch completed: {epoch!r}")

        for listener in self._listeners:
            listener(epoch)
        return epoch


def aggregate_epochs(
    packets: Iterable[Packet],
    config: EpochConfig | None = None,
    flush: bool = True,
) -> Iterator[Epoch]:
    """Lazily yield finalized epochs from a packet iterable.

    Each call starts from a fresh aggregator, so the sequence can be
    restarted by calling again with a new iterable.  With *flush* the open
    trailing epoch is force-completed once the packets run out.
    """
    aggregator = EpochAggregator(config)
    for packet in packets:
        epoch = aggregator.add_packet(packet)
        if epoch is not None:
            yield epoch
    if flush:
        epoch = aggregator.force_complete()
        if epoch is not None:
            yield epoch

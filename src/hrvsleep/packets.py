"""Live heart-rate packet model.

A packet is what the connectivity layer hands to the core roughly once per
second: the instantaneous heart rate, zero or more RR intervals observed
since the previous packet, the arrival time, and optionally an RMSSD value
already computed upstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence


@dataclass(frozen=True)
class Packet:
    """One heart-rate notification."""

    heart_rate: int
    rr_intervals: tuple[float, ...]
    timestamp: datetime
    rmssd: float | None = None

    def __repr__(self) -> str:
        rr = f", rr={list(self.rr_intervals)}" if self.rr_intervals else ""
        hrv = f", rmssd={self.rmssd:.1f}ms" if self.rmssd is not None else ""
        return f"Packet({self.timestamp.isoformat()} hr={self.heart_rate}bpm{rr}{hrv})"

    @classmethod
    def create(
        cls,
        heart_rate: int,
        rr_intervals: Sequence[float] = (),
        timestamp: datetime | None = None,
        rmssd: float | None = None,
    ) -> Packet:
        return cls(
            heart_rate=int(heart_rate),
            rr_intervals=tuple(float(v) for v in rr_intervals),
            timestamp=timestamp or datetime.now(),
            rmssd=None if rmssd is None else float(rmssd),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Packet:
        """Build a packet from a trace record.

        Raises:
            ValueError: if required fields are missing or malformed.
        """
        try:
            timestamp = datetime.fromisoformat(data["timestamp"])
            heart_rate = data["heart_rate"]
        except KeyError as e:
            raise ValueError(f"packet record missing field {e}") from e
        except TypeError as e:
            raise ValueError(f"bad packet timestamp: {data.get('timestamp')!r}") from e
        try:
            return cls.create(
                heart_rate=heart_rate,
                rr_intervals=data.get("rr_intervals") or (),
                timestamp=timestamp,
                rmssd=data.get("rmssd"),
            )
        except TypeError as e:
            raise ValueError(f"malformed packet record: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "heart_rate": self.heart_rate,
            "rr_intervals": list(self.rr_intervals),
            "rmssd": self.rmssd,
        }

"""Replay recorded packet traces for offline analysis.

A trace is a JSONL file, one heart-rate packet per line:

    {"timestamp": "2026-02-13T23:00:00", "heart_rate": 62, "rr_intervals": [968.0], "rmssd": null}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator, Sequence

from hrvsleep.packets import Packet

logger = logging.getLogger(__name__)


def load_packets(trace_path: str | Path) -> Iterator[Packet]:
    """Lazily yield packets from a .jsonl trace.

    Blank lines are skipped.  Lines that are not valid JSON, or whose
    record is not a usable packet, are logged and skipped.

    Raises:
        OSError: if the file cannot be opened.
    """
    path = Path(trace_path)
    skipped = 0
    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"{path.name}:{line_num}: invalid JSON, skipping")
                skipped += 1
                continue
            if not isinstance(entry, dict):
                logger.warning(f"{path.name}:{line_num}: not a packet object, skipping")
                skipped += 1
                continue

            try:
                yield Packet.from_dict(entry)
            except ValueError as e:
                logger.warning(f"{path.name}:{line_num}: {e}, skipping")
                skipped += 1

    if skipped:
        logger.info(f"Replay of {path.name} skipped {skipped} line(s)")


def write_packets(packets: Sequence[Packet], output_path: str | Path) -> int:
    """Write *packets* as a JSONL trace; return the number written."""
    with open(output_path, "w") as out:
        for packet in packets:
            out.write(json.dumps(packet.to_dict()) + "\n")
    return len(packets)


def load_rr_intervals(path: str | Path) -> list[float]:
    """Read RR intervals (ms) from a file.

    Accepts either a JSON list of numbers or one number per line (blank
    lines and ``#`` comments ignored).

    Raises:
        ValueError: on an entry that is not a number.
    """
    text = Path(path).read_text()
    stripped = text.lstrip()
    if stripped.startswith("["):
        try:
            values = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}: invalid JSON list: {e}") from e
        try:
            return [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise ValueError(f"{path}: non-numeric RR interval") from e

    intervals: list[float] = []
    for line_num, line in enumerate(text.splitlines(), 1):
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            intervals.append(float(line))
        except ValueError as e:
            raise ValueError(f"{path}:{line_num}: not a number: {line!r}") from e
    return intervals

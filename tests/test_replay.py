"""Tests for the packet model, trace replay and the CLI."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

import pytest
from click.testing import CliRunner

from hrvsleep.cli import main
from hrvsleep.packets import Packet
from hrvsleep.replay import load_packets, load_rr_intervals, write_packets

from tests.conftest import EVENING, make_packets, make_sinus_rr, write_jsonl, write_trace


# ===================================================================
# Packet model
# ===================================================================


class TestPacket:
    def test_from_dict(self):
        p = Packet.from_dict({
            "timestamp": "2026-02-13T21:00:00",
            "heart_rate": 62,
            "rr_intervals": [968, 975.5],
        })
        assert p.timestamp == datetime(2026, 2, 13, 21, 0, 0)
        assert p.heart_rate == 62
        assert p.rr_intervals == (968.0, 975.5)
        assert p.rmssd is None

    def test_missing_field(self):
        with pytest.raises(ValueError, match="heart_rate"):
            Packet.from_dict({"timestamp": "2026-02-13T21:00:00"})

    def test_wrong_field_types_raise_value_error(self):
        with pytest.raises(ValueError):
            Packet.from_dict({"timestamp": "2026-02-13T21:00:00", "heart_rate": None})
        with pytest.raises(ValueError):
            Packet.from_dict({
                "timestamp": "2026-02-13T21:00:00", "heart_rate": 60, "rr_intervals": 900,
            })

    def test_bad_timestamp(self):
        with pytest.raises(ValueError):
            Packet.from_dict({"timestamp": "not a time", "heart_rate": 60})
        with pytest.raises(ValueError):
            Packet.from_dict({"timestamp": 12345, "heart_rate": 60})

    def test_to_dict(self):
        p = Packet.create(60, [1000.0], EVENING, rmssd=42.0)
        assert p.to_dict() == {
            "timestamp": "2026-02-13T21:00:00",
            "heart_rate": 60,
            "rr_intervals": [1000.0],
            "rmssd": 42.0,
        }

    def test_repr(self):
        p = Packet.create(60, [1000.0], EVENING)
        assert "hr=60bpm" in repr(p)


# ===================================================================
# Trace files
# ===================================================================


class TestLoadPackets:
    def test_roundtrip(self, tmp_path: Path):
        packets = make_packets(5, rmssd=40.0)
        path = tmp_path / "trace.jsonl"
        assert write_packets(packets, path) == 5
        assert list(load_packets(path)) == packets

    def test_skips_bad_lines(self, tmp_path: Path, caplog):
        path = tmp_path / "trace.jsonl"
        good = make_packets(2)
        with open(path, "w") as f:
            f.write(json.dumps(good[0].to_dict()) + "\n")
            f.write("\n")
            f.write("{not json\n")
            f.write("[1, 2, 3]\n")
            f.write(json.dumps({"heart_rate": 60}) + "\n")
            f.write(json.dumps(good[1].to_dict()) + "\n")

        with caplog.at_level(logging.WARNING, logger="hrvsleep.replay"):
            loaded = list(load_packets(path))
        assert loaded == good
        assert "invalid JSON" in caplog.text
        assert sum(r.levelno == logging.WARNING for r in caplog.records) == 3

    @pytest.mark.parametrize(
        "override",
        [
            {"heart_rate": None},
            {"rr_intervals": 900},
            {"rmssd": [1]},
            {"rr_intervals": [None]},
        ],
    )
    def test_skips_wrongly_typed_fields(self, tmp_path: Path, caplog, override):
        good = make_packets(2)
        bad = {**good[0].to_dict(), **override}
        path = write_jsonl(tmp_path / "trace.jsonl", [bad, good[1].to_dict()])

        with caplog.at_level(logging.WARNING, logger="hrvsleep.replay"):
            loaded = list(load_packets(path))
        assert loaded == [good[1]]
        assert "malformed packet record" in caplog.text

    def test_is_lazy(self, tmp_path: Path):
        path = write_trace(tmp_path / "trace.jsonl", make_packets(3))
        it = load_packets(path)
        assert next(it).heart_rate == 60

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(OSError):
            list(load_packets(tmp_path / "nope.jsonl"))


class TestLoadRRIntervals:
    def test_json_list(self, tmp_path: Path):
        path = tmp_path / "rr.json"
        path.write_text("[800, 810.5, 790]")
        assert load_rr_intervals(path) == [800.0, 810.5, 790.0]

    def test_one_per_line(self, tmp_path: Path):
        path = tmp_path / "rr.txt"
        path.write_text("# polar export\n800\n\n810  # note\n790\n")
        assert load_rr_intervals(path) == [800.0, 810.0, 790.0]

    def test_bad_value(self, tmp_path: Path):
        path = tmp_path / "rr.txt"
        path.write_text("800\nabc\n")
        with pytest.raises(ValueError, match=":2"):
            load_rr_intervals(path)

    def test_bad_json(self, tmp_path: Path):
        path = tmp_path / "rr.json"
        path.write_text("[800, ")
        with pytest.raises(ValueError):
            load_rr_intervals(path)


# ===================================================================
# CLI
# ===================================================================


class TestCLI:
    def test_analyze(self, tmp_path: Path):
        rr_path = tmp_path / "rr.txt"
        rr_path.write_text("\n".join(f"{v:.1f}" for v in make_sinus_rr(400)))
        out = tmp_path / "snapshot.json"

        result = CliRunner().invoke(main, ["analyze", str(rr_path), "-o", str(out)])
        assert result.exit_code == 0, result.output
        d = json.loads(out.read_text())
        assert d["valid"] is True
        assert d["quality"] == "excellent"
        assert d["dfa"] is not None

    def test_analyze_bad_input(self, tmp_path: Path):
        rr_path = tmp_path / "rr.txt"
        rr_path.write_text("800\nabc\n")
        result = CliRunner().invoke(main, ["analyze", str(rr_path)])
        assert result.exit_code == 1
        assert "not a number" in result.output

    def test_analyze_missing_file(self, tmp_path: Path):
        result = CliRunner().invoke(main, ["analyze", str(tmp_path / "nope.txt")])
        assert result.exit_code == 2

    def test_replay(self, tmp_path: Path):
        trace = write_trace(tmp_path / "trace.jsonl", make_packets(300, rmssd=40.0))
        out = tmp_path / "report.json"
        result = CliRunner().invoke(main, ["-v", "replay", str(trace), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Session: 300 packets, 10 epochs" in result.output
        d = json.loads(out.read_text())
        assert d["packet_count"] == 300
        assert d["final_state"] == "awake"

    def test_replay_skips_malformed_record(self, tmp_path: Path):
        entries = [p.to_dict() for p in make_packets(300, rmssd=40.0)]
        entries[10]["rr_intervals"] = 900
        trace = write_jsonl(tmp_path / "trace.jsonl", entries)
        result = CliRunner().invoke(main, ["replay", str(trace), "--no-window"])
        assert result.exit_code == 0, result.output
        assert result.exception is None
        assert "Session: 299 packets" in result.output

    def test_replay_reports_coverage(self, tmp_path: Path):
        trace = write_trace(tmp_path / "trace.jsonl", make_packets(300, rmssd=40.0))
        out = tmp_path / "report.json"
        result = CliRunner().invoke(main, ["replay", str(trace), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Coverage:   100%" in result.output
        d = json.loads(out.read_text())
        assert d["coverage"]["coverage_percent"] == 100.0
        assert d["coverage"]["gaps"] == []
        assert 0 <= d["confidence"]["score"] <= 100

    def test_replay_out_of_order_trace(self, tmp_path: Path):
        packets = make_packets(3)
        trace = write_jsonl(
            tmp_path / "trace.jsonl", [p.to_dict() for p in reversed(packets)],
        )
        result = CliRunner().invoke(main, ["replay", str(trace), "--no-window"])
        assert result.exit_code == 1
        assert "timestamp order" in result.output

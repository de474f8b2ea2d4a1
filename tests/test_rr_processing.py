"""Tests for hrvsleep.analytics.rr_processing -- ectopic rejection and artifact repair."""

import numpy as np
import pytest

from hrvsleep.analytics.rr_processing import (
    DataQuality,
    ProcessedIntervalSet,
    RRProcessorConfig,
    RRStreamFilter,
    assess_quality,
    process_rr_intervals,
    _catmull_rom,
    _valid_neighbours,
)

from tests.conftest import make_rr


class TestEctopicRejection:
    def test_out_of_range_dropped(self):
        raw = [800.0, 250.0, 810.0, 2500.0, 805.0]
        result = process_rr_intervals(raw)
        assert result.removed_ectopic_count == 2
        assert result.ectopic_indices == (1, 3)
        assert result.clean_intervals == (800.0, 810.0, 805.0)
        assert result.original_count == 5

    def test_bounds_are_inclusive(self):
        result = process_rr_intervals([300.0, 2000.0])
        assert result.removed_ectopic_count == 0
        # 2000 vs 300 is an artifact jump, but the count stays intact
        assert len(result.clean_intervals) == 2

    def test_all_ectopic(self):
        result = process_rr_intervals([100.0, 200.0, 3000.0])
        assert result.clean_intervals == ()
        assert not result.is_valid
        assert result.quality is DataQuality.UNUSABLE


class TestArtifactRepair:
    def test_step_change_repaired_with_catmull_rom(self):
        raw = [800.0, 800.0, 800.0, 1120.0, 1120.0, 1120.0]
        result = process_rr_intervals(raw)
        assert result.artifact_count == 1
        assert result.interpolated_count == 1
        assert result.clean_intervals[3] == pytest.approx(960.0)
        assert len(result.clean_intervals) == len(raw)

    def test_single_spike_flags_both_edges(self):
        # the drop back after the spike is itself a >20 % jump
        raw = [800.0] * 5 + [1100.0] + [800.0] * 5
        result = process_rr_intervals(raw)
        assert result.artifact_count == 2
        assert result.clean_intervals[5] < 1100.0

    def test_trailing_artifact_copies_previous(self):
        raw = [800.0, 805.0, 810.0, 1200.0]
        result = process_rr_intervals(raw)
        assert result.clean_intervals[-1] == 810.0

    def test_linear_fallback_with_one_neighbour(self):
        raw = [800.0, 1000.0, 1000.0, 1000.0]
        # index 1 jumps 25 % from 800; one left neighbour, so linear
        result = process_rr_intervals(raw)
        assert result.artifact_count == 1
        assert result.clean_intervals[1] == pytest.approx(900.0)

    def test_repaired_values_are_clamped(self):
        cfg = RRProcessorConfig(min_rr_ms=300.0, max_rr_ms=2000.0)
        raw = [1900.0, 2000.0, 2000.0, 1500.0, 1500.0, 300.0, 300.0]
        result = process_rr_intervals(raw, cfg)
        assert all(300.0 <= v <= 2000.0 for v in result.clean_intervals)

    def test_no_artifacts_in_smooth_series(self):
        rr = make_rr(200, sd_ms=10.0, seed=1)
        result = process_rr_intervals(rr)
        assert result.artifact_count == 0
        assert result.interpolated_count == 0
        assert np.allclose(result.clean_intervals, rr)


class TestValidity:
    def test_two_minutes_required(self):
        result = process_rr_intervals([1000.0] * 119)
        assert result.clean_duration_sec == pytest.approx(119.0)
        assert not result.is_valid

        result = process_rr_intervals([1000.0] * 120)
        assert result.is_valid

    def test_empty_input(self):
        result = process_rr_intervals([])
        assert result.original_count == 0
        assert result.clean_intervals == ()
        assert not result.is_valid
        assert result.quality_score == 0.0

    def test_non_finite_raises(self):
        with pytest.raises(ValueError):
            process_rr_intervals([800.0, float("nan"), 810.0])

    def test_nested_input_raises(self):
        with pytest.raises(ValueError):
            process_rr_intervals([[800.0, 810.0], [820.0, 830.0]])

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            RRProcessorConfig(min_rr_ms=2000.0, max_rr_ms=300.0)


class TestQuality:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (100.0, DataQuality.EXCELLENT),
            (95.0, DataQuality.EXCELLENT),
            (94.9, DataQuality.GOOD),
            (85.0, DataQuality.GOOD),
            (70.0, DataQuality.ACCEPTABLE),
            (50.0, DataQuality.POOR),
            (49.9, DataQuality.UNUSABLE),
        ],
    )
    def test_thresholds(self, score, expected):
        assert DataQuality.from_score(score) is expected

    def test_is_usable(self):
        assert DataQuality.POOR.is_usable
        assert not DataQuality.UNUSABLE.is_usable

    def test_score_from_retained_fraction(self):
        raw = [800.0] * 9 + [100.0]
        result = process_rr_intervals(raw)
        assert result.quality_score == pytest.approx(90.0)
        assert assess_quality(result) is DataQuality.GOOD

    def test_repr(self):
        result = ProcessedIntervalSet(clean_intervals=(800.0,), original_count=1)
        assert "clean=1/1" in repr(result)


class TestHelpers:
    def test_neighbours_skip_artifacts(self):
        left, right = _valid_neighbours(8, 4, {3, 5})
        assert left == [1, 2]
        assert right == [6, 7]

    def test_neighbours_at_edge(self):
        left, right = _valid_neighbours(4, 0, set())
        assert left == []
        assert right == [1, 2]

    def test_catmull_rom_on_line_is_linear(self):
        values = np.array([100.0, 200.0, 300.0, 999.0, 500.0, 600.0])
        assert _catmull_rom(values, [1, 2], [4, 5], 3) == pytest.approx(400.0)


class TestInjectedFaults:
    def test_single_ectopic_in_long_sequence(self):
        rr = make_rr(200, sd_ms=10.0, seed=7)
        raw = list(rr)
        raw[100] = 5000.0
        result = process_rr_intervals(raw)
        assert result.removed_ectopic_count == 1
        assert result.ectopic_indices == (100,)
        assert len(result.clean_intervals) == 199

    def test_forty_percent_jump_interpolated_once(self):
        raw = [800.0] * 10 + [1120.0] * 10
        result = process_rr_intervals(raw)
        assert result.interpolated_count == 1
        assert 300.0 <= result.clean_intervals[10] <= 2000.0


class TestRRStreamFilter:
    def test_out_of_range_dropped(self):
        f = RRStreamFilter()
        assert f.filter([1000.0, 5000.0, 1000.0, 200.0]) == [1000.0, 1000.0]
        assert f.ectopic_count == 2
        assert f.artifact_count == 0

    def test_jump_withheld_across_packets(self):
        f = RRStreamFilter()
        assert f.filter([800.0]) == [800.0]
        assert f.filter([1100.0]) == []
        # the return from the spike is itself a >20 % jump
        assert f.filter([800.0]) == []
        assert f.filter([805.0]) == [805.0]
        assert f.artifact_count == 2

    def test_sustained_step_accepted_after_one_beat(self):
        f = RRStreamFilter()
        accepted = f.filter([800.0, 800.0, 1120.0, 1120.0, 1120.0])
        assert accepted == [800.0, 800.0, 1120.0, 1120.0]

    def test_reset(self):
        f = RRStreamFilter()
        f.filter([800.0, 5000.0])
        f.reset()
        assert f.ectopic_count == 0
        # no previous interval to compare against after a reset
        assert f.filter([1500.0]) == [1500.0]

"""Tests for hrvsleep.analytics.summary -- night summary and sleep score."""

import pytest

from hrvsleep.analytics.phases import SleepPhase
from hrvsleep.analytics.summary import (
    AWAKENING_EPOCHS,
    SleepSummary,
    count_awakenings,
    summarize_sleep,
    _continuity_score,
    _deep_score,
    _duration_score,
    _hrv_recovery_score,
)

from tests.conftest import make_epoch, make_phase_epochs

W, L, D, R = SleepPhase.AWAKE, SleepPhase.LIGHT, SleepPhase.DEEP, SleepPhase.REM


class TestSubScores:
    def test_duration_optimal(self):
        assert _duration_score(7.5) == pytest.approx(100.0)

    def test_duration_half(self):
        assert _duration_score(3.75) == pytest.approx(50.0)

    def test_duration_clamped(self):
        assert _duration_score(20.0) == 0.0

    def test_deep_optimal(self):
        assert _deep_score(90.0, 450.0) == pytest.approx(100.0)

    def test_deep_none(self):
        assert _deep_score(0.0, 450.0) == pytest.approx(0.0)

    def test_deep_empty_night(self):
        assert _deep_score(0.0, 0.0) == 0.0

    @pytest.mark.parametrize(
        "ratio,expected",
        [
            (None, 85.0),
            (1.2, 100.0),
            (1.10, 100.0),
            (1.05, 92.5),
            (1.00, 85.0),
            (0.95, 77.5),
            (0.85, 60.0),
            (0.5, 50.0),
        ],
    )
    def test_hrv_recovery(self, ratio, expected):
        assert _hrv_recovery_score(ratio) == pytest.approx(expected)

    def test_continuity(self):
        assert _continuity_score(0) == 100.0
        assert _continuity_score(3) == 85.0
        assert _continuity_score(20) == 50.0


class TestAwakenings:
    def test_long_awake_run_after_sleep(self):
        epochs = make_phase_epochs([L] * 5 + [W] * AWAKENING_EPOCHS + [L] * 5)
        assert count_awakenings(epochs) == 1

    def test_short_awake_run_ignored(self):
        epochs = make_phase_epochs([L] * 5 + [W] * 3 + [L] * 5)
        assert count_awakenings(epochs) == 0

    def test_leading_awake_not_counted(self):
        epochs = make_phase_epochs([W] * 10 + [D] * 5)
        assert count_awakenings(epochs) == 0

    def test_long_run_counted_once(self):
        epochs = make_phase_epochs([L] * 3 + [W] * 12 + [R] * 3 + [W] * 4)
        assert count_awakenings(epochs) == 2


class TestSummarizeSleep:
    def test_empty(self):
        assert summarize_sleep([]) is None

    def test_unclassified_ignored(self):
        assert summarize_sleep([make_epoch(phase=None)]) is None

    def test_phase_minutes(self):
        epochs = make_phase_epochs([W] * 4 + [L] * 10 + [D] * 6 + [R] * 4)
        s = summarize_sleep(epochs, baseline_rmssd=40.0)
        assert s.total_duration_min == pytest.approx(12.0)
        assert s.awake_min == pytest.approx(2.0)
        assert s.light_min == pytest.approx(5.0)
        assert s.deep_min == pytest.approx(3.0)
        assert s.rem_min == pytest.approx(2.0)
        assert s.sleep_efficiency == pytest.approx(10.0 / 12.0 * 100.0)

    def test_hr_and_rmssd_stats(self):
        epochs = [
            make_epoch(average_hr=70.0, average_rmssd=30.0, phase=W),
            make_epoch(average_hr=55.0, average_rmssd=50.0, phase=D),
            make_epoch(average_hr=60.0, average_rmssd=None, phase=L),
        ]
        s = summarize_sleep(epochs, baseline_rmssd=40.0)
        assert s.min_hr == 55.0
        assert s.max_hr == 70.0
        assert s.average_hr == pytest.approx(185.0 / 3.0)
        # awake epochs and missing values excluded
        assert s.average_rmssd == pytest.approx(50.0)
        assert s.hrv_recovery_ratio == pytest.approx(1.25)

    def test_no_baseline_gives_no_ratio(self):
        s = summarize_sleep(make_phase_epochs([L] * 4), baseline_rmssd=None)
        assert s.hrv_recovery_ratio is None

    def test_perfect_night_scores_high(self):
        # 7.5 h: 20 % deep, steady HRV, no awakenings
        total = 900
        deep = 180
        phases = [D] * deep + [L] * (total - deep - 180) + [R] * 180
        s = summarize_sleep(make_phase_epochs(phases), baseline_rmssd=30.0)
        assert s.awakenings == 0
        assert s.sleep_score == 100

    def test_fragmented_short_night_scores_low(self):
        phases = ([L] * 4 + [W] * 4) * 10
        s = summarize_sleep(make_phase_epochs(phases), baseline_rmssd=80.0)
        assert s.awakenings == 10
        assert s.sleep_score < 40

    def test_to_dict(self):
        s = summarize_sleep(make_phase_epochs([L] * 4 + [D] * 2), baseline_rmssd=40.0)
        d = s.to_dict()
        assert d["sleep_score"] == s.sleep_score
        assert "sleep_efficiency" in d
        assert isinstance(s, SleepSummary)
        assert "score=" in repr(s)

    def test_fields_unrounded_dict_rounded(self):
        epochs = [
            make_epoch(average_hr=70.0, average_rmssd=30.0, phase=L),
            make_epoch(average_hr=55.0, average_rmssd=50.0, phase=D),
            make_epoch(average_hr=60.0, average_rmssd=50.0, phase=L),
        ]
        s = summarize_sleep(epochs, baseline_rmssd=30.0)
        assert s.average_hr == pytest.approx(185.0 / 3.0)
        assert s.average_rmssd == pytest.approx(130.0 / 3.0)
        d = s.to_dict()
        assert d["average_hr"] == 61.7
        assert d["average_rmssd"] == 43.3
        assert d["hrv_recovery_ratio"] == 1.444

import numpy as np
import pytest

from training_signals.metrics.running_metrics import (
    aerobic_decoupling,
    average_pace,
    cadence_category,
    calculate_running_metrics,
    decoupling_category,
    efficiency_factor,
    grade_adjusted_pace,
    normalized_graded_pace,
    pace_variability_index,
    running_training_stress_score,
)
from training_signals.models.types import ActivityChannels, ChannelStream


def _stream(values):
    values = np.asarray(values, dtype=float)
    return ChannelStream(values, np.arange(len(values), dtype=float))


def test_grade_adjusted_pace():
    assert grade_adjusted_pace(6.0, 0) == 6.0
    assert grade_adjusted_pace(6.0, 5) == pytest.approx(4.95)
    assert grade_adjusted_pace(6.0, -5) == pytest.approx(7.05)


def test_normalized_graded_pace_of_flat_constant_pace():
    assert normalized_graded_pace(_stream([5.0] * 600)) == pytest.approx(5.0)
    assert normalized_graded_pace(_stream([5.0] * 29)) is None


def test_climb_makes_graded_pace_faster():
    pace = _stream([6.0] * 300)
    # 2 m forward and 0.1 m up per sample is a 5% grade
    distance = _stream(np.arange(300) * 2.0)
    altitude = _stream(100 + np.arange(300) * 0.1)
    assert normalized_graded_pace(pace, altitude, distance) == pytest.approx(4.95)
    assert normalized_graded_pace(pace, altitude, None) == pytest.approx(6.0)


def test_average_pace_is_pace_at_average_speed():
    # 15 and 10 km/h halves average 12.5 km/h, 4:48/km
    assert average_pace(_stream([4.0] * 100 + [6.0] * 100)) == pytest.approx(4.8)
    assert average_pace(None) is None


def test_ratios():
    assert pace_variability_index(5.5, 5.0) == 1.1
    assert pace_variability_index(None, 5.0) is None
    assert efficiency_factor(5.0, 150) == pytest.approx(1.333)
    assert efficiency_factor(5.0, 0) is None


def test_aerobic_decoupling_from_rising_heart_rate():
    pace = _stream([5.0] * 600)
    hr = _stream([140.0] * 300 + [154.0] * 300)
    decoupling = aerobic_decoupling(pace, hr)
    assert decoupling == pytest.approx(9.1)
    assert decoupling_category(decoupling) == "Good"


def test_aerobic_decoupling_needs_both_channels():
    assert aerobic_decoupling(_stream([5.0] * 59), _stream([150.0] * 59)) is None
    assert aerobic_decoupling(_stream([5.0] * 600), None) is None
    assert decoupling_category(None) == "Unknown"
    assert decoupling_category(2.0) == "Excellent (Good aerobic base)"
    assert decoupling_category(20.0) == "Poor (Significant fatigue)"


def test_running_tss():
    assert running_training_stress_score(3600, 5.0, 5.0) == 100
    assert running_training_stress_score(3600, 5.0, 4.5) == 81
    assert running_training_stress_score(3600, 5.0, None) is None


@pytest.mark.parametrize(
    "cadence,category",
    [(150, "Low (Consider increasing)"), (165, "Below Average"), (175, "Good"), (185, "Excellent"), (195, "Elite")],
)
def test_cadence_categories(cadence, category):
    assert cadence_category(cadence) == category


def test_calculate_running_metrics():
    channels = ActivityChannels(
        pace=_stream([5.0] * 3601),
        heart_rate=_stream([150.0] * 3601),
        avg_heart_rate=150,
        avg_cadence=88,
    )
    metrics = calculate_running_metrics(channels, threshold_pace=5.0)

    assert metrics.avg_pace == pytest.approx(5.0)
    assert metrics.normalized_graded_pace == pytest.approx(5.0)
    assert metrics.pace_variability_index == 1.0
    assert metrics.efficiency_factor == pytest.approx(1.333)
    assert metrics.aerobic_decoupling == pytest.approx(0.0)
    assert metrics.running_tss == 100
    assert metrics.avg_cadence_spm == 176
    assert metrics.cadence_category == "Good"


def test_calculate_running_metrics_without_pace():
    assert calculate_running_metrics(ActivityChannels()) is None

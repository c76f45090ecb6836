import pytest

from training_signals.metrics.classification import (
    INTENSITY_EFFORT,
    MIXED_EFFORT,
    RACE_EFFORT,
    Z2,
    classify_average_zones,
    classify_ride,
    classify_run,
    classify_zone_distribution,
)
from training_signals.metrics.hr_metrics import hr_zone_distribution
from training_signals.metrics.power_metrics import power_zone_distribution
from training_signals.models.types import ZoneDistribution
from training_signals.utils.config import default_config


def _distribution(*percentages):
    pct = dict(zip(range(1, 7), percentages))
    return ZoneDistribution(percentages=pct, counts={z: 0 for z in pct}, total_points=100)


@pytest.mark.parametrize(
    "percentages,expected",
    [
        ((10, 80, 5, 3, 2, 0), (Z2, None)),
        ((0, 10, 5, 5, 40, 40), (RACE_EFFORT, None)),
        ((0, 10, 40, 30, 15, 5), (INTENSITY_EFFORT, None)),
        ((20, 45, 20, 5, 5, 5), (MIXED_EFFORT, "Z2")),
        ((40, 20, 20, 5, 5, 10), (MIXED_EFFORT, None)),
    ],
)
def test_classify_zone_distribution(percentages, expected):
    assert classify_zone_distribution(_distribution(*percentages)) == expected


def test_z2_needs_little_time_above_threshold():
    # 80% in Z2 but 10% above Z4 is not an easy session
    assert classify_zone_distribution(_distribution(5, 80, 5, 0, 5, 5)) == (MIXED_EFFORT, "Z2")


@pytest.mark.parametrize(
    "avg_zone,max_zone,category",
    [(2, 4, Z2), (2, 5, MIXED_EFFORT), (5, 6, RACE_EFFORT), (3, 5, INTENSITY_EFFORT), (1, 2, MIXED_EFFORT)],
)
def test_classify_average_zones(avg_zone, max_zone, category):
    assert classify_average_zones(avg_zone, max_zone) == category


def test_ride_from_power_stream():
    distribution = power_zone_distribution([130.0] * 100, ftp=200)
    effort = classify_ride(distribution)
    assert effort.category == Z2
    assert effort.source == "power"
    assert effort.data_type == "detailed"
    assert effort.label == "Z2"


def test_ride_from_average_power_only():
    effort = classify_ride(avg_power=200, max_power=260, ftp=200)
    assert effort.category == INTENSITY_EFFORT
    assert effort.data_type == "basic"


def test_ride_without_ftp_is_mixed():
    effort = classify_ride(avg_power=200, max_power=260)
    assert effort.category == MIXED_EFFORT
    assert effort.source == "none"


def test_run_from_heart_rate_stream():
    bounds = default_config().get_hr_zones_bpm()
    distribution = hr_zone_distribution([150] * 60 + [165] * 30 + [185] * 10, bounds)
    effort = classify_run(distribution)
    assert effort.category == INTENSITY_EFFORT
    assert effort.source == "heart_rate"


def test_run_from_average_heart_rate_only():
    bounds = default_config().get_hr_zones_bpm()
    assert classify_run(avg_hr=130, max_hr=165, zone_bounds_bpm=bounds).category == Z2
    assert classify_run().category == MIXED_EFFORT


def test_mixed_label_carries_tendency():
    effort = classify_ride(_distribution(20, 45, 20, 5, 5, 5))
    assert effort.label == "Mixed Effort (-> Z2)"

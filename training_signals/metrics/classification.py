"""
Effort classification of an activity from its power or heart-rate zones.
A zone distribution is preferred; average and maximum values are the fallback.
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from ..models.types import EffortClassification, ZoneDistribution
from .hr_metrics import hr_zone
from .power_metrics import power_zone

Z2 = "Z2"
INTENSITY_EFFORT = "Intensity Effort"
RACE_EFFORT = "Race Effort"
MIXED_EFFORT = "Mixed Effort"

Z2_MIN_SHARE = 75.0  # percent of samples in zone 2
Z2_MAX_ABOVE_Z4 = 5.0
DOMINANT_SHARE = 80.0
TENDENCY_MIN_SHARE = 30.0


def classify_zone_distribution(distribution: ZoneDistribution) -> Tuple[str, Optional[str]]:
    """Category and, for mixed efforts, the dominant tendency (or None)."""
    p = distribution.percentages
    above_z4 = p[5] + p[6]
    z3_to_z5 = p[3] + p[4] + p[5]

    if p[2] >= Z2_MIN_SHARE and above_z4 <= Z2_MAX_ABOVE_Z4:
        return Z2, None
    if above_z4 >= DOMINANT_SHARE:
        return RACE_EFFORT, None
    if z3_to_z5 >= DOMINANT_SHARE:
        return INTENSITY_EFFORT, None

    name, share = max((("Z2", p[2]), ("Intensity", z3_to_z5), ("Race", above_z4)), key=lambda t: t[1])
    return MIXED_EFFORT, name if share > TENDENCY_MIN_SHARE else None


def classify_average_zones(avg_zone: int, max_zone: int) -> str:
    if avg_zone == 2 and max_zone <= 4:
        return Z2
    if avg_zone >= 5:
        return RACE_EFFORT
    if avg_zone in (3, 4):
        return INTENSITY_EFFORT
    return MIXED_EFFORT


def classify_ride(power_distribution: Optional[ZoneDistribution] = None,
                  avg_power: Optional[float] = None, max_power: Optional[float] = None,
                  ftp: Optional[float] = None) -> EffortClassification:
    """Classify a ride by power; without FTP or power data it is a mixed effort."""
    if power_distribution is not None:
        category, tendency = classify_zone_distribution(power_distribution)
        return EffortClassification(category, tendency, source="power", data_type="detailed")
    if avg_power and max_power and ftp and ftp > 0:
        category = classify_average_zones(power_zone(avg_power, ftp), power_zone(max_power, ftp))
        return EffortClassification(category, source="power", data_type="basic")
    return EffortClassification(MIXED_EFFORT)


def classify_run(hr_distribution: Optional[ZoneDistribution] = None,
                 avg_hr: Optional[float] = None, max_hr: Optional[float] = None,
                 zone_bounds_bpm: Optional[Sequence[float]] = None) -> EffortClassification:
    """Classify a run by heart rate; without heart-rate data it is a mixed effort."""
    if hr_distribution is not None:
        category, tendency = classify_zone_distribution(hr_distribution)
        return EffortClassification(category, tendency, source="heart_rate", data_type="detailed")
    if avg_hr and max_hr and zone_bounds_bpm is not None:
        category = classify_average_zones(hr_zone(avg_hr, zone_bounds_bpm), hr_zone(max_hr, zone_bounds_bpm))
        return EffortClassification(category, source="heart_rate", data_type="basic")
    return EffortClassification(MIXED_EFFORT)

"""
Heart-rate zone bucketing and HR-based training stress.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

import numpy as np

from ..models.types import ChannelStream, ZoneDistribution

HR_ZONE_LABELS = {
    1: "Z1: Recovery",
    2: "Z2: Endurance",
    3: "Z3: Tempo",
    4: "Z4: Threshold",
    5: "Z5: VO2 Max",
    6: "Z6: Anaerobic",
}


def hr_zone(heart_rate: float, zone_bounds_bpm: Sequence[float]) -> int:
    """Zone 1-6 for a heart rate given the upper bounds of zones 1-5."""
    return int(np.searchsorted(np.asarray(zone_bounds_bpm, dtype=float), heart_rate, side="right")) + 1


def hr_zone_distribution(heart_rate: Union[ChannelStream, Iterable[float]],
                         zone_bounds_bpm: Sequence[float]) -> Optional[ZoneDistribution]:
    """Share of plausible heart-rate samples (1-249 bpm) in each zone."""
    if isinstance(heart_rate, ChannelStream):
        values = heart_rate.values
    else:
        values = np.asarray(list(heart_rate), dtype=float)
    values = values[np.isfinite(values) & (values > 0) & (values < 250)]
    if len(values) == 0:
        return None

    zones = np.searchsorted(np.asarray(zone_bounds_bpm, dtype=float), values, side="right") + 1
    counts = {zone: int((zones == zone).sum()) for zone in HR_ZONE_LABELS}
    total = len(values)
    return ZoneDistribution(
        percentages={zone: round(count / total * 100, 1) for zone, count in counts.items()},
        counts=counts,
        total_points=total,
        labels=dict(HR_ZONE_LABELS),
    )


def hr_training_stress_score(duration_s: Optional[float], avg_hr: Optional[float],
                             max_hr: Optional[float], resting_hr: float = 50) -> Optional[int]:
    """hrTSS: hours * (heart rate reserve fraction)^2 * 100, reserve clamped to [0, 1]."""
    if not duration_s or avg_hr is None or max_hr is None or max_hr <= resting_hr:
        return None
    reserve = (avg_hr - resting_hr) / (max_hr - resting_hr)
    reserve = min(max(reserve, 0.0), 1.0)
    return int(round(duration_s / 3600 * reserve ** 2 * 100))

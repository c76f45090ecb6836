"""
Pace-based running metrics: Normalized Graded Pace, efficiency, aerobic decoupling and running TSS.
Paces are in min/km like the pace channel; threshold pace is passed explicitly.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from ..models.types import ActivityChannels, ChannelStream, RunningMetrics

NGP_WINDOW = 30  # samples, trailing
GRADE_EFFORT_PER_PERCENT = 0.035
MIN_DECOUPLING_POINTS = 60

_DECOUPLING_CATEGORIES = (
    (5, "Excellent (Good aerobic base)"),
    (10, "Good"),
    (15, "Fair (Some fatigue)"),
)

_CADENCE_CATEGORIES = (
    (160, "Low (Consider increasing)"),
    (170, "Below Average"),
    (180, "Good"),
    (190, "Excellent"),
)


def _aligned(stream: Optional[ChannelStream], time: np.ndarray) -> Optional[np.ndarray]:
    """Values of `stream` interpolated onto `time`."""
    if stream is None or len(stream) == 0:
        return None
    return np.interp(time, stream.time, stream.values)


def grade_adjusted_pace(pace, grade_percent):
    """Flat-equivalent pace; every percent of climb counts as 3.5% more effort."""
    return pace * (1 - grade_percent * GRADE_EFFORT_PER_PERCENT)


def average_pace(pace: Optional[ChannelStream]) -> Optional[float]:
    """Pace at the average speed."""
    if pace is None or len(pace) == 0:
        return None
    return round(float(len(pace.values) / np.sum(1.0 / pace.values)), 3)


def normalized_graded_pace(pace: Optional[ChannelStream], altitude: Optional[ChannelStream] = None,
                           distance: Optional[ChannelStream] = None) -> Optional[float]:
    """Normalized Graded Pace (min/km).

    Grade-adjusted paces from the second sample on are smoothed with a trailing
    30-sample mean, then combined as the fourth root of the mean fourth power.
    Without both altitude and distance the course is treated as flat.
    Fewer than 30 samples yields None.
    """
    if pace is None or len(pace) < NGP_WINDOW:
        return None

    grade = np.zeros(len(pace))
    elevation = _aligned(altitude, pace.time)
    travelled = _aligned(distance, pace.time)
    if elevation is not None and travelled is not None:
        rise = np.diff(elevation)
        run = np.diff(travelled)
        grade[1:] = np.divide(rise, run, out=np.zeros_like(rise), where=run > 0) * 100

    graded = grade_adjusted_pace(pace.values[1:], grade[1:])
    rolling = pd.Series(graded).rolling(window=NGP_WINDOW, min_periods=1).mean()
    return round(float(np.power(rolling.pow(4).mean(), 0.25)), 3)


def pace_variability_index(ngp: Optional[float], avg_pace: Optional[float]) -> Optional[float]:
    if ngp is None or not avg_pace:
        return None
    return round(ngp / avg_pace, 2)


def efficiency_factor(ngp: Optional[float], avg_hr: Optional[float]) -> Optional[float]:
    """Normalized graded speed (m/min) per beat; higher is better."""
    if not ngp or not avg_hr:
        return None
    return round(1000.0 / ngp / avg_hr, 3)


def aerobic_decoupling(pace: Optional[ChannelStream], heart_rate: Optional[ChannelStream]) -> Optional[float]:
    """Drop in speed per beat from the first to the second half, in percent.

    Heart rate is interpolated onto the pace samples and the halves split by
    sample count. Needs at least 60 pace samples.
    """
    if pace is None or len(pace) < MIN_DECOUPLING_POINTS:
        return None
    hr = _aligned(heart_rate, pace.time)
    if hr is None:
        return None

    half = len(pace) // 2
    speed = 1.0 / pace.values
    first = speed[:half].mean() / hr[:half].mean()
    second = speed[half:].mean() / hr[half:].mean()
    return round(float((first - second) / first * 100), 1)


def decoupling_category(decoupling: Optional[float]) -> str:
    if decoupling is None:
        return "Unknown"
    for upper, name in _DECOUPLING_CATEGORIES:
        if decoupling < upper:
            return name
    return "Poor (Significant fatigue)"


def running_training_stress_score(duration_s: Optional[float], ngp: Optional[float],
                                  threshold_pace: Optional[float]) -> Optional[int]:
    """rTSS = hours * (threshold pace / NGP)^2 * 100."""
    if not duration_s or not ngp or not threshold_pace or threshold_pace <= 0:
        return None
    intensity = threshold_pace / ngp
    return int(round(duration_s / 3600 * intensity ** 2 * 100))


def cadence_category(cadence_spm: Optional[float]) -> str:
    if not cadence_spm:
        return "Unknown"
    for upper, name in _CADENCE_CATEGORIES:
        if cadence_spm < upper:
            return name
    return "Elite"


def calculate_running_metrics(channels: ActivityChannels, threshold_pace: Optional[float] = None,
                              duration_s: Optional[float] = None) -> Optional[RunningMetrics]:
    """Aggregate running metrics for one activity; None without a pace channel."""
    pace = channels.pace
    if pace is None or len(pace) == 0:
        return None

    if duration_s is None:
        duration_s = pace.duration_s

    avg = average_pace(pace)
    ngp = normalized_graded_pace(pace, channels.altitude, channels.distance)
    decoupling = aerobic_decoupling(pace, channels.heart_rate)
    # FIT records running cadence per leg
    cadence = channels.avg_cadence * 2 if channels.avg_cadence else None

    return RunningMetrics(
        avg_pace=avg,
        normalized_graded_pace=ngp,
        pace_variability_index=pace_variability_index(ngp, avg),
        efficiency_factor=efficiency_factor(ngp, channels.avg_heart_rate),
        aerobic_decoupling=decoupling,
        decoupling_category=decoupling_category(decoupling) if decoupling is not None else None,
        running_tss=running_training_stress_score(duration_s, ngp, threshold_pace),
        avg_cadence_spm=cadence,
        cadence_category=cadence_category(cadence) if cadence else None,
    )

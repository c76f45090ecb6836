"""
Power-derived training metrics: Normalized Power, IF, TSS, FTP estimates and power zones.
All functions take FTP explicitly and return None when their inputs are insufficient.
"""
from __future__ import annotations

from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from ..models.types import ActivityChannels, ChannelStream, PowerMetrics, ZoneDistribution
from ..utils.config import POWER_ZONE_BOUNDS

NP_WINDOW = 30  # samples
FTP_20MIN_WINDOW_S = 20 * 60
FTP_5MIN_WINDOW_S = 5 * 60
FTP_20MIN_FACTOR = 0.95
FTP_5MIN_FACTOR = 0.76

POWER_ZONE_LABELS = {
    1: "Z1: Active Recovery (<55% FTP)",
    2: "Z2: Endurance (55-75% FTP)",
    3: "Z3: Tempo (75-90% FTP)",
    4: "Z4: Threshold (90-105% FTP)",
    5: "Z5: VO2 Max (105-120% FTP)",
    6: "Z6: Anaerobic (>120% FTP)",
}

_IF_CATEGORIES = (
    (0.65, "Recovery"),
    (0.75, "Endurance"),
    (0.85, "Tempo"),
    (0.95, "Threshold"),
    (1.05, "VO2 Max"),
)

_TSS_CATEGORIES = (
    (150, "Low"),
    (300, "Medium"),
    (450, "High"),
)


def _values(power) -> np.ndarray:
    if isinstance(power, ChannelStream):
        return power.values
    return np.asarray(power, dtype=float)


def normalized_power(power: Union[ChannelStream, Iterable[float]]) -> Optional[int]:
    """Normalized Power using a centred 30-sample rolling mean of the non-negative samples.

    The window shrinks at the edges; fewer than 30 samples yields None.
    """
    values = _values(power)
    values = values[np.isfinite(values) & (values >= 0)]
    if len(values) < NP_WINDOW:
        return None
    rolling = pd.Series(values).rolling(window=NP_WINDOW, center=True, min_periods=1).mean()
    mean_fourth = rolling.pow(4).mean()
    return int(round(float(np.power(mean_fourth, 0.25))))


def intensity_factor(np_watts: Optional[float], ftp: Optional[float]) -> Optional[float]:
    if np_watts is None or not ftp or ftp <= 0:
        return None
    return np_watts / ftp


def training_stress_score(duration_s: Optional[float], np_watts: Optional[float],
                          ftp: Optional[float]) -> Optional[int]:
    """TSS = duration * NP * IF / (FTP * 3600) * 100."""
    intensity = intensity_factor(np_watts, ftp)
    if intensity is None or duration_s is None or duration_s <= 0:
        return None
    return int(round(duration_s * np_watts * intensity / (ftp * 3600) * 100))


def variability_index(np_watts: Optional[float], avg_power: Optional[float]) -> Optional[float]:
    if np_watts is None or not avg_power:
        return None
    return round(np_watts / avg_power, 2)


def work_kj(avg_power: Optional[float], duration_s: Optional[float]) -> Optional[int]:
    if avg_power is None or duration_s is None:
        return None
    return int(round(avg_power * duration_s / 1000))


def watts_per_kg(power: Optional[float], mass_kg: Optional[float]) -> Optional[float]:
    if power is None or not mass_kg or mass_kg <= 0:
        return None
    return round(power / mass_kg, 2)


def intensity_factor_category(intensity: Optional[float]) -> Optional[str]:
    if intensity is None:
        return None
    for upper, name in _IF_CATEGORIES:
        if intensity < upper:
            return name
    return "Anaerobic"


def tss_category(tss: Optional[float]) -> Optional[str]:
    if tss is None:
        return None
    for upper, name in _TSS_CATEGORIES:
        if tss < upper:
            return name
    return "Very High"


def best_average_power(stream: ChannelStream, window_s: float) -> Optional[float]:
    """Best mean power over any time window of `window_s` seconds.

    A window counts only when it fits inside the recorded span, allowing one
    median sample interval after the last sample.
    """
    if stream is None or len(stream) < 2:
        return None
    values = stream.values
    time = stream.time
    dt = float(np.median(np.diff(time)))
    starts = np.arange(len(time))
    valid = time + window_s <= time[-1] + dt
    if not valid.any():
        return None

    ends = np.searchsorted(time, time + window_s, side="left")
    cumulative = np.concatenate(([0.0], np.cumsum(values)))
    counts = ends - starts
    starts, ends, counts = starts[valid], ends[valid], counts[valid]
    nonempty = counts > 0
    if not nonempty.any():
        return None
    means = (cumulative[ends[nonempty]] - cumulative[starts[nonempty]]) / counts[nonempty]
    return float(means.max())


def estimate_ftp_from_20min(stream: ChannelStream) -> Optional[int]:
    best = best_average_power(stream, FTP_20MIN_WINDOW_S)
    return None if best is None else int(round(best * FTP_20MIN_FACTOR))


def estimate_ftp_from_5min(stream: ChannelStream) -> Optional[int]:
    best = best_average_power(stream, FTP_5MIN_WINDOW_S)
    return None if best is None else int(round(best * FTP_5MIN_FACTOR))


def estimate_ftp(streams: Union[ChannelStream, Iterable[ChannelStream]]) -> Optional[int]:
    """Estimate FTP from one or more power streams.

    The best 20-minute estimate across all streams wins; the 5-minute estimate
    is used only when no stream covers 20 minutes.
    """
    if isinstance(streams, ChannelStream):
        streams = [streams]
    streams = [s for s in streams if s is not None]

    from_20 = [e for e in (estimate_ftp_from_20min(s) for s in streams) if e is not None]
    if from_20:
        return max(from_20)
    from_5 = [e for e in (estimate_ftp_from_5min(s) for s in streams) if e is not None]
    return max(from_5) if from_5 else None


def power_zone(watts: float, ftp: Optional[float]) -> Optional[int]:
    """Zone 1-6 of a power value relative to FTP."""
    if not ftp or ftp <= 0:
        return None
    ratio = watts / ftp
    for zone, upper in enumerate(POWER_ZONE_BOUNDS, start=1):
        if ratio < upper:
            return zone
    return len(POWER_ZONE_BOUNDS) + 1


def power_zone_label(zone: int) -> str:
    return POWER_ZONE_LABELS[zone]


def power_zone_distribution(power: Union[ChannelStream, Iterable[float]],
                            ftp: Optional[float]) -> Optional[ZoneDistribution]:
    """Share of non-negative power samples in each zone."""
    if not ftp or ftp <= 0:
        return None
    values = _values(power)
    values = values[np.isfinite(values) & (values >= 0)]
    if len(values) == 0:
        return None

    zones = np.searchsorted(np.asarray(POWER_ZONE_BOUNDS), values / ftp, side="right") + 1
    counts = {zone: int((zones == zone).sum()) for zone in POWER_ZONE_LABELS}
    total = len(values)
    return ZoneDistribution(
        percentages={zone: round(count / total * 100, 1) for zone, count in counts.items()},
        counts=counts,
        total_points=total,
        labels=dict(POWER_ZONE_LABELS),
    )


def calculate_power_metrics(channels: ActivityChannels, ftp: Optional[float],
                            duration_s: Optional[float] = None,
                            mass_kg: Optional[float] = None) -> Optional[PowerMetrics]:
    """Aggregate power metrics for one activity; None without a power channel."""
    power = channels.power
    if power is None or len(power) == 0:
        return None

    if duration_s is None:
        duration_s = power.duration_s

    avg_power = channels.avg_power
    np_watts = normalized_power(power)
    intensity = intensity_factor(np_watts, ftp)
    tss = training_stress_score(duration_s, np_watts, ftp)

    return PowerMetrics(
        avg_power=avg_power,
        max_power=channels.max_power,
        normalized_power=np_watts,
        intensity_factor=round(intensity, 3) if intensity is not None else None,
        training_stress_score=tss,
        variability_index=variability_index(np_watts, avg_power),
        work_kj=work_kj(avg_power, duration_s),
        watts_per_kg=watts_per_kg(avg_power, mass_kg),
        intensity_category=intensity_factor_category(intensity),
        tss_category=tss_category(tss),
        ftp_estimate=estimate_ftp(power),
        zone_distribution=power_zone_distribution(power, ftp),
    )

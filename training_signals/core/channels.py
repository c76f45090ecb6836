"""
Channel projection: turns decoded records into aligned, gap-filled telemetry streams.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

import numpy as np

from ..models.types import ActivityChannels, ChannelStream
from ..utils.config import DecoderSettings

# (channel attribute, record key, settings range attribute, strictly positive after filling)
_CHANNEL_SOURCES = (
    ("heart_rate", "heart_rate", "heart_rate_range", True),
    ("power", "power", "power_range", False),
    ("cadence", "cadence", "cadence_range", True),
    ("speed", "speed", "speed_range", False),
    ("altitude", "altitude", "altitude_range", False),
    ("distance", "distance", "distance_range", False),
    ("latitude", "lat", "latitude_range", False),
    ("longitude", "lon", "longitude_range", False),
)


def interpolate_gaps(values: np.ndarray) -> Optional[np.ndarray]:
    """
    Fill NaN gaps linearly between the nearest valid neighbours.

    Leading and trailing gaps take the nearest valid value. Returns None when
    nothing in the series is valid.
    """
    values = np.asarray(values, dtype=float)
    valid = ~np.isnan(values)
    if not valid.any():
        return None
    if valid.all():
        return values.copy()
    idx = np.arange(len(values))
    return np.interp(idx, idx[valid], values[valid])


def _plausible(value: Any, low: float, high: float) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return np.nan
    if math.isnan(value) or value < low or value > high:
        return np.nan
    return float(value)


def project_channels(records: List[Dict[str, Any]], settings: Optional[DecoderSettings] = None) -> ActivityChannels:
    """Project timestamped records onto per-channel value/time streams with summaries."""
    settings = settings or DecoderSettings()
    channels = ActivityChannels()

    timed = [r for r in records if r.get("timestamp") is not None]
    if not timed:
        return channels

    t0 = timed[0]["timestamp"]
    elapsed = np.array(
        [math.floor((r["timestamp"] - t0).total_seconds()) for r in timed], dtype=float
    )

    for attr, key, range_attr, strictly_positive in _CHANNEL_SOURCES:
        low, high = getattr(settings, range_attr)
        raw = np.array([_plausible(r.get(key), low, high) for r in timed], dtype=float)
        filled = interpolate_gaps(raw)
        if filled is None:
            continue
        keep = filled > 0 if strictly_positive else (filled >= low) & (filled <= high)
        if keep.any():
            setattr(channels, attr, ChannelStream(filled[keep], elapsed[keep]))

    if channels.speed is not None:
        channels.pace = derive_pace(channels.speed, settings.max_pace)

    _summarize(channels)
    return channels


def derive_pace(speed: ChannelStream, max_pace: float = 20.0) -> Optional[ChannelStream]:
    """Convert a km/h speed stream to min/km pace, keeping paces in (0, max_pace)."""
    moving = speed.values > 0
    if not moving.any():
        return None
    pace = 60.0 / speed.values[moving]
    time = speed.time[moving]
    keep = (pace > 0) & (pace < max_pace)
    if not keep.any():
        return None
    return ChannelStream(pace[keep], time[keep])


def _positive_round(stream: Optional[ChannelStream], reducer) -> Optional[int]:
    if stream is None:
        return None
    positive = stream.values[stream.values > 0]
    if len(positive) == 0:
        return None
    return int(round(float(reducer(positive))))


def _summarize(channels: ActivityChannels):
    channels.avg_power = _positive_round(channels.power, np.mean)
    channels.max_power = _positive_round(channels.power, np.max)
    channels.avg_cadence = _positive_round(channels.cadence, np.mean)
    channels.avg_heart_rate = _positive_round(channels.heart_rate, np.mean)
    channels.max_heart_rate = _positive_round(channels.heart_rate, np.max)

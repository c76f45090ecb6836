from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


@dataclass
class FitHeader:
    header_size: int
    protocol_version: int
    profile_version: int
    data_size: int
    data_type: bytes
    header_crc: Optional[int] = None  # only present in 14-byte headers

    @property
    def payload_end(self) -> int:
        return self.header_size + self.data_size


@dataclass(frozen=True)
class FieldDefinition:
    number: int
    size: int
    base_type: int


@dataclass(frozen=True)
class DeveloperFieldDefinition:
    number: int
    size: int
    developer_data_index: int


@dataclass
class MessageDefinition:
    """Layout of the data messages that follow on one local slot."""

    global_message_number: int
    little_endian: bool
    fields: List[FieldDefinition]
    developer_fields: List[DeveloperFieldDefinition] = field(default_factory=list)

    @property
    def data_size(self) -> int:
        return sum(f.size for f in self.fields) + sum(f.size for f in self.developer_fields)


@dataclass
class DeveloperFieldDescriptor:
    developer_data_index: int
    field_number: int
    name: str
    base_type: Optional[int] = None
    units: Optional[str] = None
    scale: Optional[float] = None
    offset: Optional[float] = None


@dataclass
class DeveloperDataId:
    developer_data_index: int
    application_id: Optional[bytes] = None
    developer_id: Optional[bytes] = None
    manufacturer_id: Optional[int] = None
    application_version: Optional[int] = None


@dataclass
class ChannelStream:
    """Aligned value/time arrays for one telemetry channel (time in elapsed seconds)."""

    values: np.ndarray
    time: np.ndarray

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)
        self.time = np.asarray(self.time, dtype=float)
        if len(self.values) != len(self.time):
            raise ValueError(
                f"Channel values and time must align: {len(self.values)} != {len(self.time)}"
            )

    def __len__(self) -> int:
        return len(self.values)

    @property
    def duration_s(self) -> float:
        if len(self.time) < 2:
            return 0.0
        return float(self.time[-1] - self.time[0])


# attribute name -> public channel name
CHANNEL_NAMES: Dict[str, str] = {
    "heart_rate": "heartRate",
    "power": "power",
    "cadence": "cadence",
    "speed": "speed",
    "altitude": "altitude",
    "distance": "distance",
    "latitude": "latitude",
    "longitude": "longitude",
    "pace": "pace",
}


@dataclass
class ActivityChannels:
    heart_rate: Optional[ChannelStream] = None
    power: Optional[ChannelStream] = None
    cadence: Optional[ChannelStream] = None
    speed: Optional[ChannelStream] = None  # km/h
    altitude: Optional[ChannelStream] = None  # m
    distance: Optional[ChannelStream] = None  # m
    latitude: Optional[ChannelStream] = None
    longitude: Optional[ChannelStream] = None
    pace: Optional[ChannelStream] = None  # min/km
    avg_power: Optional[int] = None
    max_power: Optional[int] = None
    avg_cadence: Optional[int] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None

    def available(self) -> List[str]:
        return [name for attr, name in CHANNEL_NAMES.items() if getattr(self, attr) is not None]

    def as_dict(self) -> Dict[str, ChannelStream]:
        return {
            name: getattr(self, attr)
            for attr, name in CHANNEL_NAMES.items()
            if getattr(self, attr) is not None
        }

    def summary(self) -> Dict[str, Optional[int]]:
        return {
            "avgPower": self.avg_power,
            "maxPower": self.max_power,
            "avgCadence": self.avg_cadence,
            "avgHeartRate": self.avg_heart_rate,
            "maxHeartRate": self.max_heart_rate,
        }


@dataclass
class DecodeResult:
    header: FitHeader
    records: List[Dict[str, Any]]
    channels: ActivityChannels
    developer_fields: Dict[Tuple[int, int], DeveloperFieldDescriptor] = field(default_factory=dict)
    developer_data_ids: Dict[int, DeveloperDataId] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    truncated: bool = False

    @property
    def start_time(self) -> Optional[datetime]:
        for record in self.records:
            if "timestamp" in record:
                return record["timestamp"]
        return None

    @property
    def duration_s(self) -> Optional[float]:
        stamps = [r["timestamp"] for r in self.records if "timestamp" in r]
        if not stamps:
            return None
        return (stamps[-1] - stamps[0]).total_seconds()


class WorkoutType(str, Enum):
    NONE = "none"
    STRUCTURED = "structured-intervals"
    FARTLEK = "fartlek-intervals"


class PatternSubtype(str, Enum):
    EQUAL = "equal"
    LADDER = "ladder"
    PYRAMID = "pyramid"
    MIXED = "mixed"


@dataclass
class Segment:
    is_fast: bool
    start_index: int
    end_index: int  # inclusive, index into the core section
    start_time: float
    end_time: float  # start of the next segment, or one sample interval after the last sample
    duration_s: float
    avg_pace: float
    avg_speed: float

    @property
    def n_points(self) -> int:
        return self.end_index - self.start_index + 1

    @property
    def label(self) -> str:
        return "fast" if self.is_fast else "slow"


@dataclass
class IntervalPair:
    fast: Segment
    slow: Segment


@dataclass
class DetectionResult:
    is_interval: bool
    interval_count: int = 0
    workout_type: WorkoutType = WorkoutType.NONE
    pattern_subtype: Optional[PatternSubtype] = None
    coefficient_of_variation: Optional[float] = None
    details: Optional[str] = None
    reason: Optional[str] = None
    debug: Dict[str, Any] = field(default_factory=dict)
    segments: List[Segment] = field(default_factory=list)
    pairs: List[IntervalPair] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_interval": self.is_interval,
            "interval_count": self.interval_count,
            "workout_type": self.workout_type.value,
            "pattern_subtype": self.pattern_subtype.value if self.pattern_subtype else None,
            "coefficient_of_variation": self.coefficient_of_variation,
            "details": self.details,
            "reason": self.reason,
        }


@dataclass
class ZoneDistribution:
    percentages: Dict[int, float]
    counts: Dict[int, int]
    total_points: int
    labels: Dict[int, str] = field(default_factory=dict)


@dataclass
class PowerMetrics:
    avg_power: Optional[int] = None
    max_power: Optional[int] = None
    normalized_power: Optional[int] = None
    intensity_factor: Optional[float] = None
    training_stress_score: Optional[int] = None
    variability_index: Optional[float] = None
    work_kj: Optional[int] = None
    watts_per_kg: Optional[float] = None
    intensity_category: Optional[str] = None
    tss_category: Optional[str] = None
    ftp_estimate: Optional[int] = None
    zone_distribution: Optional[ZoneDistribution] = None


@dataclass
class RunningMetrics:
    """Pace-derived running metrics; paces in min/km."""

    avg_pace: Optional[float] = None
    normalized_graded_pace: Optional[float] = None
    pace_variability_index: Optional[float] = None
    efficiency_factor: Optional[float] = None  # metres per minute per bpm
    aerobic_decoupling: Optional[float] = None  # percent
    decoupling_category: Optional[str] = None
    running_tss: Optional[int] = None
    avg_cadence_spm: Optional[int] = None
    cadence_category: Optional[str] = None


@dataclass
class EffortClassification:
    category: str
    tendency: Optional[str] = None
    source: str = "none"  # "power", "heart_rate" or "none"
    data_type: str = "none"  # "detailed", "basic" or "none"

    @property
    def label(self) -> str:
        return f"{self.category} (-> {self.tendency})" if self.tendency else self.category


@dataclass
class ActivityAnalysis:
    name: str
    decode: DecodeResult
    power: Optional[PowerMetrics] = None
    hr_zones: Optional[ZoneDistribution] = None
    hr_tss: Optional[int] = None
    running: Optional[RunningMetrics] = None
    effort: Optional[EffortClassification] = None
    intervals: Optional[DetectionResult] = None

    def to_summary_row(self) -> Dict[str, Any]:
        channels = self.decode.channels
        row: Dict[str, Any] = {
            "name": self.name,
            "start_time": self.decode.start_time,
            "duration_s": self.decode.duration_s,
            "records": len(self.decode.records),
            "channels": ",".join(channels.available()),
            "avg_hr_bpm": channels.avg_heart_rate,
            "max_hr_bpm": channels.max_heart_rate,
            "avg_power_w": channels.avg_power,
            "max_power_w": channels.max_power,
            "avg_cadence_rpm": channels.avg_cadence,
            "hr_tss": self.hr_tss,
        }
        if self.power is not None:
            row.update(
                {
                    "normalized_power_w": self.power.normalized_power,
                    "intensity_factor": self.power.intensity_factor,
                    "tss": self.power.training_stress_score,
                    "variability_index": self.power.variability_index,
                    "work_kj": self.power.work_kj,
                    "ftp_estimate_w": self.power.ftp_estimate,
                }
            )
        if self.running is not None:
            row.update(
                {
                    "avg_pace_min_km": self.running.avg_pace,
                    "ngp_min_km": self.running.normalized_graded_pace,
                    "aerobic_decoupling_pct": self.running.aerobic_decoupling,
                    "rtss": self.running.running_tss,
                }
            )
        if self.effort is not None:
            row["effort"] = self.effort.label
        if self.intervals is not None:
            row.update(
                {
                    "is_interval": self.intervals.is_interval,
                    "interval_count": self.intervals.interval_count,
                    "workout_type": self.intervals.workout_type.value,
                    "pattern_subtype": (
                        self.intervals.pattern_subtype.value if self.intervals.pattern_subtype else None
                    ),
                }
            )
        return row

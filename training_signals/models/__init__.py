"""Data models shared by the decoder, detector and metrics."""

from .types import (
    ActivityAnalysis,
    ActivityChannels,
    ChannelStream,
    DecodeResult,
    DetectionResult,
    DeveloperDataId,
    DeveloperFieldDefinition,
    DeveloperFieldDescriptor,
    EffortClassification,
    FieldDefinition,
    FitHeader,
    IntervalPair,
    MessageDefinition,
    PatternSubtype,
    PowerMetrics,
    RunningMetrics,
    Segment,
    WorkoutType,
    ZoneDistribution,
)

__all__ = [
    "ActivityAnalysis",
    "ActivityChannels",
    "ChannelStream",
    "DecodeResult",
    "DetectionResult",
    "DeveloperDataId",
    "DeveloperFieldDefinition",
    "DeveloperFieldDescriptor",
    "EffortClassification",
    "FieldDefinition",
    "FitHeader",
    "IntervalPair",
    "MessageDefinition",
    "PatternSubtype",
    "PowerMetrics",
    "RunningMetrics",
    "Segment",
    "WorkoutType",
    "ZoneDistribution",
]

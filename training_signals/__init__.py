"""
Training Signals - decode FIT activity files and analyse their telemetry.

Decodes FIT binaries into aligned heart rate, power, cadence, speed and pace
channels, detects interval structure in pace series, and derives training
metrics such as Normalized Power, TSS and FTP estimates.
"""

from .core.fit_decoder import FITDecodeError, FITDecoder, decode_fit_bytes, decode_fit_file
from .core.interval_detector import IntervalDetector, detect_intervals
from .main import ActivityTracker, process_single_activity
from .metrics.power_metrics import (
    calculate_power_metrics,
    estimate_ftp,
    normalized_power,
    training_stress_score,
)
from .models.types import ActivityChannels, ChannelStream, DecodeResult, DetectionResult
from .utils.config import SignalsConfig, default_config

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "ActivityTracker",
    "process_single_activity",

    # Core functionality
    "FITDecoder",
    "FITDecodeError",
    "decode_fit_bytes",
    "decode_fit_file",
    "IntervalDetector",
    "detect_intervals",
    "calculate_power_metrics",
    "estimate_ftp",
    "normalized_power",
    "training_stress_score",

    # Data models
    "ActivityChannels",
    "ChannelStream",
    "DecodeResult",
    "DetectionResult",

    # Configuration
    "SignalsConfig",
    "default_config",
]

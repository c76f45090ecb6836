"""Core decoding and detection functionality."""

from .channels import derive_pace, interpolate_gaps, project_channels
from .fit_decoder import FITDecodeError, FITDecoder, decode_fit_bytes, decode_fit_file
from .interval_detector import IntervalDetector, detect_intervals

__all__ = [
    "FITDecodeError",
    "FITDecoder",
    "IntervalDetector",
    "decode_fit_bytes",
    "decode_fit_file",
    "derive_pace",
    "detect_intervals",
    "interpolate_gaps",
    "project_channels",
]

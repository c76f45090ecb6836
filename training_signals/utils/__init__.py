"""Configuration helpers."""

from .config import (
    DecoderSettings,
    DetectionSettings,
    HeartRateZoneSettings,
    RiderProfile,
    SignalsConfig,
    default_config,
)

__all__ = [
    "DecoderSettings",
    "DetectionSettings",
    "HeartRateZoneSettings",
    "RiderProfile",
    "SignalsConfig",
    "default_config",
]

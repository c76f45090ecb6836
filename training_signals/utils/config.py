"""
Configuration module for the training signals system.
Every component receives its settings explicitly; there is no global instance.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class RiderProfile:
    """Athlete-specific configuration."""
    ftp: int = 0  # Functional Threshold Power, must be set before power metrics
    hr_max: int = 190
    resting_hr: int = 50
    mass_kg: float = 70.0
    threshold_pace: float = 0.0  # min/km, must be set before running TSS


@dataclass
class DecoderSettings:
    """Plausible channel ranges (inclusive) and decode options."""
    heart_rate_range: Tuple[float, float] = (1, 249)
    power_range: Tuple[float, float] = (0, 1999)
    cadence_range: Tuple[float, float] = (0, 254)
    speed_range: Tuple[float, float] = (0, float("inf"))  # km/h
    altitude_range: Tuple[float, float] = (-500, 9000)  # m
    distance_range: Tuple[float, float] = (0, float("inf"))  # m
    latitude_range: Tuple[float, float] = (-90, 90)
    longitude_range: Tuple[float, float] = (-180, 180)
    max_pace: float = 20.0  # min/km, slower paces are dropped
    check_crc: bool = True


@dataclass
class DetectionSettings:
    """Interval structure detection configuration."""
    min_valid_points: int = 100  # Minimum valid pace samples
    smoothing_window: int = 9  # Centred moving average width (samples)
    core_strategy: str = "adaptive"  # "adaptive" or "fixed"
    core_trim_fraction: float = 0.1  # Used by the fixed strategy
    edge_search_fraction: float = 0.4  # Warm-up/cool-down must end inside this share
    edge_slow_tolerance: float = 0.25  # Slower than middle-third mean by this ratio
    edge_min_points: int = 180  # Shorter slow edges are treated as recoveries
    min_core_points: int = 50
    min_core_duration: float = 300.0  # seconds
    min_pace_range_ratio: float = 0.25  # (max - min) / mean of smoothed core
    hysteresis_band: float = 0.15  # Fraction of the 30-70 percentile speed spread
    confirm_points: int = 3  # Consecutive samples before a state flip
    confirm_seconds: float = 2.0
    min_segment_points: int = 10
    min_segment_duration: float = 30.0  # seconds
    min_speed_separation: float = 0.2  # Relative fast/slow speed gap
    min_alternation_score: float = 0.6
    min_pair_count: int = 4
    high_contrast_min_pairs: int = 3
    high_contrast_cv: float = 0.25
    regularity_cv: float = 0.35  # Max duration CV for structured workouts
    equal_tolerance: float = 0.2  # Fast durations within this share of the median
    shape_tolerance: float = 0.1  # Step tolerance for ladder/pyramid shapes


@dataclass
class HeartRateZoneSettings:
    """Zone upper bounds as fractions of HR max; zone 1 ends at 80% of zone 2's bound."""
    z2_upper: float = 0.75
    z3_upper: float = 0.85
    z4_upper: float = 0.90
    z5_upper: float = 0.95


POWER_ZONE_BOUNDS = (0.55, 0.75, 0.90, 1.05, 1.20)
POWER_ZONE_NAMES = (
    "Active Recovery",
    "Endurance",
    "Tempo",
    "Threshold",
    "VO2 Max",
    "Anaerobic",
)


class SignalsConfig:
    """Main configuration class for the training signals system."""

    def __init__(self):
        self.rider = RiderProfile()
        self.decoder = DecoderSettings()
        self.detection = DetectionSettings()
        self.hr_zones = HeartRateZoneSettings()
        self._user_inputs: Dict[str, Any] = {}

    def set_rider_profile(self, ftp: Optional[int] = None, hr_max: Optional[int] = None,
                          resting_hr: Optional[int] = None, mass_kg: Optional[float] = None,
                          threshold_pace: Optional[float] = None):
        """Set rider profile parameters; omitted values keep their defaults."""
        for key, value in (("ftp", ftp), ("hr_max", hr_max), ("resting_hr", resting_hr),
                           ("mass_kg", mass_kg), ("threshold_pace", threshold_pace)):
            if value is not None:
                setattr(self.rider, key, value)
                self._user_inputs[key] = value

    def update_detection_settings(self, **kwargs):
        """Update interval detection settings dynamically."""
        self._update(self.detection, "detection", kwargs)

    def update_decoder_settings(self, **kwargs):
        """Update decoder settings dynamically."""
        self._update(self.decoder, "decoder", kwargs)

    def update_hr_zone_settings(self, **kwargs):
        """Update heart rate zone bounds dynamically."""
        self._update(self.hr_zones, "hr_zones", kwargs)

    def _update(self, target, prefix: str, values: Dict[str, Any]):
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
                self._user_inputs[f'{prefix}_{key}'] = value
            else:
                raise ValueError(f"Unknown {prefix} setting: {key}")

    def get_power_zones(self) -> Dict[str, Dict[str, Any]]:
        """Calculate power zones based on FTP."""
        if self.rider.ftp <= 0:
            raise ValueError("FTP must be set to calculate power zones")

        ftp = self.rider.ftp
        lows = (0.0,) + POWER_ZONE_BOUNDS
        highs = POWER_ZONE_BOUNDS + (float('inf'),)
        return {
            f'zone{i + 1}': {'min': lo * ftp, 'max': hi * ftp, 'name': name}
            for i, (lo, hi, name) in enumerate(zip(lows, highs, POWER_ZONE_NAMES))
        }

    def get_hr_zones_bpm(self) -> Tuple[float, float, float, float, float]:
        """Upper bounds (bpm) of HR zones 1-5; anything above the last is zone 6."""
        hr_max = self.rider.hr_max
        z = self.hr_zones
        z2 = z.z2_upper * hr_max
        return (0.8 * z2, z2, z.z3_upper * hr_max, z.z4_upper * hr_max, z.z5_upper * hr_max)

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration summary."""
        return {
            'rider_profile': asdict(self.rider),
            'detection_settings': asdict(self.detection),
            'hr_zone_settings': asdict(self.hr_zones),
            'user_inputs': dict(self._user_inputs),
        }

    def validate_configuration(self) -> bool:
        """Validate that required configuration is set and consistent."""
        errors = []

        if self.rider.ftp <= 0:
            errors.append("FTP must be set and greater than 0")

        if self.rider.mass_kg <= 0:
            errors.append("Rider mass must be greater than 0")

        if self.rider.resting_hr >= self.rider.hr_max:
            errors.append("Resting HR must be below HR max")

        if not 0 <= self.rider.threshold_pace < 20:
            errors.append("Threshold pace must be 0 (unset) or below 20 min/km")

        z = self.hr_zones
        if not 0 < z.z2_upper < z.z3_upper < z.z4_upper < z.z5_upper <= 1:
            errors.append("HR zone bounds must be increasing fractions of HR max")

        if self.detection.core_strategy not in ("adaptive", "fixed"):
            errors.append(f"Unknown core strategy: {self.detection.core_strategy}")

        if self.detection.smoothing_window < 1:
            errors.append("Smoothing window must be at least 1 sample")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

        return True


def default_config() -> SignalsConfig:
    """Return a fresh configuration with default settings."""
    return SignalsConfig()

"""Derived training metrics."""

from .classification import classify_ride, classify_run, classify_zone_distribution
from .hr_metrics import hr_training_stress_score, hr_zone, hr_zone_distribution
from .power_metrics import (
    best_average_power,
    calculate_power_metrics,
    estimate_ftp,
    estimate_ftp_from_5min,
    estimate_ftp_from_20min,
    intensity_factor,
    intensity_factor_category,
    normalized_power,
    power_zone,
    power_zone_distribution,
    power_zone_label,
    training_stress_score,
    tss_category,
    variability_index,
    watts_per_kg,
    work_kj,
)
from .running_metrics import (
    aerobic_decoupling,
    calculate_running_metrics,
    efficiency_factor,
    normalized_graded_pace,
    running_training_stress_score,
)

__all__ = [
    "aerobic_decoupling",
    "best_average_power",
    "calculate_power_metrics",
    "calculate_running_metrics",
    "classify_ride",
    "classify_run",
    "classify_zone_distribution",
    "efficiency_factor",
    "estimate_ftp",
    "estimate_ftp_from_5min",
    "estimate_ftp_from_20min",
    "hr_training_stress_score",
    "hr_zone",
    "hr_zone_distribution",
    "intensity_factor",
    "intensity_factor_category",
    "normalized_graded_pace",
    "normalized_power",
    "power_zone",
    "power_zone_distribution",
    "power_zone_label",
    "running_training_stress_score",
    "training_stress_score",
    "tss_category",
    "variability_index",
    "watts_per_kg",
    "work_kj",
]

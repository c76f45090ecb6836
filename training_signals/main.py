"""
Main module for the training signals system.
Provides a high-level interface for decoding FIT files and analysing their channels.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .core.fit_decoder import FITDecoder
from .core.interval_detector import IntervalDetector
from .metrics.classification import classify_ride, classify_run
from .metrics.hr_metrics import hr_training_stress_score, hr_zone_distribution
from .metrics.power_metrics import calculate_power_metrics
from .metrics.running_metrics import calculate_running_metrics
from .models.types import ActivityAnalysis, DecodeResult, DetectionResult
from .utils.config import SignalsConfig, default_config

logger = logging.getLogger(__name__)


class ActivityTracker:
    """
    Orchestrates decoding, derived metrics and interval detection.

    The tracker holds no per-activity state, so one instance can process
    files from several threads.
    """

    def __init__(self, config: Optional[SignalsConfig] = None):
        self.config = config or default_config()
        self.decoder = FITDecoder(self.config.decoder)
        self.detector = IntervalDetector(self.config.detection)

    def process_fit_bytes(self, buffer: bytes, name: str = "activity") -> Optional[ActivityAnalysis]:
        """Decode and analyse one FIT buffer; None when it cannot be decoded."""
        decoded = self.decoder.decode(buffer)
        if decoded is None:
            logger.warning(f"Skipping {name}: not a decodable FIT activity")
            return None
        return self._analyze(name, decoded)

    def process_fit_file(self, file_path: Union[str, Path]) -> Optional[ActivityAnalysis]:
        path = Path(file_path)
        logger.info(f"Processing FIT file: {path.name}")
        return self.process_fit_bytes(path.read_bytes(), path.name)

    def process_multiple_fit_files(self, file_paths: Iterable[Union[str, Path]],
                                   max_workers: int = 4) -> Tuple[Dict[str, ActivityAnalysis], List[str]]:
        """
        Process FIT files in parallel.

        Returns:
            Tuple of (analyses keyed by path, paths that failed)
        """
        paths = [str(p) for p in file_paths]
        results: Dict[str, ActivityAnalysis] = {}
        failed: List[str] = []

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = {pool.submit(self.process_fit_file, p): p for p in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    analysis = future.result()
                except OSError as e:
                    logger.error(f"Failed to read {path}: {e}")
                    failed.append(path)
                    continue
                if analysis is None:
                    failed.append(path)
                else:
                    results[path] = analysis

        logger.info(f"Batch complete: {len(results)} processed, {len(failed)} failed")
        return results, sorted(failed)

    def analyze_pace(self, pace, time=None, duration_hint: Optional[float] = None) -> DetectionResult:
        return self.detector.detect(pace, time, duration_hint)

    def _analyze(self, name: str, decoded: DecodeResult) -> ActivityAnalysis:
        channels = decoded.channels
        rider = self.config.rider
        ftp = rider.ftp if rider.ftp > 0 else None
        duration = decoded.duration_s
        hr_bounds = self.config.get_hr_zones_bpm()

        analysis = ActivityAnalysis(name=name, decode=decoded)
        analysis.power = calculate_power_metrics(channels, ftp, duration, rider.mass_kg)

        if channels.heart_rate is not None:
            analysis.hr_zones = hr_zone_distribution(channels.heart_rate, hr_bounds)
            analysis.hr_tss = hr_training_stress_score(
                duration, channels.avg_heart_rate, rider.hr_max, rider.resting_hr
            )

        if channels.power is not None:
            zones = analysis.power.zone_distribution if analysis.power else None
            analysis.effort = classify_ride(zones, channels.avg_power, channels.max_power, ftp)
        else:
            analysis.effort = classify_run(
                analysis.hr_zones, channels.avg_heart_rate, channels.max_heart_rate, hr_bounds
            )

        if channels.pace is not None:
            threshold_pace = rider.threshold_pace if rider.threshold_pace > 0 else None
            analysis.running = calculate_running_metrics(channels, threshold_pace, duration)
            analysis.intervals = self.analyze_pace(channels.pace.values, channels.pace.time)
        return analysis


def process_single_activity(file_path: Union[str, Path], ftp: Optional[int] = None,
                            config: Optional[SignalsConfig] = None) -> Optional[ActivityAnalysis]:
    """Convenience function to analyse one FIT file."""
    config = config or default_config()
    if ftp is not None:
        config.set_rider_profile(ftp=ftp)
    return ActivityTracker(config).process_fit_file(file_path)

"""
Interval structure detection over pace series.
Decides whether a run alternates between fast and slow efforts and classifies the pattern.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.ndimage import uniform_filter1d

from ..models.types import DetectionResult, IntervalPair, PatternSubtype, Segment, WorkoutType
from ..utils.config import DetectionSettings

logger = logging.getLogger(__name__)

MAX_VALID_PACE = 20.0  # min/km


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population standard deviation over mean; infinite for empty or zero-mean input."""
    arr = np.asarray(values, dtype=float)
    if len(arr) == 0:
        return float("inf")
    mean = arr.mean()
    if mean == 0:
        return float("inf")
    return float(arr.std() / mean)


def format_pace(pace_min_per_km: float) -> str:
    minutes = int(pace_min_per_km)
    seconds = int(round((pace_min_per_km - minutes) * 60))
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    return f"{minutes}:{seconds:02d}/km"


def format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}:{secs:02d}"


class IntervalDetector:
    """
    Detect alternating fast/slow structure in a pace series (min/km).

    The series is smoothed, warm-up and cool-down are cut away, and the core
    is segmented into fast and slow stretches with a hysteresis threshold on
    speed. Alternating segments are paired into intervals and the pairs are
    scored for separation, alternation and regularity.
    """

    def __init__(self, settings: Optional[DetectionSettings] = None):
        self.settings = settings or DetectionSettings()

    def detect(self, pace_series, time_series=None, duration_hint: Optional[float] = None) -> DetectionResult:
        """
        Args:
            pace_series: Pace samples in min/km; invalid values are dropped.
            time_series: Optional elapsed seconds aligned with the pace samples.
            duration_hint: Optional total duration (seconds, or minutes when the
                implied spacing would be under 0.1 s) used when no time axis is given.

        Returns:
            DetectionResult; rejections carry a reason and never raise.
        """
        s = self.settings
        try:
            pace = np.asarray(pace_series if pace_series is not None else [], dtype=float).ravel()
        except (TypeError, ValueError):
            return self._reject("Pace series is not numeric", {"valid_points": 0})
        mask = np.isfinite(pace) & (pace > 0) & (pace < MAX_VALID_PACE)
        valid = pace[mask]
        debug = {"valid_points": int(len(valid))}

        if len(valid) < s.min_valid_points:
            return self._reject(
                f"Insufficient data: {len(valid)} valid pace samples, need {s.min_valid_points}", debug
            )

        time = self._resolve_time_axis(len(pace), mask, time_series, duration_hint)
        smoothed = uniform_filter1d(valid, size=max(1, s.smoothing_window), mode="nearest")

        start, stop = self._core_bounds(smoothed)
        core_pace = smoothed[start:stop]
        core_time = time[start:stop]
        core_duration = float(core_time[-1] - core_time[0]) if len(core_time) > 1 else 0.0
        debug.update({"core_start": start, "core_stop": stop, "core_duration_s": core_duration})

        if len(core_pace) < s.min_core_points or core_duration < s.min_core_duration:
            return self._reject(
                f"Core section too short: {len(core_pace)} samples over {core_duration:.0f}s", debug
            )

        cv = coefficient_of_variation(core_pace)
        pace_range = float((core_pace.max() - core_pace.min()) / core_pace.mean())
        debug.update({"core_cv": cv, "pace_range_ratio": pace_range})
        if pace_range < s.min_pace_range_ratio:
            return self._reject(f"Pace too steady: range is {pace_range:.0%} of mean pace", debug, cv)

        speed = 1.0 / core_pace
        mid, band, pace_mid = self._threshold(speed)
        debug.update({"speed_threshold": mid, "hysteresis_band": band, "pace_midpoint": pace_mid})

        segments = self._segment(speed, core_pace, core_time, mid, band, pace_mid)
        pairs = self._pair(segments)
        debug.update({"segments": len(segments), "pairs": len(pairs)})
        logger.debug(
            "Segments: " + " ".join(f"{seg.label}:{seg.duration_s:.0f}s" for seg in segments)
        )

        fast = [seg for seg in segments if seg.is_fast]
        slow = [seg for seg in segments if not seg.is_fast]
        if not fast or not slow:
            return self._reject("No alternating fast/slow segments found", debug, cv, segments)

        fast_speed = float(np.mean([seg.avg_speed for seg in fast]))
        slow_speed = float(np.mean([seg.avg_speed for seg in slow]))
        separation = (fast_speed - slow_speed) / slow_speed
        debug["speed_separation"] = separation
        if separation < s.min_speed_separation:
            return self._reject(
                f"Fast and slow segments not separated: {separation:.0%} speed difference",
                debug, cv, segments, pairs,
            )

        alternation = self._alternation_score(segments)
        debug["alternation_score"] = alternation
        if alternation < s.min_alternation_score:
            return self._reject(
                f"Irregular alternation: score {alternation:.2f}", debug, cv, segments, pairs
            )

        accepted = len(pairs) >= s.min_pair_count or (
            len(pairs) >= s.high_contrast_min_pairs and cv >= s.high_contrast_cv
        )
        if not accepted:
            return self._reject(f"Only {len(pairs)} interval pairs detected", debug, cv, segments, pairs)

        fast_durations = [seg.duration_s for seg in fast]
        slow_durations = [seg.duration_s for seg in slow]
        fast_cv = coefficient_of_variation(fast_durations)
        slow_cv = coefficient_of_variation(slow_durations)
        debug.update({"fast_duration_cv": fast_cv, "slow_duration_cv": slow_cv})

        if fast_cv <= s.regularity_cv and slow_cv <= s.regularity_cv:
            workout_type = WorkoutType.STRUCTURED
        else:
            workout_type = WorkoutType.FARTLEK
        subtype = self._classify_pattern(fast_durations)

        details = (
            f"{len(pairs)} intervals detected ({workout_type.value}, {subtype.value}). "
            f"Fast: {format_pace(float(np.mean([seg.avg_pace for seg in fast])))} "
            f"for ~{format_duration(float(np.median(fast_durations)))}, "
            f"Slow: {format_pace(float(np.mean([seg.avg_pace for seg in slow])))} "
            f"for ~{format_duration(float(np.median(slow_durations)))}"
        )
        logger.info(details)

        return DetectionResult(
            is_interval=True,
            interval_count=len(pairs),
            workout_type=workout_type,
            pattern_subtype=subtype,
            coefficient_of_variation=cv,
            details=details,
            debug=debug,
            segments=segments,
            pairs=pairs,
        )

    def _reject(self, reason: str, debug: dict, cv: Optional[float] = None,
                segments: Optional[List[Segment]] = None,
                pairs: Optional[List[IntervalPair]] = None) -> DetectionResult:
        logger.info(f"No interval structure: {reason}")
        return DetectionResult(
            is_interval=False,
            interval_count=0,
            workout_type=WorkoutType.NONE,
            coefficient_of_variation=cv,
            reason=reason,
            debug=debug,
            segments=segments or [],
            pairs=pairs or [],
        )

    def _resolve_time_axis(self, raw_length: int, mask: np.ndarray, time_series,
                           duration_hint: Optional[float]) -> np.ndarray:
        n = int(mask.sum())
        if time_series is not None:
            try:
                time = np.asarray(time_series, dtype=float).ravel()
            except (TypeError, ValueError):
                logger.debug("Ignoring non-numeric time axis")
                time = None
            if time is not None:
                if len(time) == raw_length:
                    time = time[mask]
                if len(time) == n and np.all(np.isfinite(time)):
                    return time - time[0]
                logger.debug(f"Ignoring time axis of length {len(time)} for {n} pace samples")

        try:
            duration = float(duration_hint) if duration_hint is not None else 0.0
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric duration hint {duration_hint!r}")
            duration = 0.0
        if np.isfinite(duration) and duration > 0:
            # A hint this small per sample was given in minutes
            if duration / n < 0.1:
                duration *= 60
            return np.arange(n, dtype=float) * (duration / n)

        return np.arange(n, dtype=float)

    def _core_bounds(self, smoothed: np.ndarray) -> Tuple[int, int]:
        s = self.settings
        n = len(smoothed)
        if s.core_strategy == "fixed":
            trim = int(n * s.core_trim_fraction)
            return trim, n - trim

        reference = smoothed[n // 3:(2 * n) // 3].mean()
        slow_edge = smoothed > reference * (1 + s.edge_slow_tolerance)
        limit = int(n * s.edge_search_fraction)

        start = self._edge_length(slow_edge)
        if start < s.edge_min_points or start > limit:
            start = 0
        tail = self._edge_length(slow_edge[::-1])
        if tail < s.edge_min_points or tail > limit:
            tail = 0
        return start, n - tail

    @staticmethod
    def _edge_length(flags: np.ndarray) -> int:
        """Length of the leading run of True values."""
        if len(flags) == 0 or not flags[0]:
            return 0
        breaks = np.flatnonzero(~flags)
        return int(breaks[0]) if len(breaks) else len(flags)

    def _threshold(self, speed: np.ndarray) -> Tuple[float, float, float]:
        """Speed midpoint, hysteresis half-band and the pace midpoint of the 30/70 percentiles."""
        ordered = np.sort(speed)
        n = len(ordered)
        low = ordered[int(n * 0.3)]
        high = ordered[int(n * 0.7)]
        mid = (low + high) / 2
        spread = high - low
        if spread <= 0:
            spread = float(speed.std())
        pace_mid = (1.0 / low + 1.0 / high) / 2
        return float(mid), float(self.settings.hysteresis_band * spread), float(pace_mid)

    def _segment(self, speed: np.ndarray, pace: np.ndarray, time: np.ndarray,
                 mid: float, band: float, pace_mid: float) -> List[Segment]:
        s = self.settings
        n = len(speed)
        is_fast = bool(speed[0] >= mid)
        starts = [0]
        states = [is_fast]
        pending: Optional[int] = None

        for i in range(1, n):
            disagrees = speed[i] < mid - band if is_fast else speed[i] > mid + band
            if not disagrees:
                pending = None
                continue
            if pending is None:
                pending = i
            if i - pending + 1 >= s.confirm_points and time[i] - time[pending] >= s.confirm_seconds:
                is_fast = not is_fast
                starts.append(self._crossing(pace, pace_mid, pending, starts[-1], is_fast))
                states.append(is_fast)
                pending = None

        # the final segment also covers the interval after its last sample
        step = float(np.median(np.diff(time))) if n > 1 else 0.0
        segments = []
        for k, (first, fast) in enumerate(zip(starts, states)):
            if k + 1 < len(starts):
                last = starts[k + 1] - 1
                end_time = float(time[starts[k + 1]])
            else:
                last = n - 1
                end_time = float(time[last]) + step
            duration = end_time - float(time[first])
            n_points = last - first + 1
            if n_points < s.min_segment_points or duration < s.min_segment_duration:
                continue
            segments.append(Segment(
                is_fast=fast,
                start_index=first,
                end_index=last,
                start_time=float(time[first]),
                end_time=end_time,
                duration_s=duration,
                avg_pace=float(pace[first:last + 1].mean()),
                avg_speed=float(speed[first:last + 1].mean()),
            ))
        return segments

    def _crossing(self, pace: np.ndarray, pace_mid: float, index: int, floor: int, to_fast: bool) -> int:
        """Move a confirmed flip back to the first sample past the pace midpoint.

        The smoothed pace ramps linearly across a step, so that crossing marks
        the step on rising and falling edges alike. The walk covers at most one
        smoothing window and keeps at least one sample in the closing segment.
        """
        lowest = max(floor + 1, index - self.settings.smoothing_window)
        while index > lowest and (pace[index - 1] < pace_mid if to_fast else pace[index - 1] > pace_mid):
            index -= 1
        return index

    @staticmethod
    def _pair(segments: List[Segment]) -> List[IntervalPair]:
        pairs = []
        i = 0
        while i < len(segments) - 1:
            a, b = segments[i], segments[i + 1]
            if a.is_fast != b.is_fast:
                pairs.append(IntervalPair(fast=a, slow=b) if a.is_fast else IntervalPair(fast=b, slow=a))
                i += 2
            else:
                i += 1
        return pairs

    @staticmethod
    def _alternation_score(segments: List[Segment]) -> float:
        if len(segments) < 2:
            return 0.0
        changes = sum(1 for a, b in zip(segments, segments[1:]) if a.is_fast != b.is_fast)
        return changes / (len(segments) - 1)

    def _classify_pattern(self, durations: List[float]) -> PatternSubtype:
        tol = self.settings.shape_tolerance
        median = float(np.median(durations))
        if all(abs(d - median) <= self.settings.equal_tolerance * median for d in durations):
            return PatternSubtype.EQUAL
        if len(durations) >= 3:
            peak = int(np.argmax(durations))
            steps = list(zip(durations, durations[1:]))
            if 0 < peak < len(durations) - 1:
                rising = all(b >= a * (1 - tol) for a, b in steps[:peak])
                falling = all(b <= a * (1 + tol) for a, b in steps[peak:])
                if rising and falling and durations[peak] > max(durations[0], durations[-1]) * (1 + tol):
                    return PatternSubtype.PYRAMID
            increasing = all(b >= a * (1 - tol) for a, b in steps)
            decreasing = all(b <= a * (1 + tol) for a, b in steps)
            changed = abs(durations[-1] - durations[0]) > tol * max(durations[0], durations[-1])
            if (increasing or decreasing) and changed:
                return PatternSubtype.LADDER
        return PatternSubtype.MIXED


def detect_intervals(pace_series, time_series=None, duration_hint: Optional[float] = None,
                     settings: Optional[DetectionSettings] = None) -> DetectionResult:
    """Convenience function to run interval detection with the given settings."""
    return IntervalDetector(settings).detect(pace_series, time_series, duration_hint)

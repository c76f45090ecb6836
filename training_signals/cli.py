from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core.fit_decoder import decode_fit_file
from .core.interval_detector import format_pace
from .io.export import export_analyses_csv, export_channels_csv, to_json
from .main import ActivityTracker
from .models.types import ActivityAnalysis, DetectionResult
from .utils.config import SignalsConfig, default_config


def _iter_fit_files_many(inputs: List[str]) -> List[str]:
    files: List[str] = []
    for inp in inputs:
        p = Path(inp)
        if p.is_file():
            files.append(str(p))
        elif p.is_dir():
            files.extend(str(fp) for fp in p.rglob("*") if fp.is_file() and fp.suffix.lower() == ".fit")
    # Deduplicate and sort
    return sorted(dict.fromkeys(files))


def _config_from_args(args: argparse.Namespace) -> SignalsConfig:
    config = default_config()
    config.set_rider_profile(
        ftp=getattr(args, "ftp", None),
        hr_max=getattr(args, "hr_max", None),
        resting_hr=getattr(args, "resting_hr", None),
        mass_kg=getattr(args, "mass", None),
        threshold_pace=getattr(args, "threshold_pace", None),
    )
    return config


def _print_detection(result: DetectionResult) -> None:
    if result.is_interval:
        print(f"🏃 {result.details}")
    else:
        print(f"No interval structure: {result.reason}")


def _print_analysis(analysis: ActivityAnalysis) -> None:
    decoded = analysis.decode
    channels = decoded.channels
    print(f"\n📊 {analysis.name}")
    print(f"   Records: {len(decoded.records)}  Channels: {', '.join(channels.available())}")
    if decoded.duration_s is not None:
        print(f"   Duration: {decoded.duration_s / 60:.1f} min")
    if channels.avg_heart_rate is not None:
        print(f"   💗 HR avg/max: {channels.avg_heart_rate}/{channels.max_heart_rate} bpm")
    if analysis.hr_tss is not None:
        print(f"   hrTSS: {analysis.hr_tss}")
    power = analysis.power
    if power is not None:
        print(f"   🔋 Power avg/max: {power.avg_power}/{power.max_power} W  NP: {power.normalized_power} W")
        if power.intensity_factor is not None:
            print(f"   IF: {power.intensity_factor:.2f} ({power.intensity_category})  "
                  f"TSS: {power.training_stress_score} ({power.tss_category})")
        if power.ftp_estimate is not None:
            print(f"   FTP estimate: {power.ftp_estimate} W")
        if power.zone_distribution is not None:
            for zone, pct in power.zone_distribution.percentages.items():
                print(f"      {power.zone_distribution.labels[zone]}: {pct:.1f}%")
    running = analysis.running
    if running is not None and running.avg_pace is not None:
        line = f"   👟 Pace avg: {format_pace(running.avg_pace)}"
        if running.normalized_graded_pace is not None:
            line += f"  NGP: {format_pace(running.normalized_graded_pace)}"
        print(line)
        if running.aerobic_decoupling is not None:
            print(f"   Decoupling: {running.aerobic_decoupling:.1f}% ({running.decoupling_category})")
        if running.running_tss is not None:
            print(f"   rTSS: {running.running_tss}")
    if analysis.effort is not None:
        print(f"   Effort: {analysis.effort.label}")
    if analysis.intervals is not None:
        print("   ", end="")
        _print_detection(analysis.intervals)


def _cmd_decode(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    result = decode_fit_file(args.file, config.decoder)
    if result is None:
        print(f"Could not decode {args.file}", file=sys.stderr)
        return 1
    if args.json:
        print(to_json(result))
    else:
        print(f"Decoded {len(result.records)} records from {Path(args.file).name}")
        print(f"Channels: {', '.join(result.channels.available()) or 'none'}")
        if result.truncated:
            print("⚠️ File was truncated; partial records returned")
    if args.csv:
        export_channels_csv(result.channels, args.csv)
        print(f"Wrote channels to {args.csv}")
    return 0


def _cmd_intervals(args: argparse.Namespace) -> int:
    tracker = ActivityTracker(_config_from_args(args))
    analysis = tracker.process_fit_file(args.file)
    if analysis is None:
        print(f"Could not decode {args.file}", file=sys.stderr)
        return 1
    if analysis.intervals is None:
        print("No pace channel available for interval detection")
        return 0
    if args.json:
        print(to_json(analysis.intervals))
    else:
        _print_detection(analysis.intervals)
    return 0


def _cmd_metrics(args: argparse.Namespace) -> int:
    tracker = ActivityTracker(_config_from_args(args))
    analysis = tracker.process_fit_file(args.file)
    if analysis is None:
        print(f"Could not decode {args.file}", file=sys.stderr)
        return 1
    _print_analysis(analysis)
    return 0


def _cmd_batch(args: argparse.Namespace) -> int:
    files = _iter_fit_files_many(args.inputs)
    if not files:
        print("No FIT files found", file=sys.stderr)
        return 1

    tracker = ActivityTracker(_config_from_args(args))
    results, failed = tracker.process_multiple_fit_files(files, max_workers=args.workers)
    analyses = [results[f] for f in files if f in results]
    for analysis in analyses:
        _print_analysis(analysis)

    print(f"\n📦 Batch processing complete: {len(analyses)} processed, {len(failed)} failed")
    for path in failed:
        print(f"   • {Path(path).name}")
    if args.output and analyses:
        export_analyses_csv(analyses, args.output)
        print(f"Wrote summary to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode FIT activities and analyse training signals")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_rider_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--ftp", type=int, default=None, help="Functional Threshold Power (W)")
        p.add_argument("--hr-max", dest="hr_max", type=int, default=None, help="Maximum heart rate (bpm)")
        p.add_argument("--resting-hr", dest="resting_hr", type=int, default=None, help="Resting heart rate (bpm)")
        p.add_argument("--mass", type=float, default=None, help="Athlete mass (kg)")
        p.add_argument("--threshold-pace", dest="threshold_pace", type=float, default=None,
                       help="Threshold pace (min/km) for running TSS")

    p_decode = sub.add_parser("decode", help="Decode a FIT file and list its channels")
    p_decode.add_argument("file")
    p_decode.add_argument("--csv", default=None, help="Write channels to this CSV path")
    p_decode.add_argument("--json", action="store_true", help="Print a JSON summary")
    p_decode.set_defaults(func=_cmd_decode)

    p_intervals = sub.add_parser("intervals", help="Detect interval structure in the pace channel")
    p_intervals.add_argument("file")
    p_intervals.add_argument("--json", action="store_true", help="Print the result as JSON")
    p_intervals.set_defaults(func=_cmd_intervals)

    p_metrics = sub.add_parser("metrics", help="Print derived metrics for one activity")
    p_metrics.add_argument("file")
    add_rider_args(p_metrics)
    p_metrics.set_defaults(func=_cmd_metrics)

    p_batch = sub.add_parser("batch", help="Analyse many FIT files in parallel")
    p_batch.add_argument("inputs", nargs="+", help="FIT files or directories")
    p_batch.add_argument("--workers", type=int, default=4, help="Parallel worker threads")
    p_batch.add_argument("--output", default=None, help="Write a per-activity summary CSV")
    add_rider_args(p_batch)
    p_batch.set_defaults(func=_cmd_batch)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if hasattr(args, "file") and not Path(args.file).is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

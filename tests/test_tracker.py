import numpy as np
import pandas as pd
import pytest

from fit_builder import activity_bytes
from training_signals.cli import main
from training_signals.io.export import channels_to_dataframe, to_json
from training_signals.main import ActivityTracker, process_single_activity
from training_signals.utils.config import default_config


def _interval_run_bytes():
    # 4:00/km is 15 km/h (4167 mm/s), 6:00/km is 10 km/h (2778 mm/s)
    speeds = np.tile(np.concatenate([np.full(60, 4167), np.full(60, 2778)]), 10)
    return activity_bytes([{"speed": int(s), "heart_rate": 150} for s in speeds])


def test_process_ride_with_ftp(ride_bytes):
    config = default_config()
    config.set_rider_profile(ftp=250)
    analysis = ActivityTracker(config).process_fit_bytes(ride_bytes, "ride")

    assert analysis.power.normalized_power is not None
    assert analysis.power.intensity_factor is not None
    assert analysis.power.zone_distribution.total_points == 600
    assert analysis.hr_zones.total_points == 600
    assert analysis.hr_tss is not None
    assert not analysis.intervals.is_interval
    assert analysis.effort.source == "power"

    row = analysis.to_summary_row()
    assert row["name"] == "ride"
    assert row["records"] == 600
    assert row["effort"] == analysis.effort.label


def test_process_without_ftp_skips_ftp_based_metrics(ride_bytes):
    analysis = ActivityTracker().process_fit_bytes(ride_bytes)
    assert analysis.power.normalized_power is not None
    assert analysis.power.training_stress_score is None
    assert analysis.power.zone_distribution is None


def test_interval_run_is_detected_end_to_end():
    config = default_config()
    config.set_rider_profile(threshold_pace=5.0)
    analysis = ActivityTracker(config).process_fit_bytes(_interval_run_bytes(), "run")
    assert analysis.power is None
    assert analysis.intervals.is_interval
    assert analysis.intervals.interval_count == 10

    assert analysis.running.avg_pace == pytest.approx(4.8, abs=0.01)
    assert analysis.running.running_tss is not None
    assert analysis.effort.category == "Intensity Effort"
    assert analysis.effort.source == "heart_rate"


def test_undecodable_bytes_return_none():
    assert ActivityTracker().process_fit_bytes(b"not a fit file") is None


def test_batch_processing_collects_failures(tmp_path, ride_bytes):
    paths = []
    for i in range(3):
        path = tmp_path / f"ride_{i}.fit"
        path.write_bytes(ride_bytes)
        paths.append(path)
    bad = tmp_path / "broken.fit"
    bad.write_bytes(b"\x0e" + b"\x00" * 20)
    missing = tmp_path / "missing.fit"

    results, failed = ActivityTracker().process_multiple_fit_files(paths + [bad, missing], max_workers=3)
    assert sorted(results) == sorted(str(p) for p in paths)
    assert failed == sorted([str(bad), str(missing)])


def test_process_single_activity(fit_file):
    analysis = process_single_activity(fit_file, ftp=200)
    assert analysis.power.intensity_factor is not None


def test_channels_to_dataframe(ride_bytes):
    analysis = ActivityTracker().process_fit_bytes(ride_bytes)
    df = channels_to_dataframe(analysis.decode.channels)
    assert list(df.columns) == ["elapsed_s", "heartRate", "power", "cadence", "speed", "pace"]
    assert len(df) == 600
    assert '"records": 600' in to_json(analysis.decode)


def test_cli_decode_writes_csv(fit_file, tmp_path, capsys):
    out = tmp_path / "channels.csv"
    assert main(["decode", str(fit_file), "--csv", str(out)]) == 0
    assert "Decoded 600 records" in capsys.readouterr().out
    assert len(pd.read_csv(out)) == 600


def test_cli_metrics(fit_file, capsys):
    assert main(["metrics", str(fit_file), "--ftp", "250"]) == 0
    output = capsys.readouterr().out
    assert "NP:" in output
    assert "TSS:" in output


def test_cli_reports_undecodable_file(tmp_path, capsys):
    bad = tmp_path / "bad.fit"
    bad.write_bytes(b"garbage")
    assert main(["decode", str(bad)]) == 1
    assert main(["intervals", str(tmp_path / "nope.fit")]) == 1


def test_cli_batch_writes_summary(tmp_path, ride_bytes, capsys):
    for i in range(2):
        (tmp_path / f"ride_{i}.fit").write_bytes(ride_bytes)
    out = tmp_path / "summary.csv"
    assert main(["batch", str(tmp_path), "--workers", "2", "--output", str(out), "--ftp", "250"]) == 0
    summary = pd.read_csv(out)
    assert len(summary) == 2
    assert "normalized_power_w" in summary.columns

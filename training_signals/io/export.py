from __future__ import annotations

import json
from typing import Dict, List

import pandas as pd

from ..models.types import ActivityAnalysis, ActivityChannels, DecodeResult, DetectionResult


def channels_to_dataframe(channels: ActivityChannels) -> pd.DataFrame:
    """One row per elapsed second, one column per channel (outer-joined on time)."""
    columns: Dict[str, pd.Series] = {}
    for name, stream in channels.as_dict().items():
        series = pd.Series(stream.values, index=stream.time)
        # Sub-second records share an elapsed second
        columns[name] = series.groupby(level=0).mean()
    if not columns:
        return pd.DataFrame(columns=["elapsed_s"])
    df = pd.DataFrame(columns).sort_index()
    df.index.name = "elapsed_s"
    return df.reset_index()


def records_to_dataframe(result: DecodeResult) -> pd.DataFrame:
    return pd.DataFrame(result.records)


def export_channels_csv(channels: ActivityChannels, path: str) -> None:
    channels_to_dataframe(channels).to_csv(path, index=False)


def export_analyses_csv(analyses: List[ActivityAnalysis], path: str) -> None:
    rows = [a.to_summary_row() for a in analyses]
    df = pd.DataFrame(rows)
    df.to_csv(path, index=False)


def decode_summary(result: DecodeResult) -> Dict:
    return {
        "protocol_version": result.header.protocol_version,
        "profile_version": result.header.profile_version,
        "records": len(result.records),
        "truncated": result.truncated,
        "start_time": result.start_time,
        "duration_s": result.duration_s,
        "channels": result.channels.available(),
        "summary": result.channels.summary(),
        "developer_fields": sorted(d.name for d in result.developer_fields.values()),
        "meta": result.meta,
    }


def to_json(payload, indent: int = 2) -> str:
    if isinstance(payload, DetectionResult):
        payload = payload.to_dict()
    elif isinstance(payload, DecodeResult):
        payload = decode_summary(payload)
    return json.dumps(payload, indent=indent, default=str)

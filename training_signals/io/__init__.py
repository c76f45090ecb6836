"""Tabular and JSON views of decoded activities."""

from .export import (
    channels_to_dataframe,
    decode_summary,
    export_analyses_csv,
    export_channels_csv,
    records_to_dataframe,
    to_json,
)

__all__ = [
    "channels_to_dataframe",
    "decode_summary",
    "export_analyses_csv",
    "export_channels_csv",
    "records_to_dataframe",
    "to_json",
]

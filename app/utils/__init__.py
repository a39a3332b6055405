"""Utilities package initialization."""
from app.utils.time import (
    generate_time_intervals,
    backfill_end_time,
    live_cutoff_time,
    market_now,
    market_today
)
from app.utils.formatting import export_filename, build_export_document, format_analysis_message

__all__ = [
    "generate_time_intervals",
    "backfill_end_time",
    "live_cutoff_time",
    "market_now",
    "market_today",
    "export_filename",
    "build_export_document",
    "format_analysis_message"
]

"""Pixel drift tracking for canvas renders: diff, history merge and analysis."""

from __future__ import annotations

from .analyzer import HistorySummary, ImageSummary, analyze_history, variable_delta_pixels
from .differ import AlphaPolicy, DiffResult, diff_pixels
from .history import (
    HistoryAccumulator,
    coerce_int,
    empty_history,
    history_violations,
    normalize_history,
)
from .merge import extract_run_deltas, merge_run, pattern_key
from .pixels import RgbaFrame

__version__ = "0.1.0"

__all__ = [
    "AlphaPolicy",
    "DiffResult",
    "HistoryAccumulator",
    "HistorySummary",
    "ImageSummary",
    "RgbaFrame",
    "analyze_history",
    "coerce_int",
    "diff_pixels",
    "empty_history",
    "extract_run_deltas",
    "history_violations",
    "merge_run",
    "normalize_history",
    "pattern_key",
    "variable_delta_pixels",
]

"""Read-only summaries of the cross-run history."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .history import HistoryAccumulator

RANDOMNESS_FACTOR = 1.5
APPEARS_RANDOM = "appears random"
APPEARS_PARTLY_FIXED = "appears partly fixed"
DEFAULT_VARIABLE_LIMIT = 200


@dataclass(frozen=True)
class ImageSummary:
    runs_seen: int
    avg_changed_per_run: float
    union_changed: int
    selection_randomness_hint: str
    pixels_changed_once: int
    pixels_with_fixed_delta: int
    pixels_with_variable_delta: int
    pct_fixed_delta_among_multi: Optional[float]

    @property
    def pixels_changed_multiple(self) -> int:
        return self.pixels_with_fixed_delta + self.pixels_with_variable_delta

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runsSeen": self.runs_seen,
            "avgChangedPerRun": self.avg_changed_per_run,
            "unionChanged": self.union_changed,
            "selectionRandomnessHint": self.selection_randomness_hint,
            "pixelsChangedOnce": self.pixels_changed_once,
            "pixelsChangedMultiple": self.pixels_changed_multiple,
            "pixelsWithFixedDelta": self.pixels_with_fixed_delta,
            "pixelsWithVariableDelta": self.pixels_with_variable_delta,
            "pctFixedDeltaAmongMulti": self.pct_fixed_delta_among_multi,
        }


@dataclass(frozen=True)
class HistorySummary:
    runs: int
    per_image: Dict[str, ImageSummary] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runs": self.runs,
            "perImageSummary": {name: summary.to_dict() for name, summary in self.per_image.items()},
        }


@dataclass(frozen=True)
class VariablePixel:
    pixel: int
    times_changed: int
    patterns: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {"pixel": self.pixel, "timesChanged": self.times_changed, "patterns": dict(self.patterns)}


@dataclass(frozen=True)
class VariablePixelReport:
    total: int
    shown: List[VariablePixel]

    @property
    def hidden(self) -> int:
        return self.total - len(self.shown)


def summarize_image(record: Dict[str, Any]) -> ImageSummary:
    per_run = record.get("perRunChanged") or []
    runs_seen = len(per_run)
    avg_changed = sum(per_run) / runs_seen if runs_seen else 0.0
    union_changed = len(record.get("everChanged") or [])

    single = stable = unstable = 0
    for slot in (record.get("perPixel") or {}).values():
        times = slot.get("n") or 0
        if times == 1:
            single += 1
            continue
        if times < 1:
            continue
        if len(slot.get("patterns") or {}) == 1:
            stable += 1
        else:
            unstable += 1
    multi = stable + unstable
    pct_fixed = round(100 * stable / multi, 2) if multi else None

    # A heuristic, not a statistical test: a union much larger than the
    # typical per-run count means different pixels change from run to run.
    hint = APPEARS_RANDOM if union_changed > avg_changed * RANDOMNESS_FACTOR else APPEARS_PARTLY_FIXED
    return ImageSummary(
        runs_seen=runs_seen,
        avg_changed_per_run=round(avg_changed, 2),
        union_changed=union_changed,
        selection_randomness_hint=hint,
        pixels_changed_once=single,
        pixels_with_fixed_delta=stable,
        pixels_with_variable_delta=unstable,
        pct_fixed_delta_among_multi=pct_fixed,
    )


def analyze_history(history: HistoryAccumulator) -> HistorySummary:
    return HistorySummary(
        runs=history.get("runs") or 0,
        per_image={name: summarize_image(record) for name, record in (history.get("byImage") or {}).items()},
    )


def variable_delta_pixels(
    history: HistoryAccumulator,
    limit_per_image: int = DEFAULT_VARIABLE_LIMIT,
) -> Dict[str, VariablePixelReport]:
    """Pixels that changed at least twice with more than one distinct signed delta.

    Ordered by how often the pixel changed, then by how many patterns it has.
    """
    reports: Dict[str, VariablePixelReport] = {}
    for name, record in (history.get("byImage") or {}).items():
        entries: List[VariablePixel] = []
        for key, slot in (record.get("perPixel") or {}).items():
            patterns = slot.get("patterns") or {}
            times = slot.get("n") or 0
            if times >= 2 and len(patterns) > 1:
                entries.append(VariablePixel(pixel=int(key), times_changed=times, patterns=dict(patterns)))
        entries.sort(key=lambda entry: (-entry.times_changed, -len(entry.patterns)))
        reports[name] = VariablePixelReport(total=len(entries), shown=entries[: max(0, limit_per_image)])
    return reports

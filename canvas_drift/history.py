"""Cross-run change history: canonical shape and lenient normalization.

Canonical JSON shape::

    {
      "runs": int,
      "byImage": {
        "<image name>": {
          "perRunChanged": [int, ...],     # one entry per run the image took part in
          "everChanged": [int, ...],       # pixel indices changed in at least one run
          "perPixel": {
            "<pixel index>": {"n": int, "patterns": {"dr,dg,db,da": int}}
          }
        }
      }
    }

``normalize_history`` maps any JSON-ish value onto that shape and never
raises. It runs on every load from disk and on every write, so the file on
disk is always canonical.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, TypedDict


class PixelStat(TypedDict):
    n: int
    patterns: Dict[str, int]


class ImageHistory(TypedDict):
    perRunChanged: List[int]
    everChanged: List[int]
    perPixel: Dict[str, PixelStat]


class HistoryAccumulator(TypedDict):
    runs: int
    byImage: Dict[str, ImageHistory]


def empty_history() -> HistoryAccumulator:
    return {"runs": 0, "byImage": {}}


def empty_image_history() -> ImageHistory:
    return {"perRunChanged": [], "everChanged": [], "perPixel": {}}


def coerce_int(value: Any) -> int:
    """Best-effort integer coercion; anything unusable becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return int(number) if math.isfinite(number) else 0
    return 0


def pixel_key(value: Any) -> str | None:
    """Canonical ``perPixel`` key for ``value``, or None if it is not a pixel index."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if value >= 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            return str(int(text))
    return None


def _int_list(value: Any) -> List[int]:
    if not isinstance(value, (list, tuple)):
        return []
    return [coerce_int(item) for item in value]


def _normalize_pixel_stat(slot: Any) -> PixelStat:
    if not isinstance(slot, Mapping):
        return {"n": 0, "patterns": {}}
    patterns_in = slot.get("patterns")
    patterns: Dict[str, int] = {}
    if isinstance(patterns_in, Mapping):
        for key, count in patterns_in.items():
            patterns[str(key)] = coerce_int(count)
    return {"n": coerce_int(slot.get("n")), "patterns": patterns}


def _normalize_image(record: Any) -> ImageHistory:
    if not isinstance(record, Mapping):
        return empty_image_history()
    per_pixel: Dict[str, PixelStat] = {}
    per_pixel_in = record.get("perPixel")
    if isinstance(per_pixel_in, Mapping):
        for raw_key, slot in per_pixel_in.items():
            key = pixel_key(raw_key)
            if key is None:
                continue
            per_pixel[key] = _normalize_pixel_stat(slot)
    return {
        "perRunChanged": _int_list(record.get("perRunChanged")),
        "everChanged": _int_list(record.get("everChanged")),
        "perPixel": per_pixel,
    }


def normalize_history(candidate: Any) -> HistoryAccumulator:
    if not isinstance(candidate, Mapping):
        return empty_history()
    out = empty_history()
    out["runs"] = coerce_int(candidate.get("runs"))
    by_image = candidate.get("byImage")
    if isinstance(by_image, Mapping):
        for name, record in by_image.items():
            out["byImage"][str(name)] = _normalize_image(record)
    return out


def history_violations(history: HistoryAccumulator) -> List[str]:
    """Describe every place where ``history`` breaks the accumulator invariants.

    Nothing is repaired; a non-empty result means the document was produced by
    something other than ``merge_run`` (hand edits, foreign tooling, partial
    writes).
    """
    problems: List[str] = []
    runs = history.get("runs", 0)
    for name, record in history.get("byImage", {}).items():
        if len(record["perRunChanged"]) > runs:
            problems.append(f"{name}: {len(record['perRunChanged'])} per-run entries but only {runs} runs")
        ever = set(record["everChanged"])
        for key, stat in record["perPixel"].items():
            total = sum(stat["patterns"].values())
            if total != stat["n"]:
                problems.append(f"{name}[{key}]: patterns sum to {total} but n={stat['n']}")
            if int(key) not in ever:
                problems.append(f"{name}[{key}]: pixel has stats but is missing from everChanged")
    return problems

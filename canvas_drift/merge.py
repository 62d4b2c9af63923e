"""Fold one run's sparse changed-maps into the cross-run history.

The same ``merge_run`` backs both entry points: the client that merges into a
freshly loaded history before a whole-document PUT, and the server-side
``/history/append`` route that loads, merges and writes in one step.
Merging the same run twice counts it twice.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

from .history import HistoryAccumulator, coerce_int, empty_image_history

# pixel index -> signed (dr, dg, db, da)
ChangedMap = Mapping[Any, Sequence[int]]
RunDeltas = Mapping[str, ChangedMap]


def _component(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def pattern_key(delta: Any) -> str:
    """Canonical ``"dr,dg,db,da"`` key for a signed delta."""
    if isinstance(delta, (list, tuple)):
        return ",".join(_component(part) for part in delta)
    return str(delta)


def merge_run(history: HistoryAccumulator, run_deltas: RunDeltas) -> HistoryAccumulator:
    """Apply one run to ``history`` in place and return it.

    ``runs`` goes up by exactly one per call, however many images the run
    covers. Images absent from ``run_deltas`` are left untouched, so an image
    first seen late has fewer ``perRunChanged`` entries than ``runs``.
    Keys that do not coerce to a number land on pixel 0.
    """
    history["runs"] = coerce_int(history.get("runs")) + 1
    by_image = history.setdefault("byImage", {})

    for name, changed_map in run_deltas.items():
        record = by_image.get(name)
        if record is None:
            record = by_image[name] = empty_image_history()

        record["perRunChanged"].append(len(changed_map))

        ever = dict.fromkeys(record["everChanged"])
        per_pixel = record["perPixel"]
        for raw_pixel, delta in changed_map.items():
            pixel = coerce_int(raw_pixel)
            ever[pixel] = None
            slot = per_pixel.get(str(pixel))
            if slot is None:
                slot = per_pixel[str(pixel)] = {"n": 0, "patterns": {}}
            key = pattern_key(delta)
            slot["n"] += 1
            slot["patterns"][key] = slot["patterns"].get(key, 0) + 1
        record["everChanged"] = list(ever)

    return history


def extract_run_deltas(payload: Any) -> Optional[Dict[str, ChangedMap]]:
    """Pull ``{name: changedMap}`` out of an ``{"images": {name: {"changedMap": ...}}}`` body.

    Returns None when ``images`` is not an object. An image whose
    ``changedMap`` is not an object contributes an empty map.
    """
    if not isinstance(payload, Mapping):
        return None
    images = payload.get("images")
    if not isinstance(images, Mapping):
        return None
    deltas: Dict[str, ChangedMap] = {}
    for name, record in images.items():
        changed_map = record.get("changedMap") if isinstance(record, Mapping) else None
        deltas[str(name)] = changed_map if isinstance(changed_map, Mapping) else {}
    return deltas


def run_deltas_payload(run_deltas: RunDeltas) -> Dict[str, Any]:
    """Inverse of ``extract_run_deltas``: the JSON body for ``/history/append``."""
    return {
        "images": {
            name: {"changedMap": {str(pixel): list(delta) for pixel, delta in changed_map.items()}}
            for name, changed_map in run_deltas.items()
        }
    }

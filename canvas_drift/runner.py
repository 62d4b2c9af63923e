"""End-to-end flows that tie the renderer, the differ and the storage API together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from canvas_drift_sdk import DriftClient

from .analyzer import HistorySummary, VariablePixelReport, analyze_history, variable_delta_pixels
from .config import utc_now_iso
from .differ import DEFAULT_SAMPLE_CAP, AlphaPolicy, DiffResult, diff_pixels
from .history import HistoryAccumulator, normalize_history
from .merge import merge_run
from .pixels import RgbaFrame, decode_b64, encode_b64
from .report import RunReport, build_run_report
from .session import SessionCapture, SessionComparison, capture_session, compare_session

logger = logging.getLogger(__name__)

NO_BASELINE = "no baseline"


@dataclass
class RunOutcome:
    note: Optional[str] = None
    report: Optional[RunReport] = None
    history: Optional[HistoryAccumulator] = None
    summary: Optional[HistorySummary] = None
    variable_pixels: Dict[str, VariablePixelReport] = field(default_factory=dict)
    persisted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if self.report is None:
            return {"note": self.note}
        data = self.report.to_dict()
        data["historyPersisted"] = self.persisted
        if self.summary is not None:
            data["history"] = self.summary.to_dict()
        data["variableDeltaPixels"] = {
            name: {"total": entry.total, "shown": [pixel.to_dict() for pixel in entry.shown]}
            for name, entry in self.variable_pixels.items()
        }
        return data


def _baseline_pixels(baseline: Mapping[str, Any]) -> Dict[str, bytes]:
    pixels: Dict[str, bytes] = {}
    for name, value in (baseline.get("pixels") or {}).items():
        try:
            pixels[name] = decode_b64(value)
        except ValueError:
            logger.warning("Baseline pixels for %s are not valid base64; treating as missing", name)
    return pixels


def diff_against_baseline(
    baseline: Mapping[str, bytes],
    frames: Mapping[str, RgbaFrame],
    sample_cap: int = DEFAULT_SAMPLE_CAP,
) -> Dict[str, Optional[DiffResult]]:
    results: Dict[str, Optional[DiffResult]] = {}
    for name, frame in frames.items():
        prev = baseline.get(name)
        if prev is None:
            results[name] = None
            continue
        results[name] = diff_pixels(prev, frame.pixels, sample_cap, AlphaPolicy.ABS_DELTA_NONZERO)
    return results


def compare_with_baseline(
    client: DriftClient,
    frames: Mapping[str, RgbaFrame],
    sample_cap: int = DEFAULT_SAMPLE_CAP,
    server_merge: bool = False,
) -> RunOutcome:
    """Diff the current frames against the stored baseline and record the run.

    With ``server_merge`` the run is sent to ``/history/append``; otherwise the
    history is fetched, merged locally and written back whole.
    """
    baseline = client.get_baseline()
    if baseline is None:
        logger.info("No baseline stored; nothing to compare")
        return RunOutcome(note=NO_BASELINE)

    results = diff_against_baseline(_baseline_pixels(baseline), frames, sample_cap)
    report = build_run_report(results)
    run_deltas = {name: result.changed_map for name, result in results.items() if result is not None}

    if server_merge:
        history = client.append_history(run_deltas)
        persisted = True
    else:
        history = normalize_history(merge_run(client.get_history(), run_deltas))
        persisted = client.put_history(history) is not None

    logger.info(
        "Compared %d images: %d of %d pixels changed (history run %d)",
        len(results),
        report.overall.changed,
        report.overall.total,
        history["runs"],
    )
    return RunOutcome(
        report=report,
        history=history,
        summary=analyze_history(history),
        variable_pixels=variable_delta_pixels(history),
        persisted=persisted,
    )


def set_baseline(client: DriftClient, frames: Mapping[str, RgbaFrame]) -> bool:
    """Store ``frames`` as the baseline and start a fresh history.

    Returns whether the history reset went through.
    """
    payload = {
        "pixels": {name: encode_b64(frame.pixels) for name, frame in frames.items()},
        "meta": {"savedAt": utc_now_iso()},
    }
    client.put_baseline(payload)
    reset = client.reset_history() is not None
    if not reset:
        logger.warning("Baseline saved but history reset failed")
    return reset


def clear_baseline(client: DriftClient) -> None:
    client.delete_baseline()


def load_last_session(client: DriftClient) -> Optional[SessionCapture]:
    data = client.get_last_session()
    if data is None:
        return None
    return SessionCapture.from_payload(data)


def replace_last_session(client: DriftClient, capture: SessionCapture) -> str:
    return client.put_last_session(capture.to_payload())


def compare_png_session(client: DriftClient, frames: Mapping[str, RgbaFrame]) -> SessionComparison:
    """Compare the three encodings of ``frames`` with each other and with the last session.

    When no session is stored yet, the current capture is saved first and
    becomes the comparison target. An existing session is never overwritten.
    """
    current = capture_session(frames)
    last = load_last_session(client)
    if last is None:
        current.saved_at = replace_last_session(client, current)
        logger.info("Initialised last session at %s", current.saved_at)
        last = current
    return compare_session(frames, current, last)

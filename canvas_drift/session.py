"""Encoding-path comparisons between the current render and the last saved session.

Each image is captured three ways: the raw RGBA pixels, the pixels after a
PNG encode/decode round trip, and a PNG data URL. Six comparisons are run
per image, three within the current capture and three against the last
saved capture. Alpha changes here count any byte inequality.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .config import utc_now_iso
from .differ import AlphaPolicy, DiffResult, diff_pixels, empty_diff
from .pixels import RgbaFrame, data_url_to_pixels, decode_b64, encode_b64, pixel_count, png_round_trip, to_data_url
from .report import Aggregate, format_pct

logger = logging.getLogger(__name__)

SESSION_ALPHA_POLICY = AlphaPolicy.ANY_INEQUALITY

# bucket id -> per-image report key
COMPARISONS = {
    "rawPng": "raw_vs_png_toBlob_decoded",
    "rawLast": "raw_vs_last_raw",
    "pngLast": "png_toBlob_decoded_vs_last_toBlob_decoded",
    "rawDurl": "raw_vs_png_toDataURL_decoded",
    "pngDurl": "png_toBlob_decoded_vs_png_toDataURL_decoded",
    "durlLast": "png_toDataURL_decoded_vs_last_png_toDataURL_decoded",
}
AGAINST_LAST = frozenset({"rawLast", "pngLast", "durlLast"})


def _decode_pixel_map(value: Any) -> Dict[str, bytes]:
    if not isinstance(value, Mapping):
        return {}
    pixels: Dict[str, bytes] = {}
    for name, b64 in value.items():
        try:
            pixels[str(name)] = decode_b64(b64)
        except ValueError:
            logger.warning("Stored pixels for %s are not valid base64; skipping", name)
    return pixels


@dataclass
class SessionCapture:
    """One capture of every image, in the shape stored at ``/last-session``."""

    raw: Dict[str, bytes] = field(default_factory=dict)
    png_blob: Dict[str, bytes] = field(default_factory=dict)
    png_durl: Dict[str, str] = field(default_factory=dict)
    saved_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "raw": {name: encode_b64(buf) for name, buf in self.raw.items()},
            "png_blob": {name: encode_b64(buf) for name, buf in self.png_blob.items()},
            "png_durl": dict(self.png_durl),
            "meta": {"savedAt": self.saved_at or utc_now_iso()},
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SessionCapture":
        png_blob = data.get("png_blob")
        if not isinstance(png_blob, Mapping):
            png_blob = data.get("png")
        durl = data.get("png_durl")
        meta = data.get("meta")
        return cls(
            raw=_decode_pixel_map(data.get("raw")),
            png_blob=_decode_pixel_map(png_blob),
            png_durl={str(k): v for k, v in durl.items() if isinstance(v, str)} if isinstance(durl, Mapping) else {},
            saved_at=meta.get("savedAt") if isinstance(meta, Mapping) else None,
        )


def capture_session(frames: Mapping[str, RgbaFrame]) -> SessionCapture:
    capture = SessionCapture()
    for name, frame in frames.items():
        capture.raw[name] = frame.pixels
        capture.png_blob[name] = png_round_trip(frame)
        capture.png_durl[name] = to_data_url(frame)
    return capture


def _summary(result: DiffResult, compared_against: Optional[str], against_last: bool) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "totalPixels": result.total_pixels,
        "changedPixels": result.changed_pixels,
        "pctChanged": format_pct(result.pct_changed),
        "maxDeviation": result.max_deviation,
        "maxDeviationExcl255_254": result.max_deviation_excl,
        "alphaChanges": result.alpha_changes,
    }
    if against_last:
        entry["comparedAgainst"] = compared_against
    return entry


@dataclass
class SessionComparison:
    compared_against: Optional[str]
    per_image: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    buckets: Dict[str, Aggregate] = field(default_factory=lambda: {bucket: Aggregate() for bucket in COMPARISONS})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comparedAgainst": self.compared_against,
            "overall": {bucket: agg.to_dict() for bucket, agg in self.buckets.items()},
            "perImage": self.per_image,
        }


def _diff(prev: bytes, curr: bytes) -> DiffResult:
    return diff_pixels(prev, curr, alpha_policy=SESSION_ALPHA_POLICY)


def _last_durl_pixels(last: SessionCapture, name: str, frame: RgbaFrame) -> Optional[bytes]:
    durl = last.png_durl.get(name)
    if durl is None:
        return None
    try:
        return data_url_to_pixels(durl, frame.width, frame.height)
    except (ValueError, OSError) as exc:
        logger.warning("Could not decode last data URL for %s: %s", name, exc)
        return None


def compare_session(
    frames: Mapping[str, RgbaFrame],
    current: SessionCapture,
    last: Optional[SessionCapture],
) -> SessionComparison:
    comparison = SessionComparison(compared_against=last.saved_at if last else None)
    for name, frame in frames.items():
        raw_now = current.raw[name]
        png_now = current.png_blob[name]
        durl_now = data_url_to_pixels(current.png_durl[name], frame.width, frame.height)

        results: Dict[str, DiffResult] = {
            "rawPng": _diff(raw_now, png_now),
            "rawDurl": _diff(raw_now, durl_now),
            "pngDurl": _diff(png_now, durl_now),
        }

        raw_prev = last.raw.get(name) if last else None
        results["rawLast"] = _diff(raw_prev, raw_now) if raw_prev is not None else empty_diff(pixel_count(raw_now))
        png_prev = last.png_blob.get(name) if last else None
        results["pngLast"] = _diff(png_prev, png_now) if png_prev is not None else empty_diff(pixel_count(png_now))
        durl_prev = _last_durl_pixels(last, name, frame) if last else None
        results["durlLast"] = (
            _diff(durl_prev, durl_now) if durl_prev is not None else empty_diff(pixel_count(durl_now))
        )

        entry: Dict[str, Any] = {}
        for bucket, key in COMPARISONS.items():
            result = results[bucket]
            comparison.buckets[bucket].add(result)
            entry[key] = _summary(result, comparison.compared_against, bucket in AGAINST_LAST)
            logger.debug("%s %s: %d changed", name, key, result.changed_pixels)
        comparison.per_image[name] = entry
    return comparison

from __future__ import annotations

import logging

from canvas_drift.pixels import RgbaFrame, encode_b64
from canvas_drift.session import COMPARISONS, SessionCapture, capture_session, compare_session


def _frames(blue: int = 0):
    return {
        "opaque": RgbaFrame(width=2, height=2, pixels=bytes([10, 20, 30, 255] * 3 + [0, 0, blue, 255])),
        "translucent": RgbaFrame(width=1, height=1, pixels=bytes([0, 0, 0, 0])),
    }


def test_capture_holds_three_encodings() -> None:
    frames = _frames()
    capture = capture_session(frames)

    assert capture.raw["opaque"] == frames["opaque"].pixels
    # opaque pixels survive the PNG round trip untouched
    assert capture.png_blob["opaque"] == frames["opaque"].pixels
    # a fully transparent pixel comes back as opaque white
    assert capture.png_blob["translucent"] == bytes([255, 255, 255, 255])
    assert capture.png_durl["opaque"].startswith("data:image/png;base64,")


def test_payload_round_trip_and_legacy_png_key() -> None:
    capture = capture_session(_frames())
    capture.saved_at = "2026-01-01T00:00:00+00:00"
    payload = capture.to_payload()

    restored = SessionCapture.from_payload(payload)
    assert restored == capture

    legacy = {"raw": payload["raw"], "png": payload["png_blob"], "meta": payload["meta"]}
    assert SessionCapture.from_payload(legacy).png_blob == capture.png_blob


def test_first_session_compares_against_itself() -> None:
    frames = _frames()
    capture = capture_session(frames)

    comparison = compare_session(frames, capture, capture)
    data = comparison.to_dict()

    assert set(data["overall"]) == set(COMPARISONS)
    for bucket in ("rawLast", "pngLast", "durlLast"):
        assert data["overall"][bucket]["changed"] == 0
    # the transparent pixel differs between raw and the decoded encodings
    assert data["overall"]["rawPng"]["changed"] == 1
    assert data["overall"]["rawPng"]["alpha"] == 1
    assert data["overall"]["pngDurl"]["changed"] == 0


def test_changes_against_last_session_are_counted() -> None:
    last = capture_session(_frames(blue=0))
    last.saved_at = "then"
    frames = _frames(blue=40)

    comparison = compare_session(frames, capture_session(frames), last)
    entry = comparison.per_image["opaque"]

    assert comparison.compared_against == "then"
    assert entry["raw_vs_last_raw"]["changedPixels"] == 1
    assert entry["raw_vs_last_raw"]["maxDeviation"] == 40
    assert entry["raw_vs_last_raw"]["comparedAgainst"] == "then"
    assert "comparedAgainst" not in entry["raw_vs_png_toBlob_decoded"]
    assert comparison.buckets["durlLast"].changed == 1


def test_missing_last_image_yields_empty_comparison() -> None:
    frames = _frames()
    last = SessionCapture(raw={}, png_blob={}, png_durl={"opaque": "garbage"}, saved_at="x")

    comparison = compare_session(frames, capture_session(frames), last)

    assert comparison.buckets["rawLast"].changed == 0
    assert comparison.buckets["rawLast"].total == 5
    assert comparison.buckets["durlLast"].changed == 0


def test_legacy_payload_with_raw_only() -> None:
    restored = SessionCapture.from_payload({"raw": {"a": encode_b64(b"\x01\x02\x03\x04")}, "meta": {}})

    assert restored.raw == {"a": b"\x01\x02\x03\x04"}
    assert restored.png_blob == {}
    assert restored.saved_at is None


def test_invalid_stored_pixels_are_skipped(caplog) -> None:
    good = encode_b64(bytes([1, 2, 3, 4]))

    with caplog.at_level(logging.WARNING):
        restored = SessionCapture.from_payload(
            {"raw": {"first": "!!notb64", "second": good}, "png_blob": {"first": 7}, "meta": {"savedAt": "x"}}
        )

    assert restored.raw == {"second": bytes([1, 2, 3, 4])}
    assert restored.png_blob == {}
    assert "not valid base64" in caplog.text


def test_skipped_last_image_compares_as_empty() -> None:
    frames = _frames()
    last = SessionCapture.from_payload({"raw": {"opaque": "!!notb64"}, "meta": {"savedAt": "x"}})

    comparison = compare_session(frames, capture_session(frames), last)

    assert comparison.per_image["opaque"]["raw_vs_last_raw"]["changedPixels"] == 0
    assert comparison.buckets["rawLast"].changed == 0

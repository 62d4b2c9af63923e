from __future__ import annotations

import json

import pytest
import requests

from canvas_drift.analyzer import VariablePixel, VariablePixelReport
from canvas_drift.cli import format_variable_pixels, load_frames, main
from canvas_drift.pixels import encode_png


def _write_pngs(directory, frames) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, frame in frames.items():
        (directory / f"{name}.png").write_bytes(encode_png(frame))


def test_render_writes_all_images(tmp_path, capsys) -> None:
    out = tmp_path / "rendered"

    assert main(["render", "--out", str(out)]) == 0

    assert len(list(out.glob("*.png"))) == 10
    assert "wrote 10 images" in capsys.readouterr().out


def test_diff_two_pngs(tmp_path, capsys, make_frames) -> None:
    _write_pngs(tmp_path / "a", make_frames(0))
    _write_pngs(tmp_path / "b", make_frames(12))

    code = main(["diff", str(tmp_path / "a" / "first.png"), str(tmp_path / "b" / "first.png"), "--sample-cap", "1"])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["changedPixels"] == 1
    assert report["maxDeviation"] == 12
    assert report["pctChanged"] == "50.00%"
    assert len(report["sample"]) == 1


def test_diff_missing_file_is_usage_error(tmp_path) -> None:
    assert main(["diff", str(tmp_path / "nope.png"), str(tmp_path / "nope.png")]) == 2


def test_unknown_command_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["bogus"])
    assert excinfo.value.code == 2


def test_load_frames_uses_file_stems(tmp_path, make_frames) -> None:
    _write_pngs(tmp_path, make_frames(3))

    frames = load_frames(str(tmp_path))

    assert sorted(frames) == ["first", "second"]
    assert frames["first"].pixels == make_frames(3)["first"].pixels


def test_empty_images_dir_is_usage_error(tmp_path, drift_client) -> None:
    assert main(["--images", str(tmp_path), "set-baseline"]) == 2


def test_baseline_compare_flow(tmp_path, drift_client, make_frames, capsys) -> None:
    _write_pngs(tmp_path / "base", make_frames(0))
    _write_pngs(tmp_path / "now", make_frames(6))
    out = tmp_path / "out" / "run.json"

    assert main(["--url", "http://drift.test", "--images", str(tmp_path / "base"), "set-baseline"]) == 0
    assert "history reset: ok" in capsys.readouterr().out
    assert main(["--url", "http://drift.test", "--images", str(tmp_path / "now"), "compare", "--json", str(out)]) == 0

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["overall"]["changed"] == 1
    assert data["history"]["runs"] == 1
    assert drift_client.get_history()["runs"] == 1

    assert main(["--url", "http://drift.test", "history"]) == 0
    assert '"runs": 1' in capsys.readouterr().out


def test_compare_png_flow(tmp_path, drift_client, make_frames, capsys) -> None:
    _write_pngs(tmp_path, make_frames(0))

    assert main(["--images", str(tmp_path), "compare-png"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert set(data["perImage"]) == {"first", "second"}

    assert main(["--images", str(tmp_path), "replace-last-session"]) == 0
    assert "last session replaced" in capsys.readouterr().out


def test_unreachable_server_exits_1(monkeypatch, capsys) -> None:
    def _fail(*_args, **_kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "request", _fail)

    assert main(["--url", "http://nowhere.test", "clear-baseline"]) == 1
    assert "Could not reach" in capsys.readouterr().err


def test_server_error_exits_1(tmp_path, drift_client, make_frames, capsys, settings) -> None:
    settings.baseline_path.parent.mkdir(parents=True, exist_ok=True)
    settings.baseline_path.write_text("not json", encoding="utf-8")
    _write_pngs(tmp_path / "imgs", make_frames(0))

    assert main(["--images", str(tmp_path / "imgs"), "compare"]) == 1
    assert "status=500" in capsys.readouterr().err


def test_format_variable_pixels() -> None:
    report = VariablePixelReport(
        total=3,
        shown=[VariablePixel(pixel=4, times_changed=2, patterns={"1,0,0,0": 1, "2,0,0,0": 1})],
    )

    lines = format_variable_pixels({"img": report, "quiet": VariablePixelReport(total=0, shown=[])})

    assert lines == [
        "img: 3 pixels with variable deltas",
        "  px 4 changed 2x: [1,0,0,0] x1; [2,0,0,0] x1",
        "  ... 2 more",
    ]


def test_unreadable_png_is_usage_error(tmp_path, drift_client, capsys) -> None:
    (tmp_path / "broken.png").write_bytes(b"not a png")

    assert main(["--images", str(tmp_path), "compare-png"]) == 2
    assert "Could not read image" in capsys.readouterr().err

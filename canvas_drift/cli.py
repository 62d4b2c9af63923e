#!/usr/bin/env python3
"""Command line entry point for canvas-drift.

Usage:
  canvas-drift serve --data-dir ./data
  canvas-drift set-baseline
  canvas-drift compare --json out/run.json
  canvas-drift compare-png --images ./captures
  canvas-drift diff a.png b.png --alpha-policy any-inequality
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import requests

from canvas_drift_sdk import ApiError, DriftClient

from . import runner
from .analyzer import VariablePixelReport, analyze_history, variable_delta_pixels
from .config import Settings
from .differ import AlphaPolicy, diff_pixels
from .pixels import RgbaFrame, encode_png, load_png_file
from .render import render_all
from .report import image_report
from .session import capture_session

logger = logging.getLogger(__name__)


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="canvas-drift", description="Track canvas pixel drift across runs.")
    parser.add_argument("--url", default=settings.server_url, help="storage server base URL")
    parser.add_argument("--images", help="directory of PNG files to use instead of the built-in renderer")
    parser.add_argument("--session-id", type=int, default=1, help="session number used in rendered image names")
    parser.add_argument("--log-level", default=settings.log_level, help="logging level (debug, info, warning, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the storage server")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.add_argument("--data-dir", default=str(settings.data_dir))
    serve.add_argument("--reload", action="store_true", default=settings.reload)

    render = sub.add_parser("render", help="write the built-in test images as PNG files")
    render.add_argument("--out", required=True, help="output directory")

    diff = sub.add_parser("diff", help="diff two PNG files")
    diff.add_argument("a", help="previous PNG")
    diff.add_argument("b", help="current PNG")
    diff.add_argument("--sample-cap", type=int, default=settings.sample_cap)
    diff.add_argument(
        "--alpha-policy",
        choices=[policy.value for policy in AlphaPolicy],
        default=AlphaPolicy.ABS_DELTA_NONZERO.value,
    )

    sub.add_parser("set-baseline", help="store the current images as the baseline and reset history")
    sub.add_parser("clear-baseline", help="delete the baseline (history is kept)")

    compare = sub.add_parser("compare", help="compare against the baseline and record the run")
    compare.add_argument("--server-merge", action="store_true", help="merge the run on the server")
    compare.add_argument("--sample-cap", type=int, default=settings.sample_cap)
    compare.add_argument("--json", dest="json_path", help="write the full outcome JSON to this path")

    compare_png = sub.add_parser("compare-png", help="compare RAW, PNG and data-URL encodings with the last session")
    compare_png.add_argument("--json", dest="json_path", help="write the comparison JSON to this path")

    sub.add_parser("replace-last-session", help="store the current images as the last session")

    history = sub.add_parser("history", help="fetch and summarise the stored history")
    history.add_argument("--limit", type=int, default=200, help="variable-delta pixels listed per image")
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n", encoding="utf-8")


def _emit(payload: Dict[str, Any], json_path: Optional[str]) -> None:
    if json_path:
        _write_json(Path(json_path).expanduser().resolve(), payload)
    print(json.dumps(payload, indent=2, default=str))


def load_frames(images_dir: Optional[str], session_id: int = 1) -> Dict[str, RgbaFrame]:
    """PNG files from ``images_dir`` keyed by file stem, or the built-in render."""
    if not images_dir:
        return render_all(session_id)
    root = Path(images_dir).expanduser()
    return {path.stem: load_png_file(path) for path in sorted(root.glob("*.png"))}


def format_variable_pixels(reports: Mapping[str, VariablePixelReport]) -> List[str]:
    lines: List[str] = []
    for name, entry in reports.items():
        if not entry.total:
            continue
        lines.append(f"{name}: {entry.total} pixels with variable deltas")
        for pixel in entry.shown:
            patterns = "; ".join(f"[{key}] x{count}" for key, count in pixel.patterns.items())
            lines.append(f"  px {pixel.pixel} changed {pixel.times_changed}x: {patterns}")
        if entry.hidden:
            lines.append(f"  ... {entry.hidden} more")
    return lines


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    from .api.server import serve

    settings = dataclasses.replace(
        settings,
        host=args.host,
        port=args.port,
        data_dir=Path(args.data_dir),
        reload=args.reload,
        log_level=str(args.log_level).lower(),
    )
    serve(settings)
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    out_dir = Path(args.out).expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)
    frames = render_all(args.session_id)
    for name, frame in frames.items():
        (out_dir / f"{name}.png").write_bytes(encode_png(frame))
    print(f"wrote {len(frames)} images to {out_dir}")
    return 0


def _cmd_diff(args: argparse.Namespace) -> int:
    prev = load_png_file(args.a)
    curr = load_png_file(args.b)
    if (prev.width, prev.height) != (curr.width, curr.height):
        logger.warning("Image sizes differ: %sx%s vs %sx%s", prev.width, prev.height, curr.width, curr.height)
    result = diff_pixels(prev.pixels, curr.pixels, max(0, args.sample_cap), AlphaPolicy(args.alpha_policy))
    print(json.dumps(image_report(result), indent=2))
    return 0


def _cmd_history(client: DriftClient, limit: int) -> int:
    history = client.get_history()
    print(json.dumps(analyze_history(history).to_dict(), indent=2))
    for line in format_variable_pixels(variable_delta_pixels(history, limit)):
        print(line)
    return 0


def _run_remote(args: argparse.Namespace, client: DriftClient) -> int:
    if args.command == "clear-baseline":
        runner.clear_baseline(client)
        print("baseline cleared")
        return 0
    if args.command == "history":
        return _cmd_history(client, args.limit)

    try:
        frames = load_frames(args.images, args.session_id)
    except OSError as exc:
        print(f"Could not read image: {exc}", file=sys.stderr)
        return 2
    if not frames:
        print(f"No PNG images found in {args.images}", file=sys.stderr)
        return 2

    if args.command == "set-baseline":
        reset = runner.set_baseline(client, frames)
        print(f"baseline saved ({len(frames)} images); history reset: {'ok' if reset else 'failed'}")
        return 0
    if args.command == "compare":
        outcome = runner.compare_with_baseline(
            client, frames, sample_cap=max(0, args.sample_cap), server_merge=args.server_merge
        )
        _emit(outcome.to_dict(), args.json_path)
        for line in format_variable_pixels(outcome.variable_pixels):
            print(line)
        return 0
    if args.command == "compare-png":
        comparison = runner.compare_png_session(client, frames)
        _emit(comparison.to_dict(), args.json_path)
        return 0
    if args.command == "replace-last-session":
        saved_at = runner.replace_last_session(client, capture_session(frames))
        print(f"last session replaced at {saved_at}")
        return 0
    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    parser = _build_parser(settings)
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "serve":
        return _cmd_serve(args, settings)
    if args.command == "render":
        return _cmd_render(args)
    if args.command == "diff":
        try:
            return _cmd_diff(args)
        except OSError as exc:
            print(f"Could not read image: {exc}", file=sys.stderr)
            return 2

    client = DriftClient(args.url, timeout_s=settings.timeout_s)
    try:
        return _run_remote(args, client)
    except ApiError as exc:
        print(f"{exc} {exc.body!r}", file=sys.stderr)
        return 1
    except requests.RequestException as exc:
        print(f"Could not reach {args.url}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

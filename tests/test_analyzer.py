from __future__ import annotations

import copy

from canvas_drift.analyzer import (
    APPEARS_PARTLY_FIXED,
    APPEARS_RANDOM,
    analyze_history,
    summarize_image,
    variable_delta_pixels,
)
from canvas_drift.history import empty_history
from canvas_drift.merge import merge_run


def _history_with_runs(*runs):
    history = empty_history()
    for run in runs:
        merge_run(history, run)
    return history


def test_summary_counts_and_rounding() -> None:
    history = _history_with_runs(
        {"img": {1: (1, 0, 0, 0), 2: (1, 0, 0, 0)}},
        {"img": {1: (1, 0, 0, 0), 2: (2, 0, 0, 0), 3: (9, 9, 9, 0)}},
        {"img": {4: (1, 1, 1, 1)}},
    )

    summary = analyze_history(history)
    image = summary.per_image["img"]

    assert summary.runs == 3
    assert image.runs_seen == 3
    assert image.avg_changed_per_run == 2.0
    assert image.union_changed == 4
    assert image.pixels_changed_once == 2
    assert image.pixels_with_fixed_delta == 1
    assert image.pixels_with_variable_delta == 1
    assert image.pixels_changed_multiple == 2
    assert image.pct_fixed_delta_among_multi == 50.0
    assert image.selection_randomness_hint == APPEARS_RANDOM


def test_same_pixels_every_run_look_partly_fixed() -> None:
    run = {"img": {1: (1, 0, 0, 0), 2: (1, 0, 0, 0)}}
    image = analyze_history(_history_with_runs(run, run, run)).per_image["img"]

    assert image.union_changed == 2
    assert image.selection_randomness_hint == APPEARS_PARTLY_FIXED
    assert image.pct_fixed_delta_among_multi == 100.0


def test_pct_fixed_is_none_without_multi_change_pixels() -> None:
    image = analyze_history(_history_with_runs({"img": {1: (1, 0, 0, 0)}})).per_image["img"]

    assert image.pct_fixed_delta_among_multi is None
    assert image.to_dict()["pctFixedDeltaAmongMulti"] is None


def test_empty_record_summary() -> None:
    image = summarize_image({"perRunChanged": [], "everChanged": [], "perPixel": {}})

    assert image.runs_seen == 0
    assert image.avg_changed_per_run == 0.0
    assert image.selection_randomness_hint == APPEARS_PARTLY_FIXED


def test_pixels_with_zero_count_are_not_classified() -> None:
    image = summarize_image({"perRunChanged": [1], "everChanged": [1], "perPixel": {"1": {"n": 0, "patterns": {}}}})

    assert image.pixels_changed_once == 0
    assert image.pixels_changed_multiple == 0


def test_analyze_does_not_mutate_history() -> None:
    history = _history_with_runs({"img": {1: (1, 0, 0, 0)}}, {"img": {1: (0, 1, 0, 0)}})
    before = copy.deepcopy(history)

    analyze_history(history)
    variable_delta_pixels(history)

    assert history == before


def test_summary_to_dict_keys() -> None:
    data = analyze_history(_history_with_runs({"img": {}})).to_dict()

    assert data["runs"] == 1
    assert set(data["perImageSummary"]["img"]) == {
        "runsSeen",
        "avgChangedPerRun",
        "unionChanged",
        "selectionRandomnessHint",
        "pixelsChangedOnce",
        "pixelsChangedMultiple",
        "pixelsWithFixedDelta",
        "pixelsWithVariableDelta",
        "pctFixedDeltaAmongMulti",
    }


class TestVariableDeltaPixels:
    def test_ordering_by_count_then_pattern_count(self) -> None:
        history = _history_with_runs(
            {"img": {1: (1, 0, 0, 0), 2: (1, 0, 0, 0), 3: (1, 0, 0, 0)}},
            {"img": {1: (2, 0, 0, 0), 2: (2, 0, 0, 0), 3: (1, 0, 0, 0)}},
            {"img": {1: (3, 0, 0, 0), 2: (2, 0, 0, 0)}},
            {"img": {2: (2, 0, 0, 0)}},
        )

        report = variable_delta_pixels(history)["img"]

        # pixel 3 changed twice with one pattern, so it is fixed
        assert [entry.pixel for entry in report.shown] == [2, 1]
        assert report.shown[0].times_changed == 4
        assert report.shown[1].patterns == {"1,0,0,0": 1, "2,0,0,0": 1, "3,0,0,0": 1}
        assert report.total == 2
        assert report.hidden == 0

    def test_limit_truncates_and_reports_total(self) -> None:
        first = {"img": {pix: (1, 0, 0, 0) for pix in range(5)}}
        second = {"img": {pix: (0, 1, 0, 0) for pix in range(5)}}
        report = variable_delta_pixels(_history_with_runs(first, second), limit_per_image=2)["img"]

        assert report.total == 5
        assert len(report.shown) == 2
        assert report.hidden == 3

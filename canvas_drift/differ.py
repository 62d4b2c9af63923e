"""Per-pixel, per-channel comparison of two RGBA pixel buffers.

This is deliberately not a perceptual metric:
- signed and absolute channel deltas per pixel
- a 256-bin histogram of each pixel's largest absolute channel delta
- a sparse map of every changed pixel to its signed delta
- the first ``sample_cap`` changed pixels in index order, with full detail

Buffers of different length are compared over their common prefix. Lengths
that are not a multiple of 4 are the caller's problem.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .pixels import BYTES_PER_PIXEL, PixelBuffer

DEFAULT_SAMPLE_CAP = 50
HISTOGRAM_BINS = 256
# Full-scale and near-full-scale deviations (alpha toggles, black/white flips).
EXCLUDED_DEVIATIONS = frozenset({254, 255})

Rgba = Tuple[int, int, int, int]


class AlphaPolicy(str, enum.Enum):
    """How ``alpha_changes`` decides that a pixel's alpha channel changed."""

    ABS_DELTA_NONZERO = "abs-delta-nonzero"
    ANY_INEQUALITY = "any-inequality"


@dataclass(frozen=True)
class SampleRecord:
    pixel_index: int
    prev: Rgba
    curr: Rgba
    absolute_delta: Rgba
    signed_delta: Rgba

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pixel": self.pixel_index,
            "prev": list(self.prev),
            "curr": list(self.curr),
            "dev_abs": list(self.absolute_delta),
            "dev_signed": list(self.signed_delta),
        }


@dataclass(frozen=True)
class DeviationShare:
    deviation: int
    percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {"dev": self.deviation, "pct": self.percent}


@dataclass
class DiffResult:
    total_pixels: int
    changed_pixels: int = 0
    alpha_changes: int = 0
    max_deviation: int = 0
    max_deviation_excl: int = 0
    deviation_histogram: List[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    deviation_distribution: List[DeviationShare] = field(default_factory=list)
    sample: List[SampleRecord] = field(default_factory=list)
    changed_map: Dict[int, Rgba] = field(default_factory=dict)

    @property
    def pct_changed(self) -> float:
        return self.changed_pixels / self.total_pixels if self.total_pixels else 0.0

    @property
    def has_alpha_change(self) -> bool:
        return self.alpha_changes > 0

    def to_dict(self, *, include_changed_map: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalPixels": self.total_pixels,
            "changedPixels": self.changed_pixels,
            "pctChanged": self.pct_changed,
            "alphaChanges": self.alpha_changes,
            "hasAlphaChange": self.has_alpha_change,
            "maxDeviation": self.max_deviation,
            "maxDeviationExcl255_254": self.max_deviation_excl,
            "deviationHistogram": list(self.deviation_histogram),
            "deviationDistribution": [share.to_dict() for share in self.deviation_distribution],
            "sample": [record.to_dict() for record in self.sample],
        }
        if include_changed_map:
            payload["changedMap"] = {str(pix): list(delta) for pix, delta in self.changed_map.items()}
        return payload


def empty_diff(total_pixels: int) -> DiffResult:
    """Result used when there is nothing to compare against."""
    return DiffResult(total_pixels=total_pixels)


def deviation_distribution(histogram: List[int]) -> List[DeviationShare]:
    """Share of each nonzero deviation among changed pixels, in percent (2 dp)."""
    changed = sum(histogram[1:])
    if not changed:
        return []
    return [
        DeviationShare(deviation=dev, percent=round(count / changed * 100, 2))
        for dev, count in enumerate(histogram)
        if dev > 0 and count
    ]


def diff_pixels(
    prev: PixelBuffer,
    curr: PixelBuffer,
    sample_cap: int = DEFAULT_SAMPLE_CAP,
    alpha_policy: AlphaPolicy = AlphaPolicy.ABS_DELTA_NONZERO,
) -> DiffResult:
    length = min(len(prev), len(curr))
    result = DiffResult(total_pixels=length // BYTES_PER_PIXEL)
    histogram = result.deviation_histogram
    count_any_inequality = AlphaPolicy(alpha_policy) is AlphaPolicy.ANY_INEQUALITY

    for offset in range(0, length - length % BYTES_PER_PIXEL, BYTES_PER_PIXEL):
        r0, g0, b0, a0 = prev[offset : offset + BYTES_PER_PIXEL]
        r1, g1, b1, a1 = curr[offset : offset + BYTES_PER_PIXEL]

        sdr, sdg, sdb, sda = r1 - r0, g1 - g0, b1 - b0, a1 - a0
        dr, dg, db, da = abs(sdr), abs(sdg), abs(sdb), abs(sda)

        if count_any_inequality:
            if a0 != a1:
                result.alpha_changes += 1
        elif da:
            result.alpha_changes += 1

        local_max = max(dr, dg, db, da)
        histogram[local_max] += 1
        if local_max > result.max_deviation:
            result.max_deviation = local_max
        if local_max not in EXCLUDED_DEVIATIONS and local_max > result.max_deviation_excl:
            result.max_deviation_excl = local_max

        if not local_max:
            continue

        pixel_index = offset // BYTES_PER_PIXEL
        signed = (sdr, sdg, sdb, sda)
        result.changed_pixels += 1
        result.changed_map[pixel_index] = signed
        if len(result.sample) < sample_cap:
            result.sample.append(
                SampleRecord(
                    pixel_index=pixel_index,
                    prev=(r0, g0, b0, a0),
                    curr=(r1, g1, b1, a1),
                    absolute_delta=(dr, dg, db, da),
                    signed_delta=signed,
                )
            )

    result.deviation_distribution = deviation_distribution(histogram)
    return result

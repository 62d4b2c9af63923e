"""Turn per-image ``DiffResult`` objects into the run report shown to users."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .differ import DiffResult

MISSING_IN_BASELINE = "missing in baseline"


def format_pct(fraction: float) -> str:
    return f"{round(fraction * 10000) / 100:.2f}%"


def deviation_summary(result: DiffResult) -> str:
    """``"dev:pct%"`` pairs, most common deviation first."""
    shares = sorted(result.deviation_distribution, key=lambda share: share.percent, reverse=True)
    return ", ".join(f"{share.deviation}:{share.percent:.2f}%" for share in shares)


def image_report(result: DiffResult) -> Dict[str, Any]:
    return {
        "totalPixels": result.total_pixels,
        "changedPixels": result.changed_pixels,
        "pctChanged": format_pct(result.pct_changed),
        "alphaChanges": result.alpha_changes,
        "maxDeviation": result.max_deviation,
        "maxDeviationExcl255_254": result.max_deviation_excl,
        "hasAlphaChange": result.has_alpha_change,
        "deviationDistribution": [share.to_dict() for share in result.deviation_distribution],
        "allDeviationSummary": deviation_summary(result),
        "sample": [record.to_dict() for record in result.sample],
    }


@dataclass
class Aggregate:
    """Running totals over several comparisons."""

    total: int = 0
    changed: int = 0
    alpha: int = 0
    max_deviation: int = 0
    max_deviation_excl: int = 0

    def add(self, result: DiffResult) -> None:
        self.total += result.total_pixels
        self.changed += result.changed_pixels
        self.alpha += result.alpha_changes
        self.max_deviation = max(self.max_deviation, result.max_deviation)
        self.max_deviation_excl = max(self.max_deviation_excl, result.max_deviation_excl)

    @property
    def pct_changed(self) -> float:
        return self.changed / self.total if self.total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "changed": self.changed,
            "pctChanged": format_pct(self.pct_changed),
            "alpha": self.alpha,
            "maxDeviation": self.max_deviation,
            "maxDeviationExcl255_254": self.max_deviation_excl,
        }


@dataclass
class RunReport:
    images: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    overall: Aggregate = field(default_factory=Aggregate)
    images_with_alpha_changes: List[str] = field(default_factory=list)
    pct_per_image: List[float] = field(default_factory=list)

    def spread(self) -> Optional[Dict[str, float]]:
        """Min, max and range of the per-image percentage changed."""
        if not self.pct_per_image:
            return None
        low, high = min(self.pct_per_image), max(self.pct_per_image)
        return {"min": low, "max": high, "range": round(high - low, 2)}

    def to_dict(self) -> Dict[str, Any]:
        overall = self.overall.to_dict()
        overall["imagesWithAlphaChanges"] = list(self.images_with_alpha_changes)
        overall["perImagePctSpread"] = self.spread()
        return {"report": self.images, "overall": overall}


def build_run_report(results: Mapping[str, Optional[DiffResult]]) -> RunReport:
    """``results`` maps image name to its diff, or None if the baseline lacks it."""
    report = RunReport()
    for name, result in results.items():
        if result is None:
            report.images[name] = {"note": MISSING_IN_BASELINE}
            continue
        report.images[name] = image_report(result)
        report.overall.add(result)
        report.pct_per_image.append(round(result.pct_changed * 100, 2))
        if result.has_alpha_change:
            report.images_with_alpha_changes.append(name)
    return report

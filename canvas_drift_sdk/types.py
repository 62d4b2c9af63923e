from __future__ import annotations

from typing import Dict, TypedDict

from canvas_drift.history import HistoryAccumulator, ImageHistory, PixelStat


class HealthResponse(TypedDict, total=False):
    status: str
    ok: bool


class OkResponse(TypedDict, total=False):
    ok: bool


class Meta(TypedDict, total=False):
    savedAt: str


class BaselinePayload(TypedDict, total=False):
    pixels: Dict[str, str]  # image name -> base64 RGBA
    meta: Meta


class LastSessionPayload(TypedDict, total=False):
    raw: Dict[str, str]  # base64 RGBA
    png_blob: Dict[str, str]  # base64 RGBA after a PNG round trip
    png_durl: Dict[str, str]  # PNG data URLs
    meta: Meta


class ChangedMapRecord(TypedDict):
    changedMap: Dict[str, list]  # pixel index -> [dr, dg, db, da]


class AppendRequest(TypedDict):
    images: Dict[str, ChangedMapRecord]


__all__ = [
    "AppendRequest",
    "BaselinePayload",
    "ChangedMapRecord",
    "HealthResponse",
    "HistoryAccumulator",
    "ImageHistory",
    "LastSessionPayload",
    "Meta",
    "OkResponse",
    "PixelStat",
]

"""Pydantic models used by the storage service's FastAPI surface.

Request bodies are accepted as raw JSON and checked by the service, because
history documents must be coerced rather than rejected. These models describe
responses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    ok: bool = True


class OkResponse(BaseModel):
    ok: bool = True


class LastSessionSaved(OkResponse):
    savedAt: str


class PixelStatModel(BaseModel):
    n: int = 0
    patterns: Dict[str, int] = Field(default_factory=dict, description="Signed delta 'dr,dg,db,da' -> run count.")


class ImageHistoryModel(BaseModel):
    perRunChanged: List[int] = Field(default_factory=list)
    everChanged: List[int] = Field(default_factory=list)
    perPixel: Dict[str, PixelStatModel] = Field(default_factory=dict)


class HistoryDocument(BaseModel):
    runs: int = 0
    byImage: Dict[str, ImageHistoryModel] = Field(default_factory=dict)


class BaselineDocument(BaseModel):
    model_config = {"extra": "allow"}

    pixels: Dict[str, Any]
    meta: Optional[Dict[str, Any]] = None

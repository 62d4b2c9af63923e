from __future__ import annotations

from .client import ApiError, DriftClient

__all__ = [
    "ApiError",
    "DriftClient",
]

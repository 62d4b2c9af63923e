"""
HTTP storage for baselines, the last capture session and the cross-run
change history. Every document is a JSON file replaced wholesale on write.
"""

from .app import create_app
from .models import ErrorResponse, HistoryDocument, OkResponse
from .service import StorageService
from .storage import DocumentStore, JsonDocument

__all__ = [
    "create_app",
    "DocumentStore",
    "ErrorResponse",
    "HistoryDocument",
    "JsonDocument",
    "OkResponse",
    "StorageService",
]

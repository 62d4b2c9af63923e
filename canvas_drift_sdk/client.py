from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

from canvas_drift.history import HistoryAccumulator, empty_history, normalize_history
from canvas_drift.merge import RunDeltas, run_deltas_payload

from .types import BaselinePayload, HealthResponse, LastSessionPayload, OkResponse

logger = logging.getLogger(__name__)


@dataclass
class ApiError(Exception):
    message: str
    status: int
    body: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.message} (status={self.status})"


class DriftClient:
    """Python client for the canvas-drift storage API."""

    def __init__(self, base_url: str = "http://127.0.0.1:8080", *, timeout_s: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout_s = timeout_s

    def _request(self, method: str, path: str, *, body: Any | None = None) -> Any:
        url = urljoin(self.base_url, path.lstrip("/"))
        resp = requests.request(
            method=method,
            url=url,
            headers={"Content-Type": "application/json"},
            data=json.dumps(body) if body is not None else None,
            timeout=self.timeout_s,
        )
        if not resp.ok:
            payload: Any = None
            try:
                payload = resp.json()
            except ValueError:
                payload = resp.text
            raise ApiError(f"Request failed: {method} {path}", resp.status_code, payload)
        if not resp.content:
            return None
        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            return resp.json()
        return resp.text

    def health(self) -> HealthResponse:
        return self._request("GET", "/health")

    # --- Baseline -----------------------------------------------------------
    def get_baseline(self) -> Optional[BaselinePayload]:
        try:
            return self._request("GET", "/baseline")
        except ApiError as exc:
            if exc.status == 404:
                return None
            raise

    def put_baseline(self, payload: BaselinePayload) -> OkResponse:
        return self._request("PUT", "/baseline", body=payload)

    def delete_baseline(self) -> OkResponse:
        return self._request("DELETE", "/baseline")

    # --- Last session -------------------------------------------------------
    def get_last_session(self) -> Optional[LastSessionPayload]:
        try:
            return self._request("GET", "/last-session")
        except ApiError as exc:
            if exc.status == 404:
                return None
            raise

    def put_last_session(self, payload: LastSessionPayload) -> str:
        resp = self._request("PUT", "/last-session", body=payload)
        return resp["savedAt"]

    # --- History ------------------------------------------------------------
    def get_history(self) -> HistoryAccumulator:
        """Fetch the history; any failure yields an empty history so a run can proceed."""
        try:
            data = self._request("GET", "/history")
        except (ApiError, requests.RequestException, ValueError) as exc:
            logger.warning("GET /history failed; using empty history: %s", exc)
            return empty_history()
        return normalize_history(data)

    def put_history(self, history: HistoryAccumulator) -> Optional[Dict[str, Any]]:
        """Replace the history. Falls back to POST /history/put; None if both fail."""
        try:
            return self._request("PUT", "/history", body=history) or {}
        except (ApiError, requests.RequestException) as exc:
            logger.debug("PUT /history failed (%s); trying POST /history/put", exc)
        try:
            return self._request("POST", "/history/put", body=history) or {}
        except (ApiError, requests.RequestException) as exc:
            logger.warning("History write failed via PUT and POST: %s", exc)
            return None

    def append_history(self, run_deltas: RunDeltas) -> HistoryAccumulator:
        """Server-side load, merge and write of one run."""
        data = self._request("PUT", "/history/append", body=run_deltas_payload(run_deltas))
        return normalize_history(data)

    def reset_history(self) -> Optional[Dict[str, Any]]:
        return self.put_history(empty_history())

    def delete_history(self) -> OkResponse:
        return self._request("DELETE", "/history")

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

import pytest
import requests
from fastapi.testclient import TestClient

from canvas_drift.api.app import create_app
from canvas_drift.config import Settings
from canvas_drift.pixels import RgbaFrame
from canvas_drift_sdk import DriftClient


class RoutedResponse:
    """Just enough of ``requests.Response`` for ``DriftClient``."""

    def __init__(self, status_code: int, content: bytes = b"", headers: Optional[Dict[str, str]] = None) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


def route_to(test_client: TestClient) -> Callable[..., RoutedResponse]:
    def _request(method: str, url: str, headers=None, data=None, timeout=None, **_kwargs) -> RoutedResponse:
        resp = test_client.request(method, urlsplit(url).path, content=data, headers=headers)
        return RoutedResponse(resp.status_code, resp.content, dict(resp.headers))

    return _request


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture()
def api_client(settings) -> TestClient:
    return TestClient(create_app(settings=settings))


@pytest.fixture()
def drift_client(monkeypatch, api_client) -> DriftClient:
    monkeypatch.setattr(requests, "request", route_to(api_client))
    return DriftClient("http://drift.test")


def _make_frames(value: int = 0) -> Dict[str, RgbaFrame]:
    return {
        "first": RgbaFrame(width=2, height=1, pixels=bytes([value, 0, 0, 255, 9, 9, 9, 255])),
        "second": RgbaFrame(width=1, height=1, pixels=bytes([50, 60, 70, 255])),
    }


@pytest.fixture()
def make_frames() -> Callable[[int], Dict[str, RgbaFrame]]:
    return _make_frames


@pytest.fixture()
def routed_request(api_client) -> Callable[..., RoutedResponse]:
    return route_to(api_client)

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from canvas_drift.api.server import build_uvicorn_config
from canvas_drift.config import Settings, utc_now_iso


def test_defaults_from_empty_env() -> None:
    settings = Settings.from_env({})

    assert settings.data_dir == Path("data")
    assert settings.port == 8080
    assert settings.reload is False
    assert settings.server_url == "http://127.0.0.1:8080"
    assert settings.sample_cap == 50
    assert settings.timeout_s == 30.0
    assert settings.history_path == Path("data") / "history.json"
    assert settings.last_session_path.name == "last_session_v2.json"


def test_values_from_env(tmp_path) -> None:
    settings = Settings.from_env(
        {
            "CANVAS_DRIFT_DATA_DIR": str(tmp_path),
            "CANVAS_DRIFT_HOST": "0.0.0.0",
            "CANVAS_DRIFT_PORT": "9001",
            "CANVAS_DRIFT_RELOAD": "true",
            "CANVAS_DRIFT_LOG_LEVEL": "DEBUG",
            "CANVAS_DRIFT_URL": "http://drift:1",
            "CANVAS_DRIFT_SAMPLE_CAP": "5",
            "CANVAS_DRIFT_TIMEOUT_S": "2.5",
        }
    )

    assert settings.baseline_path == tmp_path / "baseline.json"
    assert settings.reload is True
    assert settings.log_level == "debug"
    assert settings.server_url == "http://drift:1"
    assert settings.sample_cap == 5
    assert settings.timeout_s == 2.5
    assert build_uvicorn_config(settings) == {"host": "0.0.0.0", "port": 9001, "log_level": "debug"}


def test_bad_numbers_fall_back_or_clamp() -> None:
    settings = Settings.from_env(
        {
            "CANVAS_DRIFT_PORT": "99999",
            "CANVAS_DRIFT_SAMPLE_CAP": "-3",
            "CANVAS_DRIFT_TIMEOUT_S": "soon",
            "CANVAS_DRIFT_RELOAD": "0",
        }
    )

    assert settings.port == 65535
    assert settings.sample_cap == 0
    assert settings.timeout_s == 30.0
    assert settings.reload is False


def test_client_url_follows_port() -> None:
    assert Settings.from_env({"CANVAS_DRIFT_PORT": "abc"}).port == 8080
    assert Settings.from_env({"CANVAS_DRIFT_PORT": "7000"}).server_url == "http://127.0.0.1:7000"


def test_utc_now_iso_is_timezone_aware() -> None:
    stamp = datetime.fromisoformat(utc_now_iso())

    assert stamp.utcoffset() is not None
    assert stamp.utcoffset().total_seconds() == 0

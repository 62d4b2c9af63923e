"""Environment-driven settings shared by the server, the client and the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .differ import DEFAULT_SAMPLE_CAP

ENV_PREFIX = "CANVAS_DRIFT_"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _env_int(env: Mapping[str, str], name: str, default: int, *, minimum: int = 0) -> int:
    raw = (env.get(ENV_PREFIX + name) or "").strip()
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(ENV_PREFIX + name) or "").strip()
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("data")
    host: str = "127.0.0.1"
    port: int = 8080
    reload: bool = False
    log_level: str = "info"
    server_url: str = "http://127.0.0.1:8080"
    sample_cap: int = DEFAULT_SAMPLE_CAP
    timeout_s: float = 30.0

    @property
    def baseline_path(self) -> Path:
        return self.data_dir / "baseline.json"

    @property
    def last_session_path(self) -> Path:
        return self.data_dir / "last_session_v2.json"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.json"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, *, use_dotenv: bool = True) -> "Settings":
        if env is None:
            if use_dotenv:
                load_dotenv()
            env = os.environ
        port = _env_int(env, "PORT", 8080, minimum=1)
        return cls(
            data_dir=Path(env.get(ENV_PREFIX + "DATA_DIR") or "data").expanduser(),
            host=env.get(ENV_PREFIX + "HOST") or "127.0.0.1",
            port=min(port, 65535),
            reload=(env.get(ENV_PREFIX + "RELOAD") or "").strip().lower() in {"1", "true", "yes", "on"},
            log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or "info").lower(),
            server_url=env.get(ENV_PREFIX + "URL") or f"http://127.0.0.1:{port}",
            sample_cap=_env_int(env, "SAMPLE_CAP", DEFAULT_SAMPLE_CAP),
            timeout_s=_env_float(env, "TIMEOUT_S", 30.0),
        )

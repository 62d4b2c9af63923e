"""Whole-document JSON files with atomic replace."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

from ..config import Settings

logger = logging.getLogger(__name__)


class JsonDocument:
    """A single JSON document on disk.

    Writes go to a temp file in the same directory and are renamed over the
    target, so readers see either the old or the new document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser().resolve()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Any:
        return json.loads(self.path.read_text(encoding="utf-8"))

    def write(self, payload: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp-{time.time_ns()}")
        try:
            tmp.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
            os.replace(tmp, self.path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

    def delete(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted %s", self.path)
        return True


class DocumentStore:
    """The three documents the service owns."""

    def __init__(self, settings: Settings) -> None:
        self.baseline = JsonDocument(settings.baseline_path)
        self.last_session = JsonDocument(settings.last_session_path)
        self.history = JsonDocument(settings.history_path)

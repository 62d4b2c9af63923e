"""Entry point for serving the storage API via uvicorn."""

from __future__ import annotations

import logging
from typing import Any, Dict

import uvicorn

from ..config import Settings
from .app import create_app

logger = logging.getLogger(__name__)


def build_uvicorn_config(settings: Settings) -> Dict[str, Any]:
    return {
        "host": settings.host,
        "port": settings.port,
        "log_level": settings.log_level,
    }


def serve(settings: Settings | None = None) -> None:
    settings = settings or Settings.from_env()
    config = build_uvicorn_config(settings)
    logger.info("Serving storage from %s on http://%s:%s", settings.data_dir.resolve(), settings.host, settings.port)
    if settings.reload:
        # Reload needs an import string; the module-level app reads the same environment.
        uvicorn.run("canvas_drift.api.app:app", reload=True, **config)
        return
    uvicorn.run(create_app(settings=settings), **config)


def main() -> None:
    serve()


if __name__ == "__main__":
    main()

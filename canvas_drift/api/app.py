"""FastAPI application exposing baseline, last-session and history storage."""

from __future__ import annotations

from typing import Any

from fastapi import Body, Depends, FastAPI

from ..config import Settings
from .models import (
    BaselineDocument,
    ErrorResponse,
    HealthResponse,
    HistoryDocument,
    LastSessionSaved,
    OkResponse,
)
from .service import StorageService


def create_app(service: StorageService | None = None, settings: Settings | None = None) -> FastAPI:
    app = FastAPI(title="canvas-drift storage", version="0.1.0")
    _service = service or StorageService(settings=settings)

    def get_service() -> StorageService:
        return _service

    @app.get("/health", response_model=HealthResponse)
    @app.get("/healthz", response_model=HealthResponse)
    async def health():
        return HealthResponse()

    # ---------------------------------------------------------------- baseline
    @app.get(
        "/baseline",
        response_model=BaselineDocument,
        responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def get_baseline(svc: StorageService = Depends(get_service)):
        return await svc.get_baseline()

    @app.put("/baseline", response_model=OkResponse, responses={400: {"model": ErrorResponse}})
    async def put_baseline(payload: Any = Body(default=None), svc: StorageService = Depends(get_service)):
        await svc.put_baseline(payload)
        return OkResponse()

    @app.delete("/baseline", response_model=OkResponse)
    async def delete_baseline(svc: StorageService = Depends(get_service)):
        await svc.delete_baseline()
        return OkResponse()

    # ------------------------------------------------------------ last session
    @app.get(
        "/last-session",
        responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def get_last_session(svc: StorageService = Depends(get_service)):
        return await svc.get_last_session()

    @app.put("/last-session", response_model=LastSessionSaved, responses={400: {"model": ErrorResponse}})
    async def put_last_session(payload: Any = Body(default=None), svc: StorageService = Depends(get_service)):
        saved_at = await svc.put_last_session(payload)
        return LastSessionSaved(savedAt=saved_at)

    # ----------------------------------------------------------------- history
    @app.get("/history", response_model=HistoryDocument, responses={500: {"model": ErrorResponse}})
    async def get_history(svc: StorageService = Depends(get_service)):
        return await svc.load_history()

    @app.put("/history", response_model=OkResponse)
    async def put_history(payload: Any = Body(default=None), svc: StorageService = Depends(get_service)):
        await svc.replace_history(payload)
        return OkResponse()

    # Same as PUT /history, for proxies that refuse PUT.
    @app.post("/history/put", response_model=OkResponse)
    async def post_history(payload: Any = Body(default=None), svc: StorageService = Depends(get_service)):
        await svc.replace_history(payload)
        return OkResponse()

    @app.put(
        "/history/append",
        response_model=HistoryDocument,
        responses={400: {"model": ErrorResponse}},
    )
    async def append_history(payload: Any = Body(default=None), svc: StorageService = Depends(get_service)):
        return await svc.append_history(payload)

    @app.delete("/history", response_model=OkResponse)
    async def delete_history(svc: StorageService = Depends(get_service)):
        await svc.delete_history()
        return OkResponse()

    return app


# Default app for uvicorn module-level discovery.
app = create_app()

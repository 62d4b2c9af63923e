"""Storage operations behind the FastAPI routes."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Mapping

from fastapi import HTTPException, status

from ..config import Settings, utc_now_iso
from ..history import HistoryAccumulator, empty_history, history_violations, normalize_history
from ..merge import extract_run_deltas, merge_run
from .storage import DocumentStore, JsonDocument

logger = logging.getLogger(__name__)

SESSION_KEYS = ("raw", "png_blob", "png_durl")


def _is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


class StorageService:
    """Facade over the baseline, last-session and history documents."""

    def __init__(self, settings: Settings | None = None, store: DocumentStore | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.store = store or DocumentStore(self.settings)
        self._history_lock = asyncio.Lock()

    # ------------------------------------------------------------------ helpers
    async def _read(self, doc: JsonDocument, what: str) -> Any:
        try:
            return await asyncio.to_thread(doc.read)
        except (OSError, ValueError) as exc:
            logger.exception("Failed to read %s from %s", what, doc.path)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"failed to read {what}"
            ) from exc

    async def _write(self, doc: JsonDocument, payload: Any, what: str) -> None:
        try:
            await asyncio.to_thread(doc.write, payload)
        except OSError as exc:
            logger.exception("Failed to write %s to %s", what, doc.path)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"failed to write {what}"
            ) from exc

    async def _delete(self, doc: JsonDocument, what: str) -> None:
        try:
            await asyncio.to_thread(doc.delete)
        except OSError as exc:
            logger.exception("Failed to delete %s at %s", what, doc.path)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"failed to delete {what}"
            ) from exc

    # ----------------------------------------------------------------- baseline
    async def get_baseline(self) -> Dict[str, Any]:
        doc = self.store.baseline
        if not doc.exists():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no baseline")
        data = await self._read(doc, "baseline")
        if not _is_object(data) or not _is_object(data.get("pixels")):
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="corrupted baseline file")
        return data

    async def put_baseline(self, payload: Any) -> None:
        if not _is_object(payload) or not _is_object(payload.get("pixels")):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="invalid payload: require {pixels:{}, meta{}}",
            )
        await self._write(self.store.baseline, payload, "baseline")
        logger.info("Baseline replaced (%d images)", len(payload["pixels"]))

    async def delete_baseline(self) -> None:
        await self._delete(self.store.baseline, "baseline")

    # ------------------------------------------------------------- last session
    async def get_last_session(self) -> Dict[str, Any]:
        doc = self.store.last_session
        if not doc.exists():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="no last session")
        data = await self._read(doc, "last-session")
        if not _is_object(data):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="corrupted last-session file"
            )
        data = dict(data)
        # Files written before png_blob existed stored the same data under "png".
        if _is_object(data.get("png")) and not _is_object(data.get("png_blob")):
            data["png_blob"] = data["png"]
        has_pixels = any(_is_object(data.get(key)) for key in SESSION_KEYS)
        if not (has_pixels and _is_object(data.get("meta"))):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="corrupted last-session file"
            )
        return data

    async def put_last_session(self, body: Any) -> str:
        body = body if _is_object(body) else {}
        png_blob = body.get("png_blob") if _is_object(body.get("png_blob")) else body.get("png")
        parts = {
            "raw": body.get("raw"),
            "png_blob": png_blob,
            "png_durl": body.get("png_durl"),
        }
        parts = {key: value for key, value in parts.items() if _is_object(value)}
        if not parts:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="invalid payload: provide at least one of {raw, png/blob pixels, png_durl dataURLs}",
            )
        meta = body.get("meta") if _is_object(body.get("meta")) else {}
        saved_at = meta.get("savedAt")
        if not isinstance(saved_at, str) or not saved_at:
            saved_at = utc_now_iso()
        await self._write(self.store.last_session, {**parts, "meta": {"savedAt": saved_at}}, "last-session")
        return saved_at

    # ------------------------------------------------------------------ history
    async def load_history(self) -> HistoryAccumulator:
        doc = self.store.history
        if not doc.exists():
            return empty_history()
        try:
            raw = await asyncio.to_thread(doc.read)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("History file %s is corrupt (%s); starting from empty history", doc.path, exc)
            return empty_history()
        except OSError as exc:
            logger.exception("Failed to read history from %s", doc.path)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to read history"
            ) from exc
        history = normalize_history(raw)
        problems = history_violations(history)
        if problems:
            logger.warning("History file %s breaks %d invariant(s), first: %s", doc.path, len(problems), problems[0])
        return history

    async def _write_history(self, candidate: Any) -> HistoryAccumulator:
        history = normalize_history(candidate)
        await self._write(self.store.history, history, "history")
        return history

    async def replace_history(self, body: Any) -> HistoryAccumulator:
        async with self._history_lock:
            return await self._write_history(body)

    async def append_history(self, body: Any) -> HistoryAccumulator:
        run_deltas = extract_run_deltas(body)
        if run_deltas is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="invalid payload: expected { images: { [name]: { changedMap } } }",
            )
        async with self._history_lock:
            history = merge_run(await self.load_history(), run_deltas)
            history = await self._write_history(history)
        logger.info("History run %d appended (%d images)", history["runs"], len(run_deltas))
        return history

    async def delete_history(self) -> None:
        async with self._history_lock:
            await self._delete(self.store.history, "history")

"""Versioning REST API server on FastAPI."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..folders.exceptions import (
    FolderAlreadyExistsError,
    FolderError,
    FolderNotFoundError,
    RelocationError,
)
from ..folders.service import VersioningService
from ..history.exceptions import HistoryStoreError, NotFoundError
from .events import EventLog

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8765


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _payload(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _folder_dict(service: VersioningService, folder) -> Dict[str, Any]:
    data = folder.to_dict()
    data["watching"] = service.is_watching(folder.id)
    return data


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

def create_app(service: VersioningService, events: Optional[EventLog] = None) -> FastAPI:
    app = FastAPI(title="Local Versioning API", docs_url=None, redoc_url=None)

    events = events or EventLog()
    app.state.service = service
    app.state.events = events

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(str(exc), 404)

    @app.exception_handler(FolderNotFoundError)
    async def folder_not_found_handler(request: Request, exc: FolderNotFoundError):
        return _error(str(exc), 404)

    @app.exception_handler(FolderAlreadyExistsError)
    async def folder_exists_handler(request: Request, exc: FolderAlreadyExistsError):
        return _error(str(exc), 409)

    @app.exception_handler(RelocationError)
    async def relocation_handler(request: Request, exc: RelocationError):
        return _error(str(exc), 409)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error(str(exc), 400)

    @app.exception_handler(HistoryStoreError)
    async def store_error_handler(request: Request, exc: HistoryStoreError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(str(exc), 500)

    @app.exception_handler(FolderError)
    async def folder_error_handler(request: Request, exc: FolderError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(str(exc), 500)

    # ------------------------------------------------------------------
    # Health and settings
    # ------------------------------------------------------------------

    @app.get("/api/health")
    def health():
        folders = service.folders()
        return {
            "status": "ok",
            "folders": len(folders),
            "watching": sum(1 for f in folders if service.is_watching(f.id)),
        }

    @app.get("/api/settings")
    def get_settings():
        config = service.registry.config.to_dict()
        config.pop("watched_folders", None)
        return config

    @app.patch("/api/settings")
    async def update_settings(request: Request):
        payload = await _payload(request)
        config = service.registry.update_settings(
            default_store_location=payload.get("default_store_location"),
            default_custom_store_root=payload.get("default_custom_store_root"),
        ).to_dict()
        config.pop("watched_folders", None)
        return config

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    @app.get("/api/folders")
    def list_folders():
        return [_folder_dict(service, f) for f in service.folders()]

    @app.post("/api/folders")
    async def add_folder(request: Request):
        payload = await _payload(request)
        path = payload.pop("path", None)
        if not path:
            return _error("Missing path", 400)
        start = bool(payload.pop("start", True))
        folder = service.add_folder(Path(path), start=start, **payload)
        return JSONResponse(_folder_dict(service, folder), status_code=201)

    @app.get("/api/folders/{folder_id}")
    def get_folder(folder_id: str):
        return _folder_dict(service, service.get_folder(folder_id))

    @app.patch("/api/folders/{folder_id}")
    async def update_folder(folder_id: str, request: Request):
        payload = await _payload(request)
        if not payload:
            return _error("No updates given", 400)
        folder = service.update_folder(folder_id, **payload)
        return _folder_dict(service, folder)

    @app.delete("/api/folders/{folder_id}")
    def remove_folder(folder_id: str):
        folder = service.remove_folder(folder_id)
        return {"removed": folder.id}

    @app.post("/api/folders/{folder_id}/watch/start")
    def start_watching(folder_id: str):
        watching = service.start_watching(folder_id)
        if not watching:
            return _error(f"Could not start watching {folder_id}", 500)
        return {"watching": True}

    @app.post("/api/folders/{folder_id}/watch/stop")
    def stop_watching(folder_id: str):
        service.stop_watching(folder_id)
        return {"watching": False}

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @app.get("/api/folders/{folder_id}/commits")
    def list_commits(folder_id: str, limit: int = 50):
        return [c.to_dict() for c in service.list_commits(folder_id, limit)]

    @app.get("/api/folders/{folder_id}/file")
    def read_file(folder_id: str, ref: str, path: str):
        return {"path": path, "ref": ref, "content": service.read_file_at(folder_id, ref, path)}

    @app.get("/api/folders/{folder_id}/diff")
    def diff(folder_id: str, path: str, old_ref: str, new_ref: Optional[str] = None):
        return service.diff(folder_id, path, old_ref, new_ref).to_dict()

    @app.post("/api/folders/{folder_id}/restore")
    async def restore(folder_id: str, request: Request):
        payload = await _payload(request)
        path = payload.get("path")
        ref = payload.get("ref")
        if not path or not ref:
            return _error("Missing path or ref", 400)
        return {"commit": service.restore(folder_id, path, ref)}

    @app.post("/api/folders/{folder_id}/relocate")
    async def relocate(folder_id: str, request: Request):
        payload = await _payload(request)
        new_location = payload.get("new_location")
        if not new_location:
            return _error("Missing new_location", 400)
        result = service.relocate(folder_id, Path(new_location))
        return result.to_dict()

    @app.get("/api/folders/{folder_id}/pending")
    def pending(folder_id: str):
        return {"pending": service.pending_changes(folder_id)}

    # ------------------------------------------------------------------
    # Working tree files
    # ------------------------------------------------------------------

    @app.get("/api/folders/{folder_id}/files")
    def list_files(folder_id: str):
        return {"files": service.list_files(folder_id)}

    @app.put("/api/folders/{folder_id}/files")
    async def save_file(folder_id: str, request: Request):
        payload = await _payload(request)
        path = payload.get("path")
        if not path or "content" not in payload:
            return _error("Missing path or content", 400)
        service.save_file(folder_id, path, str(payload["content"]))
        return {"saved": path}

    @app.post("/api/folders/{folder_id}/files")
    async def create_file(folder_id: str, request: Request):
        payload = await _payload(request)
        path = payload.get("path")
        if not path:
            return _error("Missing path", 400)
        service.create_file(folder_id, path, str(payload.get("content", "")))
        return JSONResponse({"created": path}, status_code=201)

    # ------------------------------------------------------------------
    # Store detection and notifications
    # ------------------------------------------------------------------

    @app.get("/api/detect-store")
    def detect_store(path: str, name: Optional[str] = None):
        detected = service.detect_existing_store(Path(path), name)
        if detected is None:
            return {"found": False}
        return detected.to_dict()

    @app.get("/api/events")
    def list_events(since: int = 0, folder_id: Optional[str] = None):
        return {
            "events": [e.to_dict() for e in events.since(since, folder_id)],
            "last_seq": events.last_seq,
        }

    return app


class APIService:
    """Wrapper to run the FastAPI server via uvicorn in a background thread."""

    def __init__(
        self,
        cfg: APIConfig,
        service: VersioningService,
        events: Optional[EventLog] = None,
    ):
        self.cfg = cfg
        self.service = service
        self.events = events
        self._thread: Optional[threading.Thread] = None
        self._server: Any = None

    def start(self) -> None:
        import uvicorn

        app = create_app(self.service, self.events)

        config = uvicorn.Config(
            app,
            host=self.cfg.host,
            port=self.cfg.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        self._thread = threading.Thread(target=self._server.run, daemon=True)
        self._thread.start()
        logger.info(f"API listening on http://{self.cfg.host}:{self.cfg.port}")

    def stop(self) -> None:
        if self._server:
            self._server.should_exit = True
            self._server = None
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

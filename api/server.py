"""FastAPI application exposing the triage pipeline over a local REST interface."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request, Response, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from triage.errors import ExecuteError, FileTooLargeError, RefineError, ScanError
from triage.events import EventBus
from triage.service import TriageService

from .events import TriageEventBroker
from .models import (
    ApplyRequest,
    ConflictModel,
    ConflictsResponse,
    FilesResponse,
    FolderEntryModel,
    FolderInfoModel,
    FoldersResponse,
    HealthResponse,
    MessageResponse,
    ProposalModel,
    ProposalsRequest,
    ProposalsResponse,
    StartRunRequest,
    SubcategoryRequest,
    SubcategoryResponse,
)

LOGGER = logging.getLogger("smartdump.api")


@dataclass(slots=True)
class APIServerConfig:
    """Runtime configuration for the FastAPI application."""

    service: TriageService
    bus: EventBus
    cors_origins: Sequence[str] = ()
    app_version: str = "dev"
    lan_only: bool = True
    poll_interval: float = 1.0


_LOCAL_CLIENT_SENTINELS = {
    "127.0.0.1",
    "::1",
    "localhost",
    "testclient",
}


def _normalise_remote_host(host: Optional[str]) -> Optional[str]:
    if host is None:
        return None
    value = host.strip().lower()
    if not value:
        return None
    if value.startswith("::ffff:"):
        value = value.rsplit(":", 1)[-1]
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if "%" in value:  # IPv6 scope id
        value = value.split("%", 1)[0]
    return value


def _is_loopback_host(host: Optional[str]) -> bool:
    value = _normalise_remote_host(host)
    if value is None:
        return True
    return value in _LOCAL_CLIENT_SENTINELS or value.startswith("127.")


def _now_utc() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def create_app(config: APIServerConfig) -> FastAPI:
    """Create a FastAPI application bound to the given triage service."""

    app = FastAPI(
        title="SmartDump Local API",
        version=config.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    allowed_origins: List[str] = [origin for origin in config.cors_origins if origin]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    service = config.service
    broker = TriageEventBroker(config.bus, poll_interval=config.poll_interval)
    lan_only = bool(config.lan_only)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        service.shutdown()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response: Optional[Response] = None
        client_host = request.client.host if request.client else None
        try:
            if lan_only and not _is_loopback_host(client_host):
                LOGGER.warning("Rejected non-local HTTP request from %s", client_host or "<unknown>")
                response = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "LAN access disabled"})
            else:
                response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response is not None else 500
            LOGGER.info(
                "%s %s -> %s (%.1f ms) ip=%s",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                client_host or "-",
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid parameters", "details": exc.errors()},
        )

    @app.get("/v1/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        return HealthResponse(
            ok=True,
            version=config.app_version,
            time_utc=_now_utc(),
            watching=service.watching,
            sse_clients=broker.client_count("sse"),
            ws_clients=broker.client_count("ws"),
        )

    @app.post("/v1/triage/runs", response_model=MessageResponse)
    def start_run(payload: StartRunRequest) -> MessageResponse:
        try:
            message = service.start_run(
                payload.folder,
                payload.api_key,
                selected_paths=payload.selected_paths,
                watch=payload.watch,
            )
        except (ScanError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return MessageResponse(message=message)

    @app.delete("/v1/triage/runs", response_model=MessageResponse)
    def stop_run() -> MessageResponse:
        return MessageResponse(message=service.stop_run())

    @app.get("/v1/triage/files", response_model=FilesResponse)
    def list_files(folder: str = Query(..., min_length=1)) -> FilesResponse:
        try:
            entries = service.list_candidates(folder)
        except ScanError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        return FilesResponse(folder=folder, files=[FolderEntryModel(**entry.to_json()) for entry in entries])

    @app.get("/v1/triage/folders", response_model=FoldersResponse)
    def list_folders(folder: str = Query(..., min_length=1)) -> FoldersResponse:
        try:
            folders = service.list_subfolders(folder)
        except ScanError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        return FoldersResponse(folder=folder, folders=[FolderInfoModel(**info.to_json()) for info in folders])

    @app.post("/v1/triage/apply", response_model=MessageResponse)
    def apply_proposal(payload: ApplyRequest) -> MessageResponse:
        try:
            message = service.apply_proposal(payload.original_path, payload.new_path)
        except ExecuteError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return MessageResponse(message=message)

    @app.post("/v1/triage/subcategory", response_model=SubcategoryResponse)
    def refine_subcategory(payload: SubcategoryRequest) -> SubcategoryResponse:
        try:
            result = service.refine_subcategory(payload.file_path, payload.parent_category, payload.api_key)
        except FileTooLargeError as exc:
            raise HTTPException(status_code=413, detail=str(exc))
        except RefineError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        response = SubcategoryResponse(**result.to_json())
        if payload.proposal is not None:
            refined = service.apply_subcategory(payload.proposal.to_proposal(), result.subcategory)
            response.proposal = ProposalModel(**refined.to_json())
        return response

    @app.post("/v1/triage/conflicts", response_model=ConflictsResponse)
    def check_conflicts(payload: ProposalsRequest) -> ConflictsResponse:
        conflicts = service.check_conflicts(item.to_proposal() for item in payload.proposals)
        return ConflictsResponse(conflicts=[ConflictModel(**conflict.to_json()) for conflict in conflicts])

    @app.post("/v1/triage/organize", response_model=ProposalsResponse)
    def organize(payload: ProposalsRequest) -> ProposalsResponse:
        proposals = service.organize([item.to_proposal() for item in payload.proposals])
        return ProposalsResponse(proposals=[ProposalModel(**proposal.to_json()) for proposal in proposals])

    @app.get("/v1/triage/events")
    async def triage_events(request: Request) -> StreamingResponse:
        async def event_stream():
            stream = broker.subscribe("sse")
            try:
                async for event in stream:
                    if event is None:
                        if await request.is_disconnected():
                            break
                        yield ": keep-alive\n\n"
                        continue
                    yield f"data: {json.dumps(event.to_json())}\n\n"
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.debug("SSE stream stopped: %s", exc)
            finally:
                await stream.aclose()

        headers = {
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Realtime-Transport": "sse",
        }
        return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)

    @app.websocket("/v1/triage/events")
    async def triage_events_ws(websocket: WebSocket):
        client_host = websocket.client.host if websocket.client else None
        if lan_only and not _is_loopback_host(client_host):
            LOGGER.warning("Rejected non-local WebSocket connection from %s", client_host or "<unknown>")
            await websocket.close(code=4403)
            return
        await websocket.accept()

        async def pump() -> None:
            async for event in broker.subscribe("ws"):
                if event is not None:
                    await websocket.send_json(event.to_json())

        pump_task = asyncio.create_task(pump(), name="triage-ws-pump")
        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        finally:
            pump_task.cancel()
            try:
                await pump_task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                LOGGER.debug("WebSocket stream closed: %s", exc)

    return app


__all__ = ["APIServerConfig", "create_app"]

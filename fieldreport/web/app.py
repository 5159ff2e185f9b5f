"""FastAPI app exposing the capture session to a local front end."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from fieldreport.capture import (
    CaptureError,
    CaptureMetadata,
    CaptureSessionManager,
    CapturedItem,
    EmptySessionError,
    EmptySummaryError,
    IncomingFile,
    ItemNotFoundError,
    Location,
    OfflineQueueError,
    ReportGenerationError,
    ReportType,
    SummaryServiceError,
    SummaryTimeoutError,
    UnauthenticatedError,
)
from fieldreport.config import load_settings
from fieldreport.media import ImageProcessingError
from fieldreport.runtime import Runtime, build_runtime


ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (UnauthenticatedError, 401),
    (EmptySessionError, 400),
    (ItemNotFoundError, 404),
    (OfflineQueueError, 507),
    (SummaryTimeoutError, 504),
    (SummaryServiceError, 502),
    (EmptySummaryError, 503),
    (CaptureError, 409),
    (ReportGenerationError, 502),
)


class CaptionBody(BaseModel):
    text: str = Field(max_length=500)


class NotesBody(BaseModel):
    text: str = Field(max_length=1000)


class ReportLinkBody(BaseModel):
    report_id: str | None = None


class MarkupBody(BaseModel):
    boxes: list[tuple[int, int, int, int]] = Field(default_factory=list)
    lines: list[tuple[int, int, int, int]] = Field(default_factory=list)


class SubmitBody(BaseModel):
    report_type: ReportType = ReportType.DAILY


class WorkOfflineBody(BaseModel):
    enabled: bool


def item_payload(item: CapturedItem) -> dict[str, Any]:
    location = item.location
    return {
        "id": item.id,
        "kind": item.kind.value,
        "mime_type": item.mime_type,
        "file_name": item.file_name,
        "file_size": len(item.binary),
        "caption": item.caption,
        "caption_edited": item.caption_edited,
        "voice_note": item.voice_note,
        "location": (
            {"latitude": location.latitude, "longitude": location.longitude, "name": location.name}
            if location
            else None
        ),
        "captured_at": item.captured_at.isoformat() if item.captured_at else None,
        "remote_thumbnail_path": item.remote_thumbnail_path,
        "upload_state": item.upload_state.value if item.upload_state else None,
        "annotated": item.original_binary is not None,
        "labeling": item.labeling,
        "deleted": item.deleted,
    }


def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the app; ``runtime`` defaults to one built from the environment."""
    state: dict[str, Any] = {"runtime": runtime, "work_offline": None}

    def current_runtime() -> Runtime:
        if state["runtime"] is None:
            state["runtime"] = build_runtime(load_settings())
        return state["runtime"]

    def is_offline() -> bool:
        override = state["work_offline"]
        if override is not None:
            return bool(override)
        return current_runtime().settings.work_offline

    def manager() -> CaptureSessionManager:
        if state.get("manager") is None:
            state["manager"] = current_runtime().new_session(is_offline=is_offline)
        return state["manager"]

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        session = state.get("manager")
        if session is not None:
            await session.aclose()
        if state["runtime"] is not None:
            await state["runtime"].aclose()

    app = FastAPI(title="Field Report Capture Service", lifespan=lifespan)

    async def handle_domain_error(_: Request, exc: Exception) -> JSONResponse:
        for error_cls, status_code in ERROR_STATUS:
            if isinstance(exc, error_cls):
                return JSONResponse({"detail": str(exc)}, status_code=status_code)
        return JSONResponse({"detail": str(exc)}, status_code=500)

    app.add_exception_handler(CaptureError, handle_domain_error)
    app.add_exception_handler(ReportGenerationError, handle_domain_error)

    def session_payload() -> dict[str, Any]:
        session = manager()
        return {
            "notes": session.notes,
            "linked_report_id": session.linked_report_id,
            "offline": session.is_offline,
            "warnings": list(session.warnings),
            "active_count": len(session.active_items),
            "items": [item_payload(item) for item in session.items],
        }

    @app.get("/api/session")
    async def get_session_state() -> dict[str, Any]:
        return session_payload()

    @app.get("/api/draft")
    async def get_draft() -> dict[str, Any]:
        draft = manager().load_draft()
        if draft is None:
            return {"available": False}
        return {
            "available": True,
            "saved_at": draft.saved_at.isoformat() if draft.saved_at else None,
            "notes": draft.notes,
            "active_count": len(draft.active_items),
        }

    @app.post("/api/draft/restore")
    async def restore_draft() -> dict[str, Any]:
        session = manager()
        draft = session.load_draft()
        if draft is None:
            raise HTTPException(status_code=404, detail="No draft to restore")
        session.restore_draft(draft)
        return session_payload()

    @app.post("/api/session/items")
    async def add_items(
        files: list[UploadFile] = File(...),
        latitude: float | None = Form(default=None),
        longitude: float | None = Form(default=None),
        location_name: str | None = Form(default=None),
    ) -> dict[str, Any]:
        incoming = [
            IncomingFile(
                data=await upload.read(),
                mime_type=upload.content_type or "image/jpeg",
                file_name=upload.filename or None,
            )
            for upload in files
        ]
        location = None
        if latitude is not None and longitude is not None:
            location = Location(latitude=latitude, longitude=longitude, name=location_name)
        session = manager()
        added = session.add_items(incoming, CaptureMetadata(location=location))
        return {
            "items": [item_payload(item) for item in added],
            "warnings": list(session.warnings),
        }

    @app.get("/api/session/items/{item_id}/file")
    async def item_file(item_id: str) -> Response:
        item = manager().get_item(item_id)
        return Response(content=item.binary, media_type=item.mime_type)

    @app.delete("/api/session/items/{item_id}")
    async def delete_item(item_id: str) -> dict[str, Any]:
        manager().delete_item(item_id)
        return item_payload(manager().get_item(item_id))

    @app.post("/api/session/items/{item_id}/restore")
    async def restore_item(item_id: str) -> dict[str, Any]:
        manager().restore_item(item_id)
        return item_payload(manager().get_item(item_id))

    @app.put("/api/session/items/{item_id}/caption")
    async def edit_caption(item_id: str, body: CaptionBody) -> dict[str, Any]:
        manager().edit_caption(item_id, body.text)
        return item_payload(manager().get_item(item_id))

    @app.post("/api/session/items/{item_id}/annotate")
    async def annotate(item_id: str, file: UploadFile = File(...)) -> dict[str, Any]:
        manager().annotate(item_id, await file.read(), file.content_type)
        return item_payload(manager().get_item(item_id))

    @app.post("/api/session/items/{item_id}/markup")
    async def markup(item_id: str, body: MarkupBody) -> dict[str, Any]:
        try:
            await manager().annotate_markup(item_id, body.boxes, body.lines)
        except ImageProcessingError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return item_payload(manager().get_item(item_id))

    @app.post("/api/session/items/{item_id}/voice-note")
    async def voice_note(item_id: str, audio: UploadFile = File(...)) -> dict[str, Any]:
        transcript = await manager().record_voice_note(
            item_id,
            await audio.read(),
            audio.content_type or "audio/webm",
        )
        if transcript is None:
            raise HTTPException(status_code=422, detail="Failed to transcribe audio")
        return item_payload(manager().get_item(item_id))

    @app.put("/api/session/notes")
    async def set_notes(body: NotesBody) -> dict[str, Any]:
        manager().set_notes(body.text)
        return session_payload()

    @app.post("/api/session/notes/dictate")
    async def dictate_notes(audio: UploadFile = File(...)) -> dict[str, Any]:
        transcript = await manager().dictate_notes(await audio.read(), audio.content_type or "audio/webm")
        if transcript is None:
            raise HTTPException(status_code=422, detail="Failed to transcribe audio")
        return session_payload()

    @app.put("/api/session/report")
    async def link_report(body: ReportLinkBody) -> dict[str, Any]:
        manager().link_report(body.report_id)
        return session_payload()

    @app.post("/api/session/discard")
    async def discard() -> dict[str, Any]:
        manager().discard_all()
        return session_payload()

    @app.post("/api/session/submit")
    async def submit(body: SubmitBody | None = None) -> dict[str, Any]:
        report_type = body.report_type if body else ReportType.DAILY
        result = await manager().submit(report_type)
        if result.offline:
            return {"offline": True, "queued": result.queued_count}
        report = result.report
        if report is None:
            raise HTTPException(status_code=500, detail="Submit finished without a report")
        return {
            "offline": False,
            "summary": report.summary,
            "image_count": report.image_count,
            "fast_path_count": report.fast_path_count,
            "items": [
                {
                    "id": display.id,
                    "kind": display.kind.value,
                    "data_url": display.data_url,
                    "caption": display.caption,
                    "voice_note": display.voice_note,
                }
                for display in report.display_items
            ],
        }

    @app.get("/api/offline-queue")
    async def offline_queue() -> dict[str, int]:
        return current_runtime().queue.counts()

    @app.post("/api/offline-queue/sync")
    async def sync_offline_queue() -> dict[str, Any]:
        if is_offline():
            raise HTTPException(status_code=409, detail="Cannot sync while offline")
        progress = await current_runtime().syncer.sync()
        return {
            "total": progress.total,
            "completed": progress.completed,
            "failed": progress.failed,
            "in_progress": progress.in_progress,
        }

    @app.put("/api/settings/work-offline")
    async def set_work_offline(body: WorkOfflineBody) -> dict[str, bool]:
        state["work_offline"] = body.enabled
        return {"work_offline": body.enabled}

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, Awaitable, Callable
import inspect

import jwt
from PIL import Image
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fieldreport.backend import FunctionError, StorageError, TableError
from fieldreport.config import AppSettings
from fieldreport.db import build_engine, create_session_factory, ensure_schema


FunctionHandler = Callable[[dict[str, Any]], dict[str, Any] | Awaitable[dict[str, Any]]]


def make_jpeg(width: int = 64, height: int = 48, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buff = BytesIO()
    Image.new("RGB", (width, height), color).save(buff, format="JPEG")
    return buff.getvalue()


def make_token(subject: str = "user-1") -> str:
    return jwt.encode({"sub": subject}, "test-secret", algorithm="HS256")


def make_settings(database_url: str = "sqlite://", **overrides: Any) -> AppSettings:
    values: dict[str, Any] = {
        "database_url": database_url,
        "backend_url": "https://backend.test",
        "backend_anon_key": "anon-key",
        "backend_access_token": None,
        "storage_bucket": "media",
        "work_offline": False,
        "location_stamping": True,
        "ai_photo_limit": 25,
        "thumbnail_max_dimension": 512,
        "signed_url_ttl_seconds": 3600,
        "summary_timeout_seconds": 2.0,
        "upload_settle_seconds": 0.3,
        "upload_poll_seconds": 0.01,
        "label_timeout_seconds": 1.0,
        "draft_debounce_seconds": 0.05,
        "sync_interval_seconds": 60,
    }
    values.update(overrides)
    return AppSettings(**values)


def make_store(tmpdir: str) -> tuple[Engine, sessionmaker[Session]]:
    engine = build_engine(f"sqlite:///{Path(tmpdir) / 'local.db'}")
    ensure_schema(engine)
    return engine, create_session_factory(engine)


class FakeBackend:
    """In-memory stand-in for ``BackendClient`` used across capture tests."""

    def __init__(self, user_id: str | None = "user-1") -> None:
        self.user_id = user_id
        self.uploads: dict[str, bytes] = {}
        self.inserts: list[tuple[str, dict[str, Any]]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.functions: dict[str, FunctionHandler] = {}
        self.fail_uploads = False
        self.fail_signing = False
        self.fail_inserts_for: set[str] = set()
        self.reachable = True

    def current_user_id(self) -> str | None:
        return self.user_id

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail_uploads:
            raise StorageError("Upload rejected (500): boom", 500)
        self.uploads[path] = data
        return path

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        if self.fail_signing:
            raise StorageError("Signing rejected (400): bad path", 400)
        return f"https://backend.test/storage/v1/object/sign/media/{path}?token=t"

    async def invoke_function(
        self,
        name: str,
        body: dict[str, Any],
        timeout_sec: float | None = None,
    ) -> dict[str, Any]:
        self.calls.append((name, body))
        handler = self.functions.get(name)
        if handler is None:
            raise FunctionError(f"{name} failed (404): not deployed", 404)
        result = handler(body)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        if table in self.fail_inserts_for:
            raise TableError(f"Insert into {table} rejected (500): down", 500)
        self.inserts.append((table, row))

    async def ping(self, timeout_sec: float = 5.0) -> bool:
        return self.reachable

    async def aclose(self) -> None:
        return None

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [body for called, body in self.calls if called == name]

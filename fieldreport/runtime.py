"""Wiring of settings, local store and backend client into ready components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from fieldreport.backend import AuthSession, BackendClient
from fieldreport.capture import CaptureSessionManager, DraftStore, OfflineQueue
from fieldreport.config import AppSettings
from fieldreport.db.session import build_engine, create_session_factory, ensure_schema
from fieldreport.service import OfflineSyncer


@dataclass
class Runtime:
    settings: AppSettings
    session_factory: sessionmaker[Session]
    auth: AuthSession
    backend: BackendClient
    drafts: DraftStore
    queue: OfflineQueue
    syncer: OfflineSyncer = field(init=False)

    def __post_init__(self) -> None:
        self.syncer = OfflineSyncer(self.queue, self.backend)

    def new_session(
        self,
        is_offline: Callable[[], bool] | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> CaptureSessionManager:
        return CaptureSessionManager(
            settings=self.settings,
            backend=self.backend,
            drafts=self.drafts,
            queue=self.queue,
            is_offline=is_offline,
            on_warning=on_warning,
        )

    async def aclose(self) -> None:
        await self.drafts.aclose()
        await self.backend.aclose()


def build_runtime(settings: AppSettings, create_schema: bool = True) -> Runtime:
    """Build every long-lived component from ``settings``."""
    engine = build_engine(settings.database_url)
    if create_schema:
        ensure_schema(engine)
    session_factory = create_session_factory(engine)
    auth = AuthSession(settings.backend_access_token)
    backend = BackendClient(
        base_url=settings.backend_url,
        anon_key=settings.backend_anon_key,
        auth=auth,
        bucket=settings.storage_bucket,
    )
    return Runtime(
        settings=settings,
        session_factory=session_factory,
        auth=auth,
        backend=backend,
        drafts=DraftStore(session_factory, settings.draft_debounce_seconds),
        queue=OfflineQueue(session_factory),
    )

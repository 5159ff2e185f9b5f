"""Periodic offline-queue sync worker."""

from __future__ import annotations

import asyncio
import logging
import time

from fieldreport.config import load_settings
from fieldreport.runtime import Runtime, build_runtime
from fieldreport.service import SyncProgress


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
LOGGER = logging.getLogger("fieldreport.worker")


async def sync_once(runtime: Runtime) -> SyncProgress | None:
    """Run one sync pass when the backend is reachable; None when skipped."""
    if runtime.settings.work_offline:
        LOGGER.info("Work-offline mode enabled; skipping sync")
        return None
    if runtime.auth.current_user_id() is None:
        LOGGER.info("No signed-in user; skipping sync")
        return None
    if not await runtime.backend.ping():
        LOGGER.info("Backend unreachable; skipping sync")
        return None

    progress = await runtime.syncer.sync()
    if progress.total:
        LOGGER.info(
            "Sync pass done total=%s completed=%s failed=%s",
            progress.total,
            progress.completed,
            progress.failed,
        )
    return progress


async def run_forever(runtime: Runtime) -> None:
    """Run periodic sync passes forever."""
    interval = runtime.settings.sync_interval_seconds
    LOGGER.info("Starting sync worker with interval=%ss", interval)
    while True:
        loop_started = time.monotonic()
        try:
            await sync_once(runtime)
        except Exception as exc:
            LOGGER.exception("Worker iteration failed: %s", exc)

        elapsed = time.monotonic() - loop_started
        await asyncio.sleep(max(0.0, interval - elapsed))


def run() -> None:
    runtime = build_runtime(load_settings())
    try:
        asyncio.run(run_forever(runtime))
    except KeyboardInterrupt:
        LOGGER.info("Sync worker stopped")


if __name__ == "__main__":
    run()

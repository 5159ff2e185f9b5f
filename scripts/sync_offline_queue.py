"""Run one offline-queue sync pass against the configured backend."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from fieldreport.config import load_settings
from fieldreport.runtime import Runtime, build_runtime


def build_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Upload media and notes that were queued while offline."
    )
    parser.add_argument(
        "--counts-only",
        action="store_true",
        help="Only print how many items are waiting.",
    )
    return parser


async def _run(runtime: Runtime, counts_only: bool) -> dict[str, object]:
    try:
        if counts_only:
            return {"pending": runtime.queue.counts()}
        progress = await runtime.syncer.sync()
        return {
            "total": progress.total,
            "completed": progress.completed,
            "failed": progress.failed,
            "pending": runtime.queue.counts(),
        }
    finally:
        await runtime.aclose()


def main(argv: list[str] | None = None) -> int:
    """Run the script and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    runtime = build_runtime(load_settings())
    if not args.counts_only and runtime.auth.current_user_id() is None:
        print("Sync error: no signed-in user (set BACKEND_ACCESS_TOKEN)", file=sys.stderr)
        asyncio.run(runtime.aclose())
        return 2

    try:
        payload = asyncio.run(_run(runtime, args.counts_only))
    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(payload))
    failed = payload.get("failed", 0)
    return 3 if isinstance(failed, int) and failed > 0 else 0


if __name__ == "__main__":
    raise SystemExit(main())

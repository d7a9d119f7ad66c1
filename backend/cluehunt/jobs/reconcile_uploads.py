from __future__ import annotations
import asyncio
from cluehunt.db import SessionLocal
from cluehunt.deps import build_feed
from cluehunt.services.submissions import sweep_stale_uploads

async def _run(older_than_seconds: int | None = None) -> int:
    # The worker has no websockets of its own; the relay carries its diffs to the API processes.
    feed = build_feed()
    async with SessionLocal() as session:
        return await sweep_stale_uploads(session, feed, older_than_seconds=older_than_seconds)

def reconcile_uploads(older_than_seconds: int | None = None) -> int:
    # RQ entry point (sync); run the async coroutine
    return asyncio.run(_run(older_than_seconds))

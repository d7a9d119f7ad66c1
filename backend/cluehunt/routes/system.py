from __future__ import annotations
from fastapi import APIRouter, Depends, Request
from datetime import datetime, timezone
from cluehunt.config import settings
from cluehunt.deps import get_feed
from cluehunt.services.changefeed import ChangeFeed

router = APIRouter()

@router.get("/health")
async def health(request: Request, feed: ChangeFeed = Depends(get_feed)):
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "live_subscribers": feed.subscriber_count,
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
        "build": "docker",
    }

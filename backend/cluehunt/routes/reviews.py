from __future__ import annotations
from typing import Literal
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import require_coordinator
from cluehunt.db import get_session
from cluehunt.deps import get_feed, get_media_store
from cluehunt.schemas.submission import SubmissionPublic, RejectRequest, ReviewStats
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media_store import MediaStore
from cluehunt.services.reviews import (
    InvalidTransition, ReviewEngine, SubmissionNotFound, review_queue, review_stats,
)
from cluehunt.services.submissions import sweep_stale_uploads

router = APIRouter(prefix="/reviews", tags=["reviews"], dependencies=[Depends(require_coordinator)])

StatusFilter = Literal["pending", "approved", "rejected", "upload_failed", "all"]


def _engine(
    background: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    media: MediaStore = Depends(get_media_store),
) -> ReviewEngine:
    # Media cleanup runs after the response is sent
    return ReviewEngine(session, feed, media, defer=background.add_task)


def _http(e: Exception) -> HTTPException:
    # UploadInFlight is an InvalidTransition: both are conflicts
    code = 404 if isinstance(e, SubmissionNotFound) else 409
    return HTTPException(status_code=code, detail=str(e))


@router.get("", response_model=list[SubmissionPublic])
async def queue(
    status: StatusFilter = Query(default="pending"),
    team_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    return await review_queue(session, None if status == "all" else status, team_id, limit)


@router.get("/stats", response_model=ReviewStats)
async def stats(session: AsyncSession = Depends(get_session)):
    return ReviewStats(**await review_stats(session))


@router.post("/{submission_id}/approve", response_model=SubmissionPublic)
async def approve(submission_id: UUID, engine: ReviewEngine = Depends(_engine)):
    try:
        outcome = await engine.approve(submission_id)
    except (SubmissionNotFound, InvalidTransition) as e:
        raise _http(e)
    return outcome.submission


@router.post("/{submission_id}/reject", response_model=SubmissionPublic)
async def reject(submission_id: UUID, payload: RejectRequest | None = None,
                 engine: ReviewEngine = Depends(_engine)):
    try:
        outcome = await engine.reject(submission_id, payload.feedback if payload else None)
    except (SubmissionNotFound, InvalidTransition) as e:
        raise _http(e)
    return outcome.submission


@router.delete("/{submission_id}", status_code=204)
async def delete(submission_id: UUID, engine: ReviewEngine = Depends(_engine)):
    try:
        await engine.delete(submission_id)
    except (SubmissionNotFound, InvalidTransition) as e:
        raise _http(e)
    return Response(status_code=204)


@router.post("/sweep")
async def sweep(
    older_than_seconds: int | None = Query(default=None, ge=0),
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
):
    swept = await sweep_stale_uploads(session, feed, older_than_seconds=older_than_seconds)
    return {"swept": swept}

from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import Identity, get_identity, require_coordinator, require_player
from cluehunt.db import get_session
from cluehunt.deps import get_feed
from cluehunt.schemas.notice import AnnouncementCreate, AnnouncementPublic, AnnouncementUpdate, NotificationPublic
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services import notices

router = APIRouter(tags=["notices"])

# --- per-team notifications ---

@router.post("/notifications/take", response_model=list[NotificationPublic])
async def take_unread(
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    ident: Identity = Depends(require_player),
):
    """Unread notifications for the caller's team; each is returned once."""
    return await notices.take_unread(session, feed, ident.team_id)

@router.post("/notifications/{notification_id}/read", response_model=NotificationPublic)
async def mark_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    ident: Identity = Depends(require_player),
):
    try:
        return await notices.mark_read(session, feed, notification_id, ident.team_id)
    except notices.NoticeNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

# --- announcements ---

@router.get("/announcements", response_model=list[AnnouncementPublic])
async def list_announcements(
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    _=Depends(get_identity),
):
    return await notices.list_announcements(session, limit)

@router.post("/announcements", status_code=201, response_model=AnnouncementPublic)
async def create_announcement(
    payload: AnnouncementCreate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    return await notices.announce(session, feed, payload.message, payload.title, payload.priority)

@router.patch("/announcements/{announcement_id}", response_model=AnnouncementPublic)
async def edit_announcement(
    announcement_id: UUID,
    payload: AnnouncementUpdate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    try:
        return await notices.edit_announcement(
            session, feed, announcement_id,
            message=payload.message, title=payload.title, priority=payload.priority,
        )
    except notices.NoticeNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.delete("/announcements/{announcement_id}", status_code=204)
async def delete_announcement(
    announcement_id: UUID,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    try:
        await notices.delete_announcement(session, feed, announcement_id)
    except notices.NoticeNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

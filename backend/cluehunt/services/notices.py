from __future__ import annotations
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.db import utcnow
from cluehunt.models.notice import Announcement, Notification
from cluehunt.schemas.notice import AnnouncementPublic, NotificationPublic
from cluehunt.services.changefeed import ChangeFeed

log = structlog.get_logger()


class NoticeNotFound(Exception):
    pass


def notification_doc(n: Notification) -> dict:
    return NotificationPublic.model_validate(n).model_dump(mode="json")


def announcement_doc(a: Announcement) -> dict:
    return AnnouncementPublic.model_validate(a).model_dump(mode="json")


# ---------- per-team one-shot notifications ----------

def queue_notification(session: AsyncSession, team_id: UUID, message: str, submission_id: UUID | None = None) -> Notification:
    """Stage a notification in the caller's transaction; publish it after commit."""
    n = Notification(team_id=team_id, message=message, submission_id=submission_id, read=False)
    session.add(n)
    return n


async def notify_team(session: AsyncSession, feed: ChangeFeed, team_id: UUID, message: str,
                      submission_id: UUID | None = None) -> Notification:
    n = queue_notification(session, team_id, message, submission_id)
    await session.commit()
    feed.publish("notifications", "added", notification_doc(n))
    log.info("notification_created", team_id=str(team_id), notification_id=str(n.id))
    return n


async def take_unread(session: AsyncSession, feed: ChangeFeed, team_id: UUID) -> list[Notification]:
    """
    Hand the team its unread notifications (oldest first) and mark them read in the
    same transaction, so each one is surfaced exactly once. Rows another device is
    already taking are skipped rather than handed out twice.
    """
    rows = (await session.execute(
        select(Notification)
        .where(Notification.team_id == team_id, Notification.read.is_(False))
        .order_by(Notification.created_at.asc())
        .with_for_update(skip_locked=True)
        .execution_options(populate_existing=True)
    )).scalars().all()
    if not rows:
        return []
    for n in rows:
        n.read = True
    await session.commit()
    for n in rows:
        feed.publish("notifications", "modified", notification_doc(n))
    return list(rows)


async def mark_read(session: AsyncSession, feed: ChangeFeed, notification_id: UUID, team_id: UUID) -> Notification:
    n = await session.get(Notification, notification_id)
    if not n or n.team_id != team_id:
        raise NoticeNotFound("Notification not found")
    if n.read:
        return n
    n.read = True
    await session.commit()
    feed.publish("notifications", "modified", notification_doc(n))
    return n


# ---------- broadcast announcements ----------

def queue_announcement(session: AsyncSession, message: str, title: str | None = None, priority: str = "normal") -> Announcement:
    a = Announcement(message=message, title=title, priority=priority)
    session.add(a)
    return a


async def announce(session: AsyncSession, feed: ChangeFeed, message: str, title: str | None = None,
                   priority: str = "normal") -> Announcement:
    a = queue_announcement(session, message, title, priority)
    await session.commit()
    feed.publish("announcements", "added", announcement_doc(a))
    log.info("announcement_created", announcement_id=str(a.id), priority=priority)
    return a


async def edit_announcement(session: AsyncSession, feed: ChangeFeed, announcement_id: UUID, *,
                            message: str | None = None, title: str | None = None,
                            priority: str | None = None) -> Announcement:
    a = await session.get(Announcement, announcement_id)
    if not a:
        raise NoticeNotFound("Announcement not found")
    if message is not None:
        a.message = message
    if title is not None:
        a.title = title or None
    if priority is not None:
        a.priority = priority
    a.edited_at = utcnow()
    await session.commit()
    feed.publish("announcements", "modified", announcement_doc(a))
    return a


async def delete_announcement(session: AsyncSession, feed: ChangeFeed, announcement_id: UUID) -> None:
    a = await session.get(Announcement, announcement_id)
    if not a:
        raise NoticeNotFound("Announcement not found")
    doc = announcement_doc(a)
    await session.delete(a)
    await session.commit()
    feed.publish("announcements", "removed", doc)


async def list_announcements(session: AsyncSession, limit: int = 20) -> list[Announcement]:
    return list((await session.execute(
        select(Announcement).order_by(Announcement.created_at.desc()).limit(limit)
    )).scalars().all())

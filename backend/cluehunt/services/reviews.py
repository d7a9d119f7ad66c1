from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
from uuid import UUID
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.config import settings
from cluehunt.db import utcnow
from cluehunt.models.clue import Clue
from cluehunt.models.submission import Submission
from cluehunt.models.team import Team
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media_store import MediaStore, discard_media
from cluehunt.services.notices import announce, notification_doc, queue_notification
from cluehunt.services.progress import completed_count, current_clue, is_complete
from cluehunt.services.submissions import submission_doc
from cluehunt.services.teams import list_clues, lock_team, team_doc

log = structlog.get_logger()

DELETABLE_STATUSES = ("rejected", "upload_failed")


class SubmissionNotFound(Exception):
    pass

class InvalidTransition(Exception):
    pass

class UploadInFlight(InvalidTransition):
    pass


@dataclass
class ReviewOutcome:
    submission: Submission
    changed: bool  # False for a replayed decision
    team_completed: bool = False


class ReviewEngine:
    """
    Coordinator-side transitions of the submission state machine.

    pending --approve--> approved
    pending --reject---> rejected
    rejected|upload_failed --delete--> (gone)

    Media cleanup is best-effort; `defer` (e.g. BackgroundTasks.add_task) makes
    it fire-and-forget, otherwise it is awaited inline after the commit.
    """

    def __init__(self, session: AsyncSession, feed: ChangeFeed, media: MediaStore,
                 defer: Callable | None = None):
        self.session = session
        self.feed = feed
        self.media = media
        self.defer = defer

    async def _load(self, submission_id: UUID) -> Submission:
        # Locked and re-read, so two reviewers cannot both act on a stale status.
        s = await self.session.scalar(
            select(Submission)
            .where(Submission.id == submission_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not s:
            raise SubmissionNotFound("Submission not found")
        return s

    async def _discard(self, handle: str | None) -> None:
        if not handle:
            return
        if self.defer is not None:
            self.defer(discard_media, self.media, handle)
        else:
            await discard_media(self.media, handle)

    async def approve(self, submission_id: UUID) -> ReviewOutcome:
        s = await self._load(submission_id)
        if s.status == "approved":
            # Duplicate delivery of the same decision: no further effects.
            log.info("approve_replayed", submission_id=str(s.id))
            return ReviewOutcome(submission=s, changed=False)
        if s.status != "pending":
            raise InvalidTransition(f"Cannot approve a {s.status} submission")
        if s.uploading:
            raise UploadInFlight("Photo is still uploading")

        now = utcnow()
        s.status = "approved"
        s.reviewed_at = now
        handle = None
        if settings.delete_media_on_approve and s.media_delete_handle:
            handle, s.media_delete_handle = s.media_delete_handle, None

        team = await lock_team(self.session, s.team_id)
        added = False
        if team:
            key = str(s.clue_id)
            done = [str(c) for c in (team.completed_clue_ids or [])]
            if key not in done:
                team.completed_clue_ids = done + [key]
                added = True
            statuses = dict(team.clue_statuses or {})
            entry = dict(statuses.get(key) or {})
            entry["status"] = "completed"
            statuses[key] = entry
            nxt = current_clue(team, await list_clues(self.session))
            team.current_clue_id = str(nxt.id) if nxt else None
            if nxt and str(nxt.id) not in statuses:
                statuses[str(nxt.id)] = {"status": "active", "unlocked_at": now.isoformat()}
            team.clue_statuses = statuses

        await self.session.commit()
        self.feed.publish("submissions", "modified", submission_doc(s))
        if team:
            self.feed.publish("teams", "modified", team_doc(team))
        log.info("submission_approved", submission_id=str(s.id), team_id=str(s.team_id),
                 clue_id=str(s.clue_id), progress_added=added)

        await self._discard(handle)
        completed = await self._announce_if_finished(team) if (team and added) else False
        return ReviewOutcome(submission=s, changed=True, team_completed=completed)

    async def _announce_if_finished(self, team: Team) -> bool:
        # Re-read live state rather than trusting the snapshot we mutated.
        await self.session.refresh(team)
        total = int(await self.session.scalar(select(func.count()).select_from(Clue)) or 0)
        done = completed_count(team)
        # Only the approval that crosses the line announces.
        if not is_complete(team, total) or done - 1 >= total:
            return False
        await announce(
            self.session, self.feed,
            message=f"{team.name} has solved all {total} clues! 🏆",
            title="Team finished!",
            priority="high",
        )
        log.info("team_completed", team_id=str(team.id), total=total)
        return True

    async def reject(self, submission_id: UUID, feedback: str | None = None) -> ReviewOutcome:
        s = await self._load(submission_id)
        if s.status == "rejected":
            log.info("reject_replayed", submission_id=str(s.id))
            return ReviewOutcome(submission=s, changed=False)
        if s.status != "pending":
            raise InvalidTransition(f"Cannot reject a {s.status} submission")
        if s.uploading:
            raise UploadInFlight("Photo is still uploading")

        note = (feedback or "").strip() or None
        s.status = "rejected"
        s.feedback = note
        s.reviewed_at = utcnow()
        handle, s.media_delete_handle = s.media_delete_handle, None

        team = await lock_team(self.session, s.team_id)
        if team:
            key = str(s.clue_id)
            statuses = dict(team.clue_statuses or {})
            if key in statuses:
                entry = dict(statuses[key])
                entry["status"] = "active"
                entry.pop("submitted_at", None)
                statuses[key] = entry
                team.clue_statuses = statuses

        message = note or f'Your answer for "{s.clue_title}" was not accepted. Give it another try!'
        n = queue_notification(self.session, s.team_id, message, submission_id=s.id)
        await self.session.commit()

        self.feed.publish("submissions", "modified", submission_doc(s))
        self.feed.publish("notifications", "added", notification_doc(n))
        if team:
            self.feed.publish("teams", "modified", team_doc(team))
        log.info("submission_rejected", submission_id=str(s.id), team_id=str(s.team_id),
                 has_feedback=note is not None)
        await self._discard(handle)
        return ReviewOutcome(submission=s, changed=True)

    async def delete(self, submission_id: UUID) -> None:
        s = await self._load(submission_id)
        if s.status not in DELETABLE_STATUSES:
            raise InvalidTransition(f"Cannot delete a {s.status} submission")
        doc = submission_doc(s)
        handle = s.media_delete_handle
        await self.session.delete(s)
        await self.session.commit()
        self.feed.publish("submissions", "removed", doc)
        log.info("submission_deleted", submission_id=doc["id"], status=doc["status"])
        await self._discard(handle)


async def review_queue(session: AsyncSession, status: str | None = "pending",
                       team_id: UUID | None = None, limit: int = 100) -> list[Submission]:
    """Oldest first, so the queue drains in arrival order; in-flight uploads included."""
    q = select(Submission)
    if status:
        q = q.where(Submission.status == status)
    if team_id:
        q = q.where(Submission.team_id == team_id)
    q = q.order_by(Submission.submitted_at.asc()).limit(limit)
    return list((await session.execute(q)).scalars().all())


async def review_stats(session: AsyncSession) -> dict:
    rows = (await session.execute(
        select(Submission.status, Submission.uploading, func.count()).group_by(Submission.status, Submission.uploading)
    )).all()
    counts = {"pending": 0, "uploading": 0, "approved": 0, "rejected": 0, "upload_failed": 0}
    for status, uploading, n in rows:
        if status == "pending" and uploading:
            counts["uploading"] += int(n)
        elif status in counts:
            counts[status] += int(n)
    teams = (await session.execute(select(Team))).scalars().all()
    total = int(await session.scalar(select(func.count()).select_from(Clue)) or 0)
    counts["teams_finished"] = sum(1 for t in teams if is_complete(t, total))
    counts["teams_total"] = len(teams)
    return counts

from __future__ import annotations
import asyncio
from datetime import timedelta
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.config import settings
from cluehunt.db import utcnow
from cluehunt.models.clue import Clue
from cluehunt.models.submission import Submission
from cluehunt.models.team import Team
from cluehunt.schemas.submission import SubmissionPublic
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media import validate_photo
from cluehunt.services.media_store import MediaStore, MediaUploadError, StoredMedia, discard_media
from cluehunt.services.progress import completed_ids
from cluehunt.services.teams import lock_team, team_doc

log = structlog.get_logger()

# Statuses that block another attempt at the same clue. An in-flight photo is
# 'pending' with uploading=True, so it is covered too; upload_failed and
# rejected are deliberately absent so the team can try again.
GUARD_STATUSES = ("pending", "approved")
MAX_TEXT_LEN = 2000


class SubmissionInvalid(Exception):
    pass

class DuplicateSubmission(Exception):
    pass

class UploadFailed(Exception):
    def __init__(self, message: str, submission_id: UUID | None = None):
        super().__init__(message)
        self.submission_id = submission_id


def submission_doc(s: Submission) -> dict:
    return SubmissionPublic.model_validate(s).model_dump(mode="json")


async def upload_with_retry(media: MediaStore, data: bytes, content_type: str, *,
                            attempts: int, timeout: float, backoff: float) -> StoredMedia:
    """
    Bounded retry around the media store: each attempt gets `timeout` seconds,
    waits between attempts grow linearly (backoff, 2*backoff, ...). A transfer
    that timed out is not cancelled remotely; it may still land server-side.
    """
    last_error: Exception | None = None
    for attempt in range(1, max(1, attempts) + 1):
        try:
            return await asyncio.wait_for(media.upload(data, content_type), timeout=timeout)
        except (MediaUploadError, asyncio.TimeoutError) as e:
            last_error = e
            log.warning("upload_attempt_failed", attempt=attempt, attempts=attempts,
                        error=str(e) or type(e).__name__)
            if attempt < attempts:
                await asyncio.sleep(backoff * attempt)
    raise UploadFailed("Photo upload failed, please try again") from last_error


async def find_blocking_submission(session: AsyncSession, team_id: UUID, clue_id: UUID) -> Submission | None:
    return await session.scalar(
        select(Submission)
        .where(
            Submission.team_id == team_id,
            Submission.clue_id == clue_id,
            Submission.status.in_(GUARD_STATUSES),
        )
        .limit(1)
    )


def _normalize_text(raw: str | None) -> str:
    text = (raw or "").strip()
    if not text:
        raise SubmissionInvalid("Answer cannot be empty")
    if len(text) > MAX_TEXT_LEN:
        raise SubmissionInvalid(f"Answer is too long (max {MAX_TEXT_LEN} characters)")
    return text


def _schedule_sweep(jobs) -> None:
    if jobs is None:
        return
    from cluehunt.jobs.reconcile_uploads import reconcile_uploads
    try:
        jobs.enqueue_in(timedelta(seconds=settings.upload_stale_after_seconds), reconcile_uploads)
    except Exception as e:
        # Non-fatal: the coordinator can still sweep by hand
        log.warning("sweep_schedule_failed", error=str(e))


async def _record_submitted(session: AsyncSession, feed: ChangeFeed, team: Team, clue_id: UUID) -> None:
    """Duration tracking side channel; never fails the submission."""
    key, team_id = str(clue_id), team.id
    try:
        # A photo upload can outlast reviews of other clues; merge into fresh state.
        team = await lock_team(session, team_id) or team
        statuses = dict(team.clue_statuses or {})
        entry = dict(statuses.get(key) or {})
        if entry.get("status") == "completed":
            await session.commit()  # releases the row lock
            return
        entry["status"] = "pending"
        entry["submitted_at"] = utcnow().isoformat()
        statuses[key] = entry
        team.clue_statuses = statuses
        await session.commit()
        feed.publish("teams", "modified", team_doc(team))
    except SQLAlchemyError as e:
        await session.rollback()
        log.warning("clue_status_update_failed", team_id=str(team_id), clue_id=key, error=str(e))


async def submit_answer(
    session: AsyncSession,
    feed: ChangeFeed,
    media: MediaStore,
    *,
    team_id: UUID,
    clue_id: UUID,
    answer_kind: str,
    text: str | None = None,
    photo: bytes | None = None,
    jobs=None,
) -> Submission:
    team = await session.get(Team, team_id)
    if not team:
        raise SubmissionInvalid("Team not found")
    clue = await session.get(Clue, clue_id)
    if not clue:
        raise SubmissionInvalid("Unknown clue")
    if str(clue.id) in completed_ids(team):
        raise SubmissionInvalid("This clue is already completed")
    if answer_kind != clue.answer_kind:
        raise SubmissionInvalid(f"This clue expects a {clue.answer_kind} answer")

    content = ""
    mime = None
    if answer_kind in ("text", "scan"):
        content = _normalize_text(text)
    else:
        if not photo:
            raise SubmissionInvalid("Missing photo")
        if len(photo) > settings.max_upload_bytes:
            raise SubmissionInvalid("Photo is too large")
        try:
            mime = validate_photo(photo)
        except ValueError as e:
            raise SubmissionInvalid(str(e))

    # Best-effort guard (read-then-write, no CAS): two simultaneous taps can both
    # get through; approve is idempotent so the damage stays bounded.
    if await find_blocking_submission(session, team.id, clue.id):
        raise DuplicateSubmission("A submission for this clue is already pending or approved")

    sub = Submission(
        team_id=team.id,
        team_name=team.name,
        clue_id=clue.id,
        clue_title=clue.title,
        answer_kind=answer_kind,
        content=content,
        status="pending",
        uploading=answer_kind == "photo",
    )
    session.add(sub)
    await session.commit()
    feed.publish("submissions", "added", submission_doc(sub))
    log.info("submission_created", submission_id=str(sub.id), team_id=str(team.id),
             clue_id=str(clue.id), answer_kind=answer_kind, uploading=sub.uploading)

    if answer_kind == "photo":
        # Phase 2 of the placeholder protocol; the only writer that clears `uploading`.
        _schedule_sweep(jobs)
        try:
            stored = await upload_with_retry(
                media, photo, mime,
                attempts=settings.upload_attempts,
                timeout=settings.upload_timeout_seconds,
                backoff=settings.upload_backoff_seconds,
            )
        except UploadFailed as e:
            sub.status = "upload_failed"
            sub.uploading = False
            sub.content = ""
            await session.commit()
            feed.publish("submissions", "modified", submission_doc(sub))
            log.warning("submission_upload_failed", submission_id=str(sub.id))
            e.submission_id = sub.id
            raise
        await session.refresh(sub)
        if sub.status != "pending":
            # Swept as stale while the transfer was still running; never resurrect it.
            await discard_media(media, stored.delete_handle)
            raise UploadFailed("Photo upload took too long, please try again", sub.id)
        sub.content = stored.url
        sub.media_delete_handle = stored.delete_handle
        sub.uploading = False
        await session.commit()
        feed.publish("submissions", "modified", submission_doc(sub))
        log.info("submission_upload_patched", submission_id=str(sub.id))

    await _record_submitted(session, feed, team, clue.id)
    return sub


async def list_team_submissions(session: AsyncSession, team_id: UUID, limit: int = 100) -> list[Submission]:
    return list((await session.execute(
        select(Submission)
        .where(Submission.team_id == team_id)
        .order_by(Submission.submitted_at.desc())
        .limit(limit)
    )).scalars().all())


async def sweep_stale_uploads(session: AsyncSession, feed: ChangeFeed | None = None,
                              older_than_seconds: int | None = None) -> int:
    """
    Placeholders still marked uploading past the cutoff lost their second phase
    (crash, closed tab); settle them as upload_failed so the team can retry.
    """
    age = settings.upload_stale_after_seconds if older_than_seconds is None else older_than_seconds
    cutoff = utcnow() - timedelta(seconds=age)
    rows = (await session.execute(
        select(Submission).where(
            Submission.status == "pending",
            Submission.uploading.is_(True),
            Submission.submitted_at < cutoff,
        )
    )).scalars().all()
    for s in rows:
        s.status = "upload_failed"
        s.uploading = False
        s.content = ""
    if rows:
        await session.commit()
        if feed is not None:
            for s in rows:
                feed.publish("submissions", "modified", submission_doc(s))
    log.info("stale_uploads_swept", count=len(rows), cutoff=cutoff.isoformat())
    return len(rows)

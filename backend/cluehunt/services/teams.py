from __future__ import annotations
from typing import Callable
from uuid import UUID
import structlog
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.db import utcnow
from cluehunt.models.clue import Clue
from cluehunt.models.mystery import Accusation
from cluehunt.models.notice import Notification
from cluehunt.models.submission import Submission
from cluehunt.models.team import Team
from cluehunt.schemas.team import TeamPublic
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.join_code import generate_code
from cluehunt.services.media_store import MediaStore, discard_media

log = structlog.get_logger()

CODE_ATTEMPTS = 8


class TeamNotFound(Exception):
    pass


def team_doc(team: Team) -> dict:
    return TeamPublic.model_validate(team).model_dump(mode="json")


async def get_team(session: AsyncSession, team_id: UUID) -> Team:
    team = await session.get(Team, team_id)
    if not team:
        raise TeamNotFound("Team not found")
    return team


async def lock_team(session: AsyncSession, team_id: UUID) -> Team | None:
    """
    Load a team for a read-modify-write of its progress fields.
    FOR UPDATE holds the row until commit; populate_existing replaces any copy
    this session loaded earlier, so the merge starts from committed state.
    """
    return await session.scalar(
        select(Team)
        .where(Team.id == team_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def get_team_by_code(session: AsyncSession, code: str) -> Team | None:
    return await session.scalar(select(Team).where(Team.join_code == code.strip()))


async def list_teams(session: AsyncSession) -> list[Team]:
    return list((await session.execute(select(Team).order_by(Team.created_at.desc()))).scalars().all())


async def list_clues(session: AsyncSession) -> list[Clue]:
    return list((await session.execute(select(Clue).order_by(Clue.order_index.asc()))).scalars().all())


async def create_team(session: AsyncSession, feed: ChangeFeed, name: str) -> Team:
    code = None
    for _ in range(CODE_ATTEMPTS):
        candidate = generate_code()
        if not await session.scalar(select(Team.id).where(Team.join_code == candidate)):
            code = candidate
            break
    if code is None:
        raise RuntimeError("Could not allocate a unique join code")
    team = Team(name=name.strip(), join_code=code, completed_clue_ids=[], clue_statuses={})
    session.add(team)
    await session.commit()
    feed.publish("teams", "added", team_doc(team))
    log.info("team_created", team_id=str(team.id))
    return team


async def mark_unlocked(session: AsyncSession, feed: ChangeFeed, team: Team, clue: Clue) -> None:
    """
    Start the clock on a clue the first time the team is shown it.
    Timing is a side channel: failures are logged and swallowed.
    """
    key, team_id = str(clue.id), team.id
    if key in (team.clue_statuses or {}) and team.current_clue_id == key:
        return
    try:
        team = await lock_team(session, team_id) or team
        statuses = dict(team.clue_statuses or {})
        if key not in statuses:
            statuses[key] = {"status": "active", "unlocked_at": utcnow().isoformat()}
            team.clue_statuses = statuses
        team.current_clue_id = key
        await session.commit()
        feed.publish("teams", "modified", team_doc(team))
    except SQLAlchemyError as e:
        await session.rollback()
        log.warning("clue_unlock_record_failed", team_id=str(team_id), clue_id=key, error=str(e))


async def reset_progress(session: AsyncSession, feed: ChangeFeed, team_id: UUID) -> Team:
    """Staff reset: the only writer besides approve allowed to touch completed_clue_ids."""
    team = await lock_team(session, team_id)
    if not team:
        raise TeamNotFound("Team not found")
    team.completed_clue_ids = []
    team.clue_statuses = {}
    team.current_clue_id = None
    team.finale_approved = False
    team.finale_solved = False
    team.finale_solved_at = None
    await session.commit()
    feed.publish("teams", "modified", team_doc(team))
    log.info("team_progress_reset", team_id=str(team_id))
    return team


async def set_finale_approval(session: AsyncSession, feed: ChangeFeed, team_id: UUID, approved: bool) -> Team:
    team = await get_team(session, team_id)
    team.finale_approved = approved
    await session.commit()
    feed.publish("teams", "modified", team_doc(team))
    log.info("finale_approval_set", team_id=str(team_id), approved=approved)
    return team


async def delete_team(session: AsyncSession, feed: ChangeFeed, media: MediaStore, team_id: UUID,
                      defer: Callable | None = None) -> None:
    """Delete a team together with everything that references it, media included."""
    team = await get_team(session, team_id)
    doc = team_doc(team)
    subs = (await session.execute(select(Submission).where(Submission.team_id == team_id))).scalars().all()
    handles = [s.media_delete_handle for s in subs if s.media_delete_handle]
    sub_ids = [str(s.id) for s in subs]
    await session.execute(delete(Submission).where(Submission.team_id == team_id))
    await session.execute(delete(Notification).where(Notification.team_id == team_id))
    await session.execute(delete(Accusation).where(Accusation.team_id == team_id))
    await session.delete(team)
    await session.commit()

    for sid in sub_ids:
        feed.publish("submissions", "removed", {"id": sid, "team_id": str(team_id)})
    feed.publish("teams", "removed", doc)
    for handle in handles:
        if defer is not None:
            defer(discard_media, media, handle)
        else:
            await discard_media(media, handle)
    log.info("team_deleted", team_id=str(team_id), submissions=len(sub_ids))

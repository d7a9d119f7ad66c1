from __future__ import annotations
import structlog
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.db import utcnow
from cluehunt.models.mystery import Accusation, Mystery
from cluehunt.models.team import Team
from cluehunt.schemas.mystery import (
    AccusationCreate, AccusationPublic, MysteryAdmin, MysteryPlayerView, MysterySetup, Suspect,
)
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.notices import announce
from cluehunt.services.progress import MysteryGate, is_gate_open, unlocked_evidence
from cluehunt.services.teams import team_doc

log = structlog.get_logger()

MYSTERY_ID = "current"


class MysteryIncomplete(Exception):
    pass

class GateClosed(Exception):
    pass

class AlreadyAccused(Exception):
    pass

class UnknownSuspect(Exception):
    pass


def mystery_doc(m: Mystery) -> dict:
    return MysteryAdmin.model_validate(m).model_dump(mode="json")


def accusation_doc(a: Accusation) -> dict:
    return AccusationPublic.model_validate(a).model_dump(mode="json")


async def load_mystery(session: AsyncSession) -> Mystery:
    """The configured mystery, or an unsaved inactive default when nothing is set up yet."""
    m = await session.get(Mystery, MYSTERY_ID)
    if m is None:
        m = Mystery(id=MYSTERY_ID, active=False, revealed=False, victim={}, suspects=[], evidence=[])
    return m


async def _load_for_write(session: AsyncSession) -> Mystery:
    m = await load_mystery(session)
    if m not in session:
        session.add(m)
    return m


async def save_mystery(session: AsyncSession, feed: ChangeFeed, setup: MysterySetup) -> Mystery:
    m = await _load_for_write(session)
    m.start_clue_id = setup.start_clue_id or None
    m.victim = setup.victim.model_dump()
    m.suspects = [s.model_dump() for s in setup.suspects]
    m.evidence = [e.model_dump() for e in setup.evidence]
    await session.commit()
    feed.publish("mystery", "modified", mystery_doc(m))
    log.info("mystery_saved", suspects=len(m.suspects), evidence=len(m.evidence))
    return m


async def toggle_active(session: AsyncSession, feed: ChangeFeed) -> Mystery:
    m = await load_mystery(session)
    if not m.active and (not (m.victim or {}).get("name") or not m.suspects):
        raise MysteryIncomplete("Add a victim and at least one suspect before activating")
    if m not in session:
        session.add(m)
    m.active = not m.active
    await session.commit()
    feed.publish("mystery", "modified", mystery_doc(m))
    log.info("mystery_toggled", active=m.active)
    return m


async def list_accusations(session: AsyncSession) -> list[Accusation]:
    return list((await session.execute(
        select(Accusation).order_by(Accusation.submitted_at.asc())
    )).scalars().all())


def _culprit(m: Mystery) -> dict | None:
    return next((s for s in (m.suspects or []) if s.get("is_culprit")), None)


async def reveal(session: AsyncSession, feed: ChangeFeed) -> Mystery:
    m = await _load_for_write(session)
    m.revealed = True
    m.revealed_at = utcnow()
    await session.commit()
    feed.publish("mystery", "modified", mystery_doc(m))

    culprit = _culprit(m)
    winners = [a.team_name for a in await list_accusations(session) if a.correct]
    message = f"The culprit was {culprit['name']}!" if culprit else "The mystery has been revealed!"
    if winners:
        message += " Solved by: " + ", ".join(winners) + "."
    else:
        message += " No team named the culprit."
    await announce(session, feed, message=message, title="Mystery solved", priority="high")
    log.info("mystery_revealed", correct_teams=len(winners))
    return m


async def reset(session: AsyncSession, feed: ChangeFeed) -> Mystery:
    m = await _load_for_write(session)
    m.active = False
    m.revealed = False
    m.revealed_at = None
    removed = (await session.execute(select(Accusation))).scalars().all()
    docs = [accusation_doc(a) for a in removed]
    await session.execute(delete(Accusation))
    await session.commit()
    feed.publish("mystery", "modified", mystery_doc(m))
    for doc in docs:
        feed.publish("accusations", "removed", doc)
    log.info("mystery_reset", accusations_removed=len(docs))
    return m


async def get_accusation(session: AsyncSession, team: Team) -> Accusation | None:
    return await session.scalar(select(Accusation).where(Accusation.team_id == team.id))


async def mystery_gate(session: AsyncSession, team: Team, m: Mystery | None = None) -> MysteryGate:
    m = m or await load_mystery(session)
    return MysteryGate(
        active=bool(m.active),
        trigger_clue_id=m.start_clue_id or None,
        resolved=await get_accusation(session, team) is not None,
    )


async def accuse(session: AsyncSession, feed: ChangeFeed, team: Team, body: AccusationCreate) -> Accusation:
    m = await load_mystery(session)
    if await get_accusation(session, team) is not None:
        raise AlreadyAccused("Your team has already made its accusation")
    if not is_gate_open(team, await mystery_gate(session, team, m)):
        raise GateClosed("The mystery is not open for your team")

    suspects = [Suspect.model_validate(s) for s in (m.suspects or [])]
    if body.suspect_id:
        suspect = next((s for s in suspects if s.id == body.suspect_id), None)
        if suspect is None:
            raise UnknownSuspect("Unknown suspect")
        acc = Accusation(team_id=team.id, team_name=team.name, suspect_id=suspect.id,
                         suspect_name=suspect.name, is_custom=False, correct=suspect.is_culprit)
    else:
        name = (body.custom_name or "").strip()
        if not name:
            raise UnknownSuspect("Pick a suspect or name your own")
        # free-text guesses are judged by staff, never automatically
        acc = Accusation(team_id=team.id, team_name=team.name, suspect_id="custom",
                         suspect_name=name, is_custom=True, correct=False)
    acc.reasoning = (body.reasoning or "").strip() or None
    session.add(acc)
    if acc.correct:
        team.side_quest_solved = True
    try:
        await session.commit()
    except IntegrityError:
        # lost a race with another device of the same team
        await session.rollback()
        raise AlreadyAccused("Your team has already made its accusation")

    feed.publish("accusations", "added", accusation_doc(acc))
    if acc.correct:
        feed.publish("teams", "modified", team_doc(team))
    log.info("accusation_made", team_id=str(team.id), is_custom=acc.is_custom, correct=acc.correct)
    return acc


async def player_view(session: AsyncSession, team: Team) -> MysteryPlayerView:
    m = await load_mystery(session)
    acc = await get_accusation(session, team)
    started = m.active and (not m.start_clue_id or m.start_clue_id in {str(c) for c in team.completed_clue_ids or []})
    if not started and acc is None:
        return MysteryPlayerView(open=False, revealed=bool(m.revealed))

    suspects = []
    for raw in m.suspects or []:
        s = Suspect.model_validate(raw)
        if not m.revealed:
            s.is_culprit = False
        suspects.append(s)
    evidence = unlocked_evidence(bool(m.active), m.evidence or [], team)
    return MysteryPlayerView(
        open=acc is None and bool(started),
        revealed=bool(m.revealed),
        victim=m.victim or None,
        suspects=suspects,
        evidence=evidence,
        total_evidence=len(m.evidence or []),
        accusation=AccusationPublic.model_validate(acc) if acc else None,
    )

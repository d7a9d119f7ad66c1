from __future__ import annotations
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.db import utcnow
from cluehunt.models.clue import Clue
from cluehunt.models.finale import FinaleConfig
from cluehunt.models.team import Team
from cluehunt.schemas.finale import FinaleConfigIn, FinalePlayerView, FinaleResult
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.progress import FinaleGate, finale_eligible, is_gate_open
from cluehunt.services.teams import team_doc

log = structlog.get_logger()

FINALE_ID = "current"


class FinaleLocked(Exception):
    pass

class FinaleNotConfigured(Exception):
    pass


async def load_config(session: AsyncSession) -> FinaleConfig:
    cfg = await session.get(FinaleConfig, FINALE_ID)
    if cfg is None:
        cfg = FinaleConfig(id=FINALE_ID, missing_answer="")
    return cfg


async def save_config(session: AsyncSession, body: FinaleConfigIn) -> FinaleConfig:
    cfg = await load_config(session)
    if cfg not in session:
        session.add(cfg)
    cfg.map_image_url = body.map_image_url or None
    cfg.map_description = body.map_description or None
    cfg.formula_text = body.formula_text or None
    cfg.missing_answer = body.missing_answer.strip()
    await session.commit()
    log.info("finale_config_saved")
    return cfg


async def finale_gate(session: AsyncSession) -> FinaleGate:
    total = int(await session.scalar(select(func.count()).select_from(Clue)) or 0)
    return FinaleGate(total_clues=total)


async def player_view(session: AsyncSession, team: Team) -> FinalePlayerView:
    gate = await finale_gate(session)
    is_open = is_gate_open(team, gate)
    view = FinalePlayerView(
        eligible=finale_eligible(team, gate.total_clues),
        open=is_open,
        solved=bool(team.finale_solved),
    )
    if is_open:
        cfg = await load_config(session)
        view.map_image_url = cfg.map_image_url
        view.map_description = cfg.map_description
        view.formula_text = cfg.formula_text
    return view


def _norm(s: str | None) -> str:
    return (s or "").strip().lower()


async def solve(session: AsyncSession, feed: ChangeFeed, team: Team, answer: str) -> FinaleResult:
    if team.finale_solved:
        return FinaleResult(correct=True, solved=True)
    if not is_gate_open(team, await finale_gate(session)):
        raise FinaleLocked("The finale is not open for your team yet")
    cfg = await load_config(session)
    if not _norm(cfg.missing_answer):
        raise FinaleNotConfigured("The finale answer has not been configured")

    correct = _norm(answer) == _norm(cfg.missing_answer)
    log.info("finale_attempt", team_id=str(team.id), correct=correct)
    if not correct:
        return FinaleResult(correct=False, solved=False)
    team.finale_solved = True
    team.finale_solved_at = utcnow()
    await session.commit()
    feed.publish("teams", "modified", team_doc(team))
    return FinaleResult(correct=True, solved=True)

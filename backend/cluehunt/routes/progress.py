from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import Identity, require_player
from cluehunt.db import get_session
from cluehunt.deps import get_feed
from cluehunt.schemas.clue import CluePublic, CurrentClueView
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.progress import team_progress
from cluehunt.services.teams import TeamNotFound, get_team, list_clues, mark_unlocked

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/current", response_model=CurrentClueView)
async def current(
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    ident: Identity = Depends(require_player),
):
    try:
        team = await get_team(session, ident.team_id)
    except TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    p = team_progress(team, await list_clues(session))
    if p.clue is not None:
        await mark_unlocked(session, feed, team, p.clue)
    return CurrentClueView(
        clue=CluePublic.model_validate(p.clue) if p.clue else None,
        position=p.position,
        completed=p.completed,
        total=p.total,
        finished=p.finished,
    )

from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import Identity, require_coordinator, require_player
from cluehunt.db import get_session
from cluehunt.deps import get_feed
from cluehunt.schemas.finale import FinaleAnswer, FinaleConfigIn, FinaleConfigPublic, FinalePlayerView, FinaleResult
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services import finale as finale_svc
from cluehunt.services.teams import TeamNotFound, get_team

router = APIRouter(prefix="/finale", tags=["finale"])

@router.get("/config", response_model=FinaleConfigPublic)
async def get_config(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    return await finale_svc.load_config(session)

@router.put("/config", response_model=FinaleConfigPublic)
async def save_config(payload: FinaleConfigIn, session: AsyncSession = Depends(get_session),
                      _=Depends(require_coordinator)):
    return await finale_svc.save_config(session, payload)

@router.get("/me", response_model=FinalePlayerView)
async def my_view(session: AsyncSession = Depends(get_session), ident: Identity = Depends(require_player)):
    try:
        team = await get_team(session, ident.team_id)
    except TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await finale_svc.player_view(session, team)

@router.post("/solve", response_model=FinaleResult)
async def solve(
    payload: FinaleAnswer,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    ident: Identity = Depends(require_player),
):
    try:
        team = await get_team(session, ident.team_id)
        return await finale_svc.solve(session, feed, team, payload.answer)
    except TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except finale_svc.FinaleLocked as e:
        raise HTTPException(status_code=403, detail=str(e))
    except finale_svc.FinaleNotConfigured as e:
        raise HTTPException(status_code=409, detail=str(e))

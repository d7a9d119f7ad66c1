from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import Identity, require_coordinator, require_player
from cluehunt.db import get_session
from cluehunt.deps import get_feed
from cluehunt.schemas.mystery import AccusationCreate, AccusationPublic, MysteryAdmin, MysteryPlayerView, MysterySetup
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services import mystery as mystery_svc
from cluehunt.services.teams import TeamNotFound, get_team

router = APIRouter(prefix="/mystery", tags=["mystery"])

# --- staff ---

@router.get("", response_model=MysteryAdmin)
async def get_mystery(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    return await mystery_svc.load_mystery(session)

@router.put("", response_model=MysteryAdmin)
async def save_mystery(
    payload: MysterySetup,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    return await mystery_svc.save_mystery(session, feed, payload)

@router.post("/toggle", response_model=MysteryAdmin)
async def toggle(
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    try:
        return await mystery_svc.toggle_active(session, feed)
    except mystery_svc.MysteryIncomplete as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/reveal", response_model=MysteryAdmin)
async def reveal(
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    return await mystery_svc.reveal(session, feed)

@router.post("/reset", response_model=MysteryAdmin)
async def reset(
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    return await mystery_svc.reset(session, feed)

@router.get("/accusations", response_model=list[AccusationPublic])
async def accusations(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    return await mystery_svc.list_accusations(session)

# --- players ---

@router.get("/me", response_model=MysteryPlayerView)
async def my_view(session: AsyncSession = Depends(get_session), ident: Identity = Depends(require_player)):
    try:
        team = await get_team(session, ident.team_id)
    except TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await mystery_svc.player_view(session, team)

@router.post("/accuse", status_code=201, response_model=AccusationPublic)
async def accuse(
    payload: AccusationCreate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    ident: Identity = Depends(require_player),
):
    try:
        team = await get_team(session, ident.team_id)
        return await mystery_svc.accuse(session, feed, team, payload)
    except TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except mystery_svc.GateClosed as e:
        raise HTTPException(status_code=403, detail=str(e))
    except mystery_svc.AlreadyAccused as e:
        raise HTTPException(status_code=409, detail=str(e))
    except mystery_svc.UnknownSuspect as e:
        raise HTTPException(status_code=400, detail=str(e))

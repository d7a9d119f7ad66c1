from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from cluehunt.db import get_session
from cluehunt.schemas.auth import JoinRequest, CoordinatorLogin, IdentityToken
from cluehunt.security import make_identity_token, check_passcode
from cluehunt.services.teams import get_team_by_code

router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger()

@router.post("/join", response_model=IdentityToken)
async def join(payload: JoinRequest, session: AsyncSession = Depends(get_session)):
    team = await get_team_by_code(session, payload.code)
    if not team:
        raise HTTPException(status_code=404, detail="No team with that code")
    log.info("team_joined", team_id=str(team.id))
    return IdentityToken(
        access=make_identity_token("player", str(team.id)),
        role="player",
        team_id=team.id,
        team_name=team.name,
    )

@router.post("/coordinator", response_model=IdentityToken)
async def coordinator(payload: CoordinatorLogin):
    if not check_passcode(payload.passcode):
        log.warning("coordinator_login_failed")
        raise HTTPException(status_code=401, detail="Invalid passcode")
    return IdentityToken(access=make_identity_token("coordinator"), role="coordinator")

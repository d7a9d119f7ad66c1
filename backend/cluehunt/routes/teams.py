from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import get_identity, require_coordinator
from cluehunt.db import get_session
from cluehunt.deps import get_feed, get_media_store
from cluehunt.schemas.team import TeamCreate, TeamPublic, FinaleApproval, LeaderboardRow, TeamTiming
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media_store import MediaStore
from cluehunt.services.progress import completed_count, is_complete, leaderboard, team_timing
from cluehunt.services import teams as team_svc

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("", response_model=list[TeamPublic])
async def list_teams(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    return await team_svc.list_teams(session)


@router.post("", status_code=201, response_model=TeamPublic)
async def create_team(
    payload: TeamCreate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Team name cannot be empty")
    return await team_svc.create_team(session, feed, payload.name)


@router.get("/leaderboard", response_model=list[LeaderboardRow])
async def get_leaderboard(session: AsyncSession = Depends(get_session), _=Depends(get_identity)):
    teams = await team_svc.list_teams(session)
    total = len(await team_svc.list_clues(session))
    return [
        LeaderboardRow(team_id=t.id, name=t.name, completed=completed_count(t), finished=is_complete(t, total))
        for t in leaderboard(teams)
    ]


@router.get("/timing", response_model=list[TeamTiming])
async def get_timing(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    teams = await team_svc.list_teams(session)
    total = len(await team_svc.list_clues(session))
    now = datetime.now(dt_tz.utc)
    rows = []
    for t in teams:
        stats = team_timing(t, total, now)
        rows.append(TeamTiming(
            team_id=t.id, name=t.name, current_clue_id=t.current_clue_id,
            state=stats.state, net_seconds=stats.net_seconds,
            current_clue_seconds=stats.current_clue_seconds,
        ))
    return rows


@router.get("/{team_id}", response_model=TeamPublic)
async def get_team(team_id: UUID, session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    try:
        return await team_svc.get_team(session, team_id)
    except team_svc.TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{team_id}/reset", response_model=TeamPublic)
async def reset_team(
    team_id: UUID,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    try:
        return await team_svc.reset_progress(session, feed, team_id)
    except team_svc.TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{team_id}/finale-approval", response_model=TeamPublic)
async def approve_finale(
    team_id: UUID,
    payload: FinaleApproval,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    try:
        return await team_svc.set_finale_approval(session, feed, team_id, payload.approved)
    except team_svc.TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{team_id}", status_code=204)
async def delete_team(
    team_id: UUID,
    background: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    media: MediaStore = Depends(get_media_store),
    _=Depends(require_coordinator),
):
    try:
        await team_svc.delete_team(session, feed, media, team_id, defer=background.add_task)
    except team_svc.TeamNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

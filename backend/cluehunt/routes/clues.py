from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from cluehunt.auth_deps import require_coordinator
from cluehunt.db import get_session
from cluehunt.deps import get_feed
from cluehunt.models.clue import Clue
from cluehunt.schemas.clue import ClueCreate, ClueUpdate, ClueAdmin
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.teams import list_clues

router = APIRouter(prefix="/clues", tags=["clues"])
log = structlog.get_logger()

def _doc(c: Clue) -> dict:
    # Live doc for players: no expected answer
    return {"id": str(c.id), "order_index": c.order_index, "title": c.title,
            "answer_kind": c.answer_kind, "image_url": c.image_url}

@router.get("", response_model=list[ClueAdmin])
async def all_clues(session: AsyncSession = Depends(get_session), _=Depends(require_coordinator)):
    return await list_clues(session)

@router.post("", status_code=201, response_model=ClueAdmin)
async def create_clue(
    payload: ClueCreate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    order_index = payload.order_index
    if order_index is None:
        top = await session.scalar(select(func.max(Clue.order_index)))
        order_index = 0 if top is None else top + 1
    clue = Clue(
        order_index=order_index,
        title=payload.title.strip(),
        body=payload.body,
        answer_kind=payload.answer_kind,
        expected_answer=payload.expected_answer,
        image_url=payload.image_url,
    )
    session.add(clue)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail=f"A clue already sits at position {order_index}")
    feed.publish("clues", "added", _doc(clue))
    log.info("clue_created", clue_id=str(clue.id), order_index=order_index)
    return clue

@router.patch("/{clue_id}", response_model=ClueAdmin)
async def update_clue(
    clue_id: UUID,
    payload: ClueUpdate,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    clue = await session.get(Clue, clue_id)
    if not clue:
        raise HTTPException(status_code=404, detail="Clue not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field != "image_url":
            continue
        setattr(clue, field, value)
    if clue.answer_kind == "photo":
        clue.expected_answer = ""
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Another clue already sits at that position")
    feed.publish("clues", "modified", _doc(clue))
    return clue

@router.delete("/{clue_id}", status_code=204)
async def delete_clue(
    clue_id: UUID,
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    _=Depends(require_coordinator),
):
    clue = await session.get(Clue, clue_id)
    if not clue:
        raise HTTPException(status_code=404, detail="Clue not found")
    doc = _doc(clue)
    await session.delete(clue)
    await session.commit()
    feed.publish("clues", "removed", doc)
    log.info("clue_deleted", clue_id=doc["id"])

from __future__ import annotations
from typing import Literal
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Form, Query, UploadFile, File
from rq import Queue
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.auth_deps import Identity, require_player
from cluehunt.db import get_session
from cluehunt.deps import get_feed, get_job_queue, get_media_store
from cluehunt.schemas.submission import SubmissionPublic
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media_store import MediaStore
from cluehunt.services.submissions import (
    DuplicateSubmission, SubmissionInvalid, UploadFailed, list_team_submissions, submit_answer,
)

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", status_code=201, response_model=SubmissionPublic)
async def submit(
    clue_id: UUID = Form(...),
    answer_kind: Literal["text", "photo", "scan"] = Form(...),
    text: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    session: AsyncSession = Depends(get_session),
    feed: ChangeFeed = Depends(get_feed),
    media: MediaStore = Depends(get_media_store),
    jobs: Queue = Depends(get_job_queue),
    ident: Identity = Depends(require_player),
):
    photo = await file.read() if file is not None else None
    try:
        return await submit_answer(
            session, feed, media,
            team_id=ident.team_id,
            clue_id=clue_id,
            answer_kind=answer_kind,
            text=text,
            photo=photo,
            jobs=jobs,
        )
    except SubmissionInvalid as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateSubmission as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UploadFailed as e:
        # The failed placeholder stays visible in the team's history; they can just resubmit.
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/mine", response_model=list[SubmissionPublic])
async def my_submissions(
    limit: int = Query(default=100, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    ident: Identity = Depends(require_player),
):
    return await list_team_submissions(session, ident.team_id, limit=limit)

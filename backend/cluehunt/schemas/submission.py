from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime


class SubmissionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    team_name: str
    clue_id: UUID
    clue_title: str
    answer_kind: str
    # media url for photos, "" while uploading; 🔒 delete handles are never exposed
    content: str
    status: str
    uploading: bool
    feedback: str | None = None
    submitted_at: datetime
    reviewed_at: datetime | None = None


class RejectRequest(BaseModel):
    feedback: str | None = Field(default=None, max_length=500)


class ReviewStats(BaseModel):
    pending: int
    uploading: int
    approved: int
    rejected: int
    upload_failed: int
    teams_finished: int
    teams_total: int

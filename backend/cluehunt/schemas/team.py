from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime

class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)

class FinaleApproval(BaseModel):
    approved: bool

class TeamPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    join_code: str
    completed_clue_ids: list[str] = Field(default_factory=list)
    current_clue_id: str | None = None
    clue_statuses: dict = Field(default_factory=dict)
    finale_approved: bool = False
    finale_solved: bool = False
    finale_solved_at: datetime | None = None
    side_quest_solved: bool = False
    created_at: datetime

class LeaderboardRow(BaseModel):
    team_id: UUID
    name: str
    completed: int
    finished: bool

class TeamTiming(BaseModel):
    team_id: UUID
    name: str
    current_clue_id: str | None = None
    state: str  # active|pending|finished|unknown
    net_seconds: float
    current_clue_seconds: float

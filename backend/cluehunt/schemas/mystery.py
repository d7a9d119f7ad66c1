from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime

class Victim(BaseModel):
    name: str = ""
    photo: str = ""
    age: int | None = None
    occupation: str = ""
    bio: str = ""
    last_seen: str = ""

class Suspect(BaseModel):
    id: str
    name: str
    photo: str = ""
    age: int | None = None
    occupation: str = ""
    relationship: str = ""
    alibi: str = ""
    motive: str = ""
    is_culprit: bool = False

class Evidence(BaseModel):
    id: str
    title: str
    description: str = ""
    image: str | None = None
    found_at: str = ""
    unlock_clue_id: str | None = None
    related_suspect_id: str | None = None

class MysterySetup(BaseModel):
    start_clue_id: str | None = None
    victim: Victim = Field(default_factory=Victim)
    suspects: list[Suspect] = Field(default_factory=list)
    evidence: list[Evidence] = Field(default_factory=list)

class MysteryAdmin(MysterySetup):
    model_config = ConfigDict(from_attributes=True)

    active: bool
    revealed: bool
    revealed_at: datetime | None = None

class AccusationCreate(BaseModel):
    suspect_id: str | None = Field(default=None, description="omit and pass custom_name for a free-text guess")
    custom_name: str | None = Field(default=None, max_length=120)
    reasoning: str | None = Field(default=None, max_length=1000)

class AccusationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    team_name: str
    suspect_id: str
    suspect_name: str
    is_custom: bool
    reasoning: str | None = None
    correct: bool
    submitted_at: datetime

class MysteryPlayerView(BaseModel):
    open: bool
    revealed: bool = False
    victim: Victim | None = None
    suspects: list[Suspect] = Field(default_factory=list)
    evidence: list[Evidence] = Field(default_factory=list)
    total_evidence: int = 0
    accusation: AccusationPublic | None = None

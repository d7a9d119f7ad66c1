from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

Priority = Literal["normal", "high"]

class NotificationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    submission_id: UUID | None = None
    message: str
    read: bool
    created_at: datetime

class AnnouncementCreate(BaseModel):
    title: str | None = Field(default=None, max_length=120)
    message: str = Field(min_length=1, max_length=2000)
    priority: Priority = "normal"

class AnnouncementUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=120)
    message: str | None = Field(default=None, min_length=1, max_length=2000)
    priority: Priority | None = None

class AnnouncementPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str | None = None
    message: str
    priority: Priority
    created_at: datetime
    edited_at: datetime | None = None

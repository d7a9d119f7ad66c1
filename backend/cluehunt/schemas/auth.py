from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID

class JoinRequest(BaseModel):
    code: str = Field(min_length=4, max_length=12)

class CoordinatorLogin(BaseModel):
    passcode: str = Field(min_length=1, max_length=128)

class IdentityToken(BaseModel):
    access: str
    role: str
    team_id: UUID | None = None
    team_name: str | None = None

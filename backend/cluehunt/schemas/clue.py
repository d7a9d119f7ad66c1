from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Literal
from uuid import UUID
from datetime import datetime

AnswerKind = Literal["text", "photo", "scan"]

class ClueCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    body: str = ""
    answer_kind: AnswerKind
    expected_answer: str = ""
    image_url: str | None = None
    order_index: int | None = Field(default=None, ge=0, description="defaults to the end of the sequence")

    @model_validator(mode="after")
    def photo_has_no_answer(self):
        if self.answer_kind == "photo":
            self.expected_answer = ""
        return self

class ClueUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=120)
    body: str | None = None
    answer_kind: AnswerKind | None = None
    expected_answer: str | None = None
    image_url: str | None = None
    order_index: int | None = Field(default=None, ge=0)

class ClueAdmin(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_index: int
    title: str
    body: str
    answer_kind: AnswerKind
    expected_answer: str
    image_url: str | None = None
    created_at: datetime

class CluePublic(BaseModel):
    # 🔒 never carries expected_answer
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_index: int
    title: str
    body: str
    answer_kind: AnswerKind
    image_url: str | None = None

class CurrentClueView(BaseModel):
    clue: CluePublic | None = None
    position: int  # 1-based position of the current clue; total+1 when finished
    completed: int
    total: int
    finished: bool

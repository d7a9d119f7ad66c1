from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field

class FinaleConfigIn(BaseModel):
    map_image_url: str | None = None
    map_description: str | None = None
    formula_text: str | None = Field(default=None, description="use ??? for the missing part")
    missing_answer: str = Field(min_length=1)

class FinaleConfigPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    map_image_url: str | None = None
    map_description: str | None = None
    formula_text: str | None = None
    missing_answer: str = ""

class FinalePlayerView(BaseModel):
    eligible: bool
    open: bool
    solved: bool
    map_image_url: str | None = None
    map_description: str | None = None
    formula_text: str | None = None

class FinaleAnswer(BaseModel):
    answer: str = Field(min_length=1, max_length=200)

class FinaleResult(BaseModel):
    correct: bool
    solved: bool

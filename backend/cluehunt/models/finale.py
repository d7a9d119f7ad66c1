from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text
from cluehunt.db import Base

class FinaleConfig(Base):
    """Treasure finale content (id='current'). formula_text uses ??? for the missing part."""
    __tablename__ = "finale_config"
    id: Mapped[str] = mapped_column(String(16), primary_key=True, default="current")
    map_image_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    map_description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    formula_text: Mapped[str | None] = mapped_column(Text(), nullable=True)
    missing_answer: Mapped[str] = mapped_column(Text(), nullable=False, default="")

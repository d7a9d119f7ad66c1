from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, Uuid, func
from cluehunt.db import Base, utcnow

class Clue(Base):
    __tablename__ = "clues"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_index: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    body: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    answer_kind: Mapped[str] = mapped_column(String(8), nullable=False)  # text|photo|scan
    expected_answer: Mapped[str] = mapped_column(Text(), nullable=False, default="")  # empty for photo
    image_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

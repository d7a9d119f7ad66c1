from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Boolean, DateTime, ForeignKey, Uuid, func
from cluehunt.db import Base, JSONType, utcnow

class Mystery(Base):
    """Single side-mystery configuration row (id='current')."""
    __tablename__ = "mystery"
    id: Mapped[str] = mapped_column(String(16), primary_key=True, default="current")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_clue_id: Mapped[str | None] = mapped_column(String(36), nullable=True)  # trigger clue; None = open when active
    revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revealed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    victim: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    suspects: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    evidence: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

class Accusation(Base):
    __tablename__ = "accusations"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # one accusation per team
    team_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), unique=True, nullable=False)
    team_name: Mapped[str] = mapped_column(String(80), nullable=False)
    suspect_id: Mapped[str] = mapped_column(String(64), nullable=False)  # 'custom' for free-text guesses
    suspect_name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reasoning: Mapped[str | None] = mapped_column(Text(), nullable=True)
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

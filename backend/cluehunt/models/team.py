from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean, DateTime, Uuid, func
from cluehunt.db import Base, JSONType, utcnow

class Team(Base):
    """
    A hunt team and its progress.
    Only the review engine (approve) and staff reset write completed_clue_ids.
    clue_statuses maps clue id -> {"status": active|pending|completed, "unlocked_at": iso, "submitted_at": iso}
    """
    __tablename__ = "teams"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    join_code: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    completed_clue_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    current_clue_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    clue_statuses: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    # gate flags
    finale_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    finale_solved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    finale_solved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    side_quest_solved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Boolean, DateTime, ForeignKey, Index, Uuid, func
from cluehunt.db import Base, utcnow


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), index=True, nullable=False
    )
    team_name: Mapped[str] = mapped_column(String(80), nullable=False)
    # NOTE: no FK, clues may be deleted after a team completed them
    clue_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    clue_title: Mapped[str] = mapped_column(String(120), nullable=False, default="")

    answer_kind: Mapped[str] = mapped_column(String(8), nullable=False)  # text|photo|scan
    content: Mapped[str] = mapped_column(Text(), nullable=False, default="")  # answer, or media url once uploaded
    media_delete_handle: Mapped[str | None] = mapped_column(Text(), nullable=True)  # never exposed to clients

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|approved|rejected|upload_failed
    uploading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    feedback: Mapped[str | None] = mapped_column(Text(), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # No unique (team, clue) constraint: the duplicate guard is best-effort and
    # rejected/failed attempts stay around until deleted.
    __table_args__ = (
        Index("ix_submissions_team_clue_status", "team_id", "clue_id", "status"),
    )

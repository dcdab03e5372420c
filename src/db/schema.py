"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBSession(Base):
    """One stored session per local peer: a peer only ever resumes its own last game."""

    __tablename__ = "sessions"
    my_peer_id: Mapped[str] = mapped_column(primary_key=True)
    opponent_id: Mapped[Optional[str]]
    role: Mapped[str]
    game_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    last_state_hash: Mapped[Optional[str]]
    timestamp_millis: Mapped[int]
    is_connected: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)

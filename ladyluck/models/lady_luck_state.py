from datetime import datetime
from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from ladyluck.core.db import Base

class LadyLuckState(Base):
    """Per-player Lady Luck record: free-roll timer, tickets and the single pending batch."""
    __tablename__ = "lady_luck_state"
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_free_roll_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lottery_tickets: Mapped[int] = mapped_column(Integer, default=0)

    # JSON list of 9 reward snapshots; NULL == no pending roll
    pending_roll: Mapped[str | None] = mapped_column(Text, nullable=True)
    pending_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # optimistic concurrency: every UPDATE checks and bumps this
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def has_pending(self) -> bool:
        return self.pending_roll is not None

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class Slot(SQLModel, table=True):
    __tablename__ = "slots"
    __table_args__ = (UniqueConstraint("start_time", "end_time", name="unique_slot_range"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    start_time: datetime = Field(index=True)
    end_time: datetime

    # NULL while available; a team can hold at most one slot
    booked_by: Optional[int] = Field(default=None, foreign_key="teams.id", unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_available(self) -> bool:
        return self.booked_by is None

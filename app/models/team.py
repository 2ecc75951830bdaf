from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint
from ..config import TEAM_NAME_MAX_LENGTH


class Team(SQLModel, table=True):
    """A group of up to TEAM_CAPACITY users; size is always derived from team_members."""
    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, max_length=TEAM_NAME_MAX_LENGTH)
    invite_code: str = Field(unique=True, index=True, max_length=20)
    is_public: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TeamMembership(SQLModel, table=True):
    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="unique_team_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    joined_at: datetime = Field(default_factory=datetime.utcnow)

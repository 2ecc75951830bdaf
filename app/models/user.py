from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=50)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    phone_no: Optional[str] = Field(default=None, max_length=20)

    # Mirrors the user's TeamMembership row; the two never disagree
    team_id: Optional[int] = Field(default=None, foreign_key="teams.id", index=True)
    is_leader: bool = Field(default=False)

    is_admin: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LoginSession(SQLModel, table=True):
    """A bearer token issued at login. The token itself is the key."""
    __tablename__ = "login_sessions"

    token: str = Field(primary_key=True, max_length=64)
    user_id: int = Field(foreign_key="users.id", index=True)
    issued_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime

"""Response shapes shared by the routers."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from .models.slot import Slot
from .models.team import Team
from .models.user import User


class TeamRef(BaseModel):
    id: int
    name: str


class TeamResponse(BaseModel):
    id: int
    name: str
    invite_code: str
    is_public: bool
    member_count: int
    created_at: datetime


class MemberResponse(BaseModel):
    id: int
    username: str
    is_leader: bool


class TeamDetailResponse(TeamResponse):
    members: List[MemberResponse]
    slot_id: Optional[int] = None


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    is_leader: bool
    created_at: datetime
    phone_no: Optional[str] = None
    team: Optional[TeamRef] = None


class SlotResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    booked_by: Optional[int]
    created_at: datetime
    team: Optional[TeamRef] = None


def team_ref(team: Optional[Team]) -> Optional[TeamRef]:
    if team is None:
        return None
    return TeamRef(id=team.id, name=team.name)


def team_response(team: Team, member_count: int) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        invite_code=team.invite_code,
        is_public=team.is_public,
        member_count=member_count,
        created_at=team.created_at
    )


def user_response(user: User, team: Optional[Team] = None, private: bool = True) -> UserResponse:
    """``private`` exposes the phone number and team; only for the user and teammates."""
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        is_leader=user.is_leader,
        created_at=user.created_at,
        phone_no=user.phone_no if private else None,
        team=team_ref(team) if private else None
    )


def slot_response(slot: Slot, team: Optional[Team] = None) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        start_time=slot.start_time,
        end_time=slot.end_time,
        booked_by=slot.booked_by,
        created_at=slot.created_at,
        team=team_ref(team)
    )

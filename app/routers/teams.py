from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_user
from ..errors import NotInTeam, TeamNotFound
from ..models.team import Team
from ..models.user import User
from ..schemas import (
    MemberResponse,
    TeamDetailResponse,
    TeamResponse,
    UserResponse,
    team_response,
    user_response,
)
from ..services import membership
from ..services.queries import get_team_members, get_team_slot, member_count

router = APIRouter(prefix="/api/teams", tags=["teams"])


class CreateTeamRequest(BaseModel):
    name: Optional[str] = None


class JoinTeamRequest(BaseModel):
    invite_code: str = ""


class VisibilityRequest(BaseModel):
    """Omit ``is_public`` to toggle the current value."""
    is_public: Optional[bool] = None


class JoinTeamResponse(BaseModel):
    team: TeamResponse
    user: UserResponse


@router.post("/create", response_model=TeamResponse, status_code=201)
def create_team(
    payload: CreateTeamRequest,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = membership.create_team(db, current_user.id, payload.name)
    return team_response(team, member_count(db, team.id))


@router.post("/join", response_model=JoinTeamResponse)
def join_team(
    payload: JoinTeamRequest,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team, user = membership.join_team(db, current_user.id, payload.invite_code)
    return JoinTeamResponse(
        team=team_response(team, member_count(db, team.id)),
        user=user_response(user, team)
    )


@router.delete("/leave")
@router.patch("/exit")
def exit_team(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    membership.exit_team(db, current_user.id)
    return {"success": True, "message": "Left team"}


@router.patch("/visibility", response_model=TeamResponse)
@router.patch("/makePublic", response_model=TeamResponse, include_in_schema=False)
def set_visibility(
    payload: VisibilityRequest,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = membership.set_team_visibility(db, current_user.id, payload.is_public)
    return team_response(team, member_count(db, team.id))


@router.get("/me", response_model=TeamDetailResponse)
def my_team(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    if current_user.team_id is None:
        raise NotInTeam()

    team = db.get(Team, current_user.team_id)
    if not team:
        raise TeamNotFound()
    members = get_team_members(db, team.id)
    slot = get_team_slot(db, team.id)
    summary = team_response(team, len(members))
    return TeamDetailResponse(
        **summary.model_dump(),
        members=[
            MemberResponse(id=m.id, username=m.username, is_leader=m.is_leader)
            for m in members
        ],
        slot_id=slot.id if slot else None
    )

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_user
from ..errors import UserNotFound
from ..models.team import Team
from ..models.user import User
from ..schemas import UserResponse, user_response

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def fetch_self(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = db.get(Team, current_user.team_id) if current_user.team_id else None
    return user_response(current_user, team)


@router.get("/{user_id}", response_model=UserResponse)
def fetch_user(
    user_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    """Another user's profile; team and phone number are shown to teammates only."""
    user = db.get(User, user_id)
    if not user:
        raise UserNotFound()

    same_team = user.team_id is not None and user.team_id == current_user.team_id
    team = db.get(Team, user.team_id) if same_team else None
    return user_response(user, team, private=same_team or user.id == current_user.id)

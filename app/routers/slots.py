from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..database import get_session
from ..dependencies import require_user
from ..errors import NotInTeam
from ..models.slot import Slot
from ..models.team import Team
from ..models.user import User
from ..schemas import SlotResponse, slot_response
from ..services import slots as slot_service
from ..services.queries import get_team_slot

router = APIRouter(prefix="/api/slots", tags=["slots"])


def _with_team(db: Session, slot: Slot) -> SlotResponse:
    team = db.get(Team, slot.booked_by) if slot.booked_by else None
    return slot_response(slot, team)


@router.get("", response_model=List[SlotResponse])
def list_slots(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    slots = slot_service.list_slots(db)
    booked_ids = {slot.booked_by for slot in slots if slot.booked_by}
    teams = {}
    if booked_ids:
        teams = {team.id: team for team in db.exec(select(Team).where(Team.id.in_(booked_ids))).all()}
    return [slot_response(slot, teams.get(slot.booked_by)) for slot in slots]


@router.get("/my-team", response_model=Optional[SlotResponse])
def my_team_slot(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    if current_user.team_id is None:
        raise NotInTeam()
    slot = get_team_slot(db, current_user.team_id)
    return _with_team(db, slot) if slot else None


@router.get("/{slot_id}", response_model=SlotResponse)
def get_slot(
    slot_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return _with_team(db, slot_service.get_slot(db, slot_id))


@router.post("/{slot_id}/book", response_model=SlotResponse)
def book_slot(
    slot_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    slot = slot_service.book_slot(db, slot_id, current_user.id)
    return _with_team(db, slot)


@router.patch("/{slot_id}/leave", response_model=SlotResponse)
def leave_slot(
    slot_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return slot_response(slot_service.leave_slot(db, slot_id, current_user.id))

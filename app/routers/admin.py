import logging
import random
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_admin
from ..models.user import User
from ..schemas import SlotResponse, slot_response
from ..services import slots as slot_service
from ..services.matchmaking import run_matchmaking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class SlotCreateRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class MergeSwitchRequest(BaseModel):
    seed: Optional[int] = None


@router.post("/slots", response_model=SlotResponse, status_code=201)
def create_slot(
    payload: SlotCreateRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    slot = slot_service.create_slot(db, payload.start_time, payload.end_time)
    return slot_response(slot)


@router.delete("/slots/{slot_id}")
def delete_slot(
    slot_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    slot_service.delete_slot(db, slot_id)
    return {"success": True, "message": "Slot deleted successfully"}


@router.post("/merge-switch")
def merge_switch(
    payload: Optional[MergeSwitchRequest] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    """Run the matchmaking pass that rebuilds teams into full teams."""
    seed = payload.seed if payload else None
    logger.info("Merge-switch triggered by admin %s", current_user.id)
    summary = run_matchmaking(db, rng=random.Random(seed))
    return {"success": True, "summary": summary.as_dict()}

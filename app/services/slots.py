"""Slot reservation engine.

A slot is either available (``booked_by`` is NULL) or booked by exactly one
team. Booking and leaving lock the slot row for the rest of the transaction,
so two teams racing for the same slot cannot both see it as available.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..database import lock_for_update, transaction
from ..errors import (
    AlreadyBooked,
    DuplicateRange,
    InvalidRange,
    NotBookedByTeam,
    NotInTeam,
    NotLeader,
    SlotNotFound,
    SlotUnavailable,
    ValidationError,
)
from ..models.slot import Slot
from .queries import get_team_slot, lock_team, lock_user

logger = logging.getLogger(__name__)


def to_utc_naive(value: datetime) -> datetime:
    """Slots are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _lock_slot(db: Session, slot_id: int) -> Optional[Slot]:
    return db.exec(lock_for_update(select(Slot).where(Slot.id == slot_id))).first()


def create_slot(db: Session, start_time: datetime, end_time: datetime, now: Optional[datetime] = None) -> Slot:
    start_time = to_utc_naive(start_time)
    end_time = to_utc_naive(end_time)
    now = to_utc_naive(now) if now else datetime.utcnow()

    if start_time >= end_time:
        raise InvalidRange("start_time must be before end_time")
    if start_time < now:
        raise InvalidRange("Cannot create slot in the past")

    slot = Slot(start_time=start_time, end_time=end_time)
    with transaction(db):
        db.add(slot)
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateRange() from exc

    db.refresh(slot)
    logger.info("Created slot %s: %s - %s", slot.id, start_time, end_time)
    return slot


@dataclass
class SlotBatchResult:
    created: List[Slot] = field(default_factory=list)
    skipped: List[Tuple[datetime, datetime, str]] = field(default_factory=list)


def create_slots_for_day(
    db: Session,
    day: date,
    start_hour: int,
    end_hour: int,
    duration_minutes: int,
    now: Optional[datetime] = None,
) -> SlotBatchResult:
    """Create back-to-back slots of ``duration_minutes`` between two hours of a day.

    Slots already in the past or already present are skipped, not errors.
    """
    if not 0 <= start_hour <= 23 or not 0 <= end_hour <= 23:
        raise ValidationError("Hours must be between 0 and 23")
    if start_hour >= end_hour:
        raise ValidationError("start_hour must be before end_hour")
    if duration_minutes <= 0:
        raise ValidationError("Slot duration must be a positive number of minutes")

    now = to_utc_naive(now) if now else datetime.utcnow()
    total_minutes = (end_hour - start_hour) * 60
    count = total_minutes // duration_minutes
    if count == 0:
        raise ValidationError("Time range too small for the slot duration")

    result = SlotBatchResult()
    day_start = datetime(day.year, day.month, day.day, start_hour)
    for index in range(count):
        start_time = day_start + timedelta(minutes=index * duration_minutes)
        end_time = start_time + timedelta(minutes=duration_minutes)

        if start_time < now:
            result.skipped.append((start_time, end_time, "past"))
            continue
        try:
            result.created.append(create_slot(db, start_time, end_time, now=now))
        except DuplicateRange:
            result.skipped.append((start_time, end_time, "exists"))

    logger.info("Created %s slots on %s, skipped %s", len(result.created), day, len(result.skipped))
    return result


def delete_slot(db: Session, slot_id: int) -> None:
    with transaction(db):
        slot = _lock_slot(db, slot_id)
        if not slot:
            raise SlotNotFound()
        db.delete(slot)
    logger.info("Deleted slot %s", slot_id)


def list_slots(db: Session) -> List[Slot]:
    return list(db.exec(select(Slot).order_by(Slot.start_time)).all())


def get_slot(db: Session, slot_id: int) -> Slot:
    slot = db.get(Slot, slot_id)
    if not slot:
        raise SlotNotFound()
    return slot


def book_slot(db: Session, slot_id: int, user_id: int) -> Slot:
    """Book an available slot for the caller's team. Leaders only."""
    with transaction(db):
        user = lock_user(db, user_id)
        if user.team_id is None:
            raise NotInTeam("You must be part of a team to book a slot")
        if not user.is_leader:
            raise NotLeader("Only team leaders can book slots")

        # Team row first, so one team cannot book two slots concurrently
        team = lock_team(db, user.team_id)
        if get_team_slot(db, team.id) is not None:
            raise AlreadyBooked()

        slot = _lock_slot(db, slot_id)
        if not slot:
            raise SlotNotFound()
        if slot.booked_by is not None:
            raise SlotUnavailable()

        slot.booked_by = team.id
        db.add(slot)
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyBooked() from exc

    db.refresh(slot)
    logger.info("Team %s booked slot %s", slot.booked_by, slot_id)
    return slot


def leave_slot(db: Session, slot_id: int, user_id: int) -> Slot:
    """Release a slot the caller's team holds. Leaders only."""
    with transaction(db):
        user = lock_user(db, user_id)
        if user.team_id is None:
            raise NotInTeam("You must be part of a team")
        if not user.is_leader:
            raise NotLeader("Only team leaders can leave slots")

        team_id = user.team_id
        slot = _lock_slot(db, slot_id)
        if not slot or slot.booked_by != team_id:
            raise NotBookedByTeam()

        slot.booked_by = None
        db.add(slot)

    db.refresh(slot)
    logger.info("Team %s left slot %s", team_id, slot_id)
    return slot

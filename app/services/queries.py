import logging
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, func, select

from ..database import lock_for_update
from ..errors import TeamNotFound, UserNotFound
from ..models.slot import Slot
from ..models.team import Team, TeamMembership
from ..models.user import User

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise UserNotFound()
    return user


def lock_user(db: Session, user_id: int) -> User:
    user = db.exec(lock_for_update(select(User).where(User.id == user_id))).first()
    if not user:
        raise UserNotFound()
    return user


def lock_users(db: Session, user_ids: Iterable[int]) -> List[User]:
    """Lock users and return them in the order of ``user_ids``."""
    user_ids = list(user_ids)
    users = db.exec(
        lock_for_update(select(User).where(User.id.in_(user_ids)).order_by(User.id))
    ).all()
    by_id: Dict[int, User] = {user.id: user for user in users}
    missing = [user_id for user_id in user_ids if user_id not in by_id]
    if missing:
        raise UserNotFound(f"Users not found: {missing}")
    return [by_id[user_id] for user_id in user_ids]


def lock_team(db: Session, team_id: int) -> Team:
    team = db.exec(lock_for_update(select(Team).where(Team.id == team_id))).first()
    if not team:
        raise TeamNotFound()
    return team


def member_count(db: Session, team_id: int) -> int:
    return db.exec(
        select(func.count(TeamMembership.id)).where(TeamMembership.team_id == team_id)
    ).one()


def get_team_members(db: Session, team_id: int) -> List[User]:
    """Members of a team, oldest membership first."""
    statement = (
        select(User)
        .join(TeamMembership, TeamMembership.user_id == User.id)
        .where(TeamMembership.team_id == team_id)
        .order_by(TeamMembership.joined_at, TeamMembership.id)
    )
    return list(db.exec(statement).all())


def get_leader(db: Session, team_id: int) -> Optional[User]:
    return db.exec(
        select(User).where(User.team_id == team_id, User.is_leader == True)  # noqa: E712
    ).first()


def get_team_slot(db: Session, team_id: int) -> Optional[Slot]:
    return db.exec(select(Slot).where(Slot.booked_by == team_id)).first()


def release_team_slot(db: Session, team_id: int) -> Optional[Slot]:
    """Free the slot a team holds, if any. Caller owns the transaction."""
    slot = db.exec(lock_for_update(select(Slot).where(Slot.booked_by == team_id))).first()
    if slot:
        slot.booked_by = None
        db.add(slot)
        db.flush()
        logger.info("Released slot %s held by team %s", slot.id, team_id)
    return slot

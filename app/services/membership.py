"""Team membership engine.

Every public function here is one store transaction: either all of its
changes are committed or none are. After each one, for every team touched:

* the team has at most ``TEAM_CAPACITY`` members (except where the
  matchmaking leftover step is allowed to overflow),
* a team with members has exactly one leader,
* ``User.team_id`` and the user's ``team_members`` row agree.
"""
import logging
import secrets
import string
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..config import (
    DELETE_EMPTY_TEAMS,
    INVITE_CODE_ATTEMPTS,
    INVITE_CODE_LENGTH,
    TEAM_CAPACITY,
    TEAM_NAME_MAX_LENGTH,
)
from ..database import insert_memberships, lock_for_update, transaction
from ..errors import (
    AlreadyInTeam,
    InternalError,
    InvalidName,
    NotInTeam,
    NotLeader,
    TeamFull,
    TeamNotFound,
)
from ..models.team import Team, TeamMembership
from ..models.user import User
from .leadership import LeadershipAction, leadership_action
from .queries import (
    get_team_members,
    get_user,
    lock_team,
    lock_user,
    lock_users,
    member_count,
    release_team_slot,
)

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Generate a random alphanumeric invite code."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def _clean_team_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidName()
    if len(name) > TEAM_NAME_MAX_LENGTH:
        raise InvalidName(f"Team name must be at most {TEAM_NAME_MAX_LENGTH} characters")
    return name


def _insert_team(db: Session, name: str) -> Team:
    """Insert a team with a fresh invite code, retrying on collisions."""
    for attempt in range(1, INVITE_CODE_ATTEMPTS + 1):
        code = generate_invite_code()
        if db.exec(select(Team.id).where(Team.invite_code == code)).first() is not None:
            logger.info("Invite code collision (attempt %s), retrying", attempt)
            continue

        team = Team(name=name, invite_code=code)
        try:
            # A concurrent insert may still take the code; only the savepoint is lost
            with db.begin_nested():
                db.add(team)
                db.flush()
        except IntegrityError:
            logger.info("Invite code taken concurrently (attempt %s), retrying", attempt)
            continue
        return team

    raise InternalError(f"No unique invite code after {INVITE_CODE_ATTEMPTS} attempts")


def _detach(db: Session, users: Sequence[User]) -> None:
    """Drop any membership rows the users hold and clear their team fields."""
    user_ids = [user.id for user in users]
    memberships = db.exec(
        select(TeamMembership).where(TeamMembership.user_id.in_(user_ids))
    ).all()
    for membership in memberships:
        db.delete(membership)
    for user in users:
        user.team_id = None
        user.is_leader = False
        db.add(user)
    db.flush()


def _attach(db: Session, users: Sequence[User], team_id: int, leader_id: Optional[int] = None) -> None:
    for user in users:
        user.team_id = team_id
        user.is_leader = user.id == leader_id
        db.add(user)
    insert_memberships(db, team_id, [user.id for user in users])


def _delete_team(db: Session, team: Team) -> None:
    release_team_slot(db, team.id)
    db.delete(team)
    db.flush()


def _apply_leadership(db: Session, team: Team) -> LeadershipAction:
    """Bring a team back to one leader (or handle it being empty)."""
    db.flush()
    members = get_team_members(db, team.id)
    has_leader = any(member.is_leader for member in members)
    action = leadership_action(len(members), has_leader, delete_empty=DELETE_EMPTY_TEAMS)

    if action is LeadershipAction.PROMOTE_OLDEST:
        oldest = members[0]
        oldest.is_leader = True
        db.add(oldest)
        db.flush()
        logger.info("User %s is now leader of team %s", oldest.id, team.id)
    elif action is LeadershipAction.DELETE_EMPTY:
        _delete_team(db, team)
        logger.info("Deleted empty team %s", team.id)
    elif action is LeadershipAction.RETAIN_EMPTY:
        logger.info("Team %s is empty and kept dormant", team.id)

    return action


def create_team(db: Session, user_id: int, name: str) -> Team:
    """Create a team led by ``user_id``."""
    name = _clean_team_name(name)

    with transaction(db):
        user = lock_user(db, user_id)
        if user.team_id is not None:
            raise AlreadyInTeam()

        team = _insert_team(db, name)
        _attach(db, [user], team.id, leader_id=user.id)

    db.refresh(team)
    logger.info("User %s created team %s (%s)", user_id, team.id, team.name)
    return team


def join_team(db: Session, user_id: int, invite_code: str) -> Tuple[Team, User]:
    """Join the team with ``invite_code`` as a regular member."""
    invite_code = (invite_code or "").strip()

    with transaction(db):
        user = lock_user(db, user_id)
        if user.team_id is not None:
            raise AlreadyInTeam()

        # Locking the team row serialises concurrent joins so the count stays accurate
        team = db.exec(
            lock_for_update(select(Team).where(Team.invite_code == invite_code))
        ).first()
        if not team:
            raise TeamNotFound("Invalid invite code")

        if member_count(db, team.id) >= TEAM_CAPACITY:
            raise TeamFull()

        _attach(db, [user], team.id)
        _apply_leadership(db, team)

    db.refresh(team)
    db.refresh(user)
    logger.info("User %s joined team %s", user_id, team.id)
    return team, user


def exit_team(db: Session, user_id: int) -> None:
    """Leave the caller's team, handing leadership to the oldest remaining member."""
    with transaction(db):
        user = lock_user(db, user_id)
        if user.team_id is None:
            raise NotInTeam()

        team_id = user.team_id
        team = lock_team(db, team_id)
        was_leader = user.is_leader
        _detach(db, [user])
        action = _apply_leadership(db, team)

    logger.info(
        "User %s left team %s (was_leader=%s, then %s)",
        user_id, team_id, was_leader, action.value
    )


def set_team_visibility(db: Session, user_id: int, is_public: Optional[bool] = None) -> Team:
    """Set the caller's team visibility; ``None`` toggles it."""
    with transaction(db):
        user = get_user(db, user_id)
        if user.team_id is None:
            raise NotInTeam()
        if not user.is_leader:
            raise NotLeader("Only the team leader can change team visibility")

        team = lock_team(db, user.team_id)
        team.is_public = (not team.is_public) if is_public is None else is_public
        db.add(team)

    db.refresh(team)
    return team


def merge_teams(db: Session, source_team_id: int, target_team_id: int, new_leader_id: int) -> Team:
    """Move every member of source into target, delete source, install ``new_leader_id``.

    The caller guarantees the combined size fits in a team.
    """
    if source_team_id == target_team_id:
        raise ValueError("Cannot merge a team into itself")

    with transaction(db):
        source = lock_team(db, source_team_id)
        target = lock_team(db, target_team_id)

        moving = get_team_members(db, source.id)
        staying = get_team_members(db, target.id)
        if new_leader_id not in {user.id for user in moving + staying}:
            raise ValueError(f"User {new_leader_id} is not a member of either team")

        _detach(db, moving)
        _delete_team(db, source)
        for user in staying:
            user.is_leader = user.id == new_leader_id
            db.add(user)
        _attach(db, moving, target.id, leader_id=new_leader_id)

    db.refresh(target)
    logger.info(
        "Merged team %s into team %s (%s + %s members), leader %s",
        source_team_id, target_team_id, len(moving), len(staying), new_leader_id
    )
    return target


def create_team_with_members(db: Session, name: str, user_ids: Sequence[int], leader_id: int) -> Team:
    """Create a team already populated with ``user_ids``, led by ``leader_id``."""
    user_ids = list(user_ids)
    if leader_id not in user_ids:
        raise ValueError(f"Leader {leader_id} is not among the new members")
    name = _clean_team_name(name)

    with transaction(db):
        users = lock_users(db, user_ids)
        _detach(db, users)
        team = _insert_team(db, name)
        _attach(db, users, team.id, leader_id=leader_id)

    db.refresh(team)
    logger.info("Created team %s with %s members, leader %s", team.id, len(user_ids), leader_id)
    return team


def dissolve_team(db: Session, team_id: int) -> List[Tuple[int, bool]]:
    """Delete a team and free its members.

    Returns ``(user_id, was_leader)`` for each former member, oldest first.
    """
    with transaction(db):
        team = lock_team(db, team_id)
        members = get_team_members(db, team.id)
        # Users pointing at the team without a membership row are freed too
        member_ids = {user.id for user in members}
        strays = db.exec(select(User).where(User.team_id == team.id)).all()
        members += [user for user in strays if user.id not in member_ids]

        former = [(user.id, user.is_leader) for user in members]
        _detach(db, members)
        _delete_team(db, team)

    logger.info("Dissolved team %s (%s members)", team_id, len(former))
    return former


def add_members(db: Session, team_id: int, user_ids: Sequence[int]) -> Team:
    """Append users to an existing team without a capacity check."""
    user_ids = list(user_ids)

    with transaction(db):
        team = lock_team(db, team_id)
        users = lock_users(db, user_ids)
        _detach(db, users)
        _attach(db, users, team.id)
        _apply_leadership(db, team)

    db.refresh(team)
    logger.info("Added %s members to team %s", len(user_ids), team_id)
    return team

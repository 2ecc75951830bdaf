"""Merge-switch: reorganise incomplete teams and solo users into full teams.

The pass is a sequence of independent membership transactions, not one big
transaction. If it stops halfway, whatever finished stays committed and the
pass can simply be run again: full teams are never touched and membership
inserts skip rows that already exist.

It assumes nothing else is changing memberships while it runs.
"""
import logging
import random
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from sqlmodel import Session, func, select

from ..config import MATCHMAKING_ALLOW_OVERFLOW, TEAM_CAPACITY
from ..models.team import Team, TeamMembership
from ..models.user import User
from .leadership import pick_batch_leader
from .membership import add_members, create_team_with_members, dissolve_team, merge_teams
from .queries import get_team_members

logger = logging.getLogger(__name__)


class LeftoverHandling(str, Enum):
    NONE = "none"
    APPENDED = "appended"
    APPENDED_OVER_CAPACITY = "appended_over_capacity"
    NEW_TEAM = "new_team"


@dataclass
class TeamSnapshot:
    team_id: int
    member_count: int
    leader_id: Optional[int]


@dataclass
class Orphan:
    user_id: int
    was_leader: bool = False


@dataclass
class MatchmakingSummary:
    full_teams_kept: int = 0
    merges: int = 0
    teams_dissolved: int = 0
    orphans_processed: int = 0
    new_teams_created: int = 0
    leftovers: int = 0
    leftover_handling: LeftoverHandling = LeftoverHandling.NONE
    leftover_team_id: Optional[int] = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["leftover_handling"] = self.leftover_handling.value
        return data


def snapshot_teams(db: Session) -> List[TeamSnapshot]:
    """Every team with its member count and leader, oldest team first."""
    counts = db.exec(
        select(Team.id, func.count(TeamMembership.id))
        .outerjoin(TeamMembership, TeamMembership.team_id == Team.id)
        .group_by(Team.id)
        .order_by(Team.id)
    ).all()
    leaders: Dict[int, int] = dict(db.exec(
        select(User.team_id, User.id).where(
            User.is_leader == True,  # noqa: E712
            User.team_id != None  # noqa: E711
        )
    ).all())
    return [
        TeamSnapshot(team_id=team_id, member_count=count, leader_id=leaders.get(team_id))
        for team_id, count in counts
    ]


def snapshot_solo_users(db: Session) -> List[int]:
    """Users without a team. Operator accounts never play."""
    return list(db.exec(
        select(User.id)
        .where(User.team_id == None, User.is_admin == False)  # noqa: E711,E712
        .order_by(User.id)
    ).all())


def _merge_roles(
    first: TeamSnapshot, second: TeamSnapshot, rng: random.Random
) -> Tuple[TeamSnapshot, TeamSnapshot]:
    """Return (source, target); the target's leader leads the merged team."""
    if first.member_count > second.member_count:
        return second, first
    if second.member_count > first.member_count:
        return first, second
    target = rng.choice([first, second])
    source = second if target is first else first
    return source, target


def _merge_leader(db: Session, source: TeamSnapshot, target: TeamSnapshot) -> int:
    if target.leader_id is not None:
        return target.leader_id
    if source.leader_id is not None:
        return source.leader_id
    # Neither team has a leader; fall back to the target's oldest member
    return get_team_members(db, target.team_id)[0].id


def run_matchmaking(
    db: Session,
    rng: Optional[random.Random] = None,
    capacity: int = TEAM_CAPACITY,
    allow_overflow: bool = MATCHMAKING_ALLOW_OVERFLOW,
) -> MatchmakingSummary:
    rng = rng or random.Random()
    summary = MatchmakingSummary()

    teams = snapshot_teams(db)
    solo_ids = snapshot_solo_users(db)
    logger.info("Merge-switch started: %s teams, %s solo users", len(teams), len(solo_ids))

    incomplete: List[TeamSnapshot] = []
    for team in teams:
        if team.member_count >= capacity:
            summary.full_teams_kept += 1
        else:
            incomplete.append(team)
    logger.info("Phase 1: %s full teams kept, %s incomplete", summary.full_teams_kept, len(incomplete))

    # Phase 2: first-fit pairing of teams whose sizes add up to exactly a full team
    merged: Set[int] = set()
    for index, first in enumerate(incomplete):
        if first.team_id in merged:
            continue
        for second in incomplete[index + 1:]:
            if second.team_id in merged:
                continue
            if first.member_count + second.member_count != capacity:
                continue

            source, target = _merge_roles(first, second, rng)
            leader_id = _merge_leader(db, source, target)
            merge_teams(db, source.team_id, target.team_id, leader_id)
            merged.update((first.team_id, second.team_id))
            summary.merges += 1
            break
    logger.info("Phase 2: %s merges", summary.merges)

    # Phase 3: everything else is broken up
    dissolved: List[Orphan] = []
    for team in incomplete:
        if team.team_id in merged:
            continue
        for user_id, was_leader in dissolve_team(db, team.team_id):
            dissolved.append(Orphan(user_id=user_id, was_leader=was_leader))
        summary.teams_dissolved += 1
    logger.info("Phase 3: %s teams dissolved, %s members freed", summary.teams_dissolved, len(dissolved))

    pool = [Orphan(user_id=user_id) for user_id in solo_ids] + dissolved
    summary.orphans_processed = len(pool)

    # Phase 4: full teams out of the orphan pool, in pool order
    full_batches = len(pool) // capacity
    for batch_number in range(full_batches):
        batch = pool[batch_number * capacity:(batch_number + 1) * capacity]
        user_ids = [orphan.user_id for orphan in batch]
        leader_id = pick_batch_leader(user_ids, [o.user_id for o in batch if o.was_leader])
        create_team_with_members(db, f"Auto Team {batch_number + 1}", user_ids, leader_id)
        summary.new_teams_created += 1
    logger.info("Phase 4: %s new teams from %s orphans", summary.new_teams_created, len(pool))

    leftovers = pool[full_batches * capacity:]
    summary.leftovers = len(leftovers)
    if leftovers:
        _place_leftovers(db, leftovers, summary, capacity, allow_overflow)
        logger.info(
            "Phase 5: %s leftovers handled as %s (team %s)",
            summary.leftovers, summary.leftover_handling.value, summary.leftover_team_id
        )

    logger.info("Merge-switch finished: %s", summary.as_dict())
    return summary


def _place_leftovers(
    db: Session,
    leftovers: List[Orphan],
    summary: MatchmakingSummary,
    capacity: int,
    allow_overflow: bool,
) -> None:
    user_ids = [orphan.user_id for orphan in leftovers]
    teams = snapshot_teams(db)

    roomy = next((t for t in teams if t.member_count + len(user_ids) <= capacity), None)
    if roomy:
        add_members(db, roomy.team_id, user_ids)
        summary.leftover_handling = LeftoverHandling.APPENDED
        summary.leftover_team_id = roomy.team_id
        return

    if teams and allow_overflow:
        first = teams[0]
        logger.warning(
            "No team has room for %s leftovers; appending to team %s (%s members)",
            len(user_ids), first.team_id, first.member_count
        )
        add_members(db, first.team_id, user_ids)
        summary.leftover_handling = LeftoverHandling.APPENDED_OVER_CAPACITY
        summary.leftover_team_id = first.team_id
        return

    leader_id = pick_batch_leader(user_ids, [o.user_id for o in leftovers if o.was_leader])
    team = create_team_with_members(
        db, f"Auto Team {summary.new_teams_created + 1}", user_ids, leader_id
    )
    summary.new_teams_created += 1
    summary.leftover_handling = LeftoverHandling.NEW_TEAM
    summary.leftover_team_id = team.id

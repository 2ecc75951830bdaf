"""Who leads a team after its membership changes, and what happens to empty teams.

The policy is a lookup table keyed by the team's state once a mutation has
been applied, so it can be read and tested without a database.
"""
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple


class MemberState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"


class LeadershipAction(str, Enum):
    KEEP = "keep"
    PROMOTE_OLDEST = "promote_oldest"
    RETAIN_EMPTY = "retain_empty"
    DELETE_EMPTY = "delete_empty"


# (member state, has a leader) -> action
LEADERSHIP_TRANSITIONS: Dict[Tuple[MemberState, bool], LeadershipAction] = {
    (MemberState.POPULATED, True): LeadershipAction.KEEP,
    (MemberState.POPULATED, False): LeadershipAction.PROMOTE_OLDEST,
    (MemberState.EMPTY, False): LeadershipAction.RETAIN_EMPTY,
}

# Same table with empty teams removed instead of left dormant
LEADERSHIP_TRANSITIONS_DELETE_EMPTY: Dict[Tuple[MemberState, bool], LeadershipAction] = {
    **LEADERSHIP_TRANSITIONS,
    (MemberState.EMPTY, False): LeadershipAction.DELETE_EMPTY,
}


def leadership_action(member_count: int, has_leader: bool, delete_empty: bool = False) -> LeadershipAction:
    """Look up the action for a team with ``member_count`` members."""
    state = MemberState.POPULATED if member_count > 0 else MemberState.EMPTY
    table = LEADERSHIP_TRANSITIONS_DELETE_EMPTY if delete_empty else LEADERSHIP_TRANSITIONS
    try:
        return table[(state, has_leader)]
    except KeyError:
        raise ValueError(
            f"Invalid team state: {member_count} members, has_leader={has_leader}"
        ) from None


def pick_batch_leader(user_ids: Sequence[int], former_leaders: Sequence[int]) -> Optional[int]:
    """First former leader in ``user_ids``, else the first user."""
    if not user_ids:
        return None
    leaders = set(former_leaders)
    for user_id in user_ids:
        if user_id in leaders:
            return user_id
    return user_ids[0]

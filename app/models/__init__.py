from .user import User, LoginSession
from .team import Team, TeamMembership
from .slot import Slot

__all__ = [
    "User",
    "LoginSession",
    "Team",
    "TeamMembership",
    "Slot",
]

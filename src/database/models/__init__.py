"""
Model registry for the ranking schema.

Importing this package registers every table on ``Base.metadata``.
"""

from .enums import SeasonStatus
from .league import GroupMembership, LeagueGroup
from .points import UserSeasonPoints
from .profile import UserProfile
from .season import Season, SeasonLeaderboardSnapshot

__all__ = [
    "SeasonStatus",
    "Season",
    "SeasonLeaderboardSnapshot",
    "LeagueGroup",
    "GroupMembership",
    "UserSeasonPoints",
    "UserProfile",
]

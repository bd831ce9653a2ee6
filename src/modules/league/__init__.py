"""
League Module
=============

Domain: league tiers, groups and transfers

Services:
- LeagueService: Tier lookups, group summaries, entry points
- GroupAllocator: Scan + transactional group admission
- LeagueTransferService: Tier changes within a season
"""

from .group_allocator import GroupAllocator
from .service import LeagueService
from .tiers import LEAGUE_TIERS, LeagueTier, get_tier, list_tiers
from .transfer_service import LeagueTransferService

__all__ = [
    "LeagueService",
    "GroupAllocator",
    "LeagueTransferService",
    "LeagueTier",
    "LEAGUE_TIERS",
    "get_tier",
    "list_tiers",
]

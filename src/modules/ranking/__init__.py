"""
Ranking Module
==============

Domain: season points and ranked positions

Services:
- PointsService: Season points ledger
- RankingService: Leaderboards and positions
- GroupReconciliationService: Count and mirror repair
"""

from .points_service import PointsService
from .reconciliation import GroupReconciliationService
from .service import RankingService

__all__ = [
    "PointsService",
    "RankingService",
    "GroupReconciliationService",
]

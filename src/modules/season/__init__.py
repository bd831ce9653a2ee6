"""
Season Module
=============

Domain: weekly season windows, lazy creation and rollover.

Services:
- SeasonService: Season registry
"""

from .service import SeasonService, SeasonWindow, compute_window

__all__ = [
    "SeasonService",
    "SeasonWindow",
    "compute_window",
]

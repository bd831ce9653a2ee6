"""
Profile Module
==============

Domain: the user-profile collaborator seen by the ranking engine.
"""

from .store import ProfileSnapshot, SqlUserProfileStore, UserProfileStore

__all__ = [
    "ProfileSnapshot",
    "SqlUserProfileStore",
    "UserProfileStore",
]

"""
Database repositories for Tracksync.

Each repository handles CRUD operations for a specific domain entity.
"""

from tracksync.db.repositories.base import BaseRepository
from tracksync.db.repositories.tracking import TrackingNotFoundError, TrackingRepository

__all__ = [
    "BaseRepository",
    "TrackingNotFoundError",
    "TrackingRepository",
]

"""Infrastructure layer - Database and persistence"""

from .db import DatabaseEngine, KeyValueModel, init_db
from .repository import BaseSnapshotStore, KeyValueRepository, SnapshotRepository

__all__ = [
    "DatabaseEngine",
    "KeyValueModel",
    "init_db",
    "BaseSnapshotStore",
    "KeyValueRepository",
    "SnapshotRepository",
]

"""
Agileboard - agile project dashboard data layer

Keeps an in-memory snapshot of users, sprints and work items in sync with a
hosted Postgres backend and exposes it to a CLI and a JSON API.
"""

__version__ = "0.4.0"

# Re-export core models for convenience
from agileboard.core.items.models import Sprint, User, WorkItem
from agileboard.core.sync.service import SyncService

__all__ = ["Sprint", "SyncService", "User", "WorkItem", "__version__"]

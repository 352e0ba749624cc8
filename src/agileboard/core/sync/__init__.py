"""
Data synchronization layer.

SyncService owns the local snapshot of users, sprints and work items and
routes every mutation through the configured backend.
"""

from agileboard.core.sync.date_sync import DateSyncPolicy, SprintAssignment, plan_sprint_assignments
from agileboard.core.sync.notify import LoggingNotifier, Notifier, RecordingNotifier
from agileboard.core.sync.selection import reconcile_selection, resolve_selected
from agileboard.core.sync.service import Snapshot, SyncService

__all__ = [
    "DateSyncPolicy",
    "LoggingNotifier",
    "Notifier",
    "RecordingNotifier",
    "Snapshot",
    "SprintAssignment",
    "SyncService",
    "plan_sprint_assignments",
    "reconcile_selection",
    "resolve_selected",
]

"""
Read-only roll-ups over the snapshot: backlog, board, finance, metrics
and timeline.
"""

from agileboard.core.reports.backlog import (
    BacklogNode,
    Rollup,
    build_tree,
    child_fields,
    filter_items,
    rollup,
    sort_items,
)
from agileboard.core.reports.board import (
    BoardLane,
    HierarchyFilter,
    SprintProgress,
    build_board,
    sprint_progress,
    status_for_column,
)
from agileboard.core.reports.finance import (
    FinanceSummary,
    MonthBucket,
    by_month,
    cost_items,
    format_currency,
    summarize,
)
from agileboard.core.reports.metrics import DashboardMetrics, compute_metrics
from agileboard.core.reports.timeline import (
    GanttRow,
    TimelineView,
    gantt_rows,
    initiative_timeline,
    timeline_window_start,
)

__all__ = [
    "BacklogNode",
    "BoardLane",
    "DashboardMetrics",
    "FinanceSummary",
    "GanttRow",
    "HierarchyFilter",
    "MonthBucket",
    "Rollup",
    "SprintProgress",
    "TimelineView",
    "build_board",
    "build_tree",
    "by_month",
    "child_fields",
    "compute_metrics",
    "cost_items",
    "filter_items",
    "format_currency",
    "gantt_rows",
    "initiative_timeline",
    "rollup",
    "sort_items",
    "sprint_progress",
    "status_for_column",
    "summarize",
]

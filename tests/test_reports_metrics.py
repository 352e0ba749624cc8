"""
Tests for dashboard indicators and the Gantt/timeline views.
"""

from datetime import date

from agileboard.core.items.models import ItemStatus, ItemType, SprintStatus
from agileboard.core.reports.metrics import compute_metrics
from agileboard.core.reports.timeline import (
    child_progress,
    gantt_rows,
    initiative_timeline,
    timeline_window_start,
)

from conftest import make_item, make_sprint, make_user


class TestComputeMetrics:
    def test_indicators(self):
        sprints = [make_sprint("s1", SprintStatus.ACTIVE), make_sprint("s2")]
        users = [make_user("u1", "Ana")]
        items = [
            make_item("A", sprint_id="s1", effort=5, status=ItemStatus.CLOSED, assignee_id="u1"),
            make_item("B", sprint_id="s1", effort=3, blocked=True, assignee_id="u1"),
            make_item("C", effort=1),
        ]

        metrics = compute_metrics(items, sprints, users)

        assert metrics.total_items == 3
        assert metrics.active_sprints == 1
        assert metrics.blocked_items == 1
        assert metrics.delivery_rate == 33
        assert metrics.status_breakdown["Closed"] == 1
        assert metrics.status_breakdown["New"] == 2
        assert [(v.sprint_id, v.planned, v.delivered) for v in metrics.velocity] == [
            ("s1", 8, 5),
            ("s2", 0, 0),
        ]
        assert [(a.name, a.total, a.closed) for a in metrics.by_assignee] == [("Ana", 2, 1)]

    def test_empty(self):
        assert compute_metrics([], [], []).delivery_rate == 0


class TestTimeline:
    def items(self):
        return [
            make_item("W", type=ItemType.WORKSTREAM),
            make_item("I", type=ItemType.INITIATIVE, workstream_id="W", parent_id="W",
                      start_date=date(2025, 1, 10)),
            make_item("D", type=ItemType.DELIVERY, parent_id="I", end_date=date(2025, 3, 1)),
            make_item("T1", type=ItemType.TASK, parent_id="D", end_date=date(2025, 2, 1),
                      status=ItemStatus.CLOSED),
            make_item("T2", type=ItemType.BUG, parent_id="D"),
        ]

    def test_child_progress(self):
        items = self.items()
        assert child_progress(items[2], items) == 50
        assert child_progress(items[3], items) == 100
        assert child_progress(items[4], items) == 0

    def test_gantt_rows(self):
        rows = gantt_rows(self.items(), workstream_id="W")
        assert [(r.item.id, r.level) for r in rows] == [
            ("I", "initiative"),
            ("D", "delivery"),
            ("T1", "task"),
            ("T2", "task"),
        ]
        assert gantt_rows(self.items(), workstream_id="other") == []

    def test_window_start(self):
        assert timeline_window_start(self.items()) == date(2025, 1, 3)
        assert timeline_window_start([], today=date(2025, 1, 20)) == date(2025, 1, 5)

    def test_initiative_timeline(self):
        view = initiative_timeline(self.items(), "I")
        assert [i.id for i in view.items] == ["T1", "D"]
        assert view.progress == 50

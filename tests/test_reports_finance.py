"""
Tests for the cost roll-up.
"""

from datetime import date

import pytest

from agileboard.core.items.models import BillingStatus, CostType, ItemType
from agileboard.core.reports.finance import (
    by_month,
    cost_items,
    format_currency,
    is_cost_item,
    summarize,
)

from conftest import make_item


@pytest.fixture
def items():
    return [
        make_item("W", type=ItemType.WORKSTREAM),
        make_item("I", type=ItemType.INITIATIVE, parent_id="W", workstream_id="W"),
        make_item("D", type=ItemType.DELIVERY, parent_id="I"),
        make_item("C1", parent_id="D", cost_value=1000.0, cost_type=CostType.CAPEX,
                  billing_status=BillingStatus.ORDER_ISSUED, end_date=date(2025, 3, 31)),
        make_item("C2", parent_id="D", cost_value=500.0, cost_type=CostType.OPEX,
                  billing_status=BillingStatus.OPEN, start_date=date(2025, 5, 2)),
        make_item("C3", cost_item="Licences", billing_status=BillingStatus.INVOICED),
        make_item("X", title="Not a cost"),
    ]


class TestCostItems:
    def test_detection(self, items):
        assert [i.id for i in items if is_cost_item(i)] == ["C1", "C2", "C3"]

    def test_all(self, items):
        assert [i.id for i in cost_items(items)] == ["C1", "C2", "C3"]

    def test_under_initiative_via_grandparent(self, items):
        assert [i.id for i in cost_items(items, "I")] == ["C1", "C2"]

    def test_under_workstream_via_grandparent_pointer(self, items):
        assert [i.id for i in cost_items(items, "W")] == ["C1", "C2"]


class TestSummarize:
    def test_totals(self, items):
        summary = summarize(cost_items(items))
        assert summary.total == 1500.0
        assert summary.capex == 1000.0
        assert summary.count == 3
        assert summary.order_percentage == pytest.approx(200 / 3)

    def test_empty(self):
        summary = summarize([])
        assert (summary.total, summary.count, summary.order_percentage) == (0.0, 0, 0.0)


class TestByMonth:
    def test_buckets(self, items):
        buckets = by_month(cost_items(items))
        assert [b.month for b in buckets][:3] == ["JAN", "FEB", "MAR"]
        assert [i.id for i in buckets[2].items] == ["C1"]
        assert [i.id for i in buckets[4].items] == ["C2"]
        assert buckets[2].total == 1000.0
        assert sum(len(b.items) for b in buckets) == 2


class TestFormatCurrency:
    @pytest.mark.parametrize(
        "value,expected",
        [(1_250_000, "R$ 1.2M"), (15_500, "R$ 15.5K"), (999, "R$ 999")],
    )
    def test_compact(self, value, expected):
        assert format_currency(value) == expected

"""
Tests for the aggregation functions.

All date-dependent functions get an explicit reference date.
Reference date: Wednesday 2024-05-15, week starting Sunday 2024-05-12.
"""

import pytest
from datetime import date
from decimal import Decimal

from finvise.analytics import (
    budget_utilization,
    build_budget_set,
    category_breakdown,
    category_spending,
    compute_totals,
    counterparty_balance,
    counterparty_history,
    debt_stats,
    filter_debts,
    filter_gifts,
    gift_stats,
    monthly_overview,
    monthly_trend,
    recent_cash_flow,
    week_start,
    weekly_comparison,
)
from finvise.models.finance import (
    Budget,
    Debt,
    DebtType,
    GiftDirection,
    GiftRecord,
    TransactionType,
)

from conftest import make_transaction


TODAY = date(2024, 5, 15)
INCOME = TransactionType.INCOME


def make_gift(amount, direction=GiftDirection.GIVEN, person="Hoa", on=date(2024, 5, 1)):
    return GiftRecord(
        user_id="user-1",
        direction=direction,
        person_name=person,
        amount=Decimal(amount),
        event_date=on,
    )


def make_debt(original, paid="0", type=DebtType.RECEIVABLE):
    return Debt(
        user_id="user-1",
        type=type,
        person_name="Minh",
        original_amount=Decimal(original),
        paid_amount=Decimal(paid),
        created_date=date(2024, 5, 1),
    )


class TestTotalsAndCategories:
    """Tests for totals and per-category spending."""

    def test_compute_totals(self):
        """1000 income and 600 expense leave a 400 balance."""
        transactions = [
            make_transaction("1000", type=INCOME, category="Salary"),
            make_transaction("600", category="Food"),
        ]
        totals = compute_totals(transactions)
        assert totals.total_income == Decimal("1000")
        assert totals.total_expense == Decimal("600")
        assert totals.balance == Decimal("400")

    def test_compute_totals_empty(self):
        """No transactions, all zero."""
        totals = compute_totals([])
        assert totals.total_income == 0
        assert totals.total_expense == 0
        assert totals.balance == 0

    def test_category_spending_ignores_income(self):
        """Only EXPENSE transactions count toward categories."""
        transactions = [
            make_transaction("1000", type=INCOME, category="Food"),
            make_transaction("400", category="Food"),
            make_transaction("200", category="Food"),
        ]
        assert category_spending(transactions) == {"Food": Decimal("600")}

    def test_category_labels_are_exact(self):
        """Differently spelled labels are separate buckets."""
        transactions = [
            make_transaction("10", category="Food"),
            make_transaction("20", category="food"),
        ]
        assert set(category_spending(transactions)) == {"Food", "food"}

    def test_category_whitespace_is_significant(self):
        """A trailing space makes a separate bucket."""
        transactions = [
            make_transaction("1", category="Food"),
            make_transaction("2", category="Food "),
        ]
        assert category_spending(transactions) == {
            "Food": Decimal("1"),
            "Food ": Decimal("2"),
        }

    def test_category_breakdown_sorting(self):
        """First-occurrence order by default, largest first when sorted."""
        transactions = [
            make_transaction("10", category="Transport"),
            make_transaction("50", category="Food"),
        ]
        assert [c.name for c in category_breakdown(transactions)] == ["Transport", "Food"]
        assert [c.name for c in category_breakdown(transactions, sort_by_value=True)] == [
            "Food", "Transport",
        ]


class TestCashFlowAndTrend:
    """Tests for date-bucketed series."""

    def test_recent_cash_flow_buckets_by_date(self):
        """Same-day transactions share a point."""
        transactions = [
            make_transaction("100", type=INCOME, on=date(2024, 5, 1)),
            make_transaction("40", on=date(2024, 5, 1)),
            make_transaction("30", on=date(2024, 5, 2)),
        ]
        points = recent_cash_flow(transactions)
        assert [p.day for p in points] == [date(2024, 5, 1), date(2024, 5, 2)]
        assert points[0].income == Decimal("100")
        assert points[0].expense == Decimal("40")
        assert points[1].expense == Decimal("30")

    def test_recent_cash_flow_takes_last_items(self):
        """Only the last `limit` transactions are used."""
        transactions = [make_transaction("1", on=date(2024, 5, d)) for d in range(1, 13)]
        points = recent_cash_flow(transactions, limit=10)
        assert len(points) == 10
        assert points[0].day == date(2024, 5, 3)

    def test_monthly_trend_window(self):
        """Six buckets, oldest first, crossing the year boundary."""
        trend = monthly_trend([], today=TODAY)
        assert [p.label for p in trend] == ["Dec", "Jan", "Feb", "Mar", "Apr", "May"]
        assert trend[0].year == 2023
        assert all(p.income == 0 and p.expense == 0 for p in trend)

    def test_monthly_trend_sums_and_ignores_outside_window(self):
        """Transactions before the window are dropped."""
        transactions = [
            make_transaction("500", type=INCOME, on=date(2024, 4, 3)),
            make_transaction("200", on=date(2024, 4, 20)),
            make_transaction("999", on=date(2023, 1, 1)),
        ]
        trend = monthly_trend(transactions, today=TODAY)
        april = trend[4]
        assert april.label == "Apr"
        assert april.income == Decimal("500")
        assert april.expense == Decimal("200")
        assert sum(p.expense for p in trend) == Decimal("200")

    def test_monthly_overview_saving_rate(self):
        """Saving rate is (income - expense) / income * 100."""
        transactions = [
            make_transaction("1000", type=INCOME, on=TODAY),
            make_transaction("250", on=TODAY),
            make_transaction("5000", on=date(2024, 4, 1)),
        ]
        overview = monthly_overview(transactions, today=TODAY)
        assert overview.income == Decimal("1000")
        assert overview.expense == Decimal("250")
        assert overview.saving_rate == pytest.approx(75.0)

    def test_monthly_overview_without_income(self):
        """No income means a zero saving rate."""
        overview = monthly_overview([make_transaction("100", on=TODAY)], today=TODAY)
        assert overview.saving_rate == 0.0


class TestWeeklyComparison:
    """Tests for this week vs last week."""

    def test_week_starts_on_sunday(self):
        assert week_start(TODAY) == date(2024, 5, 12)
        assert week_start(date(2024, 5, 12)) == date(2024, 5, 12)
        assert week_start(date(2024, 5, 18)) == date(2024, 5, 12)

    def test_change_is_zero_without_last_week(self):
        """No expense last week gives a 0 change, not a division error."""
        comparison = weekly_comparison([make_transaction("100", on=TODAY)], today=TODAY)
        assert comparison.this_week == Decimal("100")
        assert comparison.last_week == 0
        assert comparison.change == 0.0

    def test_percent_change(self):
        """150 this week against 100 last week is +50%."""
        transactions = [
            make_transaction("150", on=date(2024, 5, 13)),
            make_transaction("100", on=date(2024, 5, 8)),
            make_transaction("999", type=INCOME, on=date(2024, 5, 13)),
            make_transaction("777", on=date(2024, 5, 4)),
        ]
        comparison = weekly_comparison(transactions, today=TODAY)
        assert comparison.this_week == Decimal("150")
        assert comparison.last_week == Decimal("100")
        assert comparison.change == pytest.approx(50.0)

    def test_future_dated_expense_not_counted(self):
        """This week ends at the reference date."""
        comparison = weekly_comparison([make_transaction("80", on=date(2024, 5, 17))], today=TODAY)
        assert comparison.this_week == 0


class TestBudgets:
    """Tests for budget utilization and budget set replacement."""

    def test_over_budget(self):
        """600 spent on a 500 limit: capped percentage, negative remaining."""
        budget = Budget(category="Food", limit=Decimal("500"))
        transactions = [
            make_transaction("400", category="Food", on=TODAY),
            make_transaction("200", category="Food", on=TODAY),
        ]
        [usage] = budget_utilization([budget], transactions, today=TODAY)
        assert usage.spent == Decimal("600")
        assert usage.percentage == 100.0
        assert usage.remaining == Decimal("-100")
        assert usage.level == "danger"
        assert usage.is_over_budget

    @pytest.mark.parametrize("spent,level", [
        ("50", "ok"),
        ("70", "warning"),
        ("90", "danger"),
    ])
    def test_levels(self, spent, level):
        """Warning from 70%, danger from 90%."""
        budget = Budget(category="Food", limit=Decimal("100"))
        transactions = [make_transaction(spent, category="Food", on=TODAY)]
        [usage] = budget_utilization([budget], transactions, today=TODAY)
        assert usage.level == level

    def test_only_current_month_counts(self):
        """Last month's spending does not use this month's budget."""
        budget = Budget(category="Food", limit=Decimal("500"))
        transactions = [make_transaction("400", category="Food", on=date(2024, 4, 30))]
        [usage] = budget_utilization([budget], transactions, today=TODAY)
        assert usage.spent == 0
        assert usage.remaining == Decimal("500")

    def test_build_budget_set_keeps_ids_and_drops_empty(self):
        """Existing categories keep their id; zero limits are dropped."""
        existing = [Budget(category="Food", limit=Decimal("100"))]
        budgets = build_budget_set(existing, {
            "Food": Decimal("300"),
            "Transport": 150.5,
            "Health": Decimal("0"),
            "  ": Decimal("10"),
        })
        assert [b.category for b in budgets] == ["Food", "Transport"]
        assert budgets[0].id == existing[0].id
        assert budgets[0].limit == Decimal("300")
        assert budgets[1].limit == Decimal("150.50")


class TestLedgers:
    """Tests for debt and gift aggregations."""

    def test_debt_stats_use_remaining(self):
        """Outstanding totals are remaining amounts, net = receivable - payable."""
        debts = [
            make_debt("1000", paid="400"),
            make_debt("300", type=DebtType.PAYABLE),
        ]
        stats = debt_stats(debts)
        assert stats.receivable == Decimal("600")
        assert stats.payable == Decimal("300")
        assert stats.net == Decimal("300")

    def test_filter_debts(self):
        debts = [make_debt("10"), make_debt("20", type=DebtType.PAYABLE)]
        assert len(filter_debts(debts)) == 2
        assert [d.original_amount for d in filter_debts(debts, DebtType.PAYABLE)] == [Decimal("20")]

    def test_gift_stats(self):
        """net = received - given."""
        gifts = [
            make_gift("500"),
            make_gift("200", direction=GiftDirection.RECEIVED),
        ]
        stats = gift_stats(gifts)
        assert stats.given == Decimal("500")
        assert stats.received == Decimal("200")
        assert stats.net == Decimal("-300")
        assert len(filter_gifts(gifts, GiftDirection.RECEIVED)) == 1

    def test_counterparty_balance_matches_case_insensitively(self):
        gifts = [
            make_gift("500", person="Hoa"),
            make_gift("700", direction=GiftDirection.RECEIVED, person="hoa"),
            make_gift("100", person="Lan"),
        ]
        balance = counterparty_balance(gifts, "HOA")
        assert balance.record_count == 2
        assert balance.net == Decimal("200")

    def test_counterparty_history_excludes_current_record(self):
        """History lists the other records with the same person, newest first."""
        first = make_gift("500", on=date(2023, 1, 1))
        second = make_gift("300", on=date(2024, 2, 1))
        current = make_gift("100", on=date(2024, 5, 1))
        other = make_gift("50", person="Lan")
        history = counterparty_history([first, second, current, other], current)
        assert [g.id for g in history] == [second.id, first.id]

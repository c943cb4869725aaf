from datetime import datetime, timedelta, timezone

import pytest

from insights import (
    CATEGORY_PALETTE,
    GENERAL_TIPS,
    allocation_data,
    assign_colors,
    average_roi,
    dashboard_summary,
    entities_allocation,
    expense_category_data,
    expense_category_totals,
    filter_by_time_range,
    financial_overview,
    format_currency,
    generate_tips,
    investment_data,
    investment_value,
    monthly_expense_data,
    portfolio_summary,
    savings_data,
    time_range_cutoff,
)
from models import Entities, Expense, Investment, SavingGoal
from trackers import add_expense, load_entities


def expense(amount, category, when, description="item"):
    return Expense(description=description, amount=amount, category=category, date=when)


def investment(amount, roi, type_="Stocks", name="holding"):
    return Investment(name=name, amount=amount, roi=roi, type=type_)


# --- Time-range filter ---

@pytest.mark.parametrize(
    "token, cutoff",
    [
        ("last1Month", datetime(2025, 1, 10, 12, 0)),
        ("last3Months", datetime(2024, 11, 10, 12, 0)),
        ("last6Months", datetime(2024, 8, 10, 12, 0)),
        ("last12Months", datetime(2024, 2, 10, 12, 0)),
    ],
)
def test_filter_keeps_records_on_or_after_cutoff(now, token, cutoff):
    on_cutoff = expense(1, "Other", cutoff)
    just_before = expense(2, "Other", cutoff - timedelta(seconds=1))
    recent = expense(3, "Other", now - timedelta(days=1))

    kept = filter_by_time_range([on_cutoff, just_before, recent], token, now)

    assert kept == [on_cutoff, recent]


def test_unknown_token_behaves_like_six_months(now):
    records = [expense(1, "Other", now - timedelta(days=d)) for d in (10, 100, 170, 190, 400)]

    assert filter_by_time_range(records, "lastDecade", now) == filter_by_time_range(records, "last6Months", now)
    assert time_range_cutoff("", now) == time_range_cutoff("last6Months", now)


def test_future_dated_records_pass(now):
    future = expense(5, "Travel", now + timedelta(days=30))
    assert filter_by_time_range([future], "last1Month", now) == [future]


def test_cutoff_clamps_to_end_of_shorter_month():
    cutoff = time_range_cutoff("last3Months", datetime(2025, 5, 31))
    assert cutoff.to_pydatetime() == datetime(2025, 2, 28)


def test_filter_accepts_dicts_and_aware_now():
    rows = [{"date": "2025-01-20T00:00:00Z", "amount": 5}, {"date": "2024-06-01T00:00:00", "amount": 7}]
    kept = filter_by_time_range(rows, "last1Month", datetime(2025, 2, 10, tzinfo=timezone.utc))
    assert kept == [rows[0]]


# --- Category aggregation ---

def test_category_totals_sum_matches_filtered_input(now):
    records = [
        expense(12.5, "Food & Dining", now - timedelta(days=3)),
        expense(40, "Transportation", now - timedelta(days=10)),
        expense(7.5, "Food & Dining", now - timedelta(days=20)),
        expense(99, "Travel", now - timedelta(days=300)),
    ]

    totals = expense_category_totals(records, "last3Months", now)
    filtered = filter_by_time_range(records, "last3Months", now)

    assert totals == {"Food & Dining": 20.0, "Transportation": 40.0}
    assert sum(totals.values()) == pytest.approx(sum(e.amount for e in filtered))


def test_category_totals_keep_first_seen_order(now):
    records = [
        expense(1, "Shopping", now),
        expense(1, "Housing", now),
        expense(1, "Shopping", now),
        expense(1, "Education", now),
    ]
    assert list(expense_category_totals(records, "last1Month", now)) == ["Shopping", "Housing", "Education"]


def test_category_totals_empty_when_nothing_in_window(now):
    assert expense_category_totals([expense(5, "Other", now - timedelta(days=400))], "last12Months", now) == {}
    assert expense_category_data([], "last6Months", now) == []


def test_colors_follow_first_seen_order_and_cycle():
    names = [f"cat{i}" for i in range(len(CATEGORY_PALETTE) + 2)]
    colors = assign_colors(names)

    assert colors["cat0"] == CATEGORY_PALETTE[0]
    assert colors["cat7"] == CATEGORY_PALETTE[7]
    assert colors["cat8"] == CATEGORY_PALETTE[0]
    assert colors["cat9"] == CATEGORY_PALETTE[1]


def test_category_chart_rows_carry_colors(now):
    rows = expense_category_data(
        [expense(10, "Housing", now), expense(5, "Utilities", now)], "last1Month", now
    )
    assert rows == [
        {"name": "Housing", "value": 10.0, "color": CATEGORY_PALETTE[0]},
        {"name": "Utilities", "value": 5.0, "color": CATEGORY_PALETTE[1]},
    ]


# --- Monthly bucketing ---

def test_monthly_buckets_are_chronological_across_years():
    now = datetime(2025, 3, 1)
    records = [
        expense(30, "Other", datetime(2025, 2, 14)),
        expense(10, "Other", datetime(2024, 12, 5)),
        expense(20, "Other", datetime(2025, 1, 20)),
        expense(5, "Other", datetime(2024, 12, 28)),
    ]

    rows = monthly_expense_data(records, "last6Months", now)

    assert rows == [
        {"month": "Dec 2024", "total": 15.0},
        {"month": "Jan 2025", "total": 20.0},
        {"month": "Feb 2025", "total": 30.0},
    ]


def test_monthly_buckets_split_exactly_on_month_boundary():
    now = datetime(2025, 2, 15)
    records = [
        expense(1, "Other", datetime(2025, 1, 31, 23, 59, 59)),
        expense(2, "Other", datetime(2025, 2, 1, 0, 0, 0)),
    ]

    rows = monthly_expense_data(records, "last3Months", now)

    assert rows == [{"month": "Jan 2025", "total": 1.0}, {"month": "Feb 2025", "total": 2.0}]


def test_monthly_buckets_cover_only_months_present():
    now = datetime(2025, 6, 30)
    records = [expense(4, "Other", datetime(2025, 1, 3)), expense(6, "Other", datetime(2025, 6, 1))]

    rows = monthly_expense_data(records, "last12Months", now)

    assert [r["month"] for r in rows] == ["Jan 2025", "Jun 2025"]
    assert sum(r["total"] for r in rows) == 10.0


# --- Investments ---

def test_investment_valuation_examples():
    assert investment_value(1000, 10) == pytest.approx(1100)
    assert investment_value(1000, -50) == pytest.approx(500)

    rows = investment_data([investment(1000, 10, name="up"), investment(1000, -50, name="down")])

    assert rows[0]["current"] == pytest.approx(1100)
    assert rows[0]["gain"] == pytest.approx(100)
    assert rows[1]["current"] == pytest.approx(500)
    assert rows[1]["gain"] == pytest.approx(-500)


def test_average_roi_is_unweighted():
    holdings = [investment(1, 10), investment(1_000_000, -20), investment(50, 40)]
    assert average_roi(holdings) == 10.0
    assert average_roi([]) == 0.0


def test_average_roi_ignores_amount_disparity():
    assert average_roi([investment(1, 100), investment(1_000_000, -1)]) == pytest.approx(49.5)


def test_portfolio_summary_groups_principal_by_type():
    summary = portfolio_summary(
        [investment(1000, 10, "Stocks"), investment(500, 0, "Bonds"), investment(250, -20, "Stocks")]
    )

    assert summary["total_invested"] == pytest.approx(1750)
    assert summary["total_value"] == pytest.approx(1100 + 500 + 200)
    assert summary["total_gain"] == pytest.approx(50)
    assert summary["invested_by_type"] == {"Stocks": 1250.0, "Bonds": 500.0}


def test_portfolio_summary_empty():
    assert portfolio_summary([])["total_value"] == 0.0


# --- Savings ---

def test_savings_rows_cap_display_progress_only():
    rows = savings_data(
        [
            SavingGoal(name="Car", target_amount=1000, current_amount=1500),
            SavingGoal(name="Trip", target_amount=400, current_amount=100),
        ]
    )

    assert rows[0]["progress"] == pytest.approx(150)
    assert rows[0]["display_progress"] == 100.0
    assert rows[0]["reached"] is True
    assert rows[1]["progress"] == pytest.approx(25)
    assert rows[1]["reached"] is False


# --- Allocation & overviews ---

def test_allocation_with_no_data_is_explicit():
    result = allocation_data(0, 0, 0)

    assert result.has_data is False
    assert result.total == 0
    assert [b.share for b in result.buckets] == [None, None, None]


def test_allocation_shares_sum_to_one():
    result = allocation_data(100, 300, 600)

    assert result.has_data is True
    assert [b.name for b in result.buckets] == ["Expenses", "Savings", "Investments"]
    assert [b.share for b in result.buckets] == pytest.approx([0.1, 0.3, 0.6])


def test_overview_counts_investments_at_current_value(now):
    entities = Entities(
        expenses=[expense(200, "Housing", now - timedelta(days=5)), expense(50, "Other", now - timedelta(days=400))],
        savings=[SavingGoal(name="Fund", target_amount=1000, current_amount=300)],
        investments=[investment(1000, 10)],
    )

    overview = financial_overview(entities, "last6Months", now)

    assert overview["total_expenses"] == 200.0
    assert overview["total_savings"] == 300.0
    assert overview["total_investments"] == pytest.approx(1100)
    assert overview["net_worth"] == pytest.approx(1200)

    allocation = entities_allocation(entities, "last6Months", now)
    assert [b.value for b in allocation.buckets] == pytest.approx([200, 300, 1100])


def test_dashboard_summary_counts_only_this_month(now):
    entities = Entities(
        expenses=[
            expense(40, "Food & Dining", datetime(2025, 2, 1)),
            expense(60, "Food & Dining", datetime(2025, 1, 31, 23, 0)),
        ],
        savings=[SavingGoal(name="Fund", target_amount=500, current_amount=100)],
        investments=[investment(100, -50)],
    )

    summary = dashboard_summary(entities, now)

    assert summary["monthly_expenses"] == 40.0
    assert summary["total_investments"] == pytest.approx(50)
    assert summary["total_balance"] == pytest.approx(100 + 50 - 40)


def test_format_currency():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(-12) == "-$12.00"
    assert format_currency(0) == "$0.00"


# --- Tips ---

def test_tips_fall_back_to_general_advice(now):
    assert generate_tips(Entities(), "last6Months", now) == GENERAL_TIPS


def test_tips_flag_top_category_goals_and_concentration(now):
    entities = Entities(
        expenses=[
            expense(300, "Housing", datetime(2025, 2, 3)),
            expense(100, "Housing", datetime(2025, 1, 3)),
            expense(20, "Other", datetime(2025, 1, 4)),
        ],
        savings=[
            SavingGoal(name="Laptop", target_amount=1000, current_amount=900),
            SavingGoal(name="House", target_amount=1000, current_amount=1000),
        ],
        investments=[investment(900, -10, "Cryptocurrency"), investment(100, 5, "Bonds")],
    )

    tips = "\n".join(generate_tips(entities, "last6Months", now))

    assert "**Housing**" in tips
    assert "Spending Alert" in tips
    assert "Laptop is 90% funded" in tips
    assert "House is fully funded" in tips
    assert "90% of your invested capital is in Cryptocurrency" in tips
    assert "Negative Returns" in tips


# --- End to end ---

def test_food_and_dining_scenario(session):
    add_expense(session, "Lunch", 50, "Food & Dining", datetime(2025, 1, 15))
    add_expense(session, "Dinner", 30, "Food & Dining", datetime(2025, 2, 1))
    feb_now = datetime(2025, 2, 10)

    entities = load_entities(session.store, session.user_id)

    assert len(filter_by_time_range(entities.expenses, "last3Months", feb_now)) == 2
    assert expense_category_totals(entities.expenses, "last3Months", feb_now) == {"Food & Dining": 80.0}

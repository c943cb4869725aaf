"""
insights.py
-----------
Aggregations behind every chart and summary card: time-range filtering,
category and monthly spend, savings progress, investment valuation and
the expenses/savings/investments allocation.

Everything here is a pure function of already-loaded records. Records can
be model instances or plain dicts using the same field names.
"""

from typing import Dict, Iterable, List, Optional

import pandas as pd
from pydantic import BaseModel

from models import Entities, utcnow

TIME_RANGES = {
    "last1Month": 1,
    "last3Months": 3,
    "last6Months": 6,
    "last12Months": 12,
}
DEFAULT_TIME_RANGE = "last6Months"

CATEGORY_PALETTE = ["#2563EB", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#EC4899", "#14B8A6", "#6366F1"]

GENERAL_TIPS = [
    "💡 **Budgeting**: Consider setting a monthly budget for the categories where you spend the most.",
    "📈 **Investing**: Consider diversifying your investments across different asset classes to reduce risk.",
]


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name)


def _ts(value) -> pd.Timestamp:
    """Naive UTC timestamp, so stored and user-supplied dates compare cleanly."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


# --- Time ranges ---

def time_range_cutoff(time_range: str, now=None) -> pd.Timestamp:
    """
    Earliest timestamp kept by ``time_range``.

    Months are calendar months, so the day is clamped to the end of a
    shorter month (May 31 minus three months is Feb 28/29). Unknown tokens
    fall back to six months.
    """
    months = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
    anchor = _ts(now if now is not None else utcnow())
    return anchor - pd.DateOffset(months=months)


def filter_by_time_range(records: Iterable, time_range: str, now=None, date_field: str = "date") -> list:
    """Keep records dated on or after the cutoff. Future dates always pass."""
    cutoff = time_range_cutoff(time_range, now)
    return [r for r in records if _ts(_field(r, date_field)) >= cutoff]


def _expense_frame(expenses: Iterable) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "Date": _ts(_field(e, "date")),
                "Amount": float(_field(e, "amount")),
                "Category": _field(e, "category"),
            }
            for e in expenses
        ],
        columns=["Date", "Amount", "Category"],
    )
    df["Date"] = pd.to_datetime(df["Date"])
    df["Amount"] = pd.to_numeric(df["Amount"])
    return df


# --- Expenses ---

def expense_category_totals(expenses: Iterable, time_range: str, now=None) -> Dict[str, float]:
    """Total spend per category in the window, keyed in first-seen order."""
    filtered = filter_by_time_range(expenses, time_range, now)
    if not filtered:
        return {}

    df = _expense_frame(filtered)
    by_cat = df.groupby("Category", sort=False)["Amount"].sum()
    return {str(category): float(total) for category, total in by_cat.items()}


def assign_colors(names: Iterable[str], palette: Optional[List[str]] = None) -> Dict[str, str]:
    palette = palette or CATEGORY_PALETTE
    return {name: palette[idx % len(palette)] for idx, name in enumerate(names)}


def expense_category_data(expenses: Iterable, time_range: str, now=None) -> List[dict]:
    """Pie-chart rows: ``{name, value, color}`` per category."""
    totals = expense_category_totals(expenses, time_range, now)
    colors = assign_colors(totals)
    return [{"name": name, "value": value, "color": colors[name]} for name, value in totals.items()]


def monthly_expense_data(expenses: Iterable, time_range: str, now=None) -> List[dict]:
    """
    Line-chart rows ``{month: "Jan 2025", total}``, one per calendar month
    that has spending in the window, oldest first.
    """
    filtered = filter_by_time_range(expenses, time_range, now)
    if not filtered:
        return []

    df = _expense_frame(filtered)
    df["Month"] = df["Date"].dt.to_period("M")
    monthly = df.groupby("Month")["Amount"].sum().sort_index()
    return [{"month": period.strftime("%b %Y"), "total": float(total)} for period, total in monthly.items()]


# --- Savings ---

def total_savings(goals: Iterable) -> float:
    return float(sum(_field(g, "current_amount") for g in goals))


def savings_data(goals: Iterable) -> List[dict]:
    rows = []
    for goal in goals:
        current = float(_field(goal, "current_amount"))
        target = float(_field(goal, "target_amount"))
        progress = current / target * 100 if target > 0 else 0.0
        rows.append(
            {
                "name": _field(goal, "name"),
                "current": current,
                "target": target,
                "progress": progress,
                "display_progress": min(progress, 100.0),
                "reached": current >= target,
            }
        )
    return rows


# --- Investments ---

def investment_value(amount, roi):
    """Current value of ``amount`` after a ``roi`` percent return. Works on Series too."""
    return amount * (1 + roi / 100)


def investment_data(investments: Iterable) -> List[dict]:
    rows = []
    for inv in investments:
        invested = float(_field(inv, "amount"))
        current = investment_value(invested, float(_field(inv, "roi")))
        rows.append(
            {
                "name": _field(inv, "name"),
                "invested": invested,
                "current": current,
                "gain": current - invested,
            }
        )
    return rows


def total_investment_value(investments: Iterable) -> float:
    return float(sum(row["current"] for row in investment_data(investments)))


def average_roi(investments: Iterable) -> float:
    """
    Plain mean of the ROI percentages, ignoring how much is in each.

    A $1 holding at +100% and a $1,000,000 holding at -1% average to +49.5%.
    """
    rois = [float(_field(inv, "roi")) for inv in investments]
    if not rois:
        return 0.0
    return sum(rois) / len(rois)


def portfolio_summary(investments: Iterable) -> dict:
    investments = list(investments)
    if not investments:
        return {
            "total_invested": 0.0,
            "total_value": 0.0,
            "total_gain": 0.0,
            "average_roi": 0.0,
            "invested_by_type": {},
        }

    df = pd.DataFrame(
        [
            {"Type": _field(i, "type"), "Invested": float(_field(i, "amount")), "ROI": float(_field(i, "roi"))}
            for i in investments
        ]
    )
    df["Current"] = investment_value(df["Invested"], df["ROI"])
    by_type = df.groupby("Type", sort=False)["Invested"].sum()

    total_invested = float(df["Invested"].sum())
    total_value = float(df["Current"].sum())
    return {
        "total_invested": total_invested,
        "total_value": total_value,
        "total_gain": total_value - total_invested,
        "average_roi": average_roi(investments),
        "invested_by_type": {str(t): float(v) for t, v in by_type.items()},
    }


# --- Allocation & overviews ---

class AllocationBucket(BaseModel):
    name: str
    value: float
    share: Optional[float] = None


class Allocation(BaseModel):
    buckets: List[AllocationBucket]
    total: float
    has_data: bool


def allocation_data(total_expenses: float, total_savings: float, total_investments: float) -> Allocation:
    """
    Split across Expenses, Savings and Investments.

    When the three add up to nothing (or less), ``has_data`` is False and
    every share is None.
    """
    values = {"Expenses": total_expenses, "Savings": total_savings, "Investments": total_investments}
    total = float(sum(values.values()))
    has_data = total > 0
    buckets = [
        AllocationBucket(name=name, value=float(value), share=(value / total) if has_data else None)
        for name, value in values.items()
    ]
    return Allocation(buckets=buckets, total=total, has_data=has_data)


def financial_overview(entities: Entities, time_range: str, now=None) -> dict:
    """Insights-page totals. Investments count at current value."""
    expenses = filter_by_time_range(entities.expenses, time_range, now)
    total_expenses = float(sum(e.amount for e in expenses))
    savings_total = total_savings(entities.savings)
    investments_total = total_investment_value(entities.investments)
    return {
        "total_expenses": total_expenses,
        "total_savings": savings_total,
        "total_investments": investments_total,
        "net_worth": savings_total + investments_total - total_expenses,
    }


def entities_allocation(entities: Entities, time_range: str, now=None) -> Allocation:
    overview = financial_overview(entities, time_range, now)
    return allocation_data(overview["total_expenses"], overview["total_savings"], overview["total_investments"])


def dashboard_summary(entities: Entities, now=None) -> dict:
    """Dashboard cards: this month's spend against savings and investments."""
    anchor = _ts(now if now is not None else utcnow())
    month_start = anchor.normalize().replace(day=1)
    monthly_expenses = float(sum(e.amount for e in entities.expenses if _ts(e.date) >= month_start))
    savings_total = total_savings(entities.savings)
    investments_total = total_investment_value(entities.investments)
    return {
        "total_balance": savings_total + investments_total - monthly_expenses,
        "monthly_expenses": monthly_expenses,
        "total_savings": savings_total,
        "total_investments": investments_total,
    }


def generate_tips(entities: Entities, time_range: str = DEFAULT_TIME_RANGE, now=None) -> List[str]:
    """
    Rule-based tips for the insights page.
    """
    tips = []
    anchor = _ts(now if now is not None else utcnow())

    # 1. Top category in the selected window
    totals = expense_category_totals(entities.expenses, time_range, anchor)
    if totals:
        top_cat, top_val = max(totals.items(), key=lambda kv: kv[1])
        tips.append(
            f"🍔 **Top Category**: {format_currency(top_val)} spent on **{top_cat}** in this period. "
            "A monthly budget for it is the quickest win."
        )

    # 2. Spending spike against last month
    if entities.expenses:
        df = _expense_frame(entities.expenses)
        df["Month"] = df["Date"].dt.to_period("M")
        current_month = anchor.to_period("M")
        curr_spend = df[df["Month"] == current_month]["Amount"].sum()
        last_spend = df[df["Month"] == current_month - 1]["Amount"].sum()
        if last_spend > 0 and curr_spend > last_spend * 1.2:
            pct = (curr_spend / last_spend - 1) * 100
            tips.append(
                f"⚠️ **Spending Alert**: You've spent {pct:.0f}% more this month than last month. "
                "Consider pausing discretionary spend."
            )

    # 3. Goals close to the finish line
    for row in savings_data(entities.savings):
        if row["reached"]:
            tips.append(f"🎉 **Goal Reached**: {row['name']} is fully funded. Time to set the next one.")
        elif row["progress"] >= 80:
            tips.append(
                f"🎯 **Almost There**: {row['name']} is {row['progress']:.0f}% funded. "
                f"{format_currency(row['target'] - row['current'])} to go."
            )

    # 4. Portfolio concentration and returns
    summary = portfolio_summary(entities.investments)
    if summary["total_invested"] > 0:
        top_type, top_amount = max(summary["invested_by_type"].items(), key=lambda kv: kv[1])
        share = top_amount / summary["total_invested"]
        if share >= 0.7:
            tips.append(
                f"📊 **Diversify**: {share * 100:.0f}% of your invested capital is in {top_type}. "
                "Spreading across asset classes reduces risk."
            )
        if summary["average_roi"] < 0:
            tips.append(
                f"📉 **Negative Returns**: Your average ROI is {summary['average_roi']:.1f}%. "
                "Review the holdings that are dragging it down."
            )

    if not tips:
        tips.extend(GENERAL_TIPS)
    return tips

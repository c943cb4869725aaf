# dashboard.py: plotly figures for the insights and dashboard pages

import plotly.express as px
import plotly.graph_objects as go
import pandas as pd

from insights import Allocation, format_currency

ALLOCATION_COLORS = {
    "Expenses": "#EF4444",
    "Savings": "#10B981",
    "Investments": "#2563EB",
}


def _empty(title, message):
    fig = go.Figure()
    fig.update_layout(
        title=title,
        height=350,
        xaxis={"visible": False},
        yaxis={"visible": False},
        annotations=[{"text": message, "showarrow": False, "font": {"size": 14}}],
    )
    return fig


def category_spend(rows):
    """
    Donut chart of spending by category.

    ``rows`` come from ``insights.expense_category_data``; each slice keeps
    the color assigned there so a category looks the same everywhere.
    """
    if not rows:
        return _empty("Expense Breakdown by Category", "No expense data available")

    by_cat = pd.DataFrame(rows)
    fig = px.pie(
        by_cat,
        values="value",
        names="name",
        hole=0.4,
        title="Expense Breakdown by Category",
        color="name",
        color_discrete_map=dict(zip(by_cat["name"], by_cat["color"])),
    )
    fig.update_traces(textposition="inside", textinfo="percent+label", sort=False)
    return fig


def monthly_trend(rows):
    """
    Line chart of total spend per month. Rows are already in calendar order.
    """
    if not rows:
        return _empty("Monthly Expenses", "No expense data available")

    monthly = pd.DataFrame(rows)
    fig = px.line(monthly, x="month", y="total", markers=True, title="Monthly Expenses")
    fig.update_traces(line_color="#EF4444")
    fig.update_xaxes(type="category", categoryorder="array", categoryarray=list(monthly["month"]))
    fig.update_layout(height=400, yaxis_title="Total", xaxis_title="Month")
    return fig


def savings_progress(rows):
    """
    Grouped bars of saved vs target per goal.
    """
    if not rows:
        return _empty("Savings Goals", "No savings goals yet")

    goals = pd.DataFrame(rows)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=goals["name"], y=goals["current"], name="Current", marker_color="#10B981"))
    fig.add_trace(go.Bar(x=goals["name"], y=goals["target"], name="Target", marker_color="#94A3B8"))
    fig.update_layout(barmode="group", title="Savings Goals Progress", height=400)
    return fig


def investment_performance(rows):
    """
    Grouped bars of invested vs current value per holding.
    """
    if not rows:
        return _empty("Investment Performance", "No investments yet")

    inv = pd.DataFrame(rows)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=inv["name"], y=inv["invested"], name="Invested", marker_color="#2563EB"))
    fig.add_trace(go.Bar(x=inv["name"], y=inv["current"], name="Current Value", marker_color="#10B981"))
    fig.update_layout(barmode="group", title="Investment Performance", height=400)
    return fig


def allocation_pie(allocation: Allocation):
    """
    Pie of expenses / savings / investments, or a placeholder when there is nothing to split.
    """
    if not allocation.has_data:
        return _empty("Financial Distribution", "No financial data available")

    names = [b.name for b in allocation.buckets]
    fig = go.Figure(
        go.Pie(
            labels=names,
            values=[b.value for b in allocation.buckets],
            marker={"colors": [ALLOCATION_COLORS[n] for n in names]},
            hovertext=[format_currency(b.value) for b in allocation.buckets],
            hoverinfo="label+text+percent",
            textinfo="label+percent",
            sort=False,
        )
    )
    fig.update_layout(title="Financial Distribution", height=350)
    return fig

import dashboard
from insights import allocation_data


def test_category_spend_keeps_row_order():
    rows = [
        {"name": "Housing", "value": 900.0, "color": "#2563EB"},
        {"name": "Food & Dining", "value": 120.0, "color": "#10B981"},
    ]

    fig = dashboard.category_spend(rows)

    assert fig.data[0].type == "pie"
    assert list(fig.data[0].labels) == ["Housing", "Food & Dining"]
    assert list(fig.data[0].values) == [900.0, 120.0]


def test_monthly_trend_axis_follows_calendar_order():
    rows = [{"month": "Dec 2024", "total": 10.0}, {"month": "Jan 2025", "total": 20.0}]

    fig = dashboard.monthly_trend(rows)

    assert list(fig.data[0].x) == ["Dec 2024", "Jan 2025"]
    assert list(fig.layout.xaxis.categoryarray) == ["Dec 2024", "Jan 2025"]


def test_bar_charts_have_two_series():
    savings = dashboard.savings_progress([{"name": "Car", "current": 100.0, "target": 500.0}])
    holdings = dashboard.investment_performance([{"name": "ETF", "invested": 1000.0, "current": 1100.0}])

    assert [t.name for t in savings.data] == ["Current", "Target"]
    assert [t.name for t in holdings.data] == ["Invested", "Current Value"]


def test_allocation_pie_uses_fixed_colors():
    fig = dashboard.allocation_pie(allocation_data(100, 200, 300))

    assert list(fig.data[0].labels) == ["Expenses", "Savings", "Investments"]
    assert list(fig.data[0].marker.colors) == ["#EF4444", "#10B981", "#2563EB"]


def test_empty_inputs_render_placeholders():
    fig = dashboard.allocation_pie(allocation_data(0, 0, 0))

    assert len(fig.data) == 0
    assert fig.layout.annotations[0].text == "No financial data available"
    assert len(dashboard.category_spend([]).data) == 0
    assert len(dashboard.monthly_trend([]).data) == 0

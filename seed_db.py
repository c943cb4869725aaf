from datetime import timedelta

import auth
from models import utcnow
from storage import get_store
from trackers import add_expense, add_goal, add_investment

DEMO_EMAIL = "demo@fintrack.local"
DEMO_PASSWORD = "demo1234"

SAMPLE_EXPENSES = [
    # (days ago, description, amount, category)
    (2, "Groceries", 86.40, "Food & Dining"),
    (5, "Bus pass", 45.00, "Transportation"),
    (9, "Electricity bill", 72.15, "Utilities"),
    (20, "Cinema", 24.00, "Entertainment"),
    (34, "Rent", 1200.00, "Housing"),
    (41, "Dinner out", 58.30, "Food & Dining"),
    (65, "Rent", 1200.00, "Housing"),
    (70, "Pharmacy", 18.75, "Healthcare"),
    (96, "Flight home", 240.00, "Travel"),
    (150, "Online course", 99.00, "Education"),
]


def seed_users(store=None):
    store = store or get_store()

    # Check if the demo user exists
    if any(u.email == DEMO_EMAIL for u in auth.load_users(store)):
        print("Demo user already exists. Skipping seed.")
        return None

    session = auth.signup(store, "Demo User", DEMO_EMAIL, DEMO_PASSWORD)
    now = utcnow()
    for days_ago, description, amount, category in SAMPLE_EXPENSES:
        add_expense(session, description, amount, category, now - timedelta(days=days_ago))

    add_goal(session, "Emergency Fund", 5000, 3200)
    add_goal(session, "New Laptop", 1500, 1350)
    add_goal(session, "Vacation", 2500, 400)

    add_investment(session, "Index Fund", 4000, 8.5, "ETFs")
    add_investment(session, "Tech Stock", 1500, -4.0, "Stocks")
    add_investment(session, "Government Bond", 2000, 3.1, "Bonds")

    print(f"Seeded demo account {DEMO_EMAIL} / {DEMO_PASSWORD}")
    return session


if __name__ == "__main__":
    seed_users()

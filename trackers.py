"""
trackers.py
-----------
Create, update and delete expenses, savings goals and investments.

Each entity type lives in one JSON array per user under
``fintrack_{entity}_{user_id}``. Every write reads the whole list, changes
it in memory and writes the whole list back, so two writers racing on the
same key keep whichever lands last.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, time
from typing import Callable, List, Optional

from models import (
    EXPENSE_CATEGORIES,
    INVESTMENT_TYPES,
    Entities,
    Expense,
    InvalidEntryError,
    Investment,
    SavingGoal,
    Session,
    to_naive_utc,
    utcnow,
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "fintrack"
ENTITY_TYPES = {
    "expenses": Expense,
    "savings": SavingGoal,
    "investments": Investment,
}


# --- Storage layout ---

def entity_key(entity: str, user_id: str) -> str:
    if entity not in ENTITY_TYPES:
        raise KeyError(f"Unknown entity type: {entity}")
    return f"{KEY_PREFIX}_{entity}_{user_id}"


def load_records(store, entity: str, user_id: str) -> list:
    blob = store.get(entity_key(entity, user_id))
    if not blob:
        return []
    model = ENTITY_TYPES[entity]
    return [model.model_validate(item) for item in json.loads(blob)]


def save_records(store, entity: str, user_id: str, records: list) -> None:
    store.put(entity_key(entity, user_id), json.dumps([r.to_storage() for r in records]))


def load_entities(store, user_id: str) -> Entities:
    """Load all three lists for a user; missing keys read as empty lists."""
    return Entities(
        expenses=load_records(store, "expenses", user_id),
        savings=load_records(store, "savings", user_id),
        investments=load_records(store, "investments", user_id),
    )


def initialize_user_data(store, user_id: str) -> None:
    for entity in ENTITY_TYPES:
        save_records(store, entity, user_id, [])


# --- Input checks ---

def _required_text(value: Optional[str], message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidEntryError(message)
    return text


def _parse_number(value, missing_message: str) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidEntryError(missing_message)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidEntryError("Please enter a valid number") from None
    if not math.isfinite(number):
        raise InvalidEntryError("Please enter a valid number")
    return number


def _as_datetime(value) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise InvalidEntryError("Please enter a valid date") from None
    return to_naive_utc(parsed)


# --- Generic list edits ---

def _append(session: Session, entity: str, record):
    records = load_records(session.store, entity, session.user_id)
    records.append(record)
    save_records(session.store, entity, session.user_id, records)
    logger.info("Added %s %s for user %s", entity, record.id, session.user_id)
    return record


def _replace(session: Session, entity: str, record_id: str, build: Callable):
    records = load_records(session.store, entity, session.user_id)
    for idx, record in enumerate(records):
        if record.id == record_id:
            records[idx] = build(record)
            save_records(session.store, entity, session.user_id, records)
            logger.info("Updated %s %s for user %s", entity, record_id, session.user_id)
            return records[idx]
    logger.warning("No %s with id %s for user %s; nothing updated", entity, record_id, session.user_id)
    return None


def _remove(session: Session, entity: str, record_id: str) -> bool:
    records = load_records(session.store, entity, session.user_id)
    remaining = [r for r in records if r.id != record_id]
    if len(remaining) == len(records):
        logger.warning("No %s with id %s for user %s; nothing deleted", entity, record_id, session.user_id)
        return False
    save_records(session.store, entity, session.user_id, remaining)
    logger.info("Deleted %s %s for user %s", entity, record_id, session.user_id)
    return True


# --- Expenses ---

def _expense_fields(description, amount, category) -> dict:
    missing = "Please fill in all fields"
    description = _required_text(description, missing)
    category = _required_text(category, missing)
    value = _parse_number(amount, missing)
    if value <= 0:
        raise InvalidEntryError("Amount must be greater than zero")
    if category not in EXPENSE_CATEGORIES:
        raise InvalidEntryError(f"Unknown category: {category}")
    return {"description": description, "amount": value, "category": category}


def add_expense(session: Session, description, amount, category, when=None) -> Expense:
    fields = _expense_fields(description, amount, category)
    return _append(session, "expenses", Expense(date=_as_datetime(when), **fields))


def update_expense(session: Session, expense_id: str, description, amount, category, when=None) -> Optional[Expense]:
    fields = _expense_fields(description, amount, category)
    if when is not None:
        fields["date"] = _as_datetime(when)
    return _replace(session, "expenses", expense_id, lambda e: e.model_copy(update=fields))


def delete_expense(session: Session, expense_id: str) -> bool:
    return _remove(session, "expenses", expense_id)


def filter_expenses(
    expenses: List[Expense],
    category: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Expense]:
    """Category and date-window filter used by the expense list, newest first."""
    rows = expenses
    if category and category.lower() != "all":
        rows = [e for e in rows if e.category == category]
    if start is not None:
        start_dt = _as_datetime(start)
        rows = [e for e in rows if e.date >= start_dt]
    if end is not None:
        # The end date counts in full, up to the last microsecond of the day.
        end_dt = datetime.combine(_as_datetime(end).date(), time.max)
        rows = [e for e in rows if e.date <= end_dt]
    return sorted(rows, key=lambda e: e.date, reverse=True)


def list_expenses(session: Session, category=None, start=None, end=None) -> List[Expense]:
    expenses = load_records(session.store, "expenses", session.user_id)
    return filter_expenses(expenses, category=category, start=start, end=end)


def expenses_total(expenses: List[Expense]) -> float:
    return float(sum(e.amount for e in expenses))


# --- Savings goals ---

def _goal_fields(name, target_amount, current_amount) -> dict:
    missing = "Please fill in all required fields"
    name = _required_text(name, missing)
    target = _parse_number(target_amount, missing)
    if target <= 0:
        raise InvalidEntryError("Target amount must be greater than zero")
    current = _parse_number(current_amount, missing)
    if current < 0:
        raise InvalidEntryError("Saved amount cannot be negative")
    return {"name": name, "target_amount": target, "current_amount": current}


def add_goal(session: Session, name, target_amount, initial_amount=0) -> SavingGoal:
    if initial_amount in (None, ""):
        initial_amount = 0
    fields = _goal_fields(name, target_amount, initial_amount)
    return _append(session, "savings", SavingGoal(**fields))


def update_goal(session: Session, goal_id: str, name, target_amount, current_amount=None) -> Optional[SavingGoal]:
    def build(goal: SavingGoal) -> SavingGoal:
        current = goal.current_amount if current_amount in (None, "") else current_amount
        return goal.model_copy(update=_goal_fields(name, target_amount, current))

    return _replace(session, "savings", goal_id, build)


def add_progress(session: Session, goal_id: str, amount) -> Optional[SavingGoal]:
    """
    Add ``amount`` (negative to withdraw) to a goal's saved balance.

    The balance may pass the target but may not drop below zero. Check
    ``reached`` on the returned goal to see whether the target is met.
    """
    delta = _parse_number(amount, "Please enter an amount")

    def build(goal: SavingGoal) -> SavingGoal:
        new_amount = goal.current_amount + delta
        if new_amount < 0:
            raise InvalidEntryError("Current amount cannot be negative")
        return goal.model_copy(update={"current_amount": new_amount})

    goal = _replace(session, "savings", goal_id, build)
    if goal is not None and goal.reached:
        logger.info("Goal %s reached its target of %.2f", goal.id, goal.target_amount)
    return goal


def delete_goal(session: Session, goal_id: str) -> bool:
    return _remove(session, "savings", goal_id)


# --- Investments ---

def _investment_fields(name, amount, roi, investment_type) -> dict:
    missing = "Please fill in all required fields"
    name = _required_text(name, missing)
    value = _parse_number(amount, missing)
    if value <= 0:
        raise InvalidEntryError("Investment amount must be greater than zero")
    rate = _parse_number(roi, missing)
    if investment_type not in INVESTMENT_TYPES:
        raise InvalidEntryError(f"Unknown investment type: {investment_type}")
    return {"name": name, "amount": value, "roi": rate, "type": investment_type}


def add_investment(session: Session, name, amount, roi, investment_type: str = "Stocks", when=None) -> Investment:
    fields = _investment_fields(name, amount, roi, investment_type)
    return _append(session, "investments", Investment(date=_as_datetime(when), **fields))


def update_investment(session: Session, investment_id: str, name, amount, roi, investment_type: str = "Stocks") -> Optional[Investment]:
    fields = _investment_fields(name, amount, roi, investment_type)
    return _replace(session, "investments", investment_id, lambda i: i.model_copy(update=fields))


def delete_investment(session: Session, investment_id: str) -> bool:
    return _remove(session, "investments", investment_id)

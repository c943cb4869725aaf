"""Record types shared by the trackers, analytics and API layers."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EXPENSE_CATEGORIES = [
    "Food & Dining",
    "Transportation",
    "Housing",
    "Utilities",
    "Entertainment",
    "Healthcare",
    "Shopping",
    "Personal Care",
    "Education",
    "Travel",
    "Gifts & Donations",
    "Other",
]

INVESTMENT_TYPES = [
    "Stocks",
    "Bonds",
    "ETFs",
    "Mutual Funds",
    "Real Estate",
    "Cryptocurrency",
    "Retirement",
    "Other",
]

LANGUAGES = ("en", "hi")


class FinTrackError(Exception):
    """Base class for errors raised by tracker and account operations."""


class InvalidEntryError(FinTrackError, ValueError):
    """A form submission was rejected before anything was written."""


class AuthenticationError(FinTrackError):
    """Bad credentials, duplicate registration or a missing session."""


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching how records are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Record(BaseModel):
    # Stored blobs use camelCase keys; Python code uses snake_case.
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)

    @field_validator("date", "created_at", check_fields=False)
    @classmethod
    def strip_timezone(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Expense(Record):
    description: str
    amount: float
    category: str
    date: datetime = Field(default_factory=utcnow)


class SavingGoal(Record):
    name: str
    target_amount: float = Field(alias="targetAmount")
    current_amount: float = Field(0.0, alias="currentAmount")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def progress(self) -> float:
        """Percent of target saved. Not capped: a goal can be overfunded."""
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100

    @property
    def display_progress(self) -> float:
        return min(self.progress, 100.0)

    @property
    def reached(self) -> bool:
        return self.current_amount >= self.target_amount


class Investment(Record):
    name: str
    amount: float
    roi: float
    type: str = "Stocks"
    date: datetime = Field(default_factory=utcnow)

    @property
    def current_value(self) -> float:
        return self.amount * (1 + self.roi / 100)

    @property
    def gain(self) -> float:
        return self.current_value - self.amount


class User(Record):
    name: str
    email: str
    language: Literal["en", "hi"] = "en"
    password_hash: Optional[str] = Field(None, alias="passwordHash")

    def public(self) -> "User":
        """Copy safe to persist as the logged-in user or return over the API."""
        return self.model_copy(update={"password_hash": None})

    def to_storage(self) -> dict:
        data = super().to_storage()
        if data.get("passwordHash") is None:
            data.pop("passwordHash", None)
        return data


@dataclass
class Session:
    """
    The logged-in user together with the store holding their data.

    Passed explicitly into every tracker, profile and analytics call.
    """

    user: User
    store: Any
    token: Optional[str] = None  # set only for sessions issued through issue_token

    @property
    def user_id(self) -> str:
        return self.user.id


class Entities(BaseModel):
    """Everything one user has stored, as returned by ``load_entities``."""

    expenses: List[Expense] = Field(default_factory=list)
    savings: List[SavingGoal] = Field(default_factory=list)
    investments: List[Investment] = Field(default_factory=list)

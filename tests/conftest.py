from datetime import datetime

import bcrypt
import pytest

import auth
from storage import MemoryStore

# A fixed "now" so time-range tests do not drift with the calendar.
NOW = datetime(2025, 2, 10, 12, 0)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": real_gensalt(rounds, prefix))


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def session(store):
    return auth.signup(store, "Test User", "test@example.com", "secret123")

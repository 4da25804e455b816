"""Shared pytest configuration for the detection engine test suite."""
from __future__ import annotations

import os
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generator, List, Optional, Union

import pytest

# The engine is built from DATABASE_URL at import time; never point tests at Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Ensure the repository root (which contains the ``spendguard`` package) is importable.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from spendguard.core.database import Base
from spendguard.models import Budget, Transaction
from spendguard.pipeline.providers import BaseLLMProvider

# Wednesday afternoon, well clear of the odd-hours window
NOW = datetime(2026, 3, 18, 14, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_transaction(db: Session, user_id: uuid.UUID):
    """Persist a transaction the way the CRUD layer would before detection runs."""

    def _make(
        title: str = "Groceries",
        amount: float = 50.0,
        category: str = "food",
        when: Optional[datetime] = None,
        description: Optional[str] = "weekly shop",
        owner: Optional[uuid.UUID] = None,
    ) -> Transaction:
        txn = Transaction(
            id=uuid.uuid4(),
            user_id=owner or user_id,
            title=title,
            description=description,
            amount=amount,
            category=category,
            transaction_date=when or NOW,
        )
        db.add(txn)
        db.commit()
        return txn

    return _make


@pytest.fixture
def make_budget(db: Session, user_id: uuid.UUID):
    def _make(
        amount: float = 500.0,
        category: str = "food",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        is_active: bool = True,
        name: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Budget:
        budget = Budget(
            id=uuid.uuid4(),
            user_id=user_id,
            name=name or f"{category.title()} budget",
            category=category,
            amount=amount,
            period="monthly",
            start_date=start or datetime(2026, 3, 1),
            end_date=end or datetime(2026, 4, 1),
            is_active=is_active,
            created_at=created_at or NOW,
        )
        db.add(budget)
        db.commit()
        return budget

    return _make


class FakeProvider(BaseLLMProvider):
    """Scripted provider: each call pops the next response or raises the next exception.

    The last scripted item repeats once the script runs out.
    """

    def __init__(self, name: str, script: List[Union[str, Exception]]):
        super().__init__(model="fake")
        self.name = name
        self.script = list(script)
        self.calls = 0
        self.prompts: List[str] = []

    def generate(self, system: str, user: str, json_mode: bool = False) -> str:
        self.calls += 1
        self.prompts.append(user)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def sleeps() -> List[float]:
    """Collects backoff delays instead of sleeping."""
    return []

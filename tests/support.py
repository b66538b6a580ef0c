from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import finapi.models  # noqa: F401 - register models with Base.metadata
from finapi.core.auth import hash_password
from finapi.db.base import Base
from finapi.models import Category, EntryType, Transaction, User
from finapi.services.ai_client import AIResult


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def add_user(db: Session, email: str = "asha@example.com", password: str = "Secret123") -> User:
    h, s = hash_password(password)
    user = User(email=email, name="Asha", password_hash=h, password_salt=s)
    db.add(user)
    db.commit()
    return user


def add_category(db: Session, user_id: uuid.UUID, name: str, type_: EntryType = EntryType.EXPENSE) -> Category:
    row = Category(user_id=user_id, name=name, type=type_)
    db.add(row)
    db.commit()
    return row


def add_expense(
    db: Session,
    user_id: uuid.UUID,
    category: str,
    amount: float,
    when: datetime,
    type_: EntryType = EntryType.EXPENSE,
) -> Transaction:
    row = Transaction(user_id=user_id, title=f"{category} spend", amount=amount, category=category, type=type_, date=when)
    db.add(row)
    db.commit()
    return row


class FailingSession(Session):
    """Every statement fails as if the database connection dropped; rollbacks are counted."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rollbacks = 0

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))

    def rollback(self):
        self.rollbacks += 1
        super().rollback()


class StubAIClient:
    """Stands in for BudgetAIClient; returns canned AIResult values and records calls."""

    def __init__(
        self,
        allocations: AIResult[list[dict[str, Any]]] | None = None,
        changes: AIResult[list[dict[str, Any]]] | None = None,
        category_budgets: AIResult[list[dict[str, Any]]] | None = None,
    ):
        self.allocations = allocations or AIResult.failure("not configured")
        self.changes = changes or AIResult.failure("not configured")
        self.category_budgets = category_budgets or AIResult.failure("not configured")
        self.calls: list[str] = []
        self.last_kwargs: dict[str, Any] = {}

    async def suggest_allocations(self, **kwargs) -> AIResult[list[dict[str, Any]]]:
        self.calls.append("allocations")
        return self.allocations

    async def suggest_changes(self, **kwargs) -> AIResult[list[dict[str, Any]]]:
        self.calls.append("changes")
        return self.changes

    async def suggest_category_budgets(self, **kwargs) -> AIResult[list[dict[str, Any]]]:
        self.calls.append("category_budgets")
        self.last_kwargs = kwargs
        return self.category_budgets

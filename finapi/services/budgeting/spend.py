from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finapi.models.category import EntryType
from finapi.models.transaction import Transaction
from finapi.services.budgeting.common import current_month_key, month_bounds, month_key


@dataclass
class SpendStats:
    total: float = 0.0
    count: int = 0

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


def _check_interval(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValueError(f"Invalid spend interval: {start.isoformat()} >= {end.isoformat()}")


def _expense_window(user_id: uuid.UUID, start: datetime, end: datetime) -> tuple:
    return (
        Transaction.user_id == user_id,
        Transaction.type == EntryType.EXPENSE,
        Transaction.date >= start,
        Transaction.date < end,
    )


def spend_by_category(db: Session, user_id: uuid.UUID, start: datetime, end: datetime) -> dict[str, float]:
    """Expense totals per category name for start <= date < end."""
    _check_interval(start, end)
    rows = db.execute(
        select(Transaction.category, func.sum(Transaction.amount))
        .where(*_expense_window(user_id, start, end))
        .group_by(Transaction.category)
    ).all()
    return {category: float(total or 0) for category, total in rows}


def spend_stats_by_category(db: Session, user_id: uuid.UUID, start: datetime, end: datetime) -> dict[str, SpendStats]:
    _check_interval(start, end)
    rows = db.execute(
        select(Transaction.category, func.sum(Transaction.amount), func.count(Transaction.id))
        .where(*_expense_window(user_id, start, end))
        .group_by(Transaction.category)
    ).all()
    return {category: SpendStats(total=float(total or 0), count=int(count)) for category, total, count in rows}


def monthly_spend_totals(db: Session, user_id: uuid.UUID, start: datetime, end: datetime) -> dict[str, float]:
    """Expense totals keyed by YYYY-MM of the transaction date. Months with no spend are absent."""
    _check_interval(start, end)
    rows = db.execute(select(Transaction.date, Transaction.amount).where(*_expense_window(user_id, start, end))).all()
    totals: dict[str, float] = {}
    for when, amount in rows:
        key = month_key(when)
        totals[key] = totals.get(key, 0.0) + float(amount)
    return totals


def mtd_by_category(db: Session, user_id: uuid.UUID, month: str) -> dict[str, float]:
    start, end = month_bounds(month)
    return spend_by_category(db, user_id, start, end)


def current_month_spend(db: Session, user_id: uuid.UUID, today: date | None = None) -> dict[str, float]:
    return mtd_by_category(db, user_id, current_month_key(today))

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finapi.db.upsert import dialect_insert
from finapi.models.budget import BudgetPeriod, CategoryBudget
from finapi.models.category import Category, EntryType


DEFAULT_ALERT_THRESHOLD = 80


def expense_categories(db: Session, user_id: uuid.UUID) -> list[Category]:
    return list(
        db.execute(
            select(Category)
            .where(Category.user_id == user_id, Category.type == EntryType.EXPENSE)
            .order_by(Category.created_at, Category.name)
        ).scalars().all()
    )


def upsert_category_budget(
    db: Session,
    user_id: uuid.UUID,
    category: Category,
    *,
    budget_amount: float,
    period: BudgetPeriod = BudgetPeriod.MONTHLY,
    alert_threshold: int = DEFAULT_ALERT_THRESHOLD,
    is_active: bool = True,
) -> CategoryBudget:
    """
    Insert or update the single budget for (user, category) in one statement and
    return the stored row. The caller owns the commit.
    """
    values = {
        "category_name": category.name,
        "budget_amount": budget_amount,
        "period": period,
        "alert_threshold": alert_threshold,
        "is_active": is_active,
    }
    insert = dialect_insert(db)
    stmt = insert(CategoryBudget).values(id=uuid.uuid4(), user_id=user_id, category_id=category.id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "category_id"], set_={**values, "updated_at": func.now()}
    )
    db.execute(stmt)
    return db.execute(
        select(CategoryBudget)
        .where(CategoryBudget.user_id == user_id, CategoryBudget.category_id == category.id)
        .execution_options(populate_existing=True)
    ).scalars().one()

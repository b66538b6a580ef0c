from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from finapi.core.auth import get_current_user_id
from finapi.db.session import get_db
from finapi.models.budget import CategoryBudget
from finapi.models.category import Category
from finapi.schemas.category_budget import (
    AutoAllocateResponse,
    AutoAllocationRead,
    AutoBudgetRequest,
    AutoBudgetSummary,
    BudgetSuggestionRead,
    BudgetSuggestionsResponse,
    CategoryBudgetListResponse,
    CategoryBudgetRead,
    CategoryBudgetResponse,
    CategoryBudgetStatusRead,
    CategoryBudgetUpsert,
    CheckAlertsRequest,
    CheckAlertsResponse,
)
from finapi.services.ai_client import BudgetAIClient, get_ai_client
from finapi.services.budgeting.auto_budget import SuggestedSplit, apply_split, category_history, suggest_split
from finapi.services.budgeting.category_budgets import expense_categories, upsert_category_budget
from finapi.services.budgeting.reconciler import (
    CategorySpendStatus,
    active_category_budgets,
    category_status,
    check_category_spend,
)
from finapi.services.budgeting.spend import current_month_spend

router = APIRouter(prefix="/category-budgets", tags=["category-budgets"])
logger = logging.getLogger("finapi.budget")


def _status_read(s: CategorySpendStatus) -> CategoryBudgetStatusRead:
    base = CategoryBudgetRead.model_validate(s.budget).model_dump()
    return CategoryBudgetStatusRead(
        **base,
        spent_amount=s.spent_amount,
        remaining_amount=s.remaining_amount,
        percentage_used=s.percentage_used,
        is_exceeded=s.is_exceeded,
        is_near_threshold=s.is_near_threshold,
    )


@router.get("", response_model=CategoryBudgetListResponse)
def list_category_budgets(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> CategoryBudgetListResponse:
    budgets = active_category_budgets(db, user_id)
    spend = current_month_spend(db, user_id) if budgets else {}
    return CategoryBudgetListResponse(
        budgets=[_status_read(category_status(b, spend.get(b.category_name, 0.0))) for b in budgets]
    )


@router.post("", response_model=CategoryBudgetResponse)
def save_category_budget(
    payload: CategoryBudgetUpsert,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> CategoryBudgetResponse:
    category = db.execute(
        select(Category).where(Category.id == payload.category_id, Category.user_id == user_id)
    ).scalars().first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    row = upsert_category_budget(
        db,
        user_id,
        category,
        budget_amount=payload.budget_amount,
        period=payload.period,
        alert_threshold=payload.alert_threshold,
        is_active=payload.is_active,
    )
    db.commit()
    return CategoryBudgetResponse(budget=CategoryBudgetRead.model_validate(row))


@router.delete("/{budget_id}", status_code=204)
def delete_category_budget(
    budget_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> None:
    row = db.execute(
        select(CategoryBudget).where(CategoryBudget.id == budget_id, CategoryBudget.user_id == user_id)
    ).scalars().first()
    if not row:
        raise HTTPException(status_code=404, detail="Budget not found")
    db.delete(row)
    db.commit()


@router.post("/check-alerts", response_model=CheckAlertsResponse)
def check_alerts(
    payload: CheckAlertsRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> CheckAlertsResponse:
    status = check_category_spend(db, user_id, payload.category_name)
    if status and (status.is_exceeded or status.is_near_threshold):
        return CheckAlertsResponse(has_alert=True, alert=_status_read(status))
    return CheckAlertsResponse(has_alert=False)


async def _suggested_split(
    db: Session,
    user_id: uuid.UUID,
    payload: AutoBudgetRequest,
    ai: BudgetAIClient,
) -> tuple[list[Category], SuggestedSplit]:
    categories = expense_categories(db, user_id)
    if not categories:
        raise HTTPException(status_code=400, detail="No expense categories found. Create some categories first.")
    history = category_history(db, user_id, [c.name for c in categories])
    suggestion = await ai.suggest_category_budgets(
        available_balance=payload.available_balance,
        history=[h.as_prompt_row() for h in history],
        preferences=payload.preferences,
    )
    return categories, suggest_split(history, payload.available_balance, suggestion)


def _summary(split: SuggestedSplit) -> AutoBudgetSummary:
    return AutoBudgetSummary(categories=len(split.suggestions), average_allocation=split.average)


@router.post("/suggest", response_model=BudgetSuggestionsResponse)
async def suggest_category_budgets(
    payload: AutoBudgetRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ai: BudgetAIClient = Depends(get_ai_client),
) -> BudgetSuggestionsResponse:
    _, split = await _suggested_split(db, user_id, payload, ai)
    return BudgetSuggestionsResponse(
        suggestions=[
            BudgetSuggestionRead(category=s.category, amount=s.amount, reasoning=s.reasoning)
            for s in split.suggestions
        ],
        total_allocated=split.total,
        ai_generated=split.ai_generated,
        summary=_summary(split),
    )


@router.post("/auto-allocate", response_model=AutoAllocateResponse)
async def auto_allocate_category_budgets(
    payload: AutoBudgetRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ai: BudgetAIClient = Depends(get_ai_client),
) -> AutoAllocateResponse:
    categories, split = await _suggested_split(db, user_id, payload, ai)
    applied = apply_split(db, user_id, categories, split)
    db.commit()
    logger.info(
        "category_budgets_auto_allocated user=%s categories=%s total=%s ai=%s",
        user_id,
        len(applied),
        split.total,
        split.ai_generated,
    )
    return AutoAllocateResponse(
        allocations=[
            AutoAllocationRead(budget=CategoryBudgetRead.model_validate(row), reasoning=reasoning)
            for row, reasoning in applied
        ],
        total_allocated=split.total,
        ai_generated=split.ai_generated,
        summary=_summary(split),
    )

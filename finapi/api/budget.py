from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finapi.core.auth import get_current_user_id
from finapi.db.session import get_db
from finapi.models.budget import BudgetPlan
from finapi.schemas.budget import (
    AllocationRead,
    BudgetCurrentResponse,
    BudgetGenerateRequest,
    BudgetGenerateResponse,
    BudgetHistoryResponse,
    BudgetPlanDraft,
    BudgetPlanRead,
    BudgetRecommendRequest,
    BudgetRecommendResponse,
    BudgetSaveRequest,
    BudgetSaveResponse,
    ChangeRead,
    PlanTotalsRead,
)
from finapi.schemas.common import MonthKey
from finapi.services.ai_client import BudgetAIClient, get_ai_client
from finapi.services.budgeting import PlanStore, allocate, merge_ai_changes, mtd_by_category, recommend, refine
from finapi.services.budgeting.category_budgets import expense_categories
from finapi.services.budgeting.common import Allocation
from finapi.services.budgeting.plan_store import plan_allocations

router = APIRouter(prefix="/budget", tags=["budget"])
logger = logging.getLogger("finapi.budget")


def _expense_category_names(db: Session, user_id: uuid.UUID) -> list[str]:
    return [c.name for c in expense_categories(db, user_id)]


def plan_to_read(plan: BudgetPlan) -> BudgetPlanRead:
    return BudgetPlanRead(
        id=plan.id,
        month=plan.month,
        method=plan.method,
        income=plan.income,
        target_savings_pct=plan.target_savings_pct,
        allocations=[AllocationRead(**a.as_dict()) for a in plan_allocations(plan)],
        totals=PlanTotalsRead(**plan.totals),
        created_at=plan.created_at,
        updated_at=plan.updated_at,
    )


@router.post("/generate", response_model=BudgetGenerateResponse)
async def generate_budget(
    payload: BudgetGenerateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ai: BudgetAIClient = Depends(get_ai_client),
) -> BudgetGenerateResponse:
    categories = _expense_category_names(db, user_id)
    result = allocate(payload.income, payload.target_savings_pct, categories)
    if categories:
        suggestion = await ai.suggest_allocations(
            income=payload.income,
            target_savings_pct=payload.target_savings_pct,
            method=payload.method.value,
            categories=categories,
        )
        result = refine(result, payload.income, payload.target_savings_pct, suggestion)
    logger.info(
        "plan_generated user=%s month=%s categories=%s refined=%s",
        user_id,
        payload.month,
        len(categories),
        result.refined,
    )
    plan = BudgetPlanDraft(
        month=payload.month,
        method=payload.method,
        income=payload.income,
        target_savings_pct=payload.target_savings_pct,
        allocations=[AllocationRead(**a.as_dict()) for a in result.allocations],
        totals=PlanTotalsRead(**result.totals.as_dict()),
    )
    return BudgetGenerateResponse(plan=plan, mtd=mtd_by_category(db, user_id, payload.month))


@router.post("/save", response_model=BudgetSaveResponse)
def save_budget(
    payload: BudgetSaveRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> BudgetSaveResponse:
    plan = PlanStore(db).save(
        user_id,
        payload.month,
        method=payload.method,
        income=payload.income,
        target_savings_pct=payload.target_savings_pct,
        allocations=[Allocation(category=a.category, amount=a.amount, pct=a.pct) for a in payload.allocations],
    )
    return BudgetSaveResponse(plan=plan_to_read(plan))


@router.get("/current", response_model=BudgetCurrentResponse)
def current_budget(
    month: MonthKey = Query(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> BudgetCurrentResponse:
    plan = PlanStore(db).get(user_id, month)
    return BudgetCurrentResponse(
        plan=plan_to_read(plan) if plan else None,
        mtd=mtd_by_category(db, user_id, month),
    )


@router.get("/history", response_model=BudgetHistoryResponse)
def budget_history(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> BudgetHistoryResponse:
    return BudgetHistoryResponse(items=[plan_to_read(p) for p in PlanStore(db).history(user_id)])


@router.post("/recommend", response_model=BudgetRecommendResponse)
async def recommend_budget(
    payload: BudgetRecommendRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    ai: BudgetAIClient = Depends(get_ai_client),
) -> BudgetRecommendResponse:
    allocations = [Allocation(category=a.category, amount=a.amount) for a in payload.allocations]
    changes = recommend(payload.income, payload.target_savings_pct, allocations)
    suggestion = await ai.suggest_changes(
        income=payload.income,
        target_savings_pct=payload.target_savings_pct,
        allocations=[a.as_dict() for a in allocations],
    )
    changes = merge_ai_changes(changes, suggestion)
    logger.info("plan_recommended user=%s month=%s changes=%s", user_id, payload.month, len(changes))
    return BudgetRecommendResponse(
        changes=[ChangeRead(category=c.category, delta_amount=c.delta_amount, reason=c.reason) for c in changes]
    )

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finapi.core.auth import get_current_user_id
from finapi.db.session import get_db
from finapi.schemas.insights import CategorySpendRead, MonthlySpendRead, SpendingInsightsResponse
from finapi.services.budgeting.insights import DEFAULT_MONTHS, MAX_MONTHS, spending_insights

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/spending", response_model=SpendingInsightsResponse)
def spending(
    months: int = Query(DEFAULT_MONTHS, ge=1, le=MAX_MONTHS),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SpendingInsightsResponse:
    insights = spending_insights(db, user_id, months)
    return SpendingInsightsResponse(
        monthly=[MonthlySpendRead(month=m, total=t) for m, t in insights.monthly],
        top_categories=[CategorySpendRead(name=n, total=t) for n, t in insights.top_categories],
        categories=[CategorySpendRead(name=n, total=t) for n, t in insights.categories],
    )

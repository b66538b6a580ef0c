from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finapi.core.auth import get_current_user_id
from finapi.db.session import get_db
from finapi.schemas.alert import AlertRead, AlertsResponse
from finapi.schemas.common import MonthKey
from finapi.services.budgeting import reconcile
from finapi.services.budgeting.common import current_month_key

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=AlertsResponse)
def list_alerts(
    month: MonthKey | None = Query(None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> AlertsResponse:
    alerts = reconcile(db, user_id, month or current_month_key())
    return AlertsResponse(
        alerts=[
            AlertRead(id=a.id, type=a.type, title=a.title, message=a.message, severity=a.severity, meta=a.meta)
            for a in alerts
        ]
    )

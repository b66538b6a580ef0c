from __future__ import annotations

from typing import Any

from finapi.schemas.common import ApiModel


class AlertRead(ApiModel):
    id: str
    type: str
    title: str
    message: str
    severity: str
    meta: dict[str, Any]


class AlertsResponse(ApiModel):
    alerts: list[AlertRead]

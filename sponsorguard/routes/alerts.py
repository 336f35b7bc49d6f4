from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sponsorguard.application import get_compliance_service
from sponsorguard.core.schema import CurrentUser

from .deps import current_user

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    status: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    user: CurrentUser = Depends(current_user),
) -> dict:
    service = get_compliance_service()
    alerts = service.alerts.list(user, status=status, limit=limit)
    return {"items": [alert.model_dump(by_alias=True, mode="json") for alert in alerts]}


@router.post("", status_code=201)
async def create_alert(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.alerts.create(user, payload).model_dump(by_alias=True, mode="json")


@router.put("/{alert_id}")
async def update_alert(alert_id: str, payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.alerts.update_status(user, alert_id, payload).model_dump(by_alias=True, mode="json")

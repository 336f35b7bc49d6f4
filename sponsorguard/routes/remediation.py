from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sponsorguard.application import get_compliance_service
from sponsorguard.core.schema import CurrentUser

from .deps import current_user

router = APIRouter(prefix="/remediation-actions", tags=["remediation"])


@router.get("")
async def list_actions(
    workerId: str | None = Query(default=None),
    agentType: str | None = Query(default=None),
    status: str | None = Query(default=None),
    user: CurrentUser = Depends(current_user),
) -> dict:
    service = get_compliance_service()
    actions = service.remediation.list(user, worker_id=workerId, agent_type=agentType, status=status)
    return {"items": [action.model_dump(by_alias=True, mode="json") for action in actions]}


@router.post("", status_code=201)
async def create_action(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.remediation.create(user, payload).model_dump(by_alias=True, mode="json")


@router.get("/{action_id}")
async def get_action(action_id: str, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.remediation.get(user, action_id).model_dump(by_alias=True, mode="json")


@router.put("/{action_id}")
async def update_action(action_id: str, payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.remediation.update(user, action_id, payload).model_dump(by_alias=True, mode="json")


@router.delete("/{action_id}")
async def delete_action(action_id: str, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    service.remediation.delete(user, action_id)
    return {"id": action_id, "deleted": True}

from __future__ import annotations

from fastapi import APIRouter, Depends

from sponsorguard.application import get_compliance_service
from sponsorguard.core.schema import CurrentUser

from .deps import current_user

router = APIRouter(tags=["assessment"])


@router.post("/assessments")
async def submit_assessment(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    result = await service.submit_assessment(user, payload)
    return result.model_dump(by_alias=True, mode="json")


@router.post("/assessments/batch")
async def submit_batch(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return await service.submit_batch(user, payload)


@router.post("/assessments/pending")
async def open_assessment(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    aggregate = service.mark_pending(user, payload)
    return aggregate.model_dump(by_alias=True, mode="json")


@router.get("/aggregate/{worker_id}")
async def get_aggregate(worker_id: str, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.get_aggregate(user, worker_id).model_dump(by_alias=True, mode="json")

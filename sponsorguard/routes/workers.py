from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from sponsorguard.application import get_compliance_service
from sponsorguard.core.schema import CurrentUser
from sponsorguard.core.validation import ValidationError
from sponsorguard.exporters.compliance_summary import EXPORT_FORMATS, export_directory

from .deps import current_user

router = APIRouter(prefix="/workers", tags=["workers"])


def _filters(
    complianceStatus: str | None = Query(default=None),
    riskLevel: str | None = Query(default=None),
    agentType: str | None = Query(default=None),
    hasRedFlags: str | None = Query(default=None),
    startDate: str | None = Query(default=None),
    endDate: str | None = Query(default=None),
) -> dict:
    return {
        "complianceStatus": complianceStatus,
        "riskLevel": riskLevel,
        "agentType": agentType,
        "hasRedFlags": hasRedFlags,
        "startDate": startDate,
        "endDate": endDate,
    }


@router.post("")
async def register_worker(payload: dict, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    worker = service.intake.register(user, payload)
    return worker.model_dump(by_alias=True, mode="json")


@router.get("")
async def list_workers(
    filters: dict = Depends(_filters),
    page: str | None = Query(default=None),
    pageSize: str | None = Query(default=None),
    user: CurrentUser = Depends(current_user),
) -> dict:
    service = get_compliance_service()
    return service.directory.search(user, {**filters, "page": page, "pageSize": pageSize})


@router.get("/metrics")
async def compliance_metrics(user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.directory.metrics(user)


@router.get("/export")
async def export_workers(
    filters: dict = Depends(_filters),
    format: str = Query(default="csv"),
    user: CurrentUser = Depends(current_user),
) -> Response:
    fmt = format.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"unsupported export format {format!r}", details={"allowed": sorted(EXPORT_FORMATS)})
    service = get_compliance_service()
    rows = service.directory.export_rows(user, filters)
    content, media_type = export_directory(rows, fmt)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="compliance-directory.{fmt}"'},
    )


@router.get("/{worker_id}")
async def get_worker(worker_id: str, user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.worker_detail(user, worker_id)

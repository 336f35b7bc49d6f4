from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from sponsorguard.application import get_compliance_service
from sponsorguard.core.schema import CurrentUser

from .deps import current_user

router = APIRouter(prefix="/narratives", tags=["narratives"])


@router.get("/agents")
async def list_agents() -> dict:
    registry = get_compliance_service().registry
    return {
        "items": [
            {
                "agentType": agent.slug,
                "name": agent.name,
                "inputs": agent.inputs,
                "redFlagKeys": sorted(agent.red_flag_keys),
            }
            for agent in registry.agents.values()
        ]
    }


@router.get("/metrics")
async def generation_metrics(
    timeframe: str = Query(default="day"),
    user: CurrentUser = Depends(current_user),
) -> dict:
    service = get_compliance_service()
    return service.generator.metrics(timeframe)


@router.get("/cache")
async def cache_stats(user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    return service.generator.cache.stats()


@router.delete("/cache")
async def clear_cache(user: CurrentUser = Depends(current_user)) -> dict:
    service = get_compliance_service()
    service.generator.cache.clear()
    return {"cleared": True}

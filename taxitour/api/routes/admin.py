"""
Admin / observability endpoints
===============================

GET /api/v1/admin/connections -- live socket counts from the registry
GET /api/v1/admin/health      -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from taxitour.api.dependencies import get_realtime
from taxitour.api.middleware import limiter
from taxitour.api.schemas import ConnectionStatsResponse, HealthResponse
from taxitour.realtime.gateway import RealtimeGateway

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/connections",
    response_model=ConnectionStatsResponse,
    summary="Live socket counts",
)
@limiter.limit("100/minute")
async def connection_stats(
    request: Request,
    realtime: RealtimeGateway = Depends(get_realtime),
):
    return await realtime.registry.stats()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()

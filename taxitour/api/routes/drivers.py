"""
Driver presence endpoints
=========================

GET /api/v1/drivers/online -- drivers with an authenticated socket right now
"""

from fastapi import APIRouter, Depends, Request

from taxitour.api.dependencies import get_realtime
from taxitour.api.middleware import limiter
from taxitour.api.schemas import OnlineDriverResponse
from taxitour.realtime.gateway import RealtimeGateway

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/online",
    response_model=list[OnlineDriverResponse],
    summary="List online drivers with their last known location",
)
@limiter.limit("100/minute")
async def online_drivers(
    request: Request,
    realtime: RealtimeGateway = Depends(get_realtime),
):
    return await realtime.online_drivers()

from fastapi import APIRouter, Request

from isitdown.schemas import MonitoringStatusResponse

router = APIRouter(prefix="/api/monitoring", tags=["monitoring"])


@router.get("/status", response_model=MonitoringStatusResponse)
async def monitoring_status(request: Request):
    return request.app.state.monitoring.status()

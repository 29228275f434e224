from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status

from isitdown import incidents as incident_service
from isitdown import websites as website_service
from isitdown.aggregation import Outage, combine_outages
from isitdown.schemas import OutageReportCreate, OutageReportResponse
from isitdown.websites import PERSISTENCE_ERRORS

router = APIRouter(prefix="/api/outages", tags=["outages"])


@router.get("", response_model=list[Outage])
async def list_outages(request: Request):
    """One entry per affected website, merged from probes, reports and map markers."""
    return await request.app.state.outage_board.outages()


@router.get("/recent", response_model=list[OutageReportResponse])
async def list_recent_outages(limit: int = 6):
    reports = await website_service.get_outage_reports()
    incidents = await incident_service.get_recent_outage_incidents()
    return combine_outages(reports, incidents, limit=min(limit, 50))


@router.get("/reports", response_model=list[OutageReportResponse])
async def list_outage_reports(website_id: Optional[str] = None):
    return await website_service.get_outage_reports(website_id)


@router.post("/reports", response_model=OutageReportResponse, status_code=201)
async def create_outage_report(body: OutageReportCreate):
    try:
        return await website_service.record_outage_report(body)
    except PERSISTENCE_ERRORS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reports can't be saved right now, please try again later",
        )

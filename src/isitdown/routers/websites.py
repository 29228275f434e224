from fastapi import APIRouter, HTTPException

from isitdown import incidents as incident_service
from isitdown import websites as website_service
from isitdown.aggregation import annotate_websites
from isitdown.schemas import IncidentResponse, WebsiteCheckRequest, WebsiteResponse
from isitdown.urls import InvalidURLError
from isitdown.websites import PERSISTENCE_ERRORS

router = APIRouter(prefix="/api/websites", tags=["websites"])


@router.get("", response_model=list[WebsiteResponse])
async def list_popular_websites():
    websites = await website_service.get_popular_websites()
    incidents = await incident_service.get_recent_outage_incidents()
    return annotate_websites(websites, incidents)


@router.post("/check", response_model=WebsiteResponse)
async def check_website(body: WebsiteCheckRequest):
    try:
        website = await website_service.check_website_status(body.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=422, detail=str(e))
    incidents = await incident_service.get_recent_outage_incidents()
    return annotate_websites([website], incidents)[0]


@router.get("/{website_id}/incidents", response_model=list[IncidentResponse])
async def list_website_incidents(website_id: str):
    return await incident_service.get_recent_incidents(website_id)


@router.get("/{website_id}", response_model=WebsiteResponse)
async def get_website(website_id: str):
    try:
        website = await website_service.get_website(website_id)
    except PERSISTENCE_ERRORS:
        website = None
    if website is None:
        raise HTTPException(status_code=404, detail="Website not found")
    incidents = await incident_service.get_recent_outage_incidents()
    return annotate_websites([website], incidents)[0]

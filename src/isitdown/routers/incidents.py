from fastapi import APIRouter, HTTPException, Request, Response, status

from isitdown import incidents as incident_service
from isitdown.incidents import IncidentNotFoundError
from isitdown.schemas import IncidentCreate, IncidentResponse, IncidentType
from isitdown.urls import canonicalize_report_target
from isitdown.websites import PERSISTENCE_ERRORS

router = APIRouter(prefix="/api/incidents", tags=["incidents"])

# Per-browser marker of sites already reported. It only stops accidental
# double reports; clearing the cookie clears it.
REPORTED_COOKIE = "reported_sites"
REPORTED_SEPARATOR = "|"


def _reported_sites(request: Request) -> set[str]:
    raw = request.cookies.get(REPORTED_COOKIE, "")
    return {s for s in raw.split(REPORTED_SEPARATOR) if s}


def _remember_reported(response: Response, sites: set[str]) -> None:
    response.set_cookie(
        key=REPORTED_COOKIE,
        value=REPORTED_SEPARATOR.join(sorted(sites)),
        max_age=60 * 60 * 24,
        samesite="lax",
    )


@router.get("", response_model=list[IncidentResponse])
async def list_recent_incidents(limit: int = 20):
    return await incident_service.get_all_recent_incidents(limit=min(limit, 100))


@router.get("/outages", response_model=list[IncidentResponse])
async def list_recent_outage_incidents():
    return await incident_service.get_recent_outage_incidents()


@router.get("/type/{incident_type}", response_model=list[IncidentResponse])
async def list_incidents_by_type(incident_type: IncidentType, hours: int = 24):
    return await incident_service.get_incidents_by_type(incident_type, hours=hours)


@router.post("", response_model=IncidentResponse, status_code=201)
async def report_incident(body: IncidentCreate, request: Request, response: Response):
    website_id, _ = canonicalize_report_target(body.website_id, body.website_url)
    reported = _reported_sites(request)
    if website_id in reported:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reported this website",
        )

    ip_address = request.client.host if request.client else ""
    try:
        incident = await incident_service.submit_incident_report(body, ip_address=ip_address)
    except IncidentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PERSISTENCE_ERRORS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reports can't be saved right now, please try again later",
        )

    _remember_reported(response, reported | {incident.website_id})
    return incident


@router.post("/{incident_id}/me-too", response_model=IncidentResponse)
async def me_too(incident_id: str, request: Request, response: Response):
    reported = _reported_sites(request)
    try:
        existing = await incident_service.get_incident(incident_id)
        if existing is None:
            raise IncidentNotFoundError(f"Incident {incident_id} not found")
        if existing.website_id in reported:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="You have already reported this website",
            )
        incident = await incident_service.add_me_too(incident_id)
    except IncidentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PERSISTENCE_ERRORS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reports can't be saved right now, please try again later",
        )

    _remember_reported(response, reported | {incident.website_id})
    return incident

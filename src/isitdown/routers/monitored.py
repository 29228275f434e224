"""
A signed-in user's personal list of monitored websites.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from isitdown import incidents as incident_service
from isitdown import websites as website_service
from isitdown.aggregation import annotate_websites
from isitdown.auth import get_current_user
from isitdown.database import get_db
from isitdown.models.monitored_website import MonitoredWebsite
from isitdown.models.website import Website
from isitdown.models.user import User
from isitdown.schemas import WebsiteCheckRequest, WebsiteResponse
from isitdown.urls import InvalidURLError

router = APIRouter(prefix="/api/me/websites", tags=["monitored"])


@router.get("", response_model=list[WebsiteResponse])
async def list_monitored_websites(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Website)
        .join(MonitoredWebsite, MonitoredWebsite.website_id == Website.id)
        .where(MonitoredWebsite.user_id == user.id)
        .order_by(MonitoredWebsite.created_at)
    )
    websites = [WebsiteResponse.model_validate(w) for w in result.scalars().all()]
    incidents = await incident_service.get_recent_outage_incidents()
    return annotate_websites(websites, incidents)


@router.post("", response_model=WebsiteResponse, status_code=201)
async def add_monitored_website(
    body: WebsiteCheckRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        website = await website_service.check_website_status(body.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=422, detail=str(e))

    stored = await db.execute(select(Website.id).where(Website.id == website.id))
    if stored.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Website could not be saved, please try again later",
        )

    existing = await db.execute(
        select(MonitoredWebsite).where(
            MonitoredWebsite.user_id == user.id,
            MonitoredWebsite.website_id == website.id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You are already monitoring this website",
        )

    db.add(MonitoredWebsite(user_id=user.id, website_id=website.id))
    await db.commit()
    return website


@router.delete("/{website_id}", status_code=204)
async def remove_monitored_website(
    website_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(MonitoredWebsite).where(
            MonitoredWebsite.user_id == user.id,
            MonitoredWebsite.website_id == website_id,
        )
    )
    monitored = result.scalar_one_or_none()
    if not monitored:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Website is not in your monitored list",
        )

    await db.delete(monitored)
    await db.commit()

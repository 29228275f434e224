"""
Website status checks and website/outage-marker reads, with fallback mode.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from isitdown import gateway
from isitdown.database import DatabaseNotConfiguredError, get_session_factory
from isitdown.models.outage_report import OutageReport
from isitdown.models.website import Website
from isitdown.prober import probe
from isitdown.sample_data import sample_outage_reports, sample_websites
from isitdown.schemas import OutageReportCreate, OutageReportResponse, WebsiteResponse
from isitdown.urls import format_url, website_name

logger = logging.getLogger("isitdown.websites")

PERSISTENCE_ERRORS = (SQLAlchemyError, DatabaseNotConfiguredError, OSError)


async def check_website_status(url: str) -> WebsiteResponse:
    """Probe ``url`` and record the result.

    The website row is looked up by exact normalized URL and updated, or
    inserted when the URL has never been checked. Storage failures are logged
    and an unsaved snapshot is returned instead.

    Raises InvalidURLError when ``url`` can't be normalized.
    """
    formatted = format_url(url)
    result = await probe(formatted)
    now = datetime.now(timezone.utc)
    logger.info(f"Status for {formatted}: {result.status}")

    try:
        async with get_session_factory()() as db:
            query = await db.execute(
                select(Website).where(Website.url == formatted).limit(1)
            )
            website = query.scalar_one_or_none()
            action = "update"
            if website is None:
                website = Website(url=formatted, name=website_name(formatted))
                db.add(website)
                action = "insert"

            website.status = result.status
            website.last_checked = now
            website.response_time = result.response_time_ms
            await db.commit()
            snapshot = WebsiteResponse.model_validate(website)

        await gateway.publish("websites", action, snapshot.id)
        return snapshot
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Database operation failed for {formatted}: {e}")

    return WebsiteResponse(
        id=str(uuid.uuid4()),
        url=formatted,
        name=website_name(formatted),
        status=result.status,
        last_checked=now,
        response_time=result.response_time_ms,
    )


async def list_tracked_websites() -> list[WebsiteResponse]:
    """All websites, oldest-checked first. Raises on storage errors."""
    async with get_session_factory()() as db:
        result = await db.execute(
            select(Website).order_by(Website.last_checked.asc().nulls_first())
        )
        return [WebsiteResponse.model_validate(w) for w in result.scalars().all()]


async def get_website(website_id: str) -> Optional[WebsiteResponse]:
    async with get_session_factory()() as db:
        result = await db.execute(select(Website).where(Website.id == website_id))
        website = result.scalar_one_or_none()
        return WebsiteResponse.model_validate(website) if website else None


async def get_popular_websites() -> list[WebsiteResponse]:
    """Most recently checked websites; static samples when storage is down."""
    if not await gateway.is_connected():
        logger.warning("Database not connected, serving sample websites")
        return sample_websites()

    try:
        async with get_session_factory()() as db:
            result = await db.execute(
                select(Website).order_by(Website.last_checked.desc().nulls_last())
            )
            return [WebsiteResponse.model_validate(w) for w in result.scalars().all()]
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Error getting popular websites: {e}")
        return sample_websites()


async def get_outage_reports(website_id: Optional[str] = None) -> list[OutageReportResponse]:
    """Geo-markers for the outage map, newest first."""
    try:
        async with get_session_factory()() as db:
            query = select(OutageReport).order_by(OutageReport.timestamp.desc())
            if website_id:
                query = query.where(OutageReport.website_id == website_id)
            result = await db.execute(query)
            return [OutageReportResponse.model_validate(r) for r in result.scalars().all()]
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Error getting outage reports: {e}")
        reports = sample_outage_reports()
        if website_id:
            reports = [r for r in reports if r.website_id == website_id]
        return reports


async def record_outage_report(data: OutageReportCreate) -> OutageReportResponse:
    async with get_session_factory()() as db:
        report = OutageReport(
            website_id=data.website_id,
            latitude=data.latitude,
            longitude=data.longitude,
            status=data.status,
            location_city=data.location_city,
            location_country=data.location_country,
            timestamp=datetime.now(timezone.utc),
        )
        db.add(report)
        await db.commit()
        saved = OutageReportResponse.model_validate(report)

    await gateway.publish("outage_reports", "insert", saved.id)
    return saved

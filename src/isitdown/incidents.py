"""
User-submitted incident reports: submission, "me too" corroboration, queries
and retention pruning.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, or_, select, update

from isitdown import gateway
from isitdown.config import get_settings
from isitdown.database import get_session_factory
from isitdown.models.incident import Incident
from isitdown.models.outage_report import OutageReport
from isitdown.models.website import Website
from isitdown.schemas import IncidentCreate, IncidentResponse
from isitdown.urls import canonicalize_report_target
from isitdown.websites import PERSISTENCE_ERRORS

logger = logging.getLogger("isitdown.incidents")
settings = get_settings()

OUTAGE_TYPES = ("down", "partial")


class IncidentNotFoundError(LookupError):
    pass


async def submit_incident_report(
    data: IncidentCreate, ip_address: str = ""
) -> IncidentResponse:
    """Store a new incident, or corroborate an existing one.

    A ``metoo`` report that names a related incident increments that
    incident's ``me_too_count`` in place and returns it; no row is added.
    """
    if data.type == "metoo" and data.related_incident_id:
        return await add_me_too(data.related_incident_id)

    website_id, website_url = canonicalize_report_target(data.website_id, data.website_url)

    async with get_session_factory()() as db:
        incident = Incident(
            website_id=website_id,
            website_url=website_url,
            type=data.type,
            timestamp=data.timestamp or datetime.now(timezone.utc),
            ip_address=ip_address,
            location_city=data.location_city,
            location_country=data.location_country,
            me_too_count=0,
            related_incident_id=data.related_incident_id,
        )
        db.add(incident)
        await db.commit()
        saved = IncidentResponse.model_validate(incident)

    logger.info(f"Incident reported: {saved.type} for {saved.website_url}")
    await gateway.publish("incidents", "insert", saved.id)
    return saved


async def add_me_too(incident_id: str) -> IncidentResponse:
    async with get_session_factory()() as db:
        result = await db.execute(select(Incident).where(Incident.id == incident_id))
        incident = result.scalar_one_or_none()
        if incident is None:
            raise IncidentNotFoundError(f"Related incident {incident_id} not found")

        incident.me_too_count = (incident.me_too_count or 0) + 1
        await db.commit()
        updated = IncidentResponse.model_validate(incident)

    await gateway.publish("incidents", "update", updated.id)
    return updated


async def get_incident(incident_id: str) -> Optional[IncidentResponse]:
    async with get_session_factory()() as db:
        result = await db.execute(select(Incident).where(Incident.id == incident_id))
        incident = result.scalar_one_or_none()
        return IncidentResponse.model_validate(incident) if incident else None


async def _fetch(query) -> list[IncidentResponse]:
    async with get_session_factory()() as db:
        result = await db.execute(query)
        return [IncidentResponse.model_validate(i) for i in result.scalars().all()]


async def get_recent_incidents(website_id: str) -> list[IncidentResponse]:
    try:
        return await _fetch(
            select(Incident)
            .where(Incident.website_id == website_id)
            .order_by(Incident.timestamp.desc())
        )
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to fetch incidents for {website_id}: {e}")
        return []


async def get_all_recent_incidents(limit: int = 20) -> list[IncidentResponse]:
    try:
        return await _fetch(
            select(Incident).order_by(Incident.timestamp.desc()).limit(limit)
        )
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to fetch all incidents: {e}")
        return []


async def get_incidents_by_type(type: str, hours: int = 24) -> list[IncidentResponse]:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
    try:
        return await _fetch(
            select(Incident)
            .where(Incident.type == type, Incident.timestamp >= cutoff)
            .order_by(Incident.timestamp.desc())
        )
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to fetch {type} incidents: {e}")
        return []


async def get_recent_outage_incidents(hours: Optional[int] = None) -> list[IncidentResponse]:
    """Down or partial incidents reported within the report window."""
    hours = hours or settings.report_window_hours
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
    try:
        return await _fetch(
            select(Incident)
            .where(
                or_(*(Incident.type == t for t in OUTAGE_TYPES)),
                Incident.timestamp >= cutoff,
            )
            .order_by(Incident.timestamp.desc())
        )
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to fetch recent outage incidents: {e}")
        return []


async def update_website_status(website_id: str, status: str) -> bool:
    try:
        async with get_session_factory()() as db:
            result = await db.execute(select(Website).where(Website.id == website_id))
            website = result.scalar_one_or_none()
            if website is None:
                return False
            website.status = status
            website.last_checked = datetime.now(timezone.utc)
            await db.commit()
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to update website status: {e}")
        return False

    await gateway.publish("websites", "update", website_id)
    return True


async def prune_old_reports() -> None:
    """Delete incidents and outage markers older than the retention period."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.report_retention_hours)
    try:
        async with get_session_factory()() as db:
            incidents = await db.execute(delete(Incident).where(Incident.timestamp < cutoff))
            reports = await db.execute(delete(OutageReport).where(OutageReport.timestamp < cutoff))
            await db.commit()
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to prune old reports: {e}")
        return

    logger.info(
        f"Pruned {incidents.rowcount} incident(s) and {reports.rowcount} outage report(s)"
    )
    if incidents.rowcount:
        await gateway.publish("incidents", "delete")
    if reports.rowcount:
        await gateway.publish("outage_reports", "delete")


async def reset_all_website_statuses() -> bool:
    """Mark every tracked website up as of now."""
    if not await gateway.is_connected():
        logger.warning("Database is not connected. Cannot reset website statuses.")
        return False
    try:
        async with get_session_factory()() as db:
            await db.execute(
                update(Website).values(status="up", last_checked=datetime.now(timezone.utc))
            )
            await db.commit()
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to reset website statuses: {e}")
        return False

    logger.info('Reset all website statuses to "up"')
    await gateway.publish("websites", "update")
    return True


async def clear_all_outage_data() -> bool:
    """Delete every incident and outage marker."""
    if not await gateway.is_connected():
        logger.warning("Database is not connected. Cannot clear outage data.")
        return False
    try:
        async with get_session_factory()() as db:
            await db.execute(delete(Incident))
            await db.execute(delete(OutageReport))
            await db.commit()
    except PERSISTENCE_ERRORS as e:
        logger.error(f"Failed to clear outage data: {e}")
        return False

    logger.info("Cleared all incidents and outage reports")
    await gateway.publish("incidents", "delete")
    await gateway.publish("outage_reports", "delete")
    return True


async def clear_all_data() -> bool:
    statuses_reset = await reset_all_website_statuses()
    outages_cleared = await clear_all_outage_data()
    return statuses_reset and outages_cleared

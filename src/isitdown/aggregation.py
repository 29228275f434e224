"""
Incident aggregation: merges probe results, user incident reports and
geo-tagged outage markers into one outage picture per website.

Records are matched by website id first and by hostname (ignoring ``www.``)
second. User reports only annotate a website; they never overwrite the
status recorded by the prober.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, Optional

from isitdown import gateway
from isitdown.config import get_settings
from isitdown.incidents import OUTAGE_TYPES, get_recent_outage_incidents
from isitdown.schemas import (
    IncidentResponse,
    OutageReportResponse,
    WebsiteResponse,
    as_utc,
)
from isitdown.urls import hostname_key
from isitdown.websites import get_outage_reports, get_popular_websites

logger = logging.getLogger("isitdown.aggregation")
settings = get_settings()

SOURCE_PROBE = "probe"
SOURCE_USER_REPORT = "user-report"
SOURCE_GEO_MARKER = "geo-marker"


def _window(window: Optional[timedelta]) -> timedelta:
    return window if window is not None else timedelta(hours=settings.report_window_hours)


def _is_recent(timestamp: datetime, now: datetime, window: timedelta) -> bool:
    return now - as_utc(timestamp) < window


def latest_by_website(incidents: Iterable[IncidentResponse]) -> dict[str, IncidentResponse]:
    latest: dict[str, IncidentResponse] = {}
    for incident in incidents:
        current = latest.get(incident.website_id)
        if current is None or incident.timestamp > current.timestamp:
            latest[incident.website_id] = incident
    return latest


def find_latest_incident(
    website: WebsiteResponse, latest: dict[str, IncidentResponse]
) -> Optional[IncidentResponse]:
    incident = latest.get(website.id)
    if incident is not None:
        return incident

    key = hostname_key(website.url)
    if key is None:
        return None
    matches = [i for i in latest.values() if hostname_key(i.website_url) == key]
    return max(matches, key=lambda i: i.timestamp, default=None)


def resolve_effective_status(website: WebsiteResponse, report_timestamp: datetime) -> str:
    """The newer of the last probe and the last user report decides."""
    if website.last_checked is None or report_timestamp >= website.last_checked:
        return "down"
    return website.status


def annotate_websites(
    websites: Iterable[WebsiteResponse],
    incidents: Iterable[IncidentResponse],
    now: Optional[datetime] = None,
    window: Optional[timedelta] = None,
) -> list[WebsiteResponse]:
    """Mark websites with a recent down/partial user report."""
    now = now or datetime.now(timezone.utc)
    window = _window(window)

    relevant = [
        i for i in incidents
        if i.type in OUTAGE_TYPES and _is_recent(i.timestamp, now, window)
    ]
    latest = latest_by_website(relevant)

    annotated = []
    for website in websites:
        incident = find_latest_incident(website, latest)
        if incident is None:
            annotated.append(website)
            continue
        annotated.append(website.model_copy(update={
            "user_reported": True,
            "incident_type": incident.type,
            "report_count": incident.me_too_count + 1,
            "report_timestamp": incident.timestamp,
            "effective_status": resolve_effective_status(website, incident.timestamp),
        }))
    return annotated


def combine_outages(
    reports: Iterable[OutageReportResponse],
    incidents: Iterable[IncidentResponse],
    limit: int = 6,
) -> list[OutageReportResponse]:
    """Recent-outages list: geo markers plus incidents for sites not yet listed."""
    combined = list(reports)
    for incident in incidents:
        index = next(
            (n for n, r in enumerate(combined) if r.website_id == incident.website_id),
            None,
        )
        if index is None:
            combined.append(OutageReportResponse(
                id=incident.id,
                website_id=incident.website_id,
                latitude=0,
                longitude=0,
                timestamp=incident.timestamp,
                status="down",
            ))
        elif incident.timestamp > combined[index].timestamp:
            combined[index] = combined[index].model_copy(
                update={"timestamp": incident.timestamp}
            )

    combined.sort(key=lambda r: r.timestamp, reverse=True)
    return combined[:limit]


@dataclass
class OutageEvent:
    source_kind: str  # probe, user-report, geo-marker
    website_id: str
    timestamp: datetime
    website_url: Optional[str] = None
    report_count: int = 0
    incident_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_city: Optional[str] = None
    location_country: Optional[str] = None


@dataclass
class Outage:
    key: str
    website_id: str
    website_url: Optional[str]
    last_reported: datetime
    source_kinds: list[str] = field(default_factory=list)
    report_count: int = 0
    incident_type: Optional[str] = None
    markers: list[dict] = field(default_factory=list)


def build_outage_events(
    websites: Iterable[WebsiteResponse],
    incidents: Iterable[IncidentResponse],
    reports: Iterable[OutageReportResponse],
    now: Optional[datetime] = None,
    window: Optional[timedelta] = None,
) -> list[OutageEvent]:
    now = now or datetime.now(timezone.utc)
    window = _window(window)
    events = []

    for website in websites:
        if website.status == "down":
            events.append(OutageEvent(
                source_kind=SOURCE_PROBE,
                website_id=website.id,
                website_url=website.url,
                timestamp=website.last_checked or now,
            ))

    for incident in incidents:
        if incident.type in OUTAGE_TYPES and _is_recent(incident.timestamp, now, window):
            events.append(OutageEvent(
                source_kind=SOURCE_USER_REPORT,
                website_id=incident.website_id,
                website_url=incident.website_url,
                timestamp=incident.timestamp,
                report_count=incident.me_too_count + 1,
                incident_type=incident.type,
                location_city=incident.location.city if incident.location else None,
                location_country=incident.location.country if incident.location else None,
            ))

    for report in reports:
        if report.status == "down" and _is_recent(report.timestamp, now, window):
            events.append(OutageEvent(
                source_kind=SOURCE_GEO_MARKER,
                website_id=report.website_id,
                timestamp=report.timestamp,
                report_count=report.report_count,
                latitude=report.latitude,
                longitude=report.longitude,
                location_city=report.location_city,
                location_country=report.location_country,
            ))

    return events


def reconcile_outages(events: Iterable[OutageEvent]) -> list[Outage]:
    """Collapse events into one Outage per hostname, newest first."""
    events = list(events)

    # Geo markers only carry a website id; borrow the hostname from any
    # other event that names the same id.
    key_by_id: dict[str, str] = {}
    for event in events:
        if event.website_url:
            key = hostname_key(event.website_url)
            if key:
                key_by_id.setdefault(event.website_id, key)

    outages: dict[str, Outage] = {}
    for event in events:
        key = (
            (hostname_key(event.website_url) if event.website_url else None)
            or key_by_id.get(event.website_id)
            or event.website_id.lower()
        )
        timestamp = as_utc(event.timestamp)
        outage = outages.get(key)
        if outage is None:
            outage = outages[key] = Outage(
                key=key,
                website_id=event.website_id,
                website_url=event.website_url,
                last_reported=timestamp,
            )
        elif timestamp > outage.last_reported:
            outage.last_reported = timestamp

        if event.source_kind not in outage.source_kinds:
            outage.source_kinds.append(event.source_kind)
        if outage.website_url is None and event.website_url:
            outage.website_url = event.website_url
        outage.report_count += event.report_count
        if event.incident_type and outage.incident_type is None:
            outage.incident_type = event.incident_type
        if event.latitude is not None and event.longitude is not None:
            outage.markers.append({
                "latitude": event.latitude,
                "longitude": event.longitude,
                "city": event.location_city,
                "country": event.location_country,
            })

    for outage in outages.values():
        outage.source_kinds.sort()
    return sorted(outages.values(), key=lambda o: o.last_reported, reverse=True)


async def load_outage_events() -> list[OutageEvent]:
    websites = await get_popular_websites()
    incidents = await get_recent_outage_incidents()
    reports = await get_outage_reports()
    return build_outage_events(websites, incidents, reports)


def earliest_expiry(
    events: Iterable[OutageEvent], window: Optional[timedelta] = None
) -> Optional[datetime]:
    """When the oldest windowed event (user report or geo marker) ages out."""
    window = _window(window)
    expiries = [
        as_utc(e.timestamp) + window for e in events if e.source_kind != SOURCE_PROBE
    ]
    return min(expiries, default=None)


class OutageBoard:
    """Reconciled outage list, cached until one of the source tables changes
    or the oldest cached report leaves the report window."""

    def __init__(
        self,
        loader: Callable[[], Awaitable[list[OutageEvent]]] = load_outage_events,
        window: Optional[timedelta] = None,
    ):
        self._loader = loader
        self._window = window
        self._cache: Optional[list[Outage]] = None
        self._expires_at: Optional[datetime] = None
        self._generation = 0

    def attach(self) -> None:
        for table in gateway.TABLES:
            gateway.subscribe(table, self.invalidate)

    def detach(self) -> None:
        for table in gateway.TABLES:
            gateway.unsubscribe(table, self.invalidate)

    def invalidate(self, event: Optional[gateway.ChangeEvent] = None) -> None:
        if event is not None:
            logger.debug(f"Outage board invalidated by {event.table}/{event.action}")
        self._generation += 1
        self._cache = None
        self._expires_at = None

    def _is_fresh(self, now: datetime) -> bool:
        if self._cache is None:
            return False
        return self._expires_at is None or now < self._expires_at

    async def outages(self) -> list[Outage]:
        if self._is_fresh(datetime.now(timezone.utc)):
            return list(self._cache)

        generation = self._generation
        events = await self._loader()
        outages = reconcile_outages(events)
        # A write that landed during the load makes this result stale already
        if generation == self._generation:
            self._cache = outages
            self._expires_at = earliest_expiry(events, self._window)
        return list(outages)

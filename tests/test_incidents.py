"""Tests for incident submission, "me too" corroboration and queries."""
import pytest
from datetime import timedelta

from sqlalchemy import func, select

from isitdown import gateway
from isitdown.incidents import (
    IncidentNotFoundError,
    add_me_too,
    clear_all_data,
    clear_all_outage_data,
    get_all_recent_incidents,
    get_incidents_by_type,
    get_recent_incidents,
    get_recent_outage_incidents,
    prune_old_reports,
    reset_all_website_statuses,
    submit_incident_report,
    update_website_status,
)
from isitdown.models.incident import Incident
from isitdown.models.outage_report import OutageReport
from isitdown.models.website import Website
from isitdown.schemas import IncidentCreate

from tests.conftest import utcnow


def report(**overrides) -> IncidentCreate:
    data = {
        "website_id": "example",
        "website_url": "https://example.com",
        "type": "down",
    }
    data.update(overrides)
    return IncidentCreate(**data)


async def incident_count(session_factory) -> int:
    async with session_factory() as db:
        return (await db.execute(select(func.count(Incident.id)))).scalar()


@pytest.mark.asyncio
async def test_submit_incident(session_factory):
    events = []
    gateway.subscribe("incidents", events.append)

    incident = await submit_incident_report(
        report(location_city="London", location_country="United Kingdom"),
        ip_address="203.0.113.7",
    )

    assert incident.website_id == "example"
    assert incident.type == "down"
    assert incident.me_too_count == 0
    assert incident.ip_address == "203.0.113.7"
    assert incident.location.city == "London"
    assert incident.timestamp.tzinfo is not None
    assert await incident_count(session_factory) == 1
    assert events[0].action == "insert"


@pytest.mark.asyncio
async def test_twitter_reports_are_stored_as_x(session_factory):
    incident = await submit_incident_report(
        report(website_id="twitter", website_url="https://twitter.com")
    )

    assert incident.website_id == "x"
    assert incident.website_url == "https://x.com"
    async with session_factory() as db:
        row = (await db.execute(select(Incident))).scalar_one()
        assert row.website_id == "x"
        assert "x.com" in row.website_url


@pytest.mark.asyncio
async def test_me_too_increments_without_new_row(session_factory):
    original = await submit_incident_report(report())
    for expected in (1, 2, 3):
        updated = await submit_incident_report(
            report(type="metoo", related_incident_id=original.id)
        )
        assert updated.id == original.id
        assert updated.me_too_count == expected

    assert await incident_count(session_factory) == 1
    again = await add_me_too(original.id)
    assert again.me_too_count == 4


@pytest.mark.asyncio
async def test_me_too_for_missing_incident():
    with pytest.raises(IncidentNotFoundError):
        await submit_incident_report(report(type="metoo", related_incident_id="nope"))


@pytest.mark.asyncio
async def test_recent_outage_incidents_only_down_or_partial_in_window():
    now = utcnow()
    await submit_incident_report(report(type="down", timestamp=now - timedelta(hours=1)))
    await submit_incident_report(report(type="partial", timestamp=now - timedelta(hours=2)))
    await submit_incident_report(report(type="slow", timestamp=now - timedelta(hours=1)))
    await submit_incident_report(report(type="down", timestamp=now - timedelta(hours=30)))

    incidents = await get_recent_outage_incidents()
    assert [i.type for i in incidents] == ["down", "partial"]


@pytest.mark.asyncio
async def test_incident_queries():
    now = utcnow()
    await submit_incident_report(report(type="slow", timestamp=now - timedelta(hours=3)))
    await submit_incident_report(report(type="slow", timestamp=now - timedelta(hours=50)))
    await submit_incident_report(report(website_id="other", website_url="https://other.com"))

    assert len(await get_incidents_by_type("slow")) == 1
    assert len(await get_incidents_by_type("slow", hours=72)) == 2
    assert len(await get_recent_incidents("example")) == 2
    everything = await get_all_recent_incidents(limit=2)
    assert len(everything) == 2
    assert everything[0].website_id == "other"


@pytest.mark.asyncio
async def test_update_website_status(session_factory):
    async with session_factory() as db:
        website = Website(url="https://example.com", status="up")
        db.add(website)
        await db.commit()

    assert await update_website_status(website.id, "down") is True
    assert await update_website_status("missing", "down") is False

    async with session_factory() as db:
        row = (await db.execute(select(Website))).scalar_one()
        assert row.status == "down"


@pytest.mark.asyncio
async def test_prune_old_reports(session_factory):
    now = utcnow()
    await submit_incident_report(report(timestamp=now - timedelta(days=30)))
    await submit_incident_report(report(timestamp=now - timedelta(hours=1)))
    async with session_factory() as db:
        db.add_all([
            OutageReport(website_id="x", latitude=1, longitude=2, timestamp=now - timedelta(days=30)),
            OutageReport(website_id="x", latitude=1, longitude=2, timestamp=now),
        ])
        await db.commit()

    await prune_old_reports()

    assert await incident_count(session_factory) == 1
    async with session_factory() as db:
        assert (await db.execute(select(func.count(OutageReport.id)))).scalar() == 1


@pytest.mark.asyncio
async def test_clear_all_data(session_factory):
    events = []
    gateway.subscribe("incidents", events.append)
    gateway.subscribe("websites", events.append)

    async with session_factory() as db:
        db.add_all([
            Website(url="https://a.com", status="down"),
            Website(url="https://b.com", status="unknown"),
            OutageReport(website_id="a", latitude=1, longitude=2, timestamp=utcnow()),
        ])
        await db.commit()
    await submit_incident_report(report())
    events.clear()

    assert await clear_all_data() is True

    assert await incident_count(session_factory) == 0
    async with session_factory() as db:
        assert (await db.execute(select(func.count(OutageReport.id)))).scalar() == 0
        statuses = (await db.execute(select(Website.status))).scalars().all()
        assert statuses == ["up", "up"]
    assert {(e.table, e.action) for e in events} == {("incidents", "delete"), ("websites", "update")}


@pytest.mark.asyncio
async def test_clear_all_data_without_database(no_database):
    assert await reset_all_website_statuses() is False
    assert await clear_all_outage_data() is False
    assert await clear_all_data() is False

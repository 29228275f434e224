import pytest
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient

from isitdown.prober import ProbeResult
from isitdown.sample_data import POPULAR_WEBSITES

UP = ProbeResult(status="up", status_code=200, response_time_ms=85)
DOWN = ProbeResult(status="down", status_code=503, error="Unexpected status")


def probe_returning(result):
    return patch("isitdown.websites.probe", new_callable=AsyncMock, return_value=result)


def incident_body(**overrides):
    body = {
        "website_id": "example",
        "website_url": "https://example.com",
        "type": "down",
    }
    body.update(overrides)
    return body


# --- Websites ---

@pytest.mark.asyncio
async def test_check_website(client: AsyncClient):
    with probe_returning(UP) as probe:
        response = await client.post("/api/websites/check", json={"url": "example.com"})

    assert response.status_code == 200
    data = response.json()
    assert data["url"] == "https://example.com"
    assert data["name"] == "example"
    assert data["status"] == "up"
    assert data["response_time"] == 85
    assert data["user_reported"] is False
    assert data["effective_status"] == "up"
    probe.assert_awaited_once_with("https://example.com")


@pytest.mark.asyncio
async def test_check_website_invalid_url(client: AsyncClient):
    with probe_returning(UP) as probe:
        response = await client.post("/api/websites/check", json={"url": "not a url!"})

    assert response.status_code == 422
    probe.assert_not_awaited()


@pytest.mark.asyncio
async def test_check_website_shows_user_reports(client: AsyncClient):
    with probe_returning(UP):
        await client.post("/api/websites/check", json={"url": "example.com"})
    await client.post("/api/incidents", json=incident_body())

    response = await client.get("/api/websites")
    [website] = response.json()
    assert website["status"] == "up"
    assert website["user_reported"] is True
    assert website["report_count"] == 1
    assert website["incident_type"] == "down"
    assert website["effective_status"] == "down"


@pytest.mark.asyncio
async def test_get_website(client: AsyncClient):
    with probe_returning(DOWN):
        created = (await client.post("/api/websites/check", json={"url": "example.com"})).json()

    response = await client.get(f"/api/websites/{created['id']}")
    assert response.status_code == 200
    assert response.json()["status"] == "down"

    response = await client.get("/api/websites/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_popular_websites_fallback(client: AsyncClient, no_database):
    response = await client.get("/api/websites")
    assert response.status_code == 200
    assert len(response.json()) == len(POPULAR_WEBSITES)


@pytest.mark.asyncio
async def test_website_incidents(client: AsyncClient):
    await client.post("/api/incidents", json=incident_body(type="slow"))
    response = await client.get("/api/websites/example/incidents")
    assert response.status_code == 200
    assert [i["type"] for i in response.json()] == ["slow"]


# --- Incidents ---

@pytest.mark.asyncio
async def test_report_incident(client: AsyncClient):
    response = await client.post("/api/incidents", json=incident_body(
        location_city="Berlin", location_country="Germany",
    ))
    assert response.status_code == 201
    data = response.json()
    assert data["website_id"] == "example"
    assert data["me_too_count"] == 0
    assert data["location"] == {"city": "Berlin", "country": "Germany"}
    assert "example" in response.cookies["reported_sites"]


@pytest.mark.asyncio
async def test_report_incident_twice_is_rejected(client: AsyncClient):
    first = await client.post("/api/incidents", json=incident_body())
    assert first.status_code == 201

    second = await client.post("/api/incidents", json=incident_body(type="slow"))
    assert second.status_code == 409

    response = await client.get("/api/incidents")
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_report_twitter_is_filed_as_x(client: AsyncClient):
    response = await client.post("/api/incidents", json=incident_body(
        website_id="twitter", website_url="https://twitter.com",
    ))
    assert response.status_code == 201
    assert response.json()["website_id"] == "x"
    assert response.json()["website_url"] == "https://x.com"


@pytest.mark.asyncio
async def test_report_incident_invalid_type(client: AsyncClient):
    response = await client.post("/api/incidents", json=incident_body(type="broken"))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_report_incident_without_database(client: AsyncClient, no_database):
    response = await client.post("/api/incidents", json=incident_body())
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_me_too(client: AsyncClient):
    created = (await client.post("/api/incidents", json=incident_body())).json()

    # A different browser agrees
    client.cookies.clear()
    response = await client.post(f"/api/incidents/{created['id']}/me-too")
    assert response.status_code == 200
    assert response.json()["me_too_count"] == 1

    # ...but only once
    response = await client.post(f"/api/incidents/{created['id']}/me-too")
    assert response.status_code == 409

    response = await client.get("/api/incidents")
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_me_too_via_report_body(client: AsyncClient):
    created = (await client.post("/api/incidents", json=incident_body())).json()
    client.cookies.clear()

    response = await client.post("/api/incidents", json=incident_body(
        type="metoo", related_incident_id=created["id"],
    ))
    assert response.status_code == 201
    assert response.json()["id"] == created["id"]
    assert response.json()["me_too_count"] == 1


@pytest.mark.asyncio
async def test_me_too_unknown_incident(client: AsyncClient):
    response = await client.post("/api/incidents/does-not-exist/me-too")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_incidents_by_type_and_outages(client: AsyncClient):
    await client.post("/api/incidents", json=incident_body(website_id="a", website_url="https://a.com"))
    client.cookies.clear()
    await client.post("/api/incidents", json=incident_body(
        website_id="b", website_url="https://b.com", type="slow",
    ))

    response = await client.get("/api/incidents/type/slow")
    assert [i["website_id"] for i in response.json()] == ["b"]

    response = await client.get("/api/incidents/outages")
    assert [i["website_id"] for i in response.json()] == ["a"]

    response = await client.get("/api/incidents", params={"limit": 1})
    assert len(response.json()) == 1


# --- Outages ---

@pytest.mark.asyncio
async def test_outage_reports(client: AsyncClient):
    response = await client.post("/api/outages/reports", json={
        "website_id": "reddit",
        "latitude": 51.5,
        "longitude": -0.12,
        "location_city": "London",
        "location_country": "UK",
    })
    assert response.status_code == 201
    assert response.json()["status"] == "down"

    response = await client.get("/api/outages/reports", params={"website_id": "reddit"})
    assert len(response.json()) == 1

    response = await client.get("/api/outages/reports", params={"website_id": "other"})
    assert response.json() == []


@pytest.mark.asyncio
async def test_outage_report_bad_coordinates(client: AsyncClient):
    response = await client.post("/api/outages/reports", json={
        "website_id": "reddit", "latitude": 91, "longitude": 0,
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_recent_outages_combine_reports_and_incidents(client: AsyncClient):
    await client.post("/api/outages/reports", json={
        "website_id": "reddit", "latitude": 51.5, "longitude": -0.12,
    })
    await client.post("/api/incidents", json=incident_body())

    response = await client.get("/api/outages/recent")
    assert response.status_code == 200
    assert [r["website_id"] for r in response.json()] == ["example", "reddit"]


@pytest.mark.asyncio
async def test_reconciled_outages(client: AsyncClient):
    with probe_returning(DOWN):
        await client.post("/api/websites/check", json={"url": "https://www.example.com"})
    await client.post("/api/incidents", json=incident_body())
    await client.post("/api/outages/reports", json={
        "website_id": "example", "latitude": 1.0, "longitude": 2.0,
    })

    response = await client.get("/api/outages")
    assert response.status_code == 200
    [outage] = response.json()
    assert outage["key"] == "example.com"
    assert outage["source_kinds"] == ["geo-marker", "probe", "user-report"]
    assert outage["report_count"] == 2
    assert len(outage["markers"]) == 1


@pytest.mark.asyncio
async def test_outage_samples_without_database(client: AsyncClient, no_database):
    response = await client.get("/api/outages/reports")
    assert response.status_code == 200
    assert len(response.json()) > 0


# --- Monitoring ---

@pytest.mark.asyncio
async def test_monitoring_status(client: AsyncClient):
    response = await client.get("/api/monitoring/status")
    assert response.status_code == 200
    data = response.json()
    assert data["is_running"] is False
    assert data["skipped_cycles"] == 0


# --- Monitored websites ---

@pytest.mark.asyncio
async def test_monitored_websites(authenticated_client: AsyncClient):
    client = authenticated_client
    with probe_returning(UP):
        response = await client.post("/api/me/websites", json={"url": "example.com"})
    assert response.status_code == 201
    website_id = response.json()["id"]

    with probe_returning(UP):
        duplicate = await client.post("/api/me/websites", json={"url": "https://example.com"})
    assert duplicate.status_code == 409

    response = await client.get("/api/me/websites")
    assert [w["id"] for w in response.json()] == [website_id]

    response = await client.delete(f"/api/me/websites/{website_id}")
    assert response.status_code == 204

    response = await client.get("/api/me/websites")
    assert response.json() == []

    response = await client.delete(f"/api/me/websites/{website_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_monitored_websites_require_login(client: AsyncClient):
    response = await client.get("/api/me/websites")
    assert response.status_code == 401


# --- Maintenance ---

@pytest.mark.asyncio
async def test_clear_data_requires_login(client: AsyncClient):
    response = await client.post("/api/data/clear")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_clear_data(authenticated_client: AsyncClient):
    client = authenticated_client
    with probe_returning(DOWN):
        await client.post("/api/websites/check", json={"url": "example.com"})
    await client.post("/api/incidents", json=incident_body())

    response = await client.post("/api/data/clear")
    assert response.status_code == 200

    assert (await client.get("/api/incidents")).json() == []
    [website] = (await client.get("/api/websites")).json()
    assert website["status"] == "up"
    # The same browser may report again
    response = await client.post("/api/incidents", json=incident_body())
    assert response.status_code == 201

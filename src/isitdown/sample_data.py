"""
Static sample data served in fallback mode, when the database is unreachable.
"""
from datetime import datetime, timedelta, timezone

from isitdown.schemas import OutageReportResponse, WebsiteResponse

# (id, url, status, response_time_ms)
POPULAR_WEBSITES = [
    ("google", "https://google.com", "up", 125),
    ("facebook", "https://facebook.com", "down", None),
    ("youtube", "https://youtube.com", "up", 180),
    ("x", "https://x.com", "down", None),
    ("instagram", "https://instagram.com", "up", 245),
    ("amazon", "https://amazon.com", "up", 290),
    ("netflix", "https://netflix.com", "up", 310),
    ("reddit", "https://reddit.com", "down", None),
    ("tmobile", "https://t-mobile.com", "up", 215),
    ("verizon", "https://verizon.com", "up", 230),
    ("att", "https://att.com", "down", None),
    ("discord", "https://discord.com", "up", 198),
]

# (id, website_id, latitude, longitude, minutes_ago, city, country)
OUTAGE_MARKERS = [
    ("sample-1", "facebook", 40.7128, -74.0060, 12, "New York", "United States"),
    ("sample-2", "facebook", 51.5074, -0.1278, 25, "London", "United Kingdom"),
    ("sample-3", "x", 37.7749, -122.4194, 8, "San Francisco", "United States"),
    ("sample-4", "reddit", 52.5200, 13.4050, 40, "Berlin", "Germany"),
    ("sample-5", "att", 32.7767, -96.7970, 55, "Dallas", "United States"),
    ("sample-6", "x", 35.6762, 139.6503, 90, "Tokyo", "Japan"),
]


def sample_websites() -> list[WebsiteResponse]:
    now = datetime.now(timezone.utc)
    return [
        WebsiteResponse(
            id=site_id,
            url=url,
            name=site_id,
            status=status,
            last_checked=now,
            response_time=response_time,
        )
        for site_id, url, status, response_time in POPULAR_WEBSITES
    ]


def sample_outage_reports() -> list[OutageReportResponse]:
    now = datetime.now(timezone.utc)
    return [
        OutageReportResponse(
            id=report_id,
            website_id=website_id,
            latitude=lat,
            longitude=lng,
            timestamp=now - timedelta(minutes=minutes_ago),
            status="down",
            location_city=city,
            location_country=country,
        )
        for report_id, website_id, lat, lng, minutes_ago, city, country in OUTAGE_MARKERS
    ]

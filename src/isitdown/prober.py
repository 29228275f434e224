"""
HTTP status prober: one best-effort GET per call, classified as up or down.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from isitdown.config import get_settings

logger = logging.getLogger("isitdown.prober")
settings = get_settings()

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"


@dataclass
class ProbeResult:
    status: str  # up, down
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_up(self) -> bool:
        return self.status == "up"


def _headers() -> dict:
    return {"User-Agent": settings.probe_user_agent, "Accept": ACCEPT_HEADER}


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 400


async def probe_url(url: str, timeout: Optional[float] = None) -> ProbeResult:
    """GET ``url`` directly; up iff the final status code is in [200, 400)."""
    timeout = timeout or settings.probe_timeout
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
            headers=_headers(),
        ) as client:
            start = time.monotonic()
            response = await client.get(url)
            elapsed = time.monotonic() - start
    except httpx.TimeoutException:
        return ProbeResult(status="down", error=f"Request timed out after {timeout}s")
    except httpx.ConnectError as e:
        return ProbeResult(status="down", error=f"Connection failed: {str(e)[:200]}")
    except httpx.RequestError as e:
        return ProbeResult(status="down", error=f"Request error: {str(e)[:200]}")
    except Exception as e:
        return ProbeResult(status="down", error=f"Unexpected error: {str(e)[:200]}")

    if not _is_success(response.status_code):
        return ProbeResult(
            status="down",
            status_code=response.status_code,
            error=f"Unexpected status {response.status_code}",
        )
    return ProbeResult(
        status="up",
        status_code=response.status_code,
        response_time_ms=int(elapsed * 1000),
    )


async def probe_via_proxy(
    url: str, proxy_url: str, timeout: Optional[float] = None
) -> ProbeResult:
    """Ask a remote ``/check`` endpoint, which answers with plain ``Up``/``Down``."""
    timeout = timeout or settings.probe_timeout
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=_headers(),
        ) as client:
            start = time.monotonic()
            response = await client.get(
                f"{proxy_url.rstrip('/')}/check", params={"url": url}
            )
            elapsed = time.monotonic() - start
    except httpx.HTTPError as e:
        logger.error(f"Error checking {url} through proxy: {str(e)[:200]}")
        return ProbeResult(status="down", error=f"Proxy error: {str(e)[:200]}")

    if response.headers.get("content-type", "").startswith("text/"):
        is_up = "Up" in response.text
    else:
        is_up = _is_success(response.status_code)

    if not is_up:
        return ProbeResult(status="down", status_code=response.status_code)
    return ProbeResult(
        status="up",
        status_code=response.status_code,
        response_time_ms=int(elapsed * 1000),
    )


async def probe(url: str) -> ProbeResult:
    """Probe through the configured proxy when there is one, otherwise directly."""
    if settings.probe_proxy_url:
        return await probe_via_proxy(url, settings.probe_proxy_url)
    return await probe_url(url)

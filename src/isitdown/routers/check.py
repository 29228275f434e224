"""
Plain-text status proxy: ``/check?url=`` answers ``Up`` or ``Down``.
"""
import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from isitdown.prober import probe_url

logger = logging.getLogger("isitdown.check")

router = APIRouter(tags=["check"])


@router.get("/check", response_class=PlainTextResponse)
async def check(url: Optional[str] = None):
    if not url:
        return PlainTextResponse("URL parameter is required", status_code=400)

    logger.info(f"Checking status for: {url}")
    result = await probe_url(url)
    if result.is_up:
        logger.info(f"Status for {url}: Up ({result.status_code})")
        return PlainTextResponse("Up")

    logger.info(f"Status for {url}: Down ({result.error or 'Unknown error'})")
    return PlainTextResponse("Down")


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return PlainTextResponse("OK")

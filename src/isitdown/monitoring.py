"""
Round-robin website monitoring: one website is checked per period, cycling
through every tracked website, with a notification on each status change.
"""
import logging
from typing import Awaitable, Callable, Optional

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED, JobEvent
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

from isitdown import gateway
from isitdown.config import get_settings
from isitdown.notifications import StatusChange
from isitdown.schemas import MonitoringStatusResponse, WebsiteResponse
from isitdown.websites import PERSISTENCE_ERRORS, check_website_status, list_tracked_websites

logger = logging.getLogger("isitdown.monitoring")
settings = get_settings()

JOB_ID = "monitor_next_website"

# A malformed stored row fails validation; treat it like an unreadable table
REFRESH_ERRORS = PERSISTENCE_ERRORS + (ValidationError,)

Checker = Callable[[str], Awaitable[WebsiteResponse]]
Loader = Callable[[], Awaitable[list[WebsiteResponse]]]
Notifier = Callable[[StatusChange], Awaitable[object]]


class MonitoringService:
    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        notifier: Optional[Notifier] = None,
        checker: Checker = check_website_status,
        loader: Loader = list_tracked_websites,
        interval: Optional[int] = None,
        refresh_every: Optional[int] = None,
    ):
        self._scheduler = scheduler
        self._notifier = notifier
        self._checker = checker
        self._loader = loader
        self._interval = interval or settings.monitor_interval
        self._refresh_every = refresh_every or settings.monitor_refresh_every

        self._websites: list[WebsiteResponse] = []
        self._index = 0
        self._in_flight = False
        self._running = False
        self._cycles = 0
        self._skipped = 0
        self._last_status: dict[str, str] = {}

        self._scheduler.add_listener(self._on_skipped_run, EVENT_JOB_MAX_INSTANCES | EVENT_JOB_MISSED)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def websites(self) -> list[WebsiteResponse]:
        return list(self._websites)

    async def start(self) -> bool:
        """Load the website list, schedule checks and run the first one now.

        Returns False without scheduling anything when storage is unreachable;
        the caller has to call start() again later.
        """
        if self._running:
            logger.info("Monitoring service is already running")
            return True

        if not await gateway.is_connected():
            logger.warning("Database is not connected. Monitoring service will not start.")
            return False

        await self.refresh_list()

        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._interval),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        self._running = True
        logger.info(
            f"Website monitoring service started: {len(self._websites)} website(s), "
            f"one check every {self._interval}s"
        )

        # Don't make the first result wait a full period
        await self.tick()
        return True

    def stop(self) -> None:
        """Cancel future checks. A check already in progress still completes."""
        if not self._running:
            return
        try:
            self._scheduler.remove_job(JOB_ID)
        except JobLookupError:
            pass
        self._running = False
        logger.info("Website monitoring service stopped")

    async def refresh_list(self) -> int:
        """Reload tracked websites, oldest-checked first. Keeps the old list on failure."""
        try:
            websites = await self._loader()
        except REFRESH_ERRORS as e:
            logger.error(f"Failed to refresh website list: {e}")
            return len(self._websites)

        if not websites:
            logger.warning("No websites found to monitor")
            return len(self._websites)

        self._websites = list(websites)
        if self._index >= len(self._websites):
            self._index = 0
        logger.info(f"Refreshed monitoring list: {len(self._websites)} websites")
        return len(self._websites)

    async def tick(self) -> None:
        """Check the website under the cursor, then advance the cursor."""
        if self._in_flight:
            self._skipped += 1
            logger.warning(
                f"Previous check still in progress, skipping this cycle "
                f"({self._skipped} skipped so far)"
            )
            return
        if not self._websites:
            return

        self._in_flight = True
        try:
            website = self._websites[self._index]
            previous = self._last_status.get(website.id, website.status)
            logger.debug(f"Monitoring website: {website.url}")

            try:
                result = await self._checker(website.url)
            except Exception:
                logger.exception(f"Error monitoring {website.url}")
            else:
                self._last_status[website.id] = result.status
                self._last_status[result.id] = result.status
                self._websites[self._index] = result
                if previous != result.status:
                    logger.info(f"Status changed for {website.url}: {previous} -> {result.status}")
                    await self._notify(StatusChange(website=result, previous_status=previous))

            self._index = (self._index + 1) % len(self._websites)
            self._cycles += 1
            if self._cycles % self._refresh_every == 0:
                await self.refresh_list()
        finally:
            self._in_flight = False

    def status(self) -> MonitoringStatusResponse:
        return MonitoringStatusResponse(
            is_running=self._running,
            website_count=len(self._websites),
            current_index=self._index,
            skipped_cycles=self._skipped,
        )

    async def _notify(self, change: StatusChange) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier(change)
        except Exception:
            logger.exception(f"Failed to send status change notification for {change.website.url}")

    def _on_skipped_run(self, event: JobEvent) -> None:
        if event.job_id != JOB_ID:
            return
        self._skipped += 1
        logger.warning(
            f"Scheduled check skipped, previous one still running "
            f"({self._skipped} skipped so far)"
        )

"""
Status-change notifications for users who monitor a website.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
from sqlalchemy import select

from isitdown.config import get_settings
from isitdown.database import get_session_factory
from isitdown.models.monitored_website import MonitoredWebsite
from isitdown.models.user import User
from isitdown.models.website import Website
from isitdown.schemas import WebsiteResponse
from isitdown.urls import hostname_key
from isitdown.websites import PERSISTENCE_ERRORS

logger = logging.getLogger("isitdown.notifications")
settings = get_settings()

ALERT_DOWN = "down"
ALERT_RECOVERED = "recovered"


@dataclass
class StatusChange:
    website: WebsiteResponse
    previous_status: str

    @property
    def new_status(self) -> str:
        return self.website.status


def alert_kind(change: StatusChange) -> Optional[str]:
    """Which alert a transition deserves; None for e.g. unknown -> up."""
    if change.new_status == "down" and change.previous_status != "down":
        return ALERT_DOWN
    if change.new_status == "up" and change.previous_status == "down":
        return ALERT_RECOVERED
    return None


def smtp_configured() -> bool:
    return bool(settings.smtp_username and settings.smtp_password)


async def send_email(to: str, subject: str, text_body: str, html_body: str) -> bool:
    """Send one plain+HTML email. Returns False when SMTP is not configured
    or delivery failed; failures are logged, never raised."""
    if not smtp_configured():
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from_email
    msg["To"] = to
    msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    except Exception as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False
    return True


class NotificationDispatcher:
    async def __call__(self, change: StatusChange) -> int:
        return await self.dispatch(change)

    async def dispatch(self, change: StatusChange) -> int:
        """Alert every subscribed user; returns how many were alerted."""
        kind = alert_kind(change)
        if kind is None:
            return 0

        try:
            recipients = await self.recipients(change.website)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Could not load recipients for {change.website.url}: {e}")
            return 0

        hostname = hostname_key(change.website.url) or change.website.url
        for user in recipients:
            if kind == ALERT_DOWN:
                logger.info(f"ALERT -> {user.email}: {hostname} is DOWN")
            else:
                logger.info(f"RECOVERY -> {user.email}: {hostname} is back UP")
            if user.email_alerts:
                await self._send_email(user, kind, change.website, hostname)
        return len(recipients)

    async def recipients(self, website: WebsiteResponse) -> list[User]:
        """Active users with notifications on who monitor this site (by id or hostname)."""
        key = hostname_key(website.url)
        async with get_session_factory()() as db:
            result = await db.execute(
                select(User, Website.id, Website.url)
                .join(MonitoredWebsite, MonitoredWebsite.user_id == User.id)
                .join(Website, Website.id == MonitoredWebsite.website_id)
                .where(User.is_active == True, User.notifications_enabled == True)  # noqa: E712
            )
            users: dict[str, User] = {}
            for user, website_id, url in result.all():
                if website_id == website.id or (key and hostname_key(url) == key):
                    users[user.id] = user
            return list(users.values())

    async def _send_email(
        self, user: User, kind: str, website: WebsiteResponse, hostname: str
    ) -> None:
        if not smtp_configured():
            return

        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        link = f"{settings.base_url}/?website={website.url}"
        if kind == ALERT_DOWN:
            subject = f"[IsItDownChecker] {hostname} is DOWN"
            text_body = (
                f"{hostname} is currently down.\n\n"
                f"URL: {website.url}\n"
                f"Time: {now}\n\n"
                f"Check details: {link}\n\n"
                f"We'll let you know when it recovers.\n"
            )
            colour, heading = "#ef4444", "Website Down Alert"
        else:
            subject = f"[IsItDownChecker] {hostname} is back UP"
            text_body = (
                f"{hostname} is back online.\n\n"
                f"URL: {website.url}\n"
                f"Recovered at: {now}\n"
            )
            colour, heading = "#10b981", "Website Recovered"

        html_body = f"""
        <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background: {colour}; color: white; padding: 20px 24px; border-radius: 12px 12px 0 0;">
                <h2 style="margin: 0; font-size: 18px;">{heading}</h2>
            </div>
            <div style="background: white; padding: 24px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 12px 12px;">
                <p style="margin: 0 0 16px; font-size: 15px; color: #374151;">{text_body.splitlines()[0]}</p>
                <p style="margin: 0; font-size: 14px;"><a href="{link}">{website.url}</a> &middot; {now}</p>
            </div>
        </div>
        """

        if await send_email(user.email, subject, text_body, html_body):
            logger.info(f"Email alert sent to {user.email}")

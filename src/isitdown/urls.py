"""
URL normalization helpers shared by the prober, the website service and the
incident aggregation.
"""
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HOST_RE = re.compile(r"^[\w.:-]+$")


class InvalidURLError(ValueError):
    """Raised when a URL cannot be normalized into something probeable."""


def format_url(url: str) -> str:
    """Normalize user input: default to https:// and append .com to bare hosts.

    Idempotent: ``format_url(format_url(x)) == format_url(x)``.
    """
    formatted = (url or "").strip()
    if not formatted:
        raise InvalidURLError("Please enter a website URL")

    if not _SCHEME_RE.match(formatted):
        formatted = f"https://{formatted}"

    parts = urlsplit(formatted)
    host = parts.hostname
    if not host or not _HOST_RE.match(host):
        raise InvalidURLError(f"'{url.strip()}' is not a valid website address")
    try:
        parts.port
    except ValueError:
        raise InvalidURLError(f"'{url.strip()}' has an invalid port")

    if "." not in host and ":" not in host:
        # Only the host part gets the suffix, never the userinfo
        userinfo, at, hostport = parts.netloc.rpartition("@")
        name, colon, port = hostport.partition(":")
        netloc = f"{userinfo}{at}{name}.com{colon}{port}"
        formatted = urlunsplit(parts._replace(netloc=netloc))

    return formatted


def is_valid_url(url: str) -> bool:
    try:
        format_url(url)
    except InvalidURLError:
        return False
    return True


def get_domain_name(url: str) -> str:
    """Hostname of ``url``, or the input unchanged when it can't be parsed."""
    try:
        return urlsplit(format_url(url)).hostname or url
    except InvalidURLError:
        return url


def hostname_key(url: str) -> Optional[str]:
    """Hostname with any ``www.`` prefix removed, used to match records by site."""
    try:
        host = urlsplit(format_url(url)).hostname
    except InvalidURLError:
        return None
    if not host:
        return None
    return host.removeprefix("www.")


def website_name(url: str) -> str:
    """Short display name: first hostname label, e.g. ``google`` for www.google.com."""
    key = hostname_key(url)
    if not key:
        return url
    return key.split(".")[0]


def canonicalize_report_target(website_id: str, website_url: str) -> tuple[str, str]:
    # twitter.com was rebranded; reports are filed against x.com
    if "twitter.com" in website_url:
        return "x", website_url.replace("twitter.com", "x.com")
    return website_id, website_url

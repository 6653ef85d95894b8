"""Links to man pages on manpages.debian.org."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import httpx

from ferrisbot.bot import EMBED_COLOR

USER_AGENT = "ferrisbot"
MANPAGES_URL = "https://manpages.debian.org"
DEFAULT_SECTION = "1"
FOOTER = "Powered by manpages.debian.org"
THUMBNAIL = "https://www.debian.org/logos/openlogo-nd-100.jpg"
NOT_FOUND_MESSAGE = "Man page not found."
FETCH_FAILED_MESSAGE = "Failed to fetch man page."

_SECTION = re.compile(r"\+?[0-9]+")


def validate_section(section: str | None) -> str:
    """Return the section (default "1"), which must be a number from 0 to 255."""
    if section is None:
        return DEFAULT_SECTION
    if not _SECTION.fullmatch(section) or int(section) > 255:
        raise ValueError("Invalid section number")
    return section


def man_page_url(man_page: str, section: str) -> str:
    return f"{MANPAGES_URL}/{section}/{man_page}"


def man_embed(man_page: str, section: str) -> dict[str, Any]:
    """The embed linking to a man page."""
    return {
        "title": f"man {man_page}({section})",
        "description": f"View the man page for `{man_page}` on the web",
        "url": f"{man_page_url(man_page, section)}.html",
        "color": EMBED_COLOR,
        "footer": FOOTER,
        "thumbnail": THUMBNAIL,
        "fields": [("Section", section, True), ("Page", man_page, True)],
        "timestamp": datetime.now(timezone.utc),
    }


async def fetch_man_page(
    client: httpx.AsyncClient, man_page: str, section: str | None = None
) -> str | dict[str, Any]:
    """Check that the page exists; return its embed, or a message to send instead."""
    section = validate_section(section)
    try:
        response = await client.get(
            man_page_url(man_page, section),
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )
    except httpx.HTTPError:
        return FETCH_FAILED_MESSAGE
    if response.status_code == 404:
        return NOT_FOUND_MESSAGE
    return man_embed(man_page, section)
"""Logic behind the utility commands."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from itertools import islice
from typing import Protocol

SOURCE_URL = "https://github.com/rust-community-discord/ferrisbot-for-discord"

HELP_EXTRA_TEXT = (
    "You can still use all commands with `?`, even if it says `/` above.\n"
    "Type ?help command for more info on a command.\n"
    "You can edit your message to the bot and the bot will edit its response."
)

CLEANUP_FETCH_LIMIT = 20
CLEANUP_MAX_AGE_HOURS = 24
DEFAULT_TIMEOUT_SECONDS = 3600


class _RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class ChannelMessage:
    """A message in a channel, as seen by the cleanup command."""

    id: int
    author_id: int
    timestamp: datetime


def go_answer(rng: _RandomSource) -> str:
    """Answer whether Go code can be evaluated: "Yes" one time in a hundred."""
    return "Yes" if rng.random() < 0.01 else "No"


def format_uptime(seconds: int) -> str:
    minutes, seconds = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    return f"Uptime: {days}d {hours}h {minutes}m {seconds}s"


def select_messages_to_delete(
    messages: Iterable[ChannelMessage],
    application_id: int,
    now: datetime,
    limit: int | None,
) -> list[ChannelMessage]:
    """Pick the bot's own recent messages among the latest ones in a channel."""
    count = 1 if limit is None else limit

    def deletable(message: ChannelMessage) -> bool:
        hours = int((now - message.timestamp).total_seconds() / 3600)
        return message.author_id == application_id and hours < CLEANUP_MAX_AGE_HOURS

    recent = islice(messages, CLEANUP_FETCH_LIMIT)
    return list(islice(filter(deletable, recent), count))


def ban_message(user_name: str, emoji: str) -> str:
    return f"Banned user {user_name}  {emoji}"


def selftimeout_seconds(hours: int | None, minutes: int | None) -> int:
    """Total timeout length; one hour when neither part is given."""
    if hours is None and minutes is None:
        return DEFAULT_TIMEOUT_SECONDS
    return (hours or 0) * 3600 + (minutes or 0) * 60


def selftimeout_message(user_name: str, until: int | datetime) -> str:
    """The announcement of a self-timeout ending at ``until`` (a Unix timestamp)."""
    timestamp = int(until.timestamp()) if isinstance(until, datetime) else int(until)
    return (
        f"Self-timeout for {user_name}. They'll be able to interact with the server again "
        f"<t:{timestamp}:R>. If this was a mistake, please contact a moderator or try to "
        "enjoy the time off."
    )
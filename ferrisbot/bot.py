"""Bot configuration, shared state and prefix and error handling."""

from __future__ import annotations

import re
import time
import tomllib
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

EMBED_COLOR = (0xB7, 0x47, 0x00)

FAILED_CODEBLOCK = (
    "Missing code block. Please use the following markdown:\n"
    "`` `code here` ``\n"
    "or\n"
    "```ansi\n"
    "`\x1b[0m`\x1b[0m`rust\n"
    "code here\n"
    "`\x1b[0m`\x1b[0m`\n"
    "```"
)

PREFIX = "?"
ADDITIONAL_PREFIXES = (
    "🦀 ",
    "🦀",
    "<:ferris:358652670585733120> ",
    "<:ferris:358652670585733120>",
    "<:ferrisballSweat:678714352450142239> ",
    "<:ferrisballSweat:678714352450142239>",
    "<:ferrisCat:1183779700485664820> ",
    "<:ferrisCat:1183779700485664820>",
    "<:ferrisOwO:579331467000283136> ",
    "<:ferrisOwO:579331467000283136>",
)
PREFIX_PATTERN = re.compile(r"(yo |hey )?(crab|ferris|fewwis),? can you (please |pwease )?")

EDIT_TRACKER_SECONDS = 60 * 5
ACTIVITY_TEXT = "/help"

_U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class DiscordConfig:
    token: str
    guild_id: int
    application_id: int


@dataclass(frozen=True)
class Config:
    discord: DiscordConfig


def _require_id(table: dict, key: str) -> int:
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U64_MAX:
        raise ValueError(f"failed to deserialize config file: `discord.{key}` must be an unsigned integer")
    return value


def parse_config(text: str) -> Config:
    """Parse the TOML configuration text."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"failed to deserialize config file: {exc}") from exc

    discord = raw.get("discord")
    if not isinstance(discord, dict):
        raise ValueError("failed to deserialize config file: missing `discord` table")
    token = discord.get("token")
    if not isinstance(token, str):
        raise ValueError("failed to deserialize config file: `discord.token` must be a string")
    return Config(
        DiscordConfig(
            token=token,
            guild_id=_require_id(discord, "guild_id"),
            application_id=_require_id(discord, "application_id"),
        )
    )


def load_config(path: str | Path) -> Config:
    """Read and parse the configuration file at ``path``."""
    return parse_config(Path(path).read_text(encoding="utf-8"))


@dataclass
class Data:
    """State shared by all commands."""

    discord_guild_id: int
    application_id: int
    bot_start_time: float = field(default_factory=time.monotonic)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @classmethod
    def from_config(cls, config: Config) -> Data:
        return cls(
            discord_guild_id=config.discord.guild_id,
            application_id=config.discord.application_id,
        )

    def uptime_seconds(self) -> int:
        """Whole seconds since the bot started."""
        return int(max(0.0, self.clock() - self.bot_start_time))


def strip_prefix(content: str) -> tuple[str, str] | None:
    """Split a message into its command prefix and the rest, or return None."""
    for prefix in (PREFIX, *ADDITIONAL_PREFIXES):
        if content.startswith(prefix):
            return prefix, content[len(prefix):]
    match = PREFIX_PATTERN.match(content)
    if match is not None:
        return match.group(0), content[match.end():]
    return None


def argument_error_response(
    error_message: str, help_text: str | None, is_codeblock_error: bool
) -> str:
    """The reply sent when a command's arguments fail to parse."""
    if is_codeblock_error:
        return FAILED_CODEBLOCK
    if help_text is not None:
        return f"**{error_message}**\n{help_text}"
    return error_message


def command_error_responses(error_message: str, is_codeblock_error: bool) -> list[str]:
    """The replies sent, in order, when a command fails."""
    replies = [FAILED_CODEBLOCK] if is_codeblock_error else []
    replies.append(error_message)
    return replies
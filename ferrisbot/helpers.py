"""Shared formatting helpers for bot replies."""

from __future__ import annotations

import inspect
import string
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

MAX_OUTPUT_LINES = 45
MAX_OUTPUT_LENGTH = 2000

MODERATOR_ONLY_MESSAGE = "This command is only available to moderators."

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


@dataclass(frozen=True)
class CustomEmoji:
    """A custom emoji of a guild."""

    id: int
    name: str
    animated: bool = False

    def __str__(self) -> str:
        marker = "a" if self.animated else ""
        return f"<{marker}:{self.name}:{self.id}>"


def merge_output_and_errors(output: str, errors: str) -> str:
    """Combine program output and errors; an empty result becomes a single space."""
    output = output.strip()
    errors = errors.strip()
    if not output and not errors:
        return " "
    if not errors:
        return output
    if not output:
        return errors
    return f"{errors}\n\n{output}"


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


async def trim_text(
    text_body: str,
    text_end: str,
    truncation_msg: Callable[[], str | Awaitable[str]],
) -> str:
    """Truncate ``text_body`` to fit a Discord message, always keeping ``text_end``.

    ``truncation_msg`` is only called when truncation is needed; it may return a
    string or an awaitable of one.
    """
    needs_truncating = (
        _byte_len(text_body) + _byte_len(text_end) > MAX_OUTPUT_LENGTH
        or len(_lines(text_body)) > MAX_OUTPUT_LINES
    )
    if not needs_truncating:
        return f"{text_body}{text_end}"

    message = truncation_msg()
    if inspect.isawaitable(message):
        message = await message

    keep = max(0, MAX_OUTPUT_LENGTH - _byte_len(message) - _byte_len(text_end))
    body = text_body[:keep]
    body = "\n".join(_lines(body)[:MAX_OUTPUT_LINES])
    return f"{body}{text_end}{message}"


def find_custom_emoji(emojis: Iterable[CustomEmoji], emoji_name: str) -> CustomEmoji | None:
    """Find an emoji by name, ignoring ASCII case."""
    wanted = emoji_name.translate(_ASCII_LOWER)
    return next(
        (emoji for emoji in emojis if emoji.name.translate(_ASCII_LOWER) == wanted),
        None,
    )


def custom_emoji_code(emojis: Iterable[CustomEmoji], emoji_name: str, fallback: str) -> str:
    """Return the code of a guild emoji, or the fallback emoji if it is missing."""
    emoji = find_custom_emoji(emojis, emoji_name)
    return str(emoji) if emoji is not None else fallback


def is_moderator(ctx: object) -> bool:
    """Every user is currently treated as a moderator."""
    return True
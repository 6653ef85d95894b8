"""Permission checks for pinning messages in threads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

PINNED_REPLY = "Pinned message to your thread!"


class ThreadPinError(Exception):
    """Why a message cannot be pinned; the message is the reply to show."""

    NO_CHANNEL: ClassVar[str] = "Error: Cannot fetch any information about this channel!"
    NOT_THREAD: ClassVar[str] = "This channel is not a thread!"
    THREAD_LOCKED: ClassVar[str] = "This thread has been locked, so this cannot be performed."
    NOT_THREAD_OWNER: ClassVar[str] = "You did not create this thread, so cannot pin messages to it."


@dataclass(frozen=True)
class ChannelInfo:
    """What the pin check needs to know about a guild channel."""

    is_thread: bool
    locked: bool = False
    owner_id: int | None = None


def check_can_pin(channel: ChannelInfo | None, author_id: int, is_moderator: bool) -> None:
    """Raise ThreadPinError unless the author may pin messages in ``channel``."""
    if is_moderator:
        return
    if channel is None:
        raise ThreadPinError(ThreadPinError.NO_CHANNEL)
    if not channel.is_thread:
        raise ThreadPinError(ThreadPinError.NOT_THREAD)
    if channel.locked:
        raise ThreadPinError(ThreadPinError.THREAD_LOCKED)
    if channel.owner_id != author_id:
        raise ThreadPinError(ThreadPinError.NOT_THREAD_OWNER)


def reply_for(error: ThreadPinError | None) -> str:
    """The ephemeral reply for a pin attempt that failed with ``error``, or succeeded."""
    return PINNED_REPLY if error is None else str(error)
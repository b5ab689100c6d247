"""
Chat platform seam used by the relay pipeline and the settings service.

The pipeline never touches ``discord`` objects directly; it talks to a
``PlatformClient`` and describes user-facing messages as ``Notice`` values,
which the platform renders (as embeds on Discord).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from relaycord.datatypes.discord_datatypes import ChannelID, UserID
from relaycord.datatypes.relay_datatypes import DeliveryCredential, InboundMessage


class DeliveryRefusedError(Exception):
    """The platform refused to deliver a direct message (DMs closed, user blocked the bot)."""


@dataclass(slots=True)
class NoticeField:
    name: str
    value: str
    inline: bool = False


@dataclass(slots=True)
class Notice:
    """A user-facing message, rendered by the platform client."""

    title: str
    description: str
    color: int = 0x6B7280
    fields: List[NoticeField] = field(default_factory=list)
    footer: str | None = None
    footer_icon_url: str | None = None
    thumbnail_url: str | None = None
    with_timestamp: bool = False

    def add_field(self, name: str, value: str, inline: bool = False) -> "Notice":
        self.fields.append(NoticeField(name, value, inline))
        return self


class PlatformClient(ABC):
    """Operations the relay core needs from the chat platform."""

    @abstractmethod
    async def delete_message(self, message: InboundMessage) -> None:
        """Delete the inbound message."""

    @abstractmethod
    async def send_direct(self, user_id: UserID, notice: Notice) -> None:
        """
        Send ``notice`` to the user privately.

        Raises:
            DeliveryRefusedError: The user cannot receive direct messages.
        """

    @abstractmethod
    async def send_ephemeral_notice(
        self, channel_id: ChannelID, user_id: UserID, notice: Notice, delete_after: float
    ) -> None:
        """Post ``notice`` in a channel mentioning ``user_id``; it removes itself after ``delete_after`` seconds."""

    @abstractmethod
    async def add_reaction(self, message: InboundMessage, emoji: str) -> None:
        ...

    @abstractmethod
    async def send_to_channel(self, channel_id: ChannelID, notice: Notice) -> None:
        ...

    @abstractmethod
    async def create_delivery_credential(self, channel_id: ChannelID) -> DeliveryCredential:
        """Create a webhook in ``channel_id`` and return its id/token pair."""

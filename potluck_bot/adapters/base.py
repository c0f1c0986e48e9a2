"""Interfaces for the platform collaborators the potluck core talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.models import ExternalEvent, ScheduledEventSpec

MANAGE_EVENTS = "Manage Events"
SEND_MESSAGES = "Send Messages"
REQUIRED_EVENT_PERMISSIONS = (MANAGE_EVENTS, SEND_MESSAGES)


class MessageChannel(ABC):
    """Post, edit and remove the messages that display a potluck."""

    @abstractmethod
    async def send_message(self, channel_id: str, payload: dict[str, Any]) -> str:
        """Post ``payload`` to ``channel_id`` and return the new message id."""

    @abstractmethod
    async def edit_message(
        self, channel_id: str, message_id: str, payload: dict[str, Any]
    ) -> None:
        """Replace the body of an existing message."""

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete a message."""


class EventProvider(ABC):
    """Scheduled events owned by the chat platform."""

    @abstractmethod
    async def missing_permissions(self, guild_id: str) -> list[str]:
        """Names of the entries of ``REQUIRED_EVENT_PERMISSIONS`` the bot lacks."""

    @abstractmethod
    async def create_event(
        self, guild_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        """Create an external scheduled event."""

    @abstractmethod
    async def fetch_event(self, guild_id: str, event_id: str) -> ExternalEvent | None:
        """Return the event or ``None`` when it no longer exists."""

    @abstractmethod
    async def list_events(self, guild_id: str) -> list[ExternalEvent]:
        """Return every scheduled event of ``guild_id``."""

    @abstractmethod
    async def edit_event(
        self, guild_id: str, event_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        """Push new name, description and times to an event."""

    @abstractmethod
    async def delete_event(self, guild_id: str, event_id: str) -> bool:
        """Delete an event; ``False`` when it was already gone."""

    @abstractmethod
    async def fetch_subscribers(self, guild_id: str, event_id: str) -> list[str]:
        """Return the ids of users interested in the event."""

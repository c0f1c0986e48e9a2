"""Two-way synchronisation between potlucks and Discord scheduled events.

Outbound calls (create, update, delete) go through an
:class:`~potluck_bot.adapters.base.EventProvider`. Inbound changes arrive as
:class:`~potluck_bot.core.models.EventNotification` values and are applied
to the store by :meth:`EventSynchronizer.handle_notification`.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable

from ..adapters.base import EventProvider
from .models import (
    EventNotification,
    ExternalEvent,
    NotificationKind,
    Potluck,
    ScheduledEventSpec,
    utcnow,
)
from .storage import PotluckStorage

log = logging.getLogger(__name__)

DEFAULT_LEAD_TIME = datetime.timedelta(hours=2)
DEFAULT_DURATION = datetime.timedelta(hours=3)
DEFAULT_LOCATION = "TBD - Check potluck details for location"
DESCRIPTION_ITEMS = 10
MAX_DESCRIPTION = 1000
PERMISSION_CHECK_FAILED = "Permission check failed"


class EventPermissionError(PermissionError):
    """The bot lacks a capability needed to manage scheduled events."""

    def __init__(self, missing_permissions: list[str]) -> None:
        super().__init__("Missing permissions: " + ", ".join(missing_permissions))
        self.missing_permissions = list(missing_permissions)


def build_event_description(potluck: Potluck) -> str:
    """Short event description pointing back at the potluck message."""
    text = f"🍽️ **{potluck.name}**\n\n"
    if potluck.date:
        text += f"📅 **When:** {potluck.date}\n"
    if potluck.theme:
        text += f"🎭 **Theme:** {potluck.theme}\n"
    text += "\n**Items needed:**\n"
    for item in potluck.items[:DESCRIPTION_ITEMS]:
        status = "✅" if item.claimed_by else "⏳"
        text += f"{status} {item.name}\n"
    if len(potluck.items) > DESCRIPTION_ITEMS:
        text += f"\n... and {len(potluck.items) - DESCRIPTION_ITEMS} more items\n"
    text += (
        f"\nSee the potluck message in <#{potluck.channel_id}> "
        "for full details and to claim items!"
    )
    if len(text) > MAX_DESCRIPTION:
        text = text[: MAX_DESCRIPTION - 3] + "..."
    return text


class EventSynchronizer:
    """Keep a potluck and its linked scheduled event consistent."""

    def __init__(
        self,
        store: PotluckStorage,
        provider: EventProvider,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.store = store
        self.provider = provider
        self.clock = clock

    async def check_permissions(self, guild_id: str) -> list[str]:
        """Return the names of the missing capabilities; empty when all held."""
        try:
            missing = await self.provider.missing_permissions(guild_id)
        except Exception:
            log.exception("Failed to check event permissions for guild %s", guild_id)
            return [PERMISSION_CHECK_FAILED]
        log.debug("Guild %s missing permissions: %s", guild_id, missing)
        return missing

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def create_event_for_potluck(
        self,
        potluck: Potluck,
        start: datetime.datetime | None = None,
        end: datetime.datetime | None = None,
        location: str | None = None,
        rsvp_sync: bool = False,
    ) -> ExternalEvent | None:
        """Create a scheduled event for ``potluck`` and store the linkage.

        Raises :class:`EventPermissionError` when the bot lacks a required
        capability. Any other failure is logged and yields ``None``.
        """
        missing = await self.check_permissions(potluck.guild_id)
        if missing:
            log.warning(
                "Cannot create event for potluck %s, missing %s", potluck.id, missing
            )
            raise EventPermissionError(missing)

        start = start or self.clock() + DEFAULT_LEAD_TIME
        end = end or start + DEFAULT_DURATION
        spec = ScheduledEventSpec(
            name=potluck.name,
            description=build_event_description(potluck),
            scheduled_start=start,
            scheduled_end=end,
            location=location or DEFAULT_LOCATION,
        )
        try:
            event = await self.provider.create_event(potluck.guild_id, spec)
        except Exception:
            log.exception("Failed to create scheduled event for potluck %s", potluck.id)
            return None

        self.store.update_discord_event(potluck.id, event.id, start, end, rsvp_sync)
        potluck.discord_event_id = event.id
        potluck.event_start_time = start
        potluck.event_end_time = end
        potluck.rsvp_sync_enabled = rsvp_sync
        log.info(
            "Created scheduled event %s for potluck %s (%s to %s)",
            event.id,
            potluck.id,
            start.isoformat(),
            end.isoformat(),
        )
        return event

    async def update_event_from_potluck(
        self, potluck: Potluck, location: str | None = None
    ) -> bool:
        """Push name, description and times; ``True`` when the event was edited."""
        if not potluck.discord_event_id:
            return False

        missing = await self.check_permissions(potluck.guild_id)
        if missing:
            log.warning(
                "Cannot update event for potluck %s, missing %s", potluck.id, missing
            )
            return False

        try:
            event = await self.provider.fetch_event(
                potluck.guild_id, potluck.discord_event_id
            )
            if event is None:
                log.warning(
                    "Scheduled event %s of potluck %s no longer exists",
                    potluck.discord_event_id,
                    potluck.id,
                )
                return False
            if not event.status.editable:
                log.info(
                    "Not editing event %s, status is %s", event.id, event.status.name
                )
                return False

            start = potluck.event_start_time or event.scheduled_start
            end = potluck.event_end_time or event.scheduled_end
            if start is None:
                return False
            spec = ScheduledEventSpec(
                name=potluck.name,
                description=build_event_description(potluck),
                scheduled_start=start,
                scheduled_end=end or start + DEFAULT_DURATION,
                location=location,
            )
            await self.provider.edit_event(potluck.guild_id, event.id, spec)
        except Exception:
            log.exception(
                "Failed to update event %s from potluck %s",
                potluck.discord_event_id,
                potluck.id,
            )
            return False

        log.info("Updated event %s from potluck %s", potluck.discord_event_id, potluck.id)
        return True

    async def delete_event_for_potluck(self, potluck: Potluck) -> bool:
        """Delete the linked event and forget the linkage.

        The linkage is cleared when the event was deleted or was already
        gone. A provider failure leaves it in place and returns ``False``.
        """
        if not potluck.discord_event_id:
            return False
        try:
            deleted = await self.provider.delete_event(
                potluck.guild_id, potluck.discord_event_id
            )
        except Exception:
            log.exception(
                "Failed to delete event %s of potluck %s",
                potluck.discord_event_id,
                potluck.id,
            )
            return False

        if not deleted:
            log.info("Event %s was already gone", potluck.discord_event_id)
        self._clear_linkage(potluck)
        return True

    async def get_event_participants(self, potluck: Potluck) -> list[str]:
        if not potluck.discord_event_id:
            return []
        try:
            return await self.provider.fetch_subscribers(
                potluck.guild_id, potluck.discord_event_id
            )
        except Exception:
            log.exception(
                "Failed to fetch subscribers of event %s", potluck.discord_event_id
            )
            return []

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def sync_potluck_from_event(self, event: ExternalEvent) -> Potluck | None:
        """Copy the name and times of ``event`` onto its linked potluck."""
        potluck = self.store.get_potluck_by_event_id(event.id)
        if potluck is None:
            log.debug("No potluck linked to event %s", event.id)
            return None
        potluck.name = event.name
        potluck.event_start_time = event.scheduled_start
        potluck.event_end_time = event.scheduled_end
        self.store.update_potluck(potluck)
        log.info("Synced potluck %s from event %s", potluck.id, event.id)
        return potluck

    def handle_event_deleted(self, event: ExternalEvent) -> Potluck | None:
        potluck = self.store.get_potluck_by_event_id(event.id)
        if potluck is None:
            return None
        self._clear_linkage(potluck)
        return potluck

    def handle_notification(self, notification: EventNotification) -> Potluck | None:
        """Apply an inbound event change; returns the affected potluck."""
        event = notification.event
        if notification.kind is NotificationKind.UPDATED:
            return self.sync_potluck_from_event(event)
        if notification.kind is NotificationKind.DELETED:
            return self.handle_event_deleted(event)

        potluck = self.store.get_potluck_by_event_id(event.id)
        if potluck is not None and potluck.rsvp_sync_enabled:
            log.info(
                "User %s %s interest in event %s (potluck %s)",
                notification.user_id,
                "added" if notification.kind is NotificationKind.USER_ADDED else "removed",
                event.id,
                potluck.id,
            )
        return potluck

    def _clear_linkage(self, potluck: Potluck) -> None:
        event_id = potluck.discord_event_id
        self.store.update_discord_event(potluck.id, "")
        potluck.discord_event_id = None
        potluck.event_start_time = None
        potluck.event_end_time = None
        potluck.rsvp_sync_enabled = False
        log.info("Cleared event %s from potluck %s", event_id, potluck.id)

"""Discord bot wiring for the potluck services.

Slash commands are registered by :mod:`potluck_bot.commands`; this module
routes button clicks and turns gateway scheduled-event callbacks into
:class:`~potluck_bot.core.models.EventNotification` values.
"""

from __future__ import annotations

import logging
from typing import Any

import discord
from discord.ext import commands

from .core.models import EventNotification, EventStatus, ExternalEvent, NotificationKind
from .services import BotContext
from .ui.views import handle_component

log = logging.getLogger(__name__)

# Notifications that change what the potluck summary shows.
REFRESHING_KINDS = (NotificationKind.UPDATED, NotificationKind.DELETED)


def event_from_scheduled(event: Any) -> ExternalEvent:
    """Convert a :class:`discord.ScheduledEvent` into an :class:`ExternalEvent`."""
    status = getattr(event.status, "value", event.status)
    return ExternalEvent(
        id=str(event.id),
        guild_id=str(event.guild_id),
        name=event.name,
        description=event.description,
        status=EventStatus(int(status)),
        scheduled_start=event.start_time,
        scheduled_end=event.end_time,
        location=event.location,
    )


class PotluckBot(commands.Bot):
    """``discord.py`` bot serving the potluck commands and buttons."""

    def __init__(self, ctx: BotContext, **kwargs: Any) -> None:
        intents = kwargs.pop("intents", None) or discord.Intents.default()
        # Slash commands and components only; no message content needed.
        intents.message_content = False
        intents.guild_scheduled_events = True
        super().__init__(
            command_prefix=kwargs.pop("command_prefix", "!"),
            intents=intents,
        )
        self.ctx = ctx

    async def setup_hook(self) -> None:
        """Sync slash commands with Discord."""
        tree = getattr(self, "tree", None)
        if tree is not None:  # pragma: no cover - exercised in integration
            await tree.sync()
        await super().setup_hook()

    async def on_ready(self) -> None:  # pragma: no cover - requires discord
        await self.change_presence(activity=discord.Game(name="Potluck planning"))
        log.info("Logged in as %s (%s)", self.user, self.user.id if self.user else "?")

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component:
            return
        try:
            await handle_component(interaction, self.ctx)
        except Exception:
            log.exception("Component interaction failed")

    # ------------------------------------------------------------------
    # Scheduled event notifications
    # ------------------------------------------------------------------
    async def notify(
        self, kind: NotificationKind, event: Any, user: Any | None = None
    ) -> None:
        notification = EventNotification(
            kind=kind,
            event=event_from_scheduled(event),
            user_id=str(user.id) if user is not None else None,
        )
        try:
            potluck = self.ctx.events.handle_notification(notification)
            if potluck is not None and kind in REFRESHING_KINDS:
                await self.ctx.display.refresh(potluck.id)
        except Exception:
            log.exception(
                "Handling %s notification for event %s failed",
                kind.value,
                notification.event.id,
            )

    async def on_scheduled_event_update(self, before: Any, after: Any) -> None:
        await self.notify(NotificationKind.UPDATED, after)

    async def on_scheduled_event_delete(self, event: Any) -> None:
        await self.notify(NotificationKind.DELETED, event)

    async def on_scheduled_event_user_add(self, event: Any, user: Any) -> None:
        await self.notify(NotificationKind.USER_ADDED, event, user)

    async def on_scheduled_event_user_remove(self, event: Any, user: Any) -> None:
        await self.notify(NotificationKind.USER_REMOVED, event, user)


__all__ = ["PotluckBot", "event_from_scheduled"]

"""Slash commands: potluck creation, event import and guild timezone."""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

from ..core.dates import (
    COMMON_TIMEZONES,
    DATE_EXAMPLES,
    format_event_date,
    is_valid_timezone,
)
from ..core.models import EventStatus, utcnow
from ..services import BotContext
from ..ui.modals import CreatePotluckModal, PotluckFromEventModal

log = logging.getLogger(__name__)

MAX_CHOICES = 25


def timezone_label(value: str) -> str:
    return next((name for name, zone in COMMON_TIMEZONES if zone == value), value)


def register_commands(bot: commands.Bot, ctx: BotContext) -> None:
    """Register the potluck slash commands on ``bot.tree``."""
    tree = bot.tree
    choices = getattr(
        discord.app_commands, "choices", lambda **_kwargs: (lambda func: func)
    )
    default_permissions = getattr(
        discord.app_commands,
        "default_permissions",
        lambda **_kwargs: (lambda func: func),
    )

    @tree.command(name="potluck", description="Create and manage potluck events")
    async def potluck(interaction: discord.Interaction) -> None:
        await interaction.response.send_modal(CreatePotluckModal(ctx))

    @tree.command(
        name="potluck_from_event",
        description="Create a potluck from an existing Discord scheduled event",
    )
    @discord.app_commands.describe(event="Select a Discord scheduled event")
    async def potluck_from_event(interaction: discord.Interaction, event: str) -> None:
        if interaction.guild_id is None:
            await interaction.response.send_message(
                "This command can only be used in servers.", ephemeral=True
            )
            return
        guild_id = str(interaction.guild_id)
        try:
            found = await ctx.events.provider.fetch_event(guild_id, event)
        except Exception:
            log.exception("Fetching scheduled event %s failed", event)
            await interaction.response.send_message(
                "Failed to fetch the Discord event. Please try again.", ephemeral=True
            )
            return
        if found is None:
            await interaction.response.send_message(
                "Discord event not found.", ephemeral=True
            )
            return
        existing = ctx.store.get_potluck_by_event_id(found.id)
        if existing is not None:
            await interaction.response.send_message(
                ctx.creator.existing_potluck_message(existing), ephemeral=True
            )
            return
        await interaction.response.send_modal(PotluckFromEventModal(ctx, found))

    if hasattr(potluck_from_event, "autocomplete"):

        @potluck_from_event.autocomplete("event")
        async def potluck_from_event_autocomplete(
            interaction: discord.Interaction, current: str
        ) -> list[discord.app_commands.Choice[str]]:
            if interaction.guild_id is None:
                return []
            guild_id = str(interaction.guild_id)
            try:
                events = await ctx.events.provider.list_events(guild_id)
            except Exception:
                log.warning("Listing scheduled events of guild %s failed", guild_id)
                return []
            zone = ctx.dates.effective_timezone(guild_id)
            current_lower = current.lower()
            results = []
            for item in events:
                if item.status is not EventStatus.SCHEDULED:
                    continue
                if current_lower not in item.name.lower():
                    continue
                label = item.name
                if item.scheduled_start is not None:
                    label += " - " + format_event_date(item.scheduled_start, zone)
                results.append(
                    discord.app_commands.Choice(name=label[:100], value=item.id)
                )
            return results[:MAX_CHOICES]

    @tree.command(
        name="settimezone",
        description="Set the default timezone for potluck events in this server (Admin only)",
    )
    @discord.app_commands.describe(timezone="Select a timezone")
    @choices(
        timezone=[
            discord.app_commands.Choice(name=name, value=value)
            for name, value in COMMON_TIMEZONES
        ]
    )
    @default_permissions(manage_guild=True)
    async def settimezone(interaction: discord.Interaction, timezone: str) -> None:
        if interaction.guild_id is None:
            await interaction.response.send_message(
                "This command can only be used in servers.", ephemeral=True
            )
            return
        permissions = getattr(interaction, "permissions", None)
        if permissions is not None and not permissions.manage_guild:
            await interaction.response.send_message(
                'You need the "Manage Server" permission to use this command.',
                ephemeral=True,
            )
            return
        if not is_valid_timezone(timezone):
            await interaction.response.send_message(
                f"Unknown timezone `{timezone}`. Pick one of the offered choices.",
                ephemeral=True,
            )
            return
        try:
            settings = ctx.store.set_guild_timezone(
                str(interaction.guild_id), timezone, str(interaction.user.id)
            )
        except Exception:
            log.exception("Failed to set timezone for guild %s", interaction.guild_id)
            await interaction.response.send_message(
                "Failed to update timezone settings. Please try again.", ephemeral=True
            )
            return
        log.info(
            "Guild %s timezone set to %s by %s",
            settings.guild_id,
            settings.timezone,
            settings.updated_by,
        )
        await interaction.response.send_message(
            f"✅ Server timezone set to **{timezone_label(timezone)}**\n\n"
            f"Current time: {format_event_date(utcnow(), timezone)}\n\n"
            "This will be used as the default timezone for all new potluck events.",
            ephemeral=True,
        )

    @tree.command(
        name="potluck_dates", description="Show date formats the potluck form understands"
    )
    async def potluck_dates(interaction: discord.Interaction) -> None:
        zone = ctx.dates.effective_timezone(
            str(interaction.guild_id) if interaction.guild_id else None
        )
        lines = ["**Date examples:**"]
        lines.extend(f"• {example}" for example in DATE_EXAMPLES)
        lines.append("")
        lines.append(f"Dates are read in **{timezone_label(str(zone))}**.")
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

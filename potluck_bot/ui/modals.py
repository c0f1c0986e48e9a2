from __future__ import annotations

import asyncio
import logging

import discord

from ..core.claims import ClaimEngine
from ..core.creation import PotluckCreator, PotluckSubmission
from ..core.models import ExternalEvent
from ..services import BotContext

log = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to create the potluck. Please try again."


def is_yes(value: str | None) -> bool:
    return (value or "").strip().lower() in {"y", "yes", "true", "1"}


class CreatePotluckModal(discord.ui.Modal, title="Create Potluck Event"):
    def __init__(self, ctx: BotContext) -> None:
        super().__init__()
        self.ctx = ctx
        self.name_input = discord.ui.TextInput(
            label="Potluck Name", required=True, max_length=100
        )
        self.date_input = discord.ui.TextInput(
            label="Date (optional)",
            required=False,
            placeholder="e.g., Saturday, Dec 14th at 6pm",
            max_length=100,
        )
        self.theme_input = discord.ui.TextInput(
            label="Theme (optional)",
            required=False,
            placeholder="e.g., Tacos, Italian, Holiday treats",
            max_length=100,
        )
        self.items_input = discord.ui.TextInput(
            label="Items needed (one per line)",
            style=discord.TextStyle.long,
            required=True,
            placeholder="lettuce\nmeat\ntortillas\nbeans\nsalsa",
            max_length=2000,
        )
        self.event_input = discord.ui.TextInput(
            label="Create a Discord event? (yes/no)",
            required=False,
            default="yes",
            max_length=3,
        )
        for field in (
            self.name_input,
            self.date_input,
            self.theme_input,
            self.items_input,
            self.event_input,
        ):
            self.add_item(field)

    def submission(self, interaction: discord.Interaction) -> PotluckSubmission:
        return PotluckSubmission(
            name=self.name_input.value,
            guild_id=str(interaction.guild_id),
            channel_id=str(interaction.channel_id),
            created_by=str(interaction.user.id),
            items_text=self.items_input.value,
            date_text=self.date_input.value or None,
            theme=self.theme_input.value or None,
            create_event=is_yes(self.event_input.value),
        )

    async def on_submit(self, interaction: discord.Interaction) -> None:
        if interaction.guild_id is None:
            await interaction.response.send_message(
                "This command can only be used in servers.", ephemeral=True
            )
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            outcome = await self.ctx.creator.create_potluck(self.submission(interaction))
        except Exception:
            log.exception("Potluck creation failed in guild %s", interaction.guild_id)
            await interaction.followup.send(GENERIC_FAILURE, ephemeral=True)
            return
        await interaction.followup.send(outcome.message, ephemeral=True)


class PotluckFromEventModal(discord.ui.Modal, title="Create Potluck from Event"):
    def __init__(self, ctx: BotContext, event: ExternalEvent) -> None:
        super().__init__()
        self.ctx = ctx
        self.event = event
        self.theme_input = discord.ui.TextInput(
            label="Theme (optional)", required=False, max_length=100
        )
        self.items_input = discord.ui.TextInput(
            label="Items needed (one per line)",
            style=discord.TextStyle.long,
            required=True,
            max_length=2000,
        )
        self.location_input = discord.ui.TextInput(
            label="Location override (optional)",
            required=False,
            placeholder="Leave empty to use event location",
            max_length=200,
        )
        for field in (self.theme_input, self.items_input, self.location_input):
            self.add_item(field)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        creator: PotluckCreator = self.ctx.creator
        try:
            outcome = await creator.create_potluck_from_event(
                self.event,
                channel_id=str(interaction.channel_id),
                created_by=str(interaction.user.id),
                items_text=self.items_input.value,
                theme=self.theme_input.value or None,
                location=self.location_input.value or None,
            )
        except Exception:
            log.exception("Potluck creation from event %s failed", self.event.id)
            await interaction.followup.send(
                "Failed to create potluck from Discord event. Please try again.",
                ephemeral=True,
            )
            return

        if outcome is None:
            existing = self.ctx.store.get_potluck_by_event_id(self.event.id)
            text = (
                creator.existing_potluck_message(existing)
                if existing
                else "A potluck already exists for this event!"
            )
            await interaction.followup.send(text, ephemeral=True)
            return
        if outcome.warnings:
            text = "✅ Potluck created successfully! However, " + " ".join(outcome.warnings)
        else:
            text = (
                f'✅ Potluck created from Discord event "{self.event.name}"! '
                "The event description has been updated with potluck details."
            )
        await interaction.followup.send(text, ephemeral=True)


class AddItemModal(discord.ui.Modal, title="Add Custom Item"):
    def __init__(self, ctx: BotContext, potluck_id: str) -> None:
        super().__init__()
        self.ctx = ctx
        self.potluck_id = potluck_id
        self.item_input = discord.ui.TextInput(
            label="Item name",
            required=True,
            placeholder="e.g., Guacamole",
            max_length=100,
        )
        self.claim_input = discord.ui.TextInput(
            label="Claim it for yourself? (yes/no)",
            required=False,
            default="yes",
            max_length=3,
        )
        self.add_item(self.item_input)
        self.add_item(self.claim_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        claims: ClaimEngine = self.ctx.claims
        result = claims.add_custom_item(
            self.potluck_id,
            self.item_input.value,
            str(interaction.user.id),
            claim=is_yes(self.claim_input.value),
        )
        await interaction.response.send_message(result.message, ephemeral=True)
        if result.changed:
            await asyncio.sleep(self.ctx.settings.refresh_delay)
            await self.ctx.display.refresh(self.potluck_id)

"""Route button clicks on potluck summaries.

The summary message is posted through the REST adapter, so its buttons are
not bound to a :class:`discord.ui.View`. Clicks reach the bot through
``on_interaction`` and are dispatched here by custom id.
"""

from __future__ import annotations

import asyncio
import logging

import discord

from ..core.rendering import ADD_ITEM_PREFIX, CLAIM_PREFIX, parse_custom_id
from ..services import BotContext
from .modals import AddItemModal

log = logging.getLogger(__name__)


async def handle_component(interaction: discord.Interaction, ctx: BotContext) -> bool:
    """Handle a potluck button; ``False`` when the custom id is not ours."""
    custom_id = (interaction.data or {}).get("custom_id", "")
    parsed = parse_custom_id(custom_id)
    if parsed is None:
        return False
    action, potluck_id, item_id = parsed

    if action == ADD_ITEM_PREFIX:
        if ctx.store.get_potluck(potluck_id) is None:
            await interaction.response.send_message(
                "Could not find the potluck associated with this message. "
                "The potluck may have been deleted or this is an old message.",
                ephemeral=True,
            )
            return True
        await interaction.response.send_modal(AddItemModal(ctx, potluck_id))
        return True

    if action == CLAIM_PREFIX:
        result = ctx.claims.toggle_claim(potluck_id, item_id, str(interaction.user.id))
        await interaction.response.send_message(result.message, ephemeral=True)
        if result.changed:
            await asyncio.sleep(ctx.settings.refresh_delay)
            update = await ctx.display.refresh(potluck_id)
            log.debug("Display refresh for %s: %s", potluck_id, update.outcome.value)
        return True
    return False

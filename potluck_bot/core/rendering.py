"""Build the Discord message payload that summarises a potluck.

Everything here is a pure function of a :class:`Potluck`; the payloads are
plain JSON dictionaries in the shape the Discord REST API expects.
"""

from __future__ import annotations

from typing import Any

from .models import Potluck

EMBED_COLOR = 0x00AE86
BUTTONS_PER_ROW = 5
MAX_ROWS = 5
MAX_DESCRIPTION = 4096
MAX_LABEL = 80

# Discord component constants
ACTION_ROW = 1
BUTTON = 2
STYLE_PRIMARY = 1
STYLE_SECONDARY = 2
STYLE_SUCCESS = 3

CLAIM_PREFIX = "claim"
ADD_ITEM_PREFIX = "add-item"


def claim_custom_id(potluck_id: str, item_id: str) -> str:
    return f"{CLAIM_PREFIX}:{potluck_id}:{item_id}"


def add_item_custom_id(potluck_id: str) -> str:
    return f"{ADD_ITEM_PREFIX}:{potluck_id}"


def parse_custom_id(custom_id: str) -> tuple[str, str, str | None] | None:
    """Split a component id into ``(action, potluck_id, item_id)``."""
    parts = custom_id.split(":")
    if parts[0] == CLAIM_PREFIX and len(parts) == 3:
        return parts[0], parts[1], parts[2]
    if parts[0] == ADD_ITEM_PREFIX and len(parts) == 2:
        return parts[0], parts[1], None
    return None


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def summary_description(potluck: Potluck) -> str:
    lines = [f"Created by {mention(potluck.created_by)}", ""]
    if potluck.date:
        lines.append(f"📅 **Date:** {potluck.date}")
    if potluck.event_start_time:
        stamp = int(potluck.event_start_time.timestamp())
        lines.append(f"🕕 **Starts:** <t:{stamp}:F> (<t:{stamp}:R>)")
    if potluck.theme:
        lines.append(f"🎭 **Theme:** {potluck.theme}")
    if potluck.event_url:
        lines.append(f"🔗 **Event:** {potluck.event_url}")
    lines.append("")
    lines.append("**Items:**")
    for item in potluck.items:
        if item.claimed_by:
            claim = " - claimed by " + ", ".join(mention(u) for u in item.claimed_by)
        else:
            claim = " - *available*"
        lines.append(f"• {item.name}{claim}")
    return _truncate("\n".join(lines), MAX_DESCRIPTION)


def summary_embed(potluck: Potluck) -> dict[str, Any]:
    return {
        "title": _truncate(f"🍽️ {potluck.name}", 256),
        "description": summary_description(potluck),
        "color": EMBED_COLOR,
        "timestamp": potluck.created_at.isoformat(),
    }


def item_controls(potluck: Potluck) -> list[dict[str, Any]]:
    """Return claim buttons grouped into action rows.

    Items beyond ``BUTTONS_PER_ROW * MAX_ROWS`` get no button. The add-item
    button takes a row of its own and is only added while a row is free.
    """
    rows: list[dict[str, Any]] = []
    buttons: list[dict[str, Any]] = []
    for item in potluck.items:
        buttons.append(
            {
                "type": BUTTON,
                "custom_id": claim_custom_id(potluck.id, item.id),
                "label": _truncate(item.name, MAX_LABEL),
                "style": STYLE_SECONDARY if item.claimed_by else STYLE_PRIMARY,
            }
        )
    for start in range(0, len(buttons), BUTTONS_PER_ROW):
        if len(rows) == MAX_ROWS:
            break
        rows.append(
            {"type": ACTION_ROW, "components": buttons[start : start + BUTTONS_PER_ROW]}
        )
    if len(rows) < MAX_ROWS:
        rows.append(
            {
                "type": ACTION_ROW,
                "components": [
                    {
                        "type": BUTTON,
                        "custom_id": add_item_custom_id(potluck.id),
                        "label": "+ Add Custom Item",
                        "style": STYLE_SUCCESS,
                    }
                ],
            }
        )
    return rows


def summary_payload(potluck: Potluck) -> dict[str, Any]:
    """Message body for ``POST``/``PATCH`` on the channel messages endpoint."""
    return {"embeds": [summary_embed(potluck)], "components": item_controls(potluck)}

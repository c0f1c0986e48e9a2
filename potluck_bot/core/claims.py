"""Claim, unclaim and add items on behalf of a user."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from .rendering import mention
from .storage import PotluckNotFoundError, PotluckStorage, StorageError

log = logging.getLogger(__name__)

RETRY_MESSAGE = "Something went wrong while saving your change. Please try again later."


class ClaimAction(enum.Enum):
    CLAIMED = "claimed"
    UNCLAIMED = "unclaimed"
    ADDED = "added"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class ClaimResult:
    """What happened and the reply shown to the acting user."""

    action: ClaimAction
    message: str
    item_name: str | None = None
    co_claimants: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.action in (
            ClaimAction.CLAIMED,
            ClaimAction.UNCLAIMED,
            ClaimAction.ADDED,
        )


class ClaimEngine:
    """Toggle claims against a :class:`PotluckStorage`.

    Storage faults never escape; they are logged and reported to the user
    as a generic retry message.
    """

    def __init__(self, store: PotluckStorage) -> None:
        self.store = store

    def toggle_claim(self, potluck_id: str, item_id: str, user_id: str) -> ClaimResult:
        try:
            return self._toggle(potluck_id, item_id, user_id)
        except StorageError:
            log.exception(
                "Claim toggle failed for potluck %s item %s", potluck_id, item_id
            )
            return ClaimResult(ClaimAction.FAILED, RETRY_MESSAGE)

    def _toggle(self, potluck_id: str, item_id: str, user_id: str) -> ClaimResult:
        potluck = self.store.get_potluck(potluck_id)
        if potluck is None:
            return ClaimResult(ClaimAction.NOT_FOUND, "Potluck not found!")
        item = potluck.find_item(item_id)
        if item is None:
            return ClaimResult(ClaimAction.NOT_FOUND, "Item not found!")

        if item.is_claimed_by(user_id):
            self.store.unclaim_item(potluck_id, item_id, user_id)
            log.info("User %s unclaimed %s in potluck %s", user_id, item.name, potluck_id)
            return ClaimResult(
                ClaimAction.UNCLAIMED,
                f"You've unclaimed **{item.name}**",
                item_name=item.name,
            )

        self.store.claim_item(potluck_id, item_id, user_id)
        log.info("User %s claimed %s in potluck %s", user_id, item.name, potluck_id)

        refreshed = self.store.get_potluck(potluck_id)
        current = refreshed.find_item(item_id) if refreshed else None
        others = [u for u in (current.claimed_by if current else []) if u != user_id]
        message = f"You've claimed **{item.name}**!"
        if others:
            message += "\n⚠️ Also claimed by: " + ", ".join(mention(u) for u in others)
        return ClaimResult(
            ClaimAction.CLAIMED, message, item_name=item.name, co_claimants=others
        )

    def add_custom_item(
        self, potluck_id: str, name: str, user_id: str, claim: bool = False
    ) -> ClaimResult:
        """Append ``name`` to the potluck, claiming it for ``user_id`` if asked."""
        if not name or not name.strip():
            return ClaimResult(ClaimAction.INVALID, "Item name cannot be empty.")
        try:
            item = self.store.add_custom_item(
                potluck_id, name, claimed_by=user_id if claim else None
            )
        except PotluckNotFoundError:
            return ClaimResult(ClaimAction.NOT_FOUND, "Potluck not found!")
        except ValueError as exc:
            return ClaimResult(ClaimAction.INVALID, str(exc))
        except StorageError:
            log.exception("Adding item %r to potluck %s failed", name, potluck_id)
            return ClaimResult(ClaimAction.FAILED, RETRY_MESSAGE)

        log.info("User %s added %s to potluck %s", user_id, item.name, potluck_id)
        if claim:
            message = f"Added **{item.name}** and claimed it for you!"
        else:
            message = f"Added **{item.name}** to the potluck!"
        return ClaimResult(ClaimAction.ADDED, message, item_name=item.name)

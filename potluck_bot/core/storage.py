"""Storage contract shared by every potluck store implementation."""

from __future__ import annotations

import datetime
from abc import ABC, abstractmethod

from .models import GuildSettings, Potluck, PotluckDraft, PotluckItem


class StorageError(RuntimeError):
    """The storage engine failed; the operation in progress is abandoned."""


class PotluckNotFoundError(LookupError):
    """Raised by operations that require an existing potluck."""

    def __init__(self, potluck_id: str) -> None:
        super().__init__(f"Potluck not found: {potluck_id}")
        self.potluck_id = potluck_id


class PotluckStorage(ABC):
    """Durable storage for potlucks, their items and guild settings.

    Every operation is atomic with respect to a single potluck or guild
    record. Lookups return ``None`` (or an empty list) when nothing matches;
    only engine faults raise, as :class:`StorageError`.
    """

    @abstractmethod
    def create_potluck(self, draft: PotluckDraft) -> Potluck:
        """Assign an identifier and creation instant and persist ``draft``."""

    @abstractmethod
    def get_potluck(self, potluck_id: str) -> Potluck | None:
        """Return the potluck with ``potluck_id`` or ``None``."""

    @abstractmethod
    def update_potluck(self, potluck: Potluck) -> None:
        """Replace the mutable fields and the whole item list of ``potluck``.

        Raises :class:`PotluckNotFoundError` when no such potluck is stored.
        """

    @abstractmethod
    def update_potluck_message(
        self, potluck_id: str, message_id: str, created_at: datetime.datetime
    ) -> bool:
        """Point the potluck at a new summary message."""

    @abstractmethod
    def update_discord_event(
        self,
        potluck_id: str,
        event_id: str,
        start_time: datetime.datetime | None = None,
        end_time: datetime.datetime | None = None,
        rsvp_sync_enabled: bool = False,
    ) -> bool:
        """Link a scheduled event; an empty ``event_id`` clears the link."""

    @abstractmethod
    def claim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        """Add ``user_id`` to the item's claimants (no-op if already there)."""

    @abstractmethod
    def unclaim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        """Remove ``user_id`` from the claimants; ``False`` if not a claimant."""

    @abstractmethod
    def add_custom_item(
        self, potluck_id: str, name: str, claimed_by: str | None = None
    ) -> PotluckItem:
        """Append a new item, optionally claimed by ``claimed_by``."""

    @abstractmethod
    def get_potlucks_by_guild(self, guild_id: str) -> list[Potluck]:
        """Return every potluck created in ``guild_id``."""

    @abstractmethod
    def get_potluck_by_event_id(self, event_id: str) -> Potluck | None:
        """Return the potluck linked to scheduled event ``event_id``."""

    @abstractmethod
    def get_guild_settings(self, guild_id: str) -> GuildSettings | None:
        """Return the stored settings for ``guild_id``."""

    @abstractmethod
    def set_guild_timezone(
        self, guild_id: str, timezone: str, updated_by: str
    ) -> GuildSettings:
        """Create or update the timezone setting for ``guild_id``."""

    def close(self) -> None:
        """Release engine resources; the default has nothing to release."""


def clean_item_name(name: str) -> str:
    """Trim ``name`` and reject it when nothing is left."""
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Item name cannot be empty.")
    return cleaned

"""In-memory potluck store with optional JSON file persistence."""

from __future__ import annotations

import contextlib
import datetime
import json
import logging
import os
from collections.abc import Iterator
from typing import Any

from ..core.models import (
    GuildSettings,
    Potluck,
    PotluckDraft,
    PotluckItem,
    from_millis,
    new_id,
    to_millis,
    utcnow,
)
from ..core.storage import (
    PotluckNotFoundError,
    PotluckStorage,
    StorageError,
    clean_item_name,
)

log = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Row conversion shared with the SQLite store
# ----------------------------------------------------------------------
def potluck_to_row(potluck: Potluck) -> dict[str, Any]:
    return {
        "id": potluck.id,
        "name": potluck.name,
        "date": potluck.date,
        "theme": potluck.theme,
        "created_by": potluck.created_by,
        "guild_id": potluck.guild_id,
        "channel_id": potluck.channel_id,
        "message_id": potluck.message_id,
        "message_created_at": to_millis(potluck.message_created_at),
        "discord_event_id": potluck.discord_event_id,
        "event_start_time": to_millis(potluck.event_start_time),
        "event_end_time": to_millis(potluck.event_end_time),
        "rsvp_sync_enabled": 1 if potluck.rsvp_sync_enabled else 0,
        "created_at": to_millis(potluck.created_at),
    }


def item_to_row(item: PotluckItem, potluck_id: str, position: int) -> dict[str, Any]:
    return {
        "id": item.id,
        "potluck_id": potluck_id,
        "name": item.name,
        "claimed_by": json.dumps(item.claimed_by),
        "position": position,
    }


def item_from_row(row: Any) -> PotluckItem:
    return PotluckItem(
        id=row["id"], name=row["name"], claimed_by=json.loads(row["claimed_by"])
    )


def potluck_from_row(row: Any, items: list[PotluckItem]) -> Potluck:
    return Potluck(
        id=row["id"],
        name=row["name"],
        date=row["date"],
        theme=row["theme"],
        created_by=row["created_by"],
        guild_id=row["guild_id"],
        channel_id=row["channel_id"],
        message_id=row["message_id"],
        message_created_at=from_millis(row["message_created_at"]),
        discord_event_id=row["discord_event_id"],
        event_start_time=from_millis(row["event_start_time"]),
        event_end_time=from_millis(row["event_end_time"]),
        rsvp_sync_enabled=bool(row["rsvp_sync_enabled"]),
        items=items,
        created_at=from_millis(row["created_at"]),
    )


def settings_to_row(settings: GuildSettings) -> dict[str, Any]:
    return {
        "guild_id": settings.guild_id,
        "timezone": settings.timezone,
        "updated_at": to_millis(settings.updated_at),
        "updated_by": settings.updated_by,
    }


def settings_from_row(row: Any) -> GuildSettings:
    return GuildSettings(
        guild_id=row["guild_id"],
        timezone=row["timezone"],
        updated_at=from_millis(row["updated_at"]),
        updated_by=row["updated_by"],
    )


class JSONPotluckStore(PotluckStorage):
    """Keep potlucks in memory and mirror them to a JSON file.

    With ``path=None`` the store is purely in-memory. Otherwise the whole
    state is rewritten atomically after every mutation. A failed write
    rolls the in-memory state back so readers never observe a change that
    was not persisted.
    """

    def __init__(self, path: str | None = "potluck_data.json") -> None:
        self.path = path
        self._potlucks: dict[str, Potluck] = {}
        self._settings: dict[str, GuildSettings] = {}
        self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """Load store contents from ``self.path`` if it exists."""
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Could not read {self.path}: {exc}") from exc
        self._from_dict(data)
        log.debug("Loaded %d potlucks from %s", len(self._potlucks), self.path)

    def _from_dict(self, data: dict[str, Any]) -> None:
        items_by_potluck: dict[str, list[dict[str, Any]]] = {}
        for row in data.get("potluck_items", []):
            items_by_potluck.setdefault(row["potluck_id"], []).append(row)

        potlucks: dict[str, Potluck] = {}
        for pid, row in data.get("potlucks", {}).items():
            rows = sorted(items_by_potluck.get(pid, []), key=lambda r: r["position"])
            potlucks[pid] = potluck_from_row(row, [item_from_row(r) for r in rows])
        self._potlucks = potlucks

        self._settings = {
            gid: settings_from_row(row)
            for gid, row in data.get("guild_settings", {}).items()
        }

    def _to_dict(self) -> dict[str, Any]:
        """Serialise the current state to the logical table layout."""
        items: list[dict[str, Any]] = []
        for potluck in self._potlucks.values():
            for position, item in enumerate(potluck.items):
                items.append(item_to_row(item, potluck.id, position))
        return {
            "potlucks": {pid: potluck_to_row(p) for pid, p in self._potlucks.items()},
            "potluck_items": items,
            "guild_settings": {
                gid: settings_to_row(s) for gid, s in self._settings.items()
            },
        }

    def save(self) -> None:
        """Persist the current state atomically."""
        if not self.path:
            return
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[None]:
        snapshot = self._to_dict()
        try:
            yield
            self.save()
        except OSError as exc:
            self._from_dict(snapshot)
            log.exception("Failed to persist potluck store to %s", self.path)
            raise StorageError(str(exc)) from exc
        except BaseException:
            self._from_dict(snapshot)
            raise

    # ------------------------------------------------------------------
    # Potluck operations
    # ------------------------------------------------------------------
    def create_potluck(self, draft: PotluckDraft) -> Potluck:
        potluck = Potluck.from_draft(draft, id=new_id(), created_at=utcnow())
        with self._transaction():
            self._potlucks[potluck.id] = potluck.model_copy(deep=True)
        return potluck

    def get_potluck(self, potluck_id: str) -> Potluck | None:
        potluck = self._potlucks.get(potluck_id)
        return potluck.model_copy(deep=True) if potluck else None

    def update_potluck(self, potluck: Potluck) -> None:
        # Re-validate so a half-edited entity can never be stored.
        stored = Potluck.model_validate(potluck.model_dump())
        if stored.id not in self._potlucks:
            raise PotluckNotFoundError(stored.id)
        with self._transaction():
            self._potlucks[stored.id] = stored

    def update_potluck_message(
        self, potluck_id: str, message_id: str, created_at: datetime.datetime
    ) -> bool:
        potluck = self._potlucks.get(potluck_id)
        if not potluck:
            return False
        with self._transaction():
            self._potlucks[potluck_id] = Potluck.model_validate(
                {
                    **potluck.model_dump(),
                    "message_id": message_id,
                    "message_created_at": created_at,
                }
            )
        return True

    def update_discord_event(
        self,
        potluck_id: str,
        event_id: str,
        start_time: datetime.datetime | None = None,
        end_time: datetime.datetime | None = None,
        rsvp_sync_enabled: bool = False,
    ) -> bool:
        potluck = self._potlucks.get(potluck_id)
        if not potluck:
            return False
        if event_id:
            linkage = {
                "discord_event_id": event_id,
                "event_start_time": start_time,
                "event_end_time": end_time,
                "rsvp_sync_enabled": rsvp_sync_enabled,
            }
        else:
            linkage = {
                "discord_event_id": None,
                "event_start_time": None,
                "event_end_time": None,
                "rsvp_sync_enabled": False,
            }
        with self._transaction():
            self._potlucks[potluck_id] = Potluck.model_validate(
                {**potluck.model_dump(), **linkage}
            )
        return True

    def claim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        potluck = self._potlucks.get(potluck_id)
        if not potluck:
            return False
        item = potluck.find_item(item_id)
        if not item:
            return False
        if user_id not in item.claimed_by:
            with self._transaction():
                item.claimed_by.append(user_id)
        return True

    def unclaim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        potluck = self._potlucks.get(potluck_id)
        if not potluck:
            return False
        item = potluck.find_item(item_id)
        if not item or user_id not in item.claimed_by:
            return False
        with self._transaction():
            item.claimed_by.remove(user_id)
        return True

    def add_custom_item(
        self, potluck_id: str, name: str, claimed_by: str | None = None
    ) -> PotluckItem:
        potluck = self._potlucks.get(potluck_id)
        if not potluck:
            raise PotluckNotFoundError(potluck_id)
        item = PotluckItem(
            name=clean_item_name(name), claimed_by=[claimed_by] if claimed_by else []
        )
        with self._transaction():
            potluck.items.append(item.model_copy(deep=True))
        return item

    def get_potlucks_by_guild(self, guild_id: str) -> list[Potluck]:
        return [
            p.model_copy(deep=True)
            for p in self._potlucks.values()
            if p.guild_id == guild_id
        ]

    def get_potluck_by_event_id(self, event_id: str) -> Potluck | None:
        if not event_id:
            return None
        potluck = next(
            (p for p in self._potlucks.values() if p.discord_event_id == event_id),
            None,
        )
        return potluck.model_copy(deep=True) if potluck else None

    # ------------------------------------------------------------------
    # Guild settings
    # ------------------------------------------------------------------
    def get_guild_settings(self, guild_id: str) -> GuildSettings | None:
        settings = self._settings.get(guild_id)
        return settings.model_copy() if settings else None

    def set_guild_timezone(
        self, guild_id: str, timezone: str, updated_by: str
    ) -> GuildSettings:
        settings = GuildSettings(
            guild_id=guild_id,
            timezone=timezone,
            updated_at=utcnow(),
            updated_by=updated_by,
        )
        with self._transaction():
            self._settings[guild_id] = settings
        return settings.model_copy()

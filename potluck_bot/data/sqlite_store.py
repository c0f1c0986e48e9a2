"""SQLite-backed potluck store."""

from __future__ import annotations

import datetime
import functools
import json
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..core.models import (
    GuildSettings,
    Potluck,
    PotluckDraft,
    PotluckItem,
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
from .store import (
    item_from_row,
    item_to_row,
    potluck_from_row,
    potluck_to_row,
    settings_from_row,
    settings_to_row,
)

log = logging.getLogger(__name__)

_MIGRATIONS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS potlucks (
        id                 TEXT PRIMARY KEY,
        name               TEXT    NOT NULL,
        date               TEXT,
        theme              TEXT,
        created_by         TEXT    NOT NULL,
        guild_id           TEXT    NOT NULL,
        channel_id         TEXT    NOT NULL,
        message_id         TEXT,
        message_created_at INTEGER,
        created_at         INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS potluck_items (
        id         TEXT    NOT NULL,
        potluck_id TEXT    NOT NULL,
        name       TEXT    NOT NULL,
        claimed_by TEXT    NOT NULL DEFAULT '[]',
        position   INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (potluck_id, id),
        FOREIGN KEY (potluck_id) REFERENCES potlucks (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_potlucks_guild_id ON potlucks (guild_id);
    CREATE INDEX IF NOT EXISTS idx_potlucks_channel_id ON potlucks (channel_id);
    CREATE INDEX IF NOT EXISTS idx_items_potluck_id ON potluck_items (potluck_id);
    """,
    """
    ALTER TABLE potlucks ADD COLUMN discord_event_id TEXT;
    ALTER TABLE potlucks ADD COLUMN event_start_time INTEGER;
    ALTER TABLE potlucks ADD COLUMN event_end_time INTEGER;
    ALTER TABLE potlucks ADD COLUMN rsvp_sync_enabled INTEGER NOT NULL DEFAULT 0;
    CREATE INDEX IF NOT EXISTS idx_potlucks_event_id ON potlucks (discord_event_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS guild_settings (
        guild_id   TEXT PRIMARY KEY,
        timezone   TEXT    NOT NULL,
        updated_at INTEGER NOT NULL,
        updated_by TEXT    NOT NULL
    )
    """,
]

_POTLUCK_COLUMNS = (
    "id",
    "name",
    "date",
    "theme",
    "created_by",
    "guild_id",
    "channel_id",
    "message_id",
    "message_created_at",
    "discord_event_id",
    "event_start_time",
    "event_end_time",
    "rsvp_sync_enabled",
    "created_at",
)


def _storage_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Re-raise :mod:`sqlite3` failures as :class:`StorageError`."""

    @functools.wraps(func)
    def wrapper(self: SQLitePotluckStore, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(self, *args, **kwargs)
        except sqlite3.Error as exc:
            log.exception("SQLite operation %s failed", func.__name__)
            raise StorageError(str(exc)) from exc

    return wrapper


class SQLitePotluckStore(PotluckStorage):
    """Persist potlucks in a single SQLite database file.

    One connection is held for the lifetime of the store and must be
    released with :meth:`close` on shutdown. Writes touching a potluck and
    its items run inside one transaction.
    """

    def __init__(self, path: str = "data/potluck.db") -> None:
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._migrate()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open {path}: {exc}") from exc

    def _migrate(self) -> None:
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        for index in range(version, len(_MIGRATIONS)):
            with self._conn:
                self._conn.executescript(_MIGRATIONS[index])
                self._conn.execute(f"PRAGMA user_version = {index + 1}")
        log.debug("SQLite store at %s is at schema version %d", self.path, len(_MIGRATIONS))

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _items_for(self, potluck_id: str) -> list[PotluckItem]:
        rows = self._conn.execute(
            "SELECT * FROM potluck_items WHERE potluck_id = ? ORDER BY position",
            (potluck_id,),
        ).fetchall()
        return [item_from_row(r) for r in rows]

    def _hydrate(self, row: sqlite3.Row | None) -> Potluck | None:
        if row is None:
            return None
        return potluck_from_row(row, self._items_for(row["id"]))

    def _insert_items(self, potluck_id: str, items: list[PotluckItem], start: int = 0) -> None:
        self._conn.executemany(
            "INSERT INTO potluck_items (id, potluck_id, name, claimed_by, position) "
            "VALUES (:id, :potluck_id, :name, :claimed_by, :position)",
            [
                item_to_row(item, potluck_id, start + offset)
                for offset, item in enumerate(items)
            ],
        )

    def _change_claim(
        self, potluck_id: str, item_id: str, user_id: str, claim: bool
    ) -> bool:
        """Read and rewrite one item's claimants under a single write lock."""
        with self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            row = self._conn.execute(
                "SELECT claimed_by FROM potluck_items WHERE potluck_id = ? AND id = ?",
                (potluck_id, item_id),
            ).fetchone()
            if row is None:
                return False
            claimed_by = json.loads(row["claimed_by"] or "[]")
            if (user_id in claimed_by) == claim:
                # already in the requested state
                return claim
            if claim:
                claimed_by.append(user_id)
            else:
                claimed_by.remove(user_id)
            self._conn.execute(
                "UPDATE potluck_items SET claimed_by = ? WHERE potluck_id = ? AND id = ?",
                (json.dumps(claimed_by), potluck_id, item_id),
            )
        return True

    # ------------------------------------------------------------------
    # Potluck operations
    # ------------------------------------------------------------------
    @_storage_errors
    def create_potluck(self, draft: PotluckDraft) -> Potluck:
        potluck = Potluck.from_draft(draft, id=new_id(), created_at=utcnow())
        row = potluck_to_row(potluck)
        placeholders = ", ".join(f":{c}" for c in _POTLUCK_COLUMNS)
        with self._conn:
            self._conn.execute(
                f"INSERT INTO potlucks ({', '.join(_POTLUCK_COLUMNS)}) VALUES ({placeholders})",
                row,
            )
            self._insert_items(potluck.id, potluck.items)
        return potluck

    @_storage_errors
    def get_potluck(self, potluck_id: str) -> Potluck | None:
        row = self._conn.execute(
            "SELECT * FROM potlucks WHERE id = ?", (potluck_id,)
        ).fetchone()
        return self._hydrate(row)

    @_storage_errors
    def update_potluck(self, potluck: Potluck) -> None:
        stored = Potluck.model_validate(potluck.model_dump())
        row = potluck_to_row(stored)
        assignments = ", ".join(
            f"{c} = :{c}" for c in _POTLUCK_COLUMNS if c not in ("id", "created_at")
        )
        with self._conn:
            cur = self._conn.execute(
                f"UPDATE potlucks SET {assignments} WHERE id = :id", row
            )
            if cur.rowcount == 0:
                raise PotluckNotFoundError(stored.id)
            self._conn.execute(
                "DELETE FROM potluck_items WHERE potluck_id = ?", (stored.id,)
            )
            self._insert_items(stored.id, stored.items)

    @_storage_errors
    def update_potluck_message(
        self, potluck_id: str, message_id: str, created_at: datetime.datetime
    ) -> bool:
        with self._conn:
            cur = self._conn.execute(
                "UPDATE potlucks SET message_id = ?, message_created_at = ? WHERE id = ?",
                (message_id, to_millis(created_at), potluck_id),
            )
        return cur.rowcount > 0

    @_storage_errors
    def update_discord_event(
        self,
        potluck_id: str,
        event_id: str,
        start_time: datetime.datetime | None = None,
        end_time: datetime.datetime | None = None,
        rsvp_sync_enabled: bool = False,
    ) -> bool:
        if event_id:
            values = (
                event_id,
                to_millis(start_time),
                to_millis(end_time),
                1 if rsvp_sync_enabled else 0,
            )
        else:
            values = (None, None, None, 0)
        with self._conn:
            cur = self._conn.execute(
                "UPDATE potlucks SET discord_event_id = ?, event_start_time = ?, "
                "event_end_time = ?, rsvp_sync_enabled = ? WHERE id = ?",
                (*values, potluck_id),
            )
        return cur.rowcount > 0

    @_storage_errors
    def claim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        return self._change_claim(potluck_id, item_id, user_id, claim=True)

    @_storage_errors
    def unclaim_item(self, potluck_id: str, item_id: str, user_id: str) -> bool:
        return self._change_claim(potluck_id, item_id, user_id, claim=False)

    @_storage_errors
    def add_custom_item(
        self, potluck_id: str, name: str, claimed_by: str | None = None
    ) -> PotluckItem:
        exists = self._conn.execute(
            "SELECT 1 FROM potlucks WHERE id = ?", (potluck_id,)
        ).fetchone()
        if not exists:
            raise PotluckNotFoundError(potluck_id)
        item = PotluckItem(
            name=clean_item_name(name), claimed_by=[claimed_by] if claimed_by else []
        )
        with self._conn:
            position = self._conn.execute(
                "SELECT COALESCE(MAX(position) + 1, 0) FROM potluck_items WHERE potluck_id = ?",
                (potluck_id,),
            ).fetchone()[0]
            self._insert_items(potluck_id, [item], start=position)
        return item

    @_storage_errors
    def get_potlucks_by_guild(self, guild_id: str) -> list[Potluck]:
        rows = self._conn.execute(
            "SELECT * FROM potlucks WHERE guild_id = ? ORDER BY created_at", (guild_id,)
        ).fetchall()
        return [self._hydrate(r) for r in rows]

    @_storage_errors
    def get_potluck_by_event_id(self, event_id: str) -> Potluck | None:
        if not event_id:
            return None
        row = self._conn.execute(
            "SELECT * FROM potlucks WHERE discord_event_id = ?", (event_id,)
        ).fetchone()
        return self._hydrate(row)

    # ------------------------------------------------------------------
    # Guild settings
    # ------------------------------------------------------------------
    @_storage_errors
    def get_guild_settings(self, guild_id: str) -> GuildSettings | None:
        row = self._conn.execute(
            "SELECT * FROM guild_settings WHERE guild_id = ?", (guild_id,)
        ).fetchone()
        return settings_from_row(row) if row else None

    @_storage_errors
    def set_guild_timezone(
        self, guild_id: str, timezone: str, updated_by: str
    ) -> GuildSettings:
        settings = GuildSettings(
            guild_id=guild_id, timezone=timezone, updated_at=utcnow(), updated_by=updated_by
        )
        with self._conn:
            self._conn.execute(
                "INSERT INTO guild_settings (guild_id, timezone, updated_at, updated_by) "
                "VALUES (:guild_id, :timezone, :updated_at, :updated_by) "
                "ON CONFLICT(guild_id) DO UPDATE SET timezone = excluded.timezone, "
                "updated_at = excluded.updated_at, updated_by = excluded.updated_by",
                settings_to_row(settings),
            )
        return settings

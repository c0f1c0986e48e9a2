"""Select the storage engine named in :class:`~potluck_bot.config.Settings`."""

from __future__ import annotations

import logging

from ..config import Settings
from ..core.storage import PotluckStorage
from .sqlite_store import SQLitePotluckStore
from .store import JSONPotluckStore

log = logging.getLogger(__name__)


def create_store(settings: Settings) -> PotluckStorage:
    """Build the single store instance used by the process."""
    kind = settings.storage_type
    if kind == "sqlite":
        log.info("Using SQLite storage at %s", settings.database_path)
        return SQLitePotluckStore(settings.database_path)
    if kind == "json":
        log.info("Using JSON storage at %s", settings.data_path)
        return JSONPotluckStore(settings.data_path)
    if kind != "memory":
        log.warning("Unknown STORAGE_TYPE %r, falling back to memory", kind)
    return JSONPotluckStore(path=None)

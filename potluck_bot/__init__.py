"""Core package for the potluck bot.

The data models, the storage layer and the services built on them are
exposed here so that consumers can import them from ``potluck_bot``
without pulling in :mod:`discord`.
"""

from .core.claims import ClaimEngine
from .core.dates import DateResolver
from .core.display import DisplayReconciler
from .core.events import EventPermissionError, EventSynchronizer
from .core.models import GuildSettings, Potluck, PotluckDraft, PotluckItem
from .core.storage import PotluckStorage, StorageError
from .data.sqlite_store import SQLitePotluckStore
from .data.store import JSONPotluckStore

__all__ = [
    "ClaimEngine",
    "DateResolver",
    "DisplayReconciler",
    "EventPermissionError",
    "EventSynchronizer",
    "GuildSettings",
    "JSONPotluckStore",
    "Potluck",
    "PotluckDraft",
    "PotluckItem",
    "PotluckStorage",
    "SQLitePotluckStore",
    "StorageError",
]

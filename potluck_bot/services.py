"""Wire the store and the Discord adapter into the potluck services."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from .adapters.base import EventProvider, MessageChannel
from .config import Settings
from .core.claims import ClaimEngine
from .core.creation import PotluckCreator
from .core.dates import DateResolver
from .core.display import DisplayReconciler
from .core.events import EventSynchronizer
from .core.storage import PotluckStorage


@dataclass
class BotContext:
    """Every service the Discord handlers need, built once per process."""

    settings: Settings
    store: PotluckStorage
    dates: DateResolver
    claims: ClaimEngine
    display: DisplayReconciler
    events: EventSynchronizer
    creator: PotluckCreator


def build_context(
    settings: Settings,
    store: PotluckStorage,
    channel: MessageChannel,
    provider: EventProvider,
) -> BotContext:
    dates = DateResolver(store, default_timezone=settings.default_timezone)
    display = DisplayReconciler(
        store,
        channel,
        edit_window=datetime.timedelta(minutes=settings.edit_window_minutes),
    )
    events = EventSynchronizer(store, provider)
    return BotContext(
        settings=settings,
        store=store,
        dates=dates,
        claims=ClaimEngine(store),
        display=display,
        events=events,
        creator=PotluckCreator(store, dates, display, events),
    )

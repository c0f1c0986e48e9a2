"""In-memory stand-ins for the message channel, event provider and clock."""

from __future__ import annotations

import datetime
from datetime import UTC
from typing import Any

from potluck_bot.adapters.base import EventProvider, MessageChannel
from potluck_bot.core.models import (
    ExternalEvent,
    PotluckDraft,
    PotluckItem,
    ScheduledEventSpec,
)

NOW = datetime.datetime(2024, 12, 11, 17, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime.datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += datetime.timedelta(**kwargs)


class FakeChannel(MessageChannel):
    """Records message calls; individual operations can be made to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.edited: list[tuple[str, str, dict[str, Any]]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_send = False
        self.fail_edit = False
        self.fail_delete = False
        self._counter = 0

    async def send_message(self, channel_id: str, payload: dict[str, Any]) -> str:
        if self.fail_send:
            raise RuntimeError("send failed")
        self._counter += 1
        self.sent.append((channel_id, payload))
        return f"m{self._counter}"

    async def edit_message(
        self, channel_id: str, message_id: str, payload: dict[str, Any]
    ) -> None:
        if self.fail_edit:
            raise RuntimeError("edit failed")
        self.edited.append((channel_id, message_id, payload))

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        if self.fail_delete:
            raise RuntimeError("delete failed")
        self.deleted.append((channel_id, message_id))


class FakeProvider(EventProvider):
    """In-memory scheduled events with a log of every call."""

    def __init__(self) -> None:
        self.events: dict[str, ExternalEvent] = {}
        self.missing: list[str] = []
        self.calls: list[tuple[str, ...]] = []
        self.subscribers: dict[str, list[str]] = {}
        self.fail = False
        self.fail_permissions = False
        self._counter = 0

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("provider unavailable")

    def add_event(self, guild_id: str = "g1", **fields: Any) -> ExternalEvent:
        self._counter += 1
        event = ExternalEvent(
            id=fields.pop("id", f"e{self._counter}"),
            guild_id=guild_id,
            name=fields.pop("name", "Event"),
            **fields,
        )
        self.events[event.id] = event
        return event

    async def missing_permissions(self, guild_id: str) -> list[str]:
        self.calls.append(("missing_permissions", guild_id))
        if self.fail_permissions:
            raise RuntimeError("cannot fetch member")
        return list(self.missing)

    async def create_event(
        self, guild_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        self.calls.append(("create_event", guild_id))
        self._check()
        return self.add_event(
            guild_id,
            name=spec.name,
            description=spec.description,
            scheduled_start=spec.scheduled_start,
            scheduled_end=spec.scheduled_end,
            location=spec.location,
        )

    async def fetch_event(self, guild_id: str, event_id: str) -> ExternalEvent | None:
        self.calls.append(("fetch_event", event_id))
        self._check()
        return self.events.get(event_id)

    async def list_events(self, guild_id: str) -> list[ExternalEvent]:
        self.calls.append(("list_events", guild_id))
        self._check()
        return [e for e in self.events.values() if e.guild_id == guild_id]

    async def edit_event(
        self, guild_id: str, event_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        self.calls.append(("edit_event", event_id))
        self._check()
        event = self.events[event_id].model_copy(
            update={
                "name": spec.name,
                "description": spec.description,
                "scheduled_start": spec.scheduled_start,
                "scheduled_end": spec.scheduled_end,
            }
        )
        self.events[event_id] = event
        return event

    async def delete_event(self, guild_id: str, event_id: str) -> bool:
        self.calls.append(("delete_event", event_id))
        self._check()
        return self.events.pop(event_id, None) is not None

    async def fetch_subscribers(self, guild_id: str, event_id: str) -> list[str]:
        self.calls.append(("fetch_subscribers", event_id))
        self._check()
        return list(self.subscribers.get(event_id, []))


def make_draft(items: tuple[str, ...] = ("bread", "drinks"), **fields: Any) -> PotluckDraft:
    values: dict[str, Any] = {
        "name": "Holiday Potluck",
        "created_by": "u0",
        "guild_id": "g1",
        "channel_id": "c1",
        "items": [PotluckItem(name=name) for name in items],
    }
    values.update(fields)
    return PotluckDraft(**values)


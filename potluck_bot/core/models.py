"""Data models for the potluck core entities.

The models are implemented using :mod:`pydantic` so that they provide
runtime validation of the invariants the rest of the bot relies on. All
datetimes held by the models are timezone aware and normalised to UTC;
stores convert them to millisecond timestamps when persisting.
"""

from __future__ import annotations

import datetime
import enum
import uuid
from datetime import UTC

from pydantic import BaseModel, Field, field_validator, model_validator


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=UTC)


def to_millis(value: datetime.datetime | None) -> int | None:
    """Convert ``value`` to integer milliseconds since the epoch."""
    if value is None:
        return None
    return int(round(value.timestamp() * 1000))


def from_millis(value: int | float | None) -> datetime.datetime | None:
    """Inverse of :func:`to_millis`; ``None`` and ``0`` map to ``None``."""
    if not value:
        return None
    return datetime.datetime.fromtimestamp(value / 1000, tz=UTC)


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class PotluckItem(BaseModel):
    """A single thing to bring.

    Attributes
    ----------
    id:
        Identifier, unique within the owning potluck.
    name:
        Display name. Surrounding whitespace is stripped and the result must
        not be empty.
    claimed_by:
        User identifiers in the order they claimed the item.

    """

    id: str = Field(default_factory=new_id)
    name: str
    claimed_by: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("item name must not be empty")
        return value

    @field_validator("claimed_by")
    @classmethod
    def _unique_claimants(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("claimants must be unique")
        return value

    def is_claimed_by(self, user_id: str) -> bool:
        return user_id in self.claimed_by


class PotluckDraft(BaseModel):
    """Everything needed to create a potluck except its identity."""

    name: str
    date: str | None = None
    theme: str | None = None
    created_by: str
    guild_id: str
    channel_id: str
    message_id: str | None = None
    message_created_at: datetime.datetime | None = None
    discord_event_id: str | None = None
    event_start_time: datetime.datetime | None = None
    event_end_time: datetime.datetime | None = None
    rsvp_sync_enabled: bool = False
    items: list[PotluckItem] = Field(default_factory=list)

    @field_validator(
        "message_created_at", "event_start_time", "event_end_time", mode="after"
    )
    @classmethod
    def _normalise_datetimes(
        cls, value: datetime.datetime | None
    ) -> datetime.datetime | None:
        return _as_utc(value)

    @field_validator("message_id", "discord_event_id", "date", "theme")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("items")
    @classmethod
    def _unique_item_ids(cls, value: list[PotluckItem]) -> list[PotluckItem]:
        ids = [item.id for item in value]
        if len(set(ids)) != len(ids):
            raise ValueError("item identifiers must be unique")
        return value

    @model_validator(mode="after")
    def _linkage_invariants(self) -> PotluckDraft:
        if (self.message_id is None) != (self.message_created_at is None):
            raise ValueError(
                "message_id and message_created_at must be set together"
            )
        if self.discord_event_id is None and (
            self.event_start_time is not None
            or self.event_end_time is not None
            or self.rsvp_sync_enabled
        ):
            raise ValueError("event fields require a discord_event_id")
        return self


class Potluck(PotluckDraft):
    """One organised group event with a list of items to bring."""

    id: str = Field(default_factory=new_id)
    created_at: datetime.datetime = Field(default_factory=utcnow)

    @field_validator("created_at", mode="after")
    @classmethod
    def _created_utc(cls, value: datetime.datetime) -> datetime.datetime:
        return _as_utc(value)

    @classmethod
    def from_draft(cls, draft: PotluckDraft, **identity: object) -> Potluck:
        return cls(**draft.model_dump(), **identity)

    @property
    def has_display(self) -> bool:
        return self.message_id is not None

    @property
    def event_url(self) -> str | None:
        if not self.discord_event_id:
            return None
        return f"https://discord.com/events/{self.guild_id}/{self.discord_event_id}"

    def find_item(self, item_id: str) -> PotluckItem | None:
        return next((i for i in self.items if i.id == item_id), None)


class GuildSettings(BaseModel):
    """Per-guild configuration; at most one record per guild."""

    guild_id: str
    timezone: str
    updated_at: datetime.datetime = Field(default_factory=utcnow)
    updated_by: str

    @field_validator("updated_at", mode="after")
    @classmethod
    def _updated_utc(cls, value: datetime.datetime) -> datetime.datetime:
        return _as_utc(value)


class EventStatus(enum.IntEnum):
    """Lifecycle states of a Discord scheduled event."""

    SCHEDULED = 1
    ACTIVE = 2
    COMPLETED = 3
    CANCELED = 4

    @property
    def editable(self) -> bool:
        return self not in (EventStatus.ACTIVE, EventStatus.COMPLETED)


class ExternalEvent(BaseModel):
    """Snapshot of a scheduled event owned by the external platform."""

    id: str
    guild_id: str
    name: str
    description: str | None = None
    status: EventStatus = EventStatus.SCHEDULED
    scheduled_start: datetime.datetime | None = None
    scheduled_end: datetime.datetime | None = None
    location: str | None = None

    @field_validator("scheduled_start", "scheduled_end", mode="after")
    @classmethod
    def _event_utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return _as_utc(value)


class ScheduledEventSpec(BaseModel):
    """Fields pushed to the provider when creating or editing an event."""

    name: str
    description: str
    scheduled_start: datetime.datetime
    scheduled_end: datetime.datetime
    location: str | None = None


class NotificationKind(str, enum.Enum):
    UPDATED = "updated"
    DELETED = "deleted"
    USER_ADDED = "user_added"
    USER_REMOVED = "user_removed"


class EventNotification(BaseModel):
    """Inbound change notification for an external scheduled event."""

    kind: NotificationKind
    event: ExternalEvent
    user_id: str | None = None

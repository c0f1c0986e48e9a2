"""Create potlucks from form submissions and from existing scheduled events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .dates import DATE_EXAMPLES, DateResolver, ParsedEventDate, ParseMethod, format_event_date
from .display import DisplayReconciler
from .events import EventPermissionError, EventSynchronizer
from .models import ExternalEvent, Potluck, PotluckDraft, PotluckItem
from .storage import PotluckStorage

log = logging.getLogger(__name__)


def parse_item_names(text: str | None) -> list[str]:
    """One item per non-empty line, surrounding whitespace removed."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def permission_warning(missing: list[str]) -> str:
    names = ", ".join(f'"{name}"' for name in missing)
    return (
        "I couldn't create the Discord event because I'm missing permissions: "
        f"{names}. Ask a server admin to give me the **Manage Events** "
        "permission for full synchronization."
    )


@dataclass
class PotluckSubmission:
    """The fields of the potluck creation form."""

    name: str
    guild_id: str
    channel_id: str
    created_by: str
    items_text: str = ""
    date_text: str | None = None
    theme: str | None = None
    create_event: bool = False
    location: str | None = None
    timezone: str | None = None


@dataclass
class CreationOutcome:
    potluck: Potluck
    parsed_date: ParsedEventDate | None = None
    event: ExternalEvent | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        lines = [f"✅ Potluck **{self.potluck.name}** created!"]
        if self.event is not None and self.parsed_date is not None:
            lines.append(
                "📅 Discord event scheduled for "
                + format_event_date(self.parsed_date.start_time, self.parsed_date.timezone)
            )
        lines.extend(f"⚠️ {warning}" for warning in self.warnings)
        return "\n".join(lines)


class PotluckCreator:
    """Coordinate the store, the date resolver, the display and events."""

    def __init__(
        self,
        store: PotluckStorage,
        dates: DateResolver,
        display: DisplayReconciler,
        events: EventSynchronizer,
    ) -> None:
        self.store = store
        self.dates = dates
        self.display = display
        self.events = events

    async def create_potluck(self, submission: PotluckSubmission) -> CreationOutcome:
        """Create, publish and optionally link a scheduled event.

        Failing to create the event never undoes the potluck; the reason is
        added to :attr:`CreationOutcome.warnings` instead.
        """
        draft = PotluckDraft(
            name=submission.name.strip(),
            date=submission.date_text,
            theme=submission.theme,
            created_by=submission.created_by,
            guild_id=submission.guild_id,
            channel_id=submission.channel_id,
            items=[PotluckItem(name=n) for n in parse_item_names(submission.items_text)],
        )
        potluck = self.store.create_potluck(draft)
        log.info(
            "Created potluck %s with %d items in guild %s",
            potluck.id,
            len(potluck.items),
            potluck.guild_id,
        )
        await self.display.publish(potluck)
        outcome = CreationOutcome(potluck=potluck)
        if not submission.create_event:
            return outcome

        parsed = self.dates.resolve(
            submission.date_text,
            guild_id=submission.guild_id,
            timezone=submission.timezone,
        )
        outcome.parsed_date = parsed
        if parsed.method is ParseMethod.DEFAULT and parsed.original_input:
            outcome.warnings.append(
                f'I couldn\'t understand the date "{parsed.original_input}", so the '
                "event starts in two hours. Try something like: "
                + ", ".join(DATE_EXAMPLES[:3])
            )
        elif parsed.was_ambiguous:
            outcome.warnings.append(
                "The date didn't say which month or year; double-check the event time."
            )

        try:
            event = await self.events.create_event_for_potluck(
                potluck,
                start=parsed.start_time,
                end=parsed.end_time,
                location=submission.location,
            )
        except EventPermissionError as exc:
            outcome.warnings.append(permission_warning(exc.missing_permissions))
            return outcome

        if event is None:
            outcome.warnings.append(
                "The potluck was created, but the Discord event could not be created."
            )
            return outcome

        outcome.event = event
        await self.display.refresh(potluck.id)
        return outcome

    async def create_potluck_from_event(
        self,
        event: ExternalEvent,
        *,
        channel_id: str,
        created_by: str,
        items_text: str = "",
        theme: str | None = None,
        location: str | None = None,
        timezone: str | None = None,
    ) -> CreationOutcome | None:
        """Build a potluck around an existing scheduled event.

        Returns ``None`` when a potluck is already linked to ``event``.
        """
        existing = self.store.get_potluck_by_event_id(event.id)
        if existing is not None:
            log.info("Event %s already has potluck %s", event.id, existing.id)
            return None

        label = None
        if event.scheduled_start is not None:
            label = format_event_date(
                event.scheduled_start, self.dates.effective_timezone(event.guild_id, timezone)
            )
        draft = PotluckDraft(
            name=event.name,
            date=label,
            theme=theme,
            created_by=created_by,
            guild_id=event.guild_id,
            channel_id=channel_id,
            discord_event_id=event.id,
            event_start_time=event.scheduled_start,
            event_end_time=event.scheduled_end,
            rsvp_sync_enabled=True,
            items=[PotluckItem(name=n) for n in parse_item_names(items_text)],
        )
        potluck = self.store.create_potluck(draft)
        log.info("Created potluck %s from event %s", potluck.id, event.id)
        await self.display.publish(potluck)

        outcome = CreationOutcome(potluck=potluck, event=event)
        if not await self.events.update_event_from_potluck(potluck, location):
            outcome.warnings.append(
                "I couldn't update the Discord event description. Ask a server "
                "admin to give me the **Manage Events** permission for full "
                "synchronization."
            )
        return outcome

    @staticmethod
    def existing_potluck_message(potluck: Potluck) -> str:
        return (
            "A potluck already exists for this event! Check "
            f"<#{potluck.channel_id}> for the potluck message."
        )

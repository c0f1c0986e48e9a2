"""Keep a potluck's summary message in step with its stored state.

Discord only allows a message to be edited for a limited time after it was
posted. Within that window the summary is edited in place; once it has
passed, or when the edit fails for any other reason, the old message is
retired and a new one is published and remembered in the store.
"""

from __future__ import annotations

import datetime
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..adapters.base import MessageChannel
from .models import Potluck, utcnow
from .rendering import summary_payload
from .storage import PotluckStorage

log = logging.getLogger(__name__)

EDIT_WINDOW = datetime.timedelta(minutes=15)


class DisplayState(enum.Enum):
    NO_DISPLAY = "no_display"
    FRESH = "fresh"
    EXPIRED = "expired"


class DisplayOutcome(enum.Enum):
    SKIPPED = "skipped"
    EDITED = "edited"
    REPUBLISHED = "republished"
    FAILED = "failed"


@dataclass(frozen=True)
class DisplayUpdate:
    outcome: DisplayOutcome
    message_id: str | None = None

    @property
    def updated(self) -> bool:
        return self.outcome in (DisplayOutcome.EDITED, DisplayOutcome.REPUBLISHED)


class DisplayReconciler:
    """Edit or replace the summary message of a potluck."""

    def __init__(
        self,
        store: PotluckStorage,
        channel: MessageChannel,
        edit_window: datetime.timedelta = EDIT_WINDOW,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.store = store
        self.channel = channel
        self.edit_window = edit_window
        self.clock = clock

    def classify(
        self, potluck: Potluck, now: datetime.datetime | None = None
    ) -> DisplayState:
        if not potluck.message_id or not potluck.message_created_at:
            return DisplayState.NO_DISPLAY
        age = (now or self.clock()) - potluck.message_created_at
        return DisplayState.FRESH if age <= self.edit_window else DisplayState.EXPIRED

    async def publish(self, potluck: Potluck) -> str:
        """Post the first summary for ``potluck`` and remember it.

        Platform errors propagate; the caller decides how to report them.
        """
        message_id = await self.channel.send_message(
            potluck.channel_id, summary_payload(potluck)
        )
        created_at = self.clock()
        self.store.update_potluck_message(potluck.id, message_id, created_at)
        potluck.message_id = message_id
        potluck.message_created_at = created_at
        log.info("Published summary %s for potluck %s", message_id, potluck.id)
        return message_id

    async def refresh(self, potluck_id: str) -> DisplayUpdate:
        """Bring the summary of ``potluck_id`` up to date.

        Runs Fresh -> Expired -> Republished at most once. A failure to
        publish the replacement is reported as ``FAILED`` and left for the
        next mutation to repair.
        """
        potluck = self.store.get_potluck(potluck_id)
        if potluck is None:
            log.info("Skipping display refresh, potluck %s not found", potluck_id)
            return DisplayUpdate(DisplayOutcome.SKIPPED)

        state = self.classify(potluck)
        if state is DisplayState.NO_DISPLAY:
            return DisplayUpdate(DisplayOutcome.SKIPPED)

        payload = summary_payload(potluck)
        if state is DisplayState.FRESH:
            try:
                await self.channel.edit_message(
                    potluck.channel_id, potluck.message_id, payload
                )
                return DisplayUpdate(DisplayOutcome.EDITED, potluck.message_id)
            except Exception as exc:
                log.warning(
                    "Editing summary %s of potluck %s failed: %s",
                    potluck.message_id,
                    potluck.id,
                    exc,
                )

        # expired, or the in-place edit failed
        await self._retire(potluck)
        try:
            message_id = await self.channel.send_message(potluck.channel_id, payload)
        except Exception:
            log.exception("Could not republish summary of potluck %s", potluck.id)
            return DisplayUpdate(DisplayOutcome.FAILED)

        self.store.update_potluck_message(potluck.id, message_id, self.clock())
        log.info(
            "Republished summary of potluck %s as %s (was %s)",
            potluck.id,
            message_id,
            potluck.message_id,
        )
        return DisplayUpdate(DisplayOutcome.REPUBLISHED, message_id)

    async def _retire(self, potluck: Potluck) -> None:
        try:
            await self.channel.delete_message(potluck.channel_id, potluck.message_id)
        except Exception as exc:
            log.info("Could not delete old summary %s: %s", potluck.message_id, exc)

import datetime
from datetime import UTC

import pytest
from pydantic import ValidationError

from potluck_bot.core.models import (
    EventStatus,
    Potluck,
    PotluckDraft,
    PotluckItem,
    from_millis,
    to_millis,
)


def test_item_name_is_stripped_and_required():
    assert PotluckItem(name="  bread ").name == "bread"
    with pytest.raises(ValidationError):
        PotluckItem(name="   ")


def test_item_claimants_must_be_unique():
    with pytest.raises(ValidationError):
        PotluckItem(name="bread", claimed_by=["a", "a"])


def test_message_fields_are_set_together():
    with pytest.raises(ValidationError):
        PotluckDraft(name="p", created_by="u", guild_id="g", channel_id="c", message_id="m")


def test_event_fields_require_event_id():
    with pytest.raises(ValidationError):
        PotluckDraft(
            name="p",
            created_by="u",
            guild_id="g",
            channel_id="c",
            rsvp_sync_enabled=True,
        )


def test_blank_identifiers_become_none():
    draft = PotluckDraft(
        name="p", created_by="u", guild_id="g", channel_id="c", discord_event_id=""
    )
    assert draft.discord_event_id is None


def test_item_ids_are_unique_within_a_potluck():
    item = PotluckItem(name="bread")
    with pytest.raises(ValidationError):
        PotluckDraft(
            name="p", created_by="u", guild_id="g", channel_id="c", items=[item, item]
        )


def test_naive_datetimes_are_treated_as_utc():
    potluck = Potluck(
        name="p",
        created_by="u",
        guild_id="g",
        channel_id="c",
        message_id="m",
        message_created_at=datetime.datetime(2024, 1, 1, 12, 0),
    )
    assert potluck.message_created_at.tzinfo == UTC
    assert potluck.has_display


def test_event_url():
    potluck = Potluck(
        name="p", created_by="u", guild_id="g1", channel_id="c", discord_event_id="e9"
    )
    assert potluck.event_url == "https://discord.com/events/g1/e9"
    assert Potluck(name="p", created_by="u", guild_id="g", channel_id="c").event_url is None


def test_millis_conversion():
    value = datetime.datetime(2024, 12, 14, 23, 0, tzinfo=UTC)
    assert to_millis(value) == 1734217200000
    assert from_millis(1734217200000) == value
    assert from_millis(0) is None
    assert to_millis(None) is None


def test_live_events_are_not_editable():
    assert EventStatus.SCHEDULED.editable
    assert EventStatus.CANCELED.editable
    assert not EventStatus.ACTIVE.editable
    assert not EventStatus.COMPLETED.editable

import asyncio
import datetime

from fakes import NOW

from potluck_bot.core.display import DisplayOutcome, DisplayReconciler, DisplayState


def published(store, channel, clock, potluck):
    display = DisplayReconciler(store, channel, clock=clock)
    asyncio.run(display.publish(potluck))
    return display


def test_publish_records_message(store, channel, clock, potluck):
    published(store, channel, clock, potluck)
    stored = store.get_potluck(potluck.id)
    assert stored.message_id == "m1"
    assert stored.message_created_at == NOW
    assert channel.sent[0][0] == "c1"


def test_classify(store, channel, clock, potluck):
    display = DisplayReconciler(store, channel, clock=clock)
    assert display.classify(potluck) is DisplayState.NO_DISPLAY
    asyncio.run(display.publish(potluck))
    assert display.classify(potluck) is DisplayState.FRESH
    later = NOW + datetime.timedelta(minutes=16)
    assert display.classify(potluck, later) is DisplayState.EXPIRED


def test_fresh_message_is_edited(store, channel, clock, potluck):
    display = published(store, channel, clock, potluck)
    clock.advance(minutes=10)

    update = asyncio.run(display.refresh(potluck.id))

    assert update.outcome is DisplayOutcome.EDITED
    assert channel.edited[0][1] == "m1"
    assert len(channel.sent) == 1
    assert channel.deleted == []


def test_expired_message_is_republished(store, channel, clock, potluck):
    display = published(store, channel, clock, potluck)
    clock.advance(minutes=20)

    update = asyncio.run(display.refresh(potluck.id))

    assert update.outcome is DisplayOutcome.REPUBLISHED
    assert update.message_id == "m2"
    assert channel.edited == []
    assert channel.deleted == [("c1", "m1")]
    stored = store.get_potluck(potluck.id)
    assert stored.message_id == "m2"
    assert stored.message_created_at == NOW + datetime.timedelta(minutes=20)


def test_failed_edit_falls_back_to_republish(store, channel, clock, potluck):
    display = published(store, channel, clock, potluck)
    channel.fail_edit = True

    update = asyncio.run(display.refresh(potluck.id))

    assert update.outcome is DisplayOutcome.REPUBLISHED
    assert store.get_potluck(potluck.id).message_id == "m2"


def test_retire_failure_is_ignored(store, channel, clock, potluck):
    display = published(store, channel, clock, potluck)
    clock.advance(hours=1)
    channel.fail_delete = True

    update = asyncio.run(display.refresh(potluck.id))

    assert update.outcome is DisplayOutcome.REPUBLISHED


def test_failed_republish_reports_no_update(store, channel, clock, potluck):
    display = published(store, channel, clock, potluck)
    clock.advance(hours=1)
    channel.fail_send = True

    update = asyncio.run(display.refresh(potluck.id))

    assert update.outcome is DisplayOutcome.FAILED
    assert not update.updated
    assert store.get_potluck(potluck.id).message_id == "m1"


def test_refresh_without_display_is_skipped(store, channel, clock, potluck):
    display = DisplayReconciler(store, channel, clock=clock)
    assert asyncio.run(display.refresh(potluck.id)).outcome is DisplayOutcome.SKIPPED
    assert asyncio.run(display.refresh("nope")).outcome is DisplayOutcome.SKIPPED
    assert channel.sent == []


def test_edit_window_is_configurable(store, channel, clock, potluck):
    display = DisplayReconciler(
        store, channel, edit_window=datetime.timedelta(minutes=1), clock=clock
    )
    asyncio.run(display.publish(potluck))
    clock.advance(minutes=2)
    assert asyncio.run(display.refresh(potluck.id)).outcome is DisplayOutcome.REPUBLISHED

import datetime
import json
import sqlite3
from datetime import UTC

import pytest
from fakes import make_draft

from potluck_bot.core.models import Potluck, PotluckItem, to_millis, utcnow
from potluck_bot.core.storage import PotluckNotFoundError, StorageError
from potluck_bot.data.sqlite_store import _MIGRATIONS, SQLitePotluckStore
from potluck_bot.data.store import JSONPotluckStore


@pytest.fixture(params=["memory", "json", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        s = JSONPotluckStore(path=None)
    elif request.param == "json":
        s = JSONPotluckStore(path=str(tmp_path / "potluck.json"))
    else:
        s = SQLitePotluckStore(str(tmp_path / "potluck.db"))
    yield s
    s.close()


def test_create_assigns_identity(any_store):
    before = utcnow()
    potluck = any_store.create_potluck(make_draft())
    assert potluck.id
    assert before <= potluck.created_at <= utcnow()
    assert [i.name for i in potluck.items] == ["bread", "drinks"]
    assert all(i.claimed_by == [] for i in potluck.items)
    assert any_store.get_potluck(potluck.id).name == "Holiday Potluck"


def test_missing_potluck_is_none(any_store):
    assert any_store.get_potluck("nope") is None
    assert any_store.get_potluck_by_event_id("") is None
    assert any_store.get_potlucks_by_guild("nope") == []


def test_claim_is_idempotent(any_store):
    potluck = any_store.create_potluck(make_draft())
    item_id = potluck.items[0].id
    assert any_store.claim_item(potluck.id, item_id, "a")
    assert any_store.claim_item(potluck.id, item_id, "a")
    assert any_store.get_potluck(potluck.id).items[0].claimed_by == ["a"]


def test_claims_keep_order(any_store):
    potluck = any_store.create_potluck(make_draft())
    item_id = potluck.items[0].id
    any_store.claim_item(potluck.id, item_id, "a")
    any_store.claim_item(potluck.id, item_id, "b")
    assert any_store.get_potluck(potluck.id).items[0].claimed_by == ["a", "b"]


def test_unclaim_restores_previous_claimants(any_store):
    potluck = any_store.create_potluck(make_draft())
    item_id = potluck.items[1].id
    any_store.claim_item(potluck.id, item_id, "a")
    any_store.claim_item(potluck.id, item_id, "b")
    assert any_store.unclaim_item(potluck.id, item_id, "b")
    assert any_store.get_potluck(potluck.id).items[1].claimed_by == ["a"]
    assert not any_store.unclaim_item(potluck.id, item_id, "zed")


def test_claim_unknown_targets(any_store):
    potluck = any_store.create_potluck(make_draft())
    assert not any_store.claim_item("nope", potluck.items[0].id, "a")
    assert not any_store.claim_item(potluck.id, "nope", "a")
    assert not any_store.unclaim_item("nope", "nope", "a")


def test_update_potluck_round_trip(any_store):
    potluck = any_store.create_potluck(make_draft(items=("a", "b", "c")))
    potluck.name = "Renamed"
    potluck.theme = "Tacos"
    potluck.items.reverse()
    potluck.items[0].claimed_by.append("u1")
    potluck.items.append(PotluckItem(name="d"))
    any_store.update_potluck(potluck)

    stored = any_store.get_potluck(potluck.id)
    assert stored.name == "Renamed"
    assert stored.theme == "Tacos"
    assert [(i.id, i.name, i.claimed_by) for i in stored.items] == [
        (i.id, i.name, i.claimed_by) for i in potluck.items
    ]


@pytest.mark.parametrize("items", [(), ("bread",)])
def test_update_unknown_potluck_is_rejected(any_store, items):
    ghost = Potluck.from_draft(make_draft(items=items), id="ghost")
    with pytest.raises(PotluckNotFoundError):
        any_store.update_potluck(ghost)
    assert any_store.get_potluck("ghost") is None


def test_update_message_pointer(any_store):
    potluck = any_store.create_potluck(make_draft())
    at = datetime.datetime(2024, 12, 11, 17, 0, tzinfo=UTC)
    assert any_store.update_potluck_message(potluck.id, "m1", at)
    stored = any_store.get_potluck(potluck.id)
    assert stored.message_id == "m1"
    assert stored.message_created_at == at
    assert not any_store.update_potluck_message("nope", "m1", at)


def test_event_linkage_set_and_cleared(any_store):
    potluck = any_store.create_potluck(make_draft())
    start = datetime.datetime(2024, 12, 14, 23, 0, tzinfo=UTC)
    end = start + datetime.timedelta(hours=3)
    assert any_store.update_discord_event(potluck.id, "e1", start, end, True)

    linked = any_store.get_potluck_by_event_id("e1")
    assert linked.id == potluck.id
    assert (linked.event_start_time, linked.event_end_time) == (start, end)
    assert linked.rsvp_sync_enabled

    assert any_store.update_discord_event(potluck.id, "")
    cleared = any_store.get_potluck(potluck.id)
    assert cleared.discord_event_id is None
    assert cleared.event_start_time is None
    assert cleared.event_end_time is None
    assert not cleared.rsvp_sync_enabled
    assert any_store.get_potluck_by_event_id("e1") is None


def test_add_custom_item(any_store):
    potluck = any_store.create_potluck(make_draft())
    item = any_store.add_custom_item(potluck.id, "  salsa ", claimed_by="u1")
    assert item.name == "salsa"
    stored = any_store.get_potluck(potluck.id)
    assert stored.items[-1].id == item.id
    assert stored.items[-1].claimed_by == ["u1"]

    with pytest.raises(ValueError):
        any_store.add_custom_item(potluck.id, "   ")
    with pytest.raises(PotluckNotFoundError):
        any_store.add_custom_item("nope", "salsa")


def test_potlucks_by_guild(any_store):
    a = any_store.create_potluck(make_draft(guild_id="g1"))
    any_store.create_potluck(make_draft(guild_id="g2"))
    assert [p.id for p in any_store.get_potlucks_by_guild("g1")] == [a.id]


def test_guild_settings_upsert(any_store):
    assert any_store.get_guild_settings("g1") is None
    any_store.set_guild_timezone("g1", "America/Chicago", "u1")
    any_store.set_guild_timezone("g1", "UTC", "u2")
    settings = any_store.get_guild_settings("g1")
    assert settings.timezone == "UTC"
    assert settings.updated_by == "u2"


def test_returned_potlucks_are_copies(any_store):
    potluck = any_store.create_potluck(make_draft())
    fetched = any_store.get_potluck(potluck.id)
    fetched.items[0].claimed_by.append("sneaky")
    assert any_store.get_potluck(potluck.id).items[0].claimed_by == []


@pytest.mark.parametrize("kind", ["json", "sqlite"])
def test_state_survives_reopen(tmp_path, kind):
    def open_store():
        if kind == "json":
            return JSONPotluckStore(path=str(tmp_path / "potluck.json"))
        return SQLitePotluckStore(str(tmp_path / "potluck.db"))

    first = open_store()
    potluck = first.create_potluck(make_draft(items=("a", "b", "c")))
    first.claim_item(potluck.id, potluck.items[2].id, "u1")
    first.set_guild_timezone("g1", "America/Denver", "u1")
    first.close()

    second = open_store()
    stored = second.get_potluck(potluck.id)
    assert [i.name for i in stored.items] == ["a", "b", "c"]
    assert stored.items[2].claimed_by == ["u1"]
    assert to_millis(stored.created_at) == to_millis(potluck.created_at)
    assert second.get_guild_settings("g1").timezone == "America/Denver"
    second.close()


def test_json_file_layout(tmp_path):
    path = tmp_path / "potluck.json"
    s = JSONPotluckStore(path=str(path))
    potluck = s.create_potluck(make_draft())
    s.update_discord_event(potluck.id, "e1", rsvp_sync_enabled=True)

    data = json.loads(path.read_text(encoding="utf-8"))
    row = data["potlucks"][potluck.id]
    assert row["created_at"] == to_millis(potluck.created_at)
    assert row["rsvp_sync_enabled"] == 1
    assert [r["name"] for r in data["potluck_items"]] == ["bread", "drinks"]
    assert json.loads(data["potluck_items"][0]["claimed_by"]) == []
    assert data["guild_settings"] == {}


def test_json_failed_write_rolls_back(tmp_path, monkeypatch):
    s = JSONPotluckStore(path=str(tmp_path / "potluck.json"))
    potluck = s.create_potluck(make_draft())

    def broken_save():
        raise OSError("disk full")

    monkeypatch.setattr(s, "save", broken_save)
    with pytest.raises(StorageError):
        s.claim_item(potluck.id, potluck.items[0].id, "u1")
    assert s.get_potluck(potluck.id).items[0].claimed_by == []


def test_json_unreadable_file(tmp_path):
    path = tmp_path / "potluck.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        JSONPotluckStore(path=str(path))


def test_sqlite_schema_version(tmp_path):
    path = tmp_path / "potluck.db"
    SQLitePotluckStore(str(path)).close()
    with sqlite3.connect(path) as conn:
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        tables = {
            r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    assert version == len(_MIGRATIONS)
    assert {"potlucks", "potluck_items", "guild_settings"} <= tables


def test_sqlite_faults_become_storage_errors(tmp_path):
    s = SQLitePotluckStore(str(tmp_path / "potluck.db"))
    s.close()
    with pytest.raises(StorageError):
        s.get_potluck("anything")


def test_sqlite_claims_from_two_connections(tmp_path):
    path = str(tmp_path / "potluck.db")
    first = SQLitePotluckStore(path)
    second = SQLitePotluckStore(path)
    try:
        potluck = first.create_potluck(make_draft())
        item_id = potluck.items[0].id
        assert first.claim_item(potluck.id, item_id, "a")
        assert second.claim_item(potluck.id, item_id, "b")
        assert not first._conn.in_transaction
        assert first.get_potluck(potluck.id).items[0].claimed_by == ["a", "b"]
        assert first.unclaim_item(potluck.id, item_id, "b")
        assert second.get_potluck(potluck.id).items[0].claimed_by == ["a"]
    finally:
        first.close()
        second.close()

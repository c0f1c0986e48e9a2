"""Fixtures shared by the potluck service tests."""

from __future__ import annotations

import pytest
from fakes import FakeChannel, FakeClock, FakeProvider, make_draft

from potluck_bot.core.models import Potluck
from potluck_bot.data.store import JSONPotluckStore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> JSONPotluckStore:
    return JSONPotluckStore(path=None)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def potluck(store: JSONPotluckStore) -> Potluck:
    return store.create_potluck(make_draft())

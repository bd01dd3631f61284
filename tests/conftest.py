"""Shared fixtures: an in-memory Mongo database and a controllable clock."""

from datetime import datetime
from uuid import uuid4

import pytest
from mongomock_motor import AsyncMongoMockClient
from pytz import UTC

from tests.helpers import USER_ID, FakeClock
from timekeeper.utils.session_utils import CheckoutPolicy, SessionStateMachine
from timekeeper.utils.store_utils import LogStore


@pytest.fixture
def database():
    """Create a fresh in-memory database per test."""
    return AsyncMongoMockClient()[f"timekeeper_{uuid4().hex}"]


@pytest.fixture
def store(database):
    return LogStore(database)


@pytest.fixture
def clock():
    # Monday 4 March 2024, 09:00 UTC
    return FakeClock(datetime(2024, 3, 4, 9, 0, tzinfo=UTC))


@pytest.fixture
def machine(store, clock):
    return SessionStateMachine(store, USER_ID, clock=clock, checkout_policy=CheckoutPolicy.REJECT, tz=UTC)


@pytest.fixture
def auto_close_machine(store, clock):
    return SessionStateMachine(store, USER_ID, clock=clock, checkout_policy=CheckoutPolicy.AUTO_CLOSE, tz=UTC)

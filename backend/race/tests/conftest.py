import pytest

from race.logic.engine import MatchEngine
from race.logic.registry import RoomRegistry
from race.messaging.router import MessageRouter
from race.session.manager import SessionManager
from race.tests.helpers.clock import FakeClock
from race.tests.mocks import MockConnection


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def engine(registry, clock):
    return MatchEngine(registry, clock=clock, tap_clock=clock)


@pytest.fixture
def session_manager(clock):
    return SessionManager(clock=clock, tap_clock=clock, countdown_tick_seconds=0, race_timeout_seconds=0)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


"""pytest configuration and fixtures."""

import random
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from glimpse.config import MatchingConfig
from glimpse.services import (
    LikeService,
    MatchService,
    NotificationDispatcher,
    RecommendationService,
    SqlMembershipDirectory,
)
from glimpse.utils.cache import RedisClient
from glimpse.utils.database import Base, GroupDB, GroupMembershipDB, UserDB, create_db_engine

NOW = datetime(2026, 3, 10, 12, 0, 0)


class FrozenClock:
    """Clock returning a fixed naive UTC time that tests can move forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent = []

    def notify(self, user_id, kind, payload) -> None:
        self.sent.append((user_id, kind, payload))


class RecordingReportSink:
    def __init__(self) -> None:
        self.reports = []

    def submit(self, report) -> None:
        self.reports.append(report)


@pytest.fixture(autouse=True)
def disable_redis():
    """Run every test without a cache backend."""
    RedisClient._instance = None
    RedisClient._failed = True
    yield
    RedisClient.reset()


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def config():
    return MatchingConfig()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def report_sink():
    return RecordingReportSink()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def membership():
    return SqlMembershipDirectory()


@pytest.fixture
def match_service(session_factory, config, dispatcher, membership, report_sink, clock):
    return MatchService(session_factory, config, dispatcher, membership, report_sink=report_sink, clock=clock)


@pytest.fixture
def like_service(session_factory, config, dispatcher, membership, match_service, clock):
    return LikeService(session_factory, config, dispatcher, membership, match_service, clock=clock)


@pytest.fixture
def recommendation_service(session_factory, config, membership, clock):
    return RecommendationService(session_factory, config, membership, rng=random.Random(42), clock=clock)


@pytest.fixture
def make_user(session_factory):
    """Insert a user row and return its id."""

    def _make_user(user_id, **fields):
        values = {
            "nickname": f"nick_{user_id}",
            "age": 28,
            "gender": "female",
            "credits": 5,
            "is_premium": False,
            "created_at": NOW - timedelta(days=100),
            "last_active": NOW - timedelta(minutes=30),
        }
        values.update(fields)
        with session_factory() as session:
            session.add(UserDB(id=user_id, **values))
            session.commit()
        return user_id

    return _make_user


@pytest.fixture
def make_group(session_factory):
    """Insert a group with the given active members."""

    def _make_group(group_id, members=(), name=None, status="active"):
        with session_factory() as session:
            if session.get(GroupDB, group_id) is None:
                session.add(GroupDB(id=group_id, name=name or f"Group {group_id}", type="company"))
            for user_id in members:
                session.add(GroupMembershipDB(user_id=user_id, group_id=group_id, status=status))
            session.commit()
        return group_id

    return _make_group


@pytest.fixture
def get_user(session_factory):
    def _get_user(user_id):
        with session_factory() as session:
            return session.get(UserDB, user_id)

    return _get_user

"""
Test configuration and fixtures for the link reconciler.
This centralizes all test setup, making individual tests clean.

Primary store: SQLAlchemy over an in-memory SQLite database.
Derived store: InMemoryDerivedStore.
Time: a fixed clock that tests advance explicitly.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from reconciler_app.config import ReconcilerConfig, Settings
from reconciler_app.database.connection import Base, create_session_factory
from reconciler_app.models.resource import Resource
from reconciler_app.storage.gateway import StorageGateway
from reconciler_app.storage.primary import SQLAlchemyPrimaryStore
from reconciler_app.storage.strategies import InMemoryDerivedStore

BASE_URL = "https://s.example.com"
PREFIX = "r"
START = datetime(2024, 3, 1, 12, 0, 0)


class FakeClock:
    """Callable clock returning a controllable naive UTC time"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory database for each test.
    StaticPool keeps the single connection so every session sees the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture(scope="function")
def primary_store(session_factory, clock):
    """Primary store reading time from the fake clock instead of the database"""
    return SQLAlchemyPrimaryStore(session_factory, clock=clock)


@pytest.fixture(scope="function")
def derived_store():
    return InMemoryDerivedStore()


@pytest.fixture(scope="function")
def gateway(primary_store, derived_store):
    return StorageGateway(primary=primary_store, derived=derived_store)


@pytest.fixture(scope="function")
def config():
    return ReconcilerConfig(
        base_url=BASE_URL,
        prefix=PREFIX,
        lookback_days=1,
        tasks=("fixResources",),
    )


@pytest.fixture(scope="function")
def settings():
    return Settings(
        short_link_base_url=BASE_URL,
        short_link_prefix=PREFIX,
        derived_store_backend="memory",
    )


@pytest.fixture(scope="function")
def add_resource(session_factory, clock):
    """
    Insert a resource row. Defaults describe a record that the short link
    pass will pick up: active, primary, absolute URL, updated an hour ago.
    """
    def _add(resource_id, **fields):
        values = {
            "name": f"Resource {resource_id}",
            "resource_url": f"https://example.org/resources/{resource_id}",
            "short_url": None,
            "active": True,
            "primary": True,
            "updated_at": clock.now - timedelta(hours=1),
        }
        values.update(fields)
        db = session_factory()
        try:
            db.add(Resource(id=resource_id, **values))
            db.commit()
        finally:
            db.close()

    return _add


@pytest.fixture(scope="function")
def load_resource(session_factory):
    """Read a resource row back as a detached object"""
    def _load(resource_id):
        db = session_factory()
        try:
            row = db.get(Resource, resource_id)
            if row is not None:
                db.expunge(row)
            return row
        finally:
            db.close()

    return _load

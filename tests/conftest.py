"""Pytest configuration and fixtures."""

import time
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import scanjobs.models  # noqa: F401
from scanjobs.database import Base
from scanjobs.main import create_app
from scanjobs.models.record import Record
from scanjobs.services.job_repository import JobRepository
from scanjobs.services.record_catalog import RecordCatalog
from scanjobs.services.scan_service import ScanService
from scanjobs.services.state_store import StateStore
from scanjobs.services.task_scheduler import TaskScheduler, create_background_scheduler


class FakeClock:
    """Settable clock returning UNIX seconds."""

    def __init__(self, now: Optional[float] = None):
        self.now = time.time() if now is None else now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="function")
def session_factory():
    """Create a test database for each test."""
    # Use in-memory SQLite shared across threads
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield TestingSessionLocal

    engine.dispose()


@pytest.fixture
def records(session_factory):
    """Seed posts and pages. Returns ids grouped by kind."""
    db = session_factory()
    rows = {
        "post": [Record(record_type="post", status="publish", title=f"Post {i}") for i in range(3)],
        "page": [Record(record_type="page", status="publish", title=f"Page {i}") for i in range(2)],
        "draft": [Record(record_type="post", status="draft", title="Draft")],
        "other": [Record(record_type="product", status="publish", title="Product")],
    }
    for group in rows.values():
        db.add_all(group)
    db.commit()

    ids = {kind: [r.id for r in group] for kind, group in rows.items()}
    db.close()
    return ids


@pytest.fixture
def tasks():
    """Paused scheduler: jobs get run times but never fire on their own."""
    scheduler = TaskScheduler(create_background_scheduler())
    scheduler.start(paused=True)

    yield scheduler

    scheduler.shutdown()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(session_factory, clock):
    return StateStore(session_factory, clock=clock)


@pytest.fixture
def repository(store, tasks):
    return JobRepository(store, tasks)


@pytest.fixture
def catalog(session_factory):
    return RecordCatalog(
        session_factory,
        supported_types={"post": "Post", "page": "Page", "book": "Book"},
        default_types=["post", "page"],
    )


@pytest.fixture
def service(repository, catalog, tasks, clock):
    return ScanService(
        repository,
        catalog,
        tasks,
        default_batch_size=50,
        min_batch_size=10,
        max_batch_size=200,
        batch_delay_seconds=5,
        cron_interval_seconds=86400,
        clock=clock,
    )


@pytest.fixture
def client(service):
    app = create_app(service=service, run_scheduler=False)
    return TestClient(app)


def _wait_for(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.05) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Poll a predicate until it is true or the timeout passes."""
    return _wait_for


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite database that several threads and services can share."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'scanjobs.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()

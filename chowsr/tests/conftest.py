from __future__ import annotations

import os
from datetime import datetime, timezone

os.environ.setdefault("DB_PATH", ":memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from chowsr.app import app  # noqa: E402
from chowsr.lookup.restaurants import clear_caches  # noqa: E402
from chowsr.rate_limit import restaurant_limiter  # noqa: E402
from chowsr.storage.session import get_db, init_db, make_engine  # noqa: E402

FIXED_NOW = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_process_state():
    clear_caches()
    restaurant_limiter.reset()
    yield
    clear_caches()
    restaurant_limiter.reset()


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

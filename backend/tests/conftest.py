from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="daysheet-tests-"))
os.environ.setdefault("DAYSHEET_SQLITE_PATH", str(_TEST_ROOT / "app.db"))
os.environ.setdefault("DAYSHEET_EXPORT_DIR", str(_TEST_ROOT / "exports"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from daysheet import models  # noqa: E402
from daysheet.database import get_db  # noqa: E402
from daysheet.main import app  # noqa: E402
from daysheet.state import RuntimeState  # noqa: E402


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def runtime_state() -> Generator[RuntimeState, None, None]:
    state: RuntimeState = app.state.runtime_state
    original = state.snapshot()
    try:
        yield state
    finally:
        state.apply(original)


@pytest.fixture(scope="function")
def client(session: Session, runtime_state: RuntimeState) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

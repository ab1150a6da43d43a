"""Shared fixtures: an isolated SQLite database, in-memory storage, and the rule configuration."""

import os
import tempfile
from collections.abc import Generator

_DB_DIR = tempfile.mkdtemp(prefix="apnexus-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["DISAMBIGUATOR"] = "groq"
os.environ.pop("GROQ_API_KEY", None)
os.environ.pop("RULES_FILE", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.db import FuelTransactionRecord, SessionLocal, Vehicle, init_db, jobs_table  # noqa: E402
from app.rules.config import RuleConfig, load_rule_config  # noqa: E402
from app.services.file_service import FileService  # noqa: E402


class InMemoryStorage:
    """Object storage stand-in keeping objects in a dict."""

    def __init__(self) -> None:
        """Start empty."""
        self.objects: dict[str, bytes] = {}

    def upload_fileobj(self, key: str, data: bytes) -> None:
        """Store bytes under key."""
        self.objects[key] = data

    def download_fileobj(self, key: str) -> bytes:
        """Return stored bytes, KeyError when missing."""
        return self.objects[key]

    def file_exists(self, key: str) -> bool:
        """Whether key was stored."""
        return key in self.objects


@pytest.fixture
def config() -> RuleConfig:
    """Shipped rule configuration."""
    return load_rule_config()


@pytest.fixture
def storage() -> InMemoryStorage:
    """Fresh in-memory storage."""
    return InMemoryStorage()


@pytest.fixture
def file_service(storage: InMemoryStorage) -> FileService:
    """FileService over in-memory storage."""
    return FileService(storage)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Session on an emptied test database."""
    init_db()
    session = SessionLocal()
    session.execute(delete(FuelTransactionRecord))
    session.execute(delete(Vehicle))
    session.execute(delete(jobs_table))
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session: Session, file_service: FileService) -> Generator[TestClient, None, None]:
    """TestClient with lifespan, in-memory storage, and no text-generation provider."""
    _ = db_session
    from app.api.dependencies import get_disambiguator, get_file_service
    from main import app

    app.dependency_overrides[get_file_service] = lambda: file_service
    app.dependency_overrides[get_disambiguator] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

"""FastAPI dependencies for DI (settings, rule config, DB, storage, text generation).

This module provides dependency injection helpers so that endpoints receive their
collaborators explicitly and tests can override any of them.
"""

from collections.abc import Generator
from functools import lru_cache

from sqlalchemy.orm import Session

from app.agents import DisambiguatorRegistry, TransactionAnalyst
from app.agents.base import BaseDisambiguator
from app.agents.groq_agent import build_client
from app.core.db import DBHelper, SessionLocal
from app.core.errors import ConfigurationError
from app.core.settings import get_settings
from app.rules.config import RuleConfig, load_rule_config
from app.services.file_service import FileService
from app.services.s3_file_service import S3FileService


def get_rule_config() -> RuleConfig:
    """Load the rule configuration for this request from the configured rules file."""
    return load_rule_config(get_settings().rules_file)


def get_disambiguator() -> BaseDisambiguator | None:
    """Provide the configured disambiguator, or None when the provider is not set up."""
    settings = get_settings()
    if settings.disambiguator == "none":
        return None
    try:
        disambiguator_cls = DisambiguatorRegistry.get(settings.disambiguator)
    except KeyError as exc:
        msg = f"Unknown disambiguator {settings.disambiguator!r}, expected one of {DisambiguatorRegistry.available()}"
        raise ConfigurationError(msg) from exc
    return disambiguator_cls.from_settings(settings)


def get_analyst() -> TransactionAnalyst | None:
    """Provide a TransactionAnalyst, or None without an API key."""
    settings = get_settings()
    client = build_client(settings)
    if client is None:
        return None
    return TransactionAnalyst(client, settings)


@lru_cache
def get_file_service() -> FileService:
    """Provide the S3-backed statement storage."""
    return FileService(S3FileService())


def get_session() -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session, closed after the request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_db_conn() -> Generator[DBHelper, None, None]:
    """Provide a job bookkeeping helper, closed after the request."""
    db = DBHelper(SessionLocal())
    try:
        yield db
    finally:
        db.close()

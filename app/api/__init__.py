"""API package: provides FastAPI dependencies and route definitions for the application."""

from .dependencies import get_db_conn, get_disambiguator, get_rule_config  # noqa: F401
from .routes import router  # noqa: F401

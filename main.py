"""Main entrypoint and application factory for the APNexus rules service API.

This module initializes the FastAPI application, configures logging, creates the database tables, maps configuration errors to responses, and exposes the Scalar API reference endpoint. It also includes the main entrypoint for running the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import router
from app.core.db import init_db
from app.core.errors import ConfigurationError
from app.core.settings import get_settings
from app.core.utils import ensure_dir, get_logger

LOG_DIR = "logs"


# --- Logging Setup ---
def setup_logging() -> None:
    """Configure colored console logging plus a plain log file shared by all apnexus loggers."""
    ensure_dir(LOG_DIR)
    logger = get_logger("apnexus")
    logger.setLevel(logging.INFO)
    # Add file handler for persistent logs (not colorized)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(f"{LOG_DIR}/processing.log")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(file_handler)
    logger.propagate = False


setup_logging()
logger = get_logger("apnexus.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler creating the vehicles, fuel_transactions and jobs tables."""
    _ = app  # Silence unused argument warning
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception("Failed to create database tables")
        raise
    yield


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="APNexus Rules API",
    description="""
    The APNexus Rules API matches fuel-card transactions to fleet vehicles and flags unusual expense and fuel transactions.

    **Endpoints:**
    - `POST /match-vehicle`: Match a fuel transaction to a fleet vehicle.
    - `POST /audit-transaction`: Flag an expense transaction.
    - `POST /check-fuel-transaction`: Flag a fuel-card purchase against vehicle history.
    - `POST /analyze-transaction`: Narrative review of a flagged transaction.
    - `POST /fuel-statements`: Upload a fuel-card statement and start a review job. Returns a `job_id`.
    - `GET /status/{{job_id}}`: Check the status of a review job.
    - `GET /download/{{job_id}}`: Download the reviewed CSV for a completed job.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version="1.0.0",
)
app.include_router(router)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Report deployment misconfiguration as a server error."""
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse({"detail": str(exc)}, status_code=500)


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> JSONResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)

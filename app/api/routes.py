"""FastAPI endpoints for the APNexus rules service.

This module exposes the rule evaluator (vehicle matching, expense and fuel anomaly checks), the flagged transaction analysis, and the fuel statement review jobs. The endpoints only wire inputs to the evaluator; storing results is left to the caller, except for statement jobs which record their own output.
"""

import io

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from app.agents import TransactionAnalyst
from app.agents.base import BaseDisambiguator
from app.api.dependencies import (
    get_analyst,
    get_db_conn,
    get_disambiguator,
    get_file_service,
    get_rule_config,
    get_session,
)
from app.core.db import DBHelper
from app.core.errors import ExternalServiceError
from app.core.models import (
    AnalyzeTransactionRequest,
    AnomalyResult,
    ExpenseTransaction,
    FuelCheckRequest,
    JobStatus,
    MatchResult,
    MatchVehicleRequest,
)
from app.core.settings import get_settings
from app.core.utils import get_logger, utcnow_iso
from app.rules.anomaly_detector import detect_anomalies
from app.rules.config import RuleConfig
from app.rules.fuel_checks import check_fuel_anomalies
from app.rules.vehicle_matcher import match_vehicle
from app.services.file_service import FileService
from app.services.reference_data import load_fleet, load_vehicle_history
from app.workers.job_runner import JobRunner

router = APIRouter()
logger = get_logger("apnexus.api")


@router.post(
    "/match-vehicle",
    response_model=MatchResult,
    summary="Match a fuel transaction to a fleet vehicle",
    description=(
        "Runs the ordered matching cascade: direct asset id, odometer window, fuel type, "
        "and external disambiguation for several candidates.\n\n"
        "When `vehicles` is omitted the stored fleet is used as the reference set. "
        "The result is always returned; `needs_review` marks results a person must confirm."
    ),
    response_description="Match result with confidence, method and review reasons.",
)
def match_vehicle_endpoint(
    body: MatchVehicleRequest,
    config: RuleConfig = Depends(get_rule_config),
    disambiguator: BaseDisambiguator | None = Depends(get_disambiguator),
    session: Session = Depends(get_session),
) -> MatchResult:
    """Match one fuel transaction."""
    vehicles = body.vehicles if body.vehicles is not None else load_fleet(session)
    logger.info(
        f"Matching transaction {body.transaction.source_transaction_id or '<adhoc>'}: "
        f"odometer={body.transaction.odometer}, asset_id={body.transaction.vehicle_id}"
    )
    result = match_vehicle(body.transaction, vehicles, config, disambiguator)
    logger.info(f"Match result: {result.method.value} {result.matched_id} ({result.confidence})")
    return result


@router.post(
    "/audit-transaction",
    response_model=AnomalyResult,
    summary="Flag an expense transaction",
    description=(
        "Checks the amount against category and global ceilings, the vendor against the category, "
        "and the memo for personal or large cash spending. `flagged` is true when any reason was found."
    ),
    response_description="Flag state and reasons.",
)
async def audit_transaction(
    transaction: ExpenseTransaction,
    config: RuleConfig = Depends(get_rule_config),
) -> AnomalyResult:
    """Run the expense anomaly rules on one transaction."""
    return detect_anomalies(transaction, config)


@router.post(
    "/check-fuel-transaction",
    response_model=AnomalyResult,
    summary="Flag a fuel-card purchase",
    description=(
        "Checks purchase time and compares cost, gallons and fuel economy with the vehicle's recent history. "
        "When `history` is omitted the stored history of the transaction's vehicle is used."
    ),
)
async def check_fuel_transaction(
    body: FuelCheckRequest,
    config: RuleConfig = Depends(get_rule_config),
    session: Session = Depends(get_session),
) -> AnomalyResult:
    """Run the fuel anomaly rules on one purchase."""
    history = body.history
    if history is None:
        vehicle_id = body.transaction.vehicle_id
        history = load_vehicle_history(session, vehicle_id, config.thresholds.history_window) if vehicle_id else []
    return check_fuel_anomalies(body.transaction, history, config)


@router.post(
    "/analyze-transaction",
    summary="Explain a flagged transaction",
    description="Asks the text-generation service for an assessment and recommendation for a flagged transaction.",
    responses={
        200: {"content": {"application/json": {"example": {"analysis": "1. The flag is valid..."}}}},
        503: {"description": "Text generation unavailable or failed."},
    },
)
def analyze_transaction(
    body: AnalyzeTransactionRequest,
    analyst: TransactionAnalyst | None = Depends(get_analyst),
) -> dict:
    """Return a narrative analysis of a flagged transaction."""
    if analyst is None:
        raise HTTPException(503, "Transaction analysis is not configured")
    try:
        analysis = analyst.analyze(body.transaction, body.flag_reason)
    except ExternalServiceError as exc:
        logger.warning(f"Analysis failed: {exc}")
        raise HTTPException(503, "Transaction analysis failed") from exc
    return {"analysis": analysis}


@router.post(
    "/fuel-statements",
    status_code=202,
    summary="Upload a fuel-card statement CSV and start a review job",
    description=(
        "Upload a fuel-card statement. A background job matches every row to a fleet vehicle, "
        "marks duplicates, runs the fuel anomaly checks and stores a reviewed CSV.\n\n"
        "**Request:**\n"
        "- Content-Type: multipart/form-data\n"
        "- Form field: `file` (CSV file)\n\n"
        "**Response:**\n"
        "- 202 Accepted: `{ 'job_id': '<uuid>' }` if upload is successful.\n"
        "- 400 Bad Request: If the file is not a CSV."
    ),
    response_description="Job accepted. Returns job_id.",
    responses={
        202: {
            "description": "Job accepted. Returns job_id.",
            "content": {"application/json": {"example": {"job_id": "123e4567-e89b-12d3-a456-426614174000"}}},
        },
        400: {
            "description": "Only CSV files accepted.",
            "content": {"application/json": {"example": {"detail": "Only CSV files accepted"}}},
        },
    },
)
async def upload_fuel_statement(
    background_tasks: BackgroundTasks,
    file: UploadFile,
    config: RuleConfig = Depends(get_rule_config),
    disambiguator: BaseDisambiguator | None = Depends(get_disambiguator),
    file_service: FileService = Depends(get_file_service),
    db: DBHelper = Depends(get_db_conn),
) -> JSONResponse:
    """Store a statement and start its review job."""
    logger.info(f"Received statement upload: filename={file.filename}")
    if not (file.filename or "").lower().endswith(".csv"):
        logger.warning(f"Rejected file (not CSV): {file.filename}")
        raise HTTPException(400, "Only CSV files accepted")
    job_id, in_key, out_key = file_service.save_statement(await file.read())
    db.create_job(job_id, utcnow_iso(), in_key, out_key)
    runner = JobRunner(file_service, workers=get_settings().job_workers)
    background_tasks.add_task(runner.run_job, job_id, in_key, out_key, config, disambiguator)
    logger.info(f"Background job started: job_id={job_id}")
    return JSONResponse({"job_id": job_id}, status_code=202)


@router.get(
    "/status/{job_id}",
    response_model=JobStatus,
    summary="Get statement review job status",
    responses={
        404: {
            "description": "Job not found.",
            "content": {"application/json": {"example": {"detail": "Job not found"}}},
        },
    },
)
async def get_status(job_id: str, db: DBHelper = Depends(get_db_conn)) -> dict:
    """Get the status of a job."""
    row = db.get_job_status(job_id)
    if not row:
        raise HTTPException(404, "Job not found")
    return row


@router.get(
    "/download/{job_id}",
    summary="Download the reviewed statement of a completed job",
    responses={
        200: {"description": "CSV file download."},
        404: {"description": "Job not found or not complete."},
    },
)
async def download(
    job_id: str,
    db: DBHelper = Depends(get_db_conn),
    file_service: FileService = Depends(get_file_service),
) -> StreamingResponse:
    """Download the reviewed CSV for a completed job."""
    out_key = db.get_job_output_path(job_id)
    if not out_key:
        raise HTTPException(404, "Job not found")
    if not file_service.file_exists(out_key):
        logger.warning(f"Output for job {job_id} missing: {out_key}")
        raise HTTPException(404, "Output file missing")
    return StreamingResponse(
        io.BytesIO(file_service.get_file(out_key)),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=reviewed_{job_id}.csv"},
    )


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}

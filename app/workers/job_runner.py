"""Background job orchestration for fuel statement review."""

import concurrent.futures

import pandas as pd
from sqlalchemy.orm import Session, sessionmaker

from app.agents.base import BaseDisambiguator
from app.core.db import DBHelper, SessionLocal
from app.core.models import AnomalyResult, FuelStatementRow, FuelTransaction, MatchResult
from app.core.utils import get_logger, utcnow_iso
from app.rules.config import RuleConfig
from app.rules.fuel_checks import check_fuel_anomalies
from app.rules.vehicle_matcher import match_vehicle
from app.services.file_service import FileService
from app.services.fuel_statement import parse_fuel_statement
from app.services.reference_data import (
    known_transaction_ids,
    load_fleet,
    load_vehicle_history,
    record_fuel_transactions,
)

logger = get_logger("apnexus.worker")


class JobRunner:
    """JobRunner reviews an uploaded fuel statement and stores the reviewed CSV."""

    def __init__(self, file_service: FileService, session_factory: sessionmaker = SessionLocal, workers: int = 6) -> None:
        """Initialize JobRunner with storage, a session factory and the matcher pool size."""
        self.file_service = file_service
        self.Session = session_factory
        self.workers = workers

    def match_all(
        self, transactions: list[FuelTransaction], session: Session, config: RuleConfig, disambiguator: BaseDisambiguator | None
    ) -> list[MatchResult]:
        """Match every transaction against the fleet. Rows are independent, so they run in a pool."""
        fleet = load_fleet(session)
        logger.info(f"Matching {len(transactions)} transactions against {len(fleet)} vehicles")
        results: list[MatchResult | None] = [None] * len(transactions)
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(match_vehicle, txn, fleet, config, disambiguator): idx
                for idx, txn in enumerate(transactions)
            }
            for future in concurrent.futures.as_completed(futures):
                results[futures[future]] = future.result()
        return results

    def review_statement(
        self, transactions: list[FuelTransaction], session: Session, config: RuleConfig, disambiguator: BaseDisambiguator | None
    ) -> list[FuelStatementRow]:
        """Match, de-duplicate and anomaly-check statement rows, keeping statement order."""
        matches = self.match_all(transactions, session, config, disambiguator)
        seen = known_transaction_ids(session, (txn.source_transaction_id for txn in transactions))
        rows = []
        for idx, (txn, match) in enumerate(zip(transactions, matches, strict=True), start=1):
            if txn.source_transaction_id in seen:
                logger.info(f"[ROW {idx}/{len(transactions)}] {txn.source_transaction_id} is a duplicate")
                rows.append(FuelStatementRow(transaction=txn, match=match, anomalies=AnomalyResult(), status="duplicate"))
                continue
            seen.add(txn.source_transaction_id)
            vehicle_id = match.matched_id or txn.vehicle_id
            history = load_vehicle_history(session, vehicle_id, config.thresholds.history_window) if vehicle_id else []
            anomalies = check_fuel_anomalies(txn, history, config)
            status = "flagged" if anomalies.flagged else "new"
            logger.info(
                f"[ROW {idx}/{len(transactions)}] {txn.source_transaction_id}: {match.method.value} "
                f"{match.matched_id} ({match.confidence}), status={status}"
            )
            rows.append(FuelStatementRow(transaction=txn, match=match, anomalies=anomalies, status=status))
        return rows

    def run_job(
        self, job_id: str, input_key: str, output_key: str, config: RuleConfig, disambiguator: BaseDisambiguator | None
    ) -> None:
        """Run a background job reviewing one uploaded statement."""
        logger.info(f"Starting job: {job_id}, input: {input_key}, output: {output_key}")
        session = self.Session()
        db = DBHelper(session)
        try:
            db.set_job_status(job_id, "in_progress")
            try:
                parsed = parse_fuel_statement(self.file_service.get_file(input_key))
                rows = self.review_statement(parsed.transactions, session, config, disambiguator)
                record_fuel_transactions(session, rows)
                output = pd.DataFrame([row.to_record() for row in rows]).to_csv(index=False)
                self.file_service.save_file(output_key, output)
                session.commit()
                logger.info(
                    f"Job {job_id} reviewed {len(rows)} rows "
                    f"({sum(row.status == 'flagged' for row in rows)} flagged, {parsed.skipped} skipped)"
                )
                db.set_job_status(job_id, "completed", completed_at=utcnow_iso())
            except Exception as exc:
                logger.exception(f"Error processing job {job_id}")
                session.rollback()
                db.set_job_status(job_id, "error", completed_at=utcnow_iso(), error=str(exc))
        finally:
            session.close()

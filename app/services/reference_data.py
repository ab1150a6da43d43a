"""Read-only reference data for the rule evaluator, plus recording of imported fuel purchases.

Queries hit the database on every call; nothing is cached between evaluations.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.db import FuelTransactionRecord, Vehicle
from app.core.models import FuelHistoryEntry, FuelStatementRow, FuelType, ReferenceVehicle
from app.core.utils import get_logger

logger = get_logger("apnexus.reference_data")


def _fuel_type(value: str | None) -> FuelType | None:
    try:
        return FuelType(value.lower()) if value else None
    except ValueError:
        logger.warning(f"Ignoring unknown vehicle fuel type {value!r}")
        return None


def load_fleet(session: Session) -> list[ReferenceVehicle]:
    """Return every fleet vehicle as a ReferenceVehicle."""
    rows = session.execute(select(Vehicle).order_by(Vehicle.id)).scalars().all()
    return [
        ReferenceVehicle(
            identifier=row.asset_id,
            record_id=str(row.id),
            name=row.vehicle_name or "",
            make=row.make or "",
            model=row.model or "",
            year=row.year,
            current_odometer=row.current_odometer or 0,
            fuel_type=_fuel_type(row.fuel_type),
        )
        for row in rows
    ]


def load_vehicle_history(session: Session, vehicle_id: str, limit: int) -> list[FuelHistoryEntry]:
    """Return the most recent fuel purchases recorded for a vehicle, newest first."""
    stmt = (
        select(FuelTransactionRecord)
        .where(FuelTransactionRecord.vehicle_id == vehicle_id)
        .order_by(FuelTransactionRecord.transaction_date.desc())
        .limit(limit)
    )
    return [
        FuelHistoryEntry(
            transaction_date=row.transaction_date,
            gallons=row.gallons or 0.0,
            total_cost=row.total_cost or 0.0,
            odometer=row.odometer,
        )
        for row in session.execute(stmt).scalars()
    ]


def known_transaction_ids(session: Session, source_ids: Iterable[str]) -> set[str]:
    """Return the subset of statement transaction ids that were already imported."""
    ids = list(set(source_ids))
    if not ids:
        return set()
    stmt = select(FuelTransactionRecord.source_transaction_id).where(
        FuelTransactionRecord.source_transaction_id.in_(ids)
    )
    return set(session.execute(stmt).scalars())


def record_fuel_transactions(session: Session, rows: Iterable[FuelStatementRow]) -> int:
    """Add reviewed statement rows that are not duplicates. Returns the number added.

    Rows are flushed, not committed; the caller commits once the job has succeeded.
    """
    stored = 0
    for row in rows:
        if row.status == "duplicate":
            continue
        txn = row.transaction
        session.add(
            FuelTransactionRecord(
                source_transaction_id=txn.source_transaction_id,
                transaction_date=txn.transaction_date,
                vehicle_id=row.match.matched_id or txn.vehicle_id,
                employee_name=txn.employee_name,
                gallons=txn.gallons,
                total_cost=txn.total_cost,
                odometer=txn.odometer,
                status=row.status,
                flag_reason=row.anomalies.summary or row.match.review_reason or None,
            )
        )
        stored += 1
    session.flush()
    logger.info(f"Recorded {stored} fuel transactions")
    return stored

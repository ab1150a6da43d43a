"""Fuel-card statement CSV parsing."""

import io
from typing import NamedTuple

import pandas as pd

from app.core.models import FuelTransaction
from app.core.utils import get_logger, safe_cast

logger = get_logger("apnexus.fuel_statement")

ID_COLUMNS = ("Trans ID", "Transaction ID")

COLUMN_MAP = {
    "Custom Vehicle/Asset ID": "vehicle_id",
    "Driver First Name": "driver_first_name",
    "Driver Last Name": "driver_last_name",
    "Merchant Name": "merchant_name",
    "Merchant City": "merchant_city",
    "Merchant State": "merchant_state",
    "Product Code": "product_code",
    "Product Description": "product_description",
    "Vehicle Description": "vehicle_description",
}


class ParsedStatement(NamedTuple):
    """Transactions read from a statement and the number of rows that were skipped."""

    transactions: list[FuelTransaction]
    skipped: int


def _number(value: str) -> float:
    return safe_cast(value.replace(",", "").replace("$", ""), float, 0.0) if value else 0.0


def parse_row(row: dict[str, str]) -> FuelTransaction:
    """Convert one statement row into a FuelTransaction. Raises ValueError on missing id or date."""
    source_id = next((row[column] for column in ID_COLUMNS if row.get(column)), "")
    if not source_id:
        msg = "Missing Trans ID"
        raise ValueError(msg)
    date_str = row.get("Transaction Date", "")
    if not date_str:
        msg = "Missing Transaction Date"
        raise ValueError(msg)
    time_str = row.get("Transaction Time") or "00:00:00"
    try:
        transaction_date = pd.to_datetime(f"{date_str} {time_str}").to_pydatetime()
    except (ValueError, TypeError) as exc:
        msg = f"Unreadable transaction date {date_str!r} {time_str!r}"
        raise ValueError(msg) from exc
    fields = {field: row.get(column, "") for column, field in COLUMN_MAP.items()}
    fields["vehicle_id"] = fields["vehicle_id"] or None
    return FuelTransaction(
        source_transaction_id=source_id,
        transaction_date=transaction_date,
        gallons=_number(row.get("Units", "")),
        cost_per_gallon=_number(row.get("Unit Cost", "")),
        total_cost=_number(row.get("Total Fuel Cost", "")),
        odometer=int(_number(row.get("Current Odometer", ""))),
        **fields,
    )


def parse_fuel_statement(data: bytes) -> ParsedStatement:
    """Parse a fuel-card statement CSV, skipping empty and invalid rows."""
    frame = pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False, skip_blank_lines=True)
    frame.columns = [str(column).strip() for column in frame.columns]
    logger.info(f"Statement has {len(frame)} rows, columns: {list(frame.columns)}")
    transactions: list[FuelTransaction] = []
    skipped = 0
    for index, record in enumerate(frame.to_dict(orient="records"), start=2):
        row = {key: str(value).strip() for key, value in record.items()}
        if not any(row.values()):
            continue
        try:
            transactions.append(parse_row(row))
        except ValueError as exc:
            skipped += 1
            logger.warning(f"Skipping statement line {index}: {exc}")
    logger.info(f"Parsed {len(transactions)} transactions, skipped {skipped}")
    return ParsedStatement(transactions, skipped)

"""Pydantic models for the APNexus rules service.

This module defines the transaction, reference vehicle and result models that flow through the rule evaluator, the fuel statement importer and the API. Evaluator inputs are treated as read-only; results are built fresh on every call.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


class FuelType(str, Enum):
    """Fuel a vehicle burns or a pump dispensed."""

    GAS = "gas"
    DIESEL = "diesel"


def _lower_fuel_type(value: object) -> object:
    return value.strip().lower() if isinstance(value, str) else value


class MatchMethod(str, Enum):
    """How a vehicle match was reached, from most to least specific."""

    DIRECT_ID = "DirectId"
    ODOMETER_PROXIMITY = "OdometerProximity"
    EXTERNAL_MODEL = "ExternalModel"
    UNMATCHED = "Unmatched"


class ReferenceVehicle(BaseModel):
    """A fleet vehicle used as a matching target."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    record_id: str | None = None
    name: str = ""
    make: str = ""
    model: str = ""
    year: int | None = None
    current_odometer: int = 0
    fuel_type: FuelType | None = None

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _fuel_type_case(cls, value: object) -> object:
        return _lower_fuel_type(value)

    @property
    def display_name(self) -> str:
        """Human readable label used in prompts and reports."""
        label = " ".join(str(part) for part in (self.year, self.make, self.model) if part)
        return f"{self.name or self.identifier} - {label}" if label else (self.name or self.identifier)


class FuelTransaction(BaseModel):
    """A single fuel-card purchase as printed on a card statement."""

    model_config = ConfigDict(frozen=True)

    source_transaction_id: str = ""
    transaction_date: datetime | None = None
    vehicle_id: str | None = None
    driver_first_name: str = ""
    driver_last_name: str = ""
    gallons: float = 0.0
    cost_per_gallon: float = 0.0
    total_cost: float = 0.0
    odometer: int | None = None
    merchant_name: str = ""
    merchant_city: str = ""
    merchant_state: str = ""
    product_code: str = ""
    product_description: str = ""
    vehicle_description: str = ""
    fuel_type: FuelType | None = None

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _fuel_type_case(cls, value: object) -> object:
        return _lower_fuel_type(value)

    @property
    def employee_name(self) -> str:
        """Driver name as "first last"."""
        return f"{self.driver_first_name} {self.driver_last_name}".strip()


class ExpenseTransaction(BaseModel):
    """An expense transaction audited for category, vendor and amount anomalies."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str | None = None
    amount: Decimal
    vendor_name: str = ""
    category_name: str = ""
    memo: str = ""
    transaction_date: datetime | None = None


class FuelHistoryEntry(BaseModel):
    """A past fuel purchase of one vehicle."""

    model_config = ConfigDict(frozen=True)

    transaction_date: datetime | None = None
    gallons: float = 0.0
    total_cost: float = 0.0
    odometer: int | None = None


class MatchResult(BaseModel):
    """Outcome of matching a fuel transaction to a fleet vehicle."""

    matched_id: str | None = None
    matched_record_id: str | None = None
    confidence: int = Field(ge=0, le=100)
    method: MatchMethod
    needs_review: bool
    reasons: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unmatched_needs_review(self) -> "MatchResult":
        if self.method is MatchMethod.UNMATCHED:
            self.needs_review = True
        return self

    @computed_field
    @property
    def review_reason(self) -> str:
        """Reasons joined for storage in a single text column."""
        return "; ".join(self.reasons)


class AnomalyResult(BaseModel):
    """Anomaly flag for a transaction: flagged iff at least one reason was found."""

    reasons: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def flagged(self) -> bool:
        """True when any rule produced a reason."""
        return bool(self.reasons)

    @computed_field
    @property
    def summary(self) -> str:
        """Reasons joined for storage in a single text column."""
        return "; ".join(self.reasons)


class FuelStatementRow(BaseModel):
    """A parsed statement row together with its match and anomaly outcome."""

    transaction: FuelTransaction
    match: MatchResult
    anomalies: AnomalyResult
    status: str

    def to_record(self) -> dict:
        """Flatten into a row for the reviewed statement CSV."""
        txn = self.transaction
        return {
            "source_transaction_id": txn.source_transaction_id,
            "transaction_date": txn.transaction_date.isoformat() if txn.transaction_date else "",
            "vehicle_id": txn.vehicle_id or "",
            "employee_name": txn.employee_name,
            "gallons": txn.gallons,
            "cost_per_gallon": txn.cost_per_gallon,
            "total_cost": txn.total_cost,
            "odometer": txn.odometer or 0,
            "merchant_name": txn.merchant_name,
            "status": self.status,
            "matched_vehicle_id": self.match.matched_id or "",
            "match_method": self.match.method.value,
            "match_confidence": self.match.confidence,
            "needs_review": self.match.needs_review,
            "review_reason": self.match.review_reason,
            "flag_reason": self.anomalies.summary,
        }


class JobStatus(BaseModel):
    """Pydantic model representing the status of a statement import job."""

    status: str
    created_at: str
    completed_at: str | None = None
    error: str | None = None


class MatchVehicleRequest(BaseModel):
    """Body of POST /match-vehicle. Without vehicles the stored fleet is used."""

    transaction: FuelTransaction
    vehicles: list[dict[str, Any]] | None = None


class FuelCheckRequest(BaseModel):
    """Body of POST /check-fuel-transaction. Without history the stored history is used."""

    transaction: FuelTransaction
    history: list[FuelHistoryEntry] | None = None


class AnalyzeTransactionRequest(BaseModel):
    """Body of POST /analyze-transaction."""

    transaction: ExpenseTransaction
    flag_reason: str = ""

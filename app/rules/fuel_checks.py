"""Anomaly checks for fuel-card purchases against the vehicle's recent history."""

from collections.abc import Iterable

from app.core.errors import ConfigurationError
from app.core.models import AnomalyResult, FuelHistoryEntry, FuelTransaction
from app.core.utils import get_logger
from app.rules.config import RuleConfig

logger = get_logger("apnexus.rules.fuel_checks")

SATURDAY = 5


def recent_history(history: Iterable[FuelHistoryEntry], window: int) -> list[FuelHistoryEntry]:
    """Most recent entries first, at most window of them. Undated entries sort last."""
    # undated entries are never compared with dated ones, which may carry a timezone
    ordered = sorted(
        history,
        key=lambda entry: (
            entry.transaction_date is not None,
            entry.transaction_date.timestamp() if entry.transaction_date else 0.0,
        ),
        reverse=True,
    )
    return ordered[:window]


def check_purchase_time(transaction: FuelTransaction, config: RuleConfig) -> list[str]:
    """Weekend and after-hours purchases."""
    when = transaction.transaction_date
    if when is None:
        return []
    thresholds = config.thresholds
    if when.weekday() >= SATURDAY:
        return ["Weekend transaction"]
    if when.hour > thresholds.business_hours_end or when.hour < thresholds.business_hours_start:
        return ["After-hours transaction"]
    return []


def check_against_history(transaction: FuelTransaction, history: list[FuelHistoryEntry], config: RuleConfig) -> list[str]:
    """Cost and gallons spikes relative to the recent average, and implausible fuel economy."""
    if not history:
        return []
    thresholds = config.thresholds
    reasons = []
    avg_cost = sum(entry.total_cost for entry in history) / len(history)
    if transaction.total_cost > avg_cost * thresholds.history_spike_multiplier:
        reasons.append(f"Unusually high cost: ${transaction.total_cost:,.2f} vs ${avg_cost:,.2f} average")
    avg_gallons = sum(entry.gallons for entry in history) / len(history)
    if transaction.gallons > avg_gallons * thresholds.history_spike_multiplier:
        reasons.append(f"Unusually high fuel amount: {transaction.gallons:.1f} gal vs {avg_gallons:.1f} average")
    odometer = transaction.odometer or 0
    previous = next((entry for entry in history if entry.odometer and entry.odometer < odometer), None)
    if previous is not None and transaction.gallons > 0:
        mpg = (odometer - previous.odometer) / transaction.gallons
        if mpg < thresholds.min_mpg or mpg > thresholds.max_mpg:
            reasons.append(f"Unusual fuel economy: {mpg:.1f} mpg")
    return reasons


def check_fuel_anomalies(
    transaction: FuelTransaction, history: Iterable[FuelHistoryEntry] | None, config: RuleConfig
) -> AnomalyResult:
    """Flag a fuel purchase. Purchases by trusted drivers are never flagged."""
    if not isinstance(config, RuleConfig):
        msg = f"check_fuel_anomalies needs a RuleConfig, got {type(config).__name__}"
        raise ConfigurationError(msg)
    if transaction.employee_name and transaction.employee_name in config.trusted_drivers:
        logger.info(f"{transaction.employee_name} is a trusted driver, skipping fuel checks")
        return AnomalyResult()
    try:
        entries = recent_history(history or [], config.thresholds.history_window)
        reasons = check_purchase_time(transaction, config) + check_against_history(transaction, entries, config)
    except Exception as exc:
        logger.exception(f"Fuel checks failed for {transaction.source_transaction_id}")
        reasons = [f"Fuel checks could not be evaluated: {exc}"]
    return AnomalyResult(reasons=reasons)

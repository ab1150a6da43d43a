"""Tests for the expense anomaly rules."""

from decimal import Decimal

import pytest

from app.core.errors import ConfigurationError
from app.core.models import ExpenseTransaction
from app.rules.anomaly_detector import check_category_ceiling, detect_anomalies
from app.rules.config import RuleConfig, load_rule_config


def expense(amount: str, **fields: str) -> ExpenseTransaction:
    """Build an expense transaction."""
    return ExpenseTransaction(amount=Decimal(amount), **fields)


def test_office_expense_above_ceiling(config: RuleConfig) -> None:
    """$2,500 on office supplies exceeds the office ceiling."""
    result = detect_anomalies(expense("2500", vendor_name="Staples", category_name="Office Supplies"), config)
    if not result.flagged:
        msg = "Expected office expense to be flagged"
        raise AssertionError(msg)
    if result.reasons != ["High office expense: $2,500.00 exceeds the office ceiling of $500.00"]:
        msg = f"Unexpected reasons {result.reasons}"
        raise AssertionError(msg)


def test_clean_transaction(config: RuleConfig) -> None:
    """An ordinary transaction has no reasons."""
    result = detect_anomalies(expense("45.10", vendor_name="Shell", category_name="Fuel", memo="Truck 12"), config)
    if result.flagged or result.reasons or result.summary:
        msg = f"Expected clean result, got {result}"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    ("category", "ceiling"),
    [("Office Supplies", 500), ("Team Meals", 200), ("Food & Drink", 200), ("Travel", 2000)],
)
def test_category_ceiling_boundary(config: RuleConfig, category: str, ceiling: int) -> None:
    """The ceiling itself is allowed; one cent more is flagged, and any larger amount stays flagged."""
    at_ceiling = expense(str(ceiling), category_name=category)
    if check_category_ceiling(at_ceiling, config) is not None:
        msg = f"{category} at its ceiling should not be flagged"
        raise AssertionError(msg)
    for amount in (Decimal(ceiling) + Decimal("0.01"), Decimal(ceiling) * 2, Decimal(ceiling) * 9):
        if check_category_ceiling(expense(str(amount), category_name=category), config) is None:
            msg = f"{category} at {amount} should be flagged"
            raise AssertionError(msg)


def test_vendor_category_mismatch(config: RuleConfig) -> None:
    """Gas stations belong in fuel and restaurants in meals."""
    result = detect_anomalies(expense("60", vendor_name="Shell Oil #442", category_name="Office Supplies"), config)
    expected = "Vendor/Category mismatch: Shell Oil #442 appears to be a gas station but categorized as Office Supplies"
    if expected not in result.reasons:
        msg = f"Expected gas station mismatch in {result.reasons}"
        raise AssertionError(msg)
    result = detect_anomalies(expense("60", vendor_name="Luigi's Pizza", category_name="Travel"), config)
    if not any("appears to be a restaurant" in reason for reason in result.reasons):
        msg = f"Expected restaurant mismatch in {result.reasons}"
        raise AssertionError(msg)
    result = detect_anomalies(expense("60", vendor_name="Corner Cafe", category_name="Meals"), config)
    if result.flagged:
        msg = f"Restaurant under meals should not be flagged: {result.reasons}"
        raise AssertionError(msg)


def test_personal_memo(config: RuleConfig) -> None:
    """Personal keywords in the memo are flagged whatever the amount."""
    result = detect_anomalies(expense("12", category_name="Gifts", memo="Birthday card for Sam"), config)
    if result.reasons != ['Potential personal expense: memo contains "birthday"']:
        msg = f"Unexpected reasons {result.reasons}"
        raise AssertionError(msg)


def test_large_cash_memo(config: RuleConfig) -> None:
    """Cash in the memo is flagged only above the large cash threshold."""
    small = detect_anomalies(expense("1000", memo="Paid in CASH"), config)
    if small.flagged:
        msg = f"Cash at the threshold should not be flagged: {small.reasons}"
        raise AssertionError(msg)
    large = detect_anomalies(expense("1200", memo="Paid in CASH"), config)
    if large.reasons != ["Large cash transaction: $1,200.00 with cash mentioned in memo"]:
        msg = f"Unexpected reasons {large.reasons}"
        raise AssertionError(msg)


def test_global_ceiling_stacks_with_category(config: RuleConfig) -> None:
    """An amount above the global ceiling adds its own reason."""
    result = detect_anomalies(expense("7500", category_name="Travel"), config)
    if len(result.reasons) != 2 or not result.reasons[1].startswith("High amount transaction: $7,500.00"):
        msg = f"Expected category and global reasons, got {result.reasons}"
        raise AssertionError(msg)
    result = detect_anomalies(expense("5000.01", category_name="Equipment"), config)
    if result.reasons != ["High amount transaction: $5,000.01 exceeds $5,000.00 threshold"]:
        msg = f"Unexpected reasons {result.reasons}"
        raise AssertionError(msg)


def test_mapping_input(config: RuleConfig) -> None:
    """Plain mappings are accepted, and malformed ones are flagged rather than raised."""
    result = detect_anomalies({"amount": "900", "category_name": "office"}, config)
    if not result.flagged:
        msg = "Expected mapping input to be evaluated"
        raise AssertionError(msg)
    result = detect_anomalies({"amount": "a lot"}, config)
    if result.reasons != ["Malformed transaction: 1 invalid field(s)"]:
        msg = f"Unexpected reasons {result.reasons}"
        raise AssertionError(msg)


def test_overridden_ceiling() -> None:
    """Ceilings come from configuration."""
    config = load_rule_config(
        overrides={"thresholds": {"category_ceilings": [{"name": "office", "keywords": ["office"], "ceiling": "5000"}]}}
    )
    result = detect_anomalies(expense("2500", category_name="Office Supplies"), config)
    if result.flagged:
        msg = f"Raised ceiling should not flag: {result.reasons}"
        raise AssertionError(msg)


def test_overridden_lexicon() -> None:
    """Keyword lists come from configuration."""
    config = load_rule_config(overrides={"lexicon": {"personal_keywords": ["groceries"]}})
    result = detect_anomalies(expense("30", memo="groceries and a birthday cake"), config)
    if result.reasons != ['Potential personal expense: memo contains "groceries"']:
        msg = f"Unexpected reasons {result.reasons}"
        raise AssertionError(msg)


def test_requires_rule_config() -> None:
    """A plain dict is not a configuration."""
    with pytest.raises(ConfigurationError):
        detect_anomalies(expense("10"), {"global_amount_ceiling": 5000})

"""Rule-based anomaly flagging for expense transactions.

Four independent checks each contribute at most one reason: category ceiling,
vendor/category mismatch, memo keywords and the global amount ceiling. A
transaction is flagged when any reason was produced.
"""

from collections.abc import Mapping
from decimal import Decimal

from pydantic import ValidationError

from app.core.errors import ConfigurationError
from app.core.models import AnomalyResult, ExpenseTransaction
from app.core.utils import get_logger
from app.rules.config import RuleConfig

logger = get_logger("apnexus.rules.anomaly_detector")


def _money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def check_category_ceiling(transaction: ExpenseTransaction, config: RuleConfig) -> str | None:
    """Flag an amount above the ceiling of a category whose keyword appears in the category name."""
    category = transaction.category_name.lower()
    if not category:
        return None
    for rule in config.thresholds.category_ceilings:
        matches = any(keyword.lower() in category for keyword in rule.keywords)
        if matches and transaction.amount > rule.ceiling:
            return (
                f"High {rule.name} expense: {_money(transaction.amount)} exceeds the "
                f"{rule.name} ceiling of {_money(rule.ceiling)}"
            )
    return None


def check_vendor_category(transaction: ExpenseTransaction, config: RuleConfig) -> str | None:
    """Flag a vendor that looks like a gas station or restaurant filed under the wrong category."""
    vendor = transaction.vendor_name.lower()
    category = transaction.category_name.lower()
    if not vendor:
        return None
    for rule in config.lexicon.vendor_rules:
        if not any(keyword.lower() in vendor for keyword in rule.vendor_keywords):
            continue
        if any(keyword.lower() in category for keyword in rule.category_keywords):
            return None
        return (
            f"Vendor/Category mismatch: {transaction.vendor_name} appears to be a {rule.label} "
            f"but categorized as {transaction.category_name or 'uncategorized'}"
        )
    return None


def check_memo_keywords(transaction: ExpenseTransaction, config: RuleConfig) -> str | None:
    """Flag memos that mention personal spending, or cash on a large amount."""
    memo = transaction.memo.lower()
    if not memo:
        return None
    lexicon = config.lexicon
    for keyword in lexicon.personal_keywords:
        if keyword.lower() in memo:
            return f'Potential personal expense: memo contains "{keyword}"'
    mentions_cash = any(keyword.lower() in memo for keyword in lexicon.cash_keywords)
    if mentions_cash and transaction.amount > config.thresholds.large_cash_threshold:
        return f"Large cash transaction: {_money(transaction.amount)} with cash mentioned in memo"
    return None


def check_global_ceiling(transaction: ExpenseTransaction, config: RuleConfig) -> str | None:
    """Flag any amount above the global ceiling, whatever the category."""
    ceiling = config.thresholds.global_amount_ceiling
    if transaction.amount > ceiling:
        return f"High amount transaction: {_money(transaction.amount)} exceeds {_money(ceiling)} threshold"
    return None


CHECKS = (check_category_ceiling, check_vendor_category, check_memo_keywords, check_global_ceiling)


def detect_anomalies(transaction: ExpenseTransaction | Mapping, config: RuleConfig) -> AnomalyResult:
    """Run every expense check and collect the reasons.

    Data problems never raise: a malformed transaction or a failing check is
    reported as a reason so the transaction lands in manual review.
    """
    if not isinstance(config, RuleConfig):
        msg = f"detect_anomalies needs a RuleConfig, got {type(config).__name__}"
        raise ConfigurationError(msg)
    if not isinstance(transaction, ExpenseTransaction):
        try:
            transaction = ExpenseTransaction.model_validate(transaction)
        except ValidationError as exc:
            logger.warning(f"Malformed expense transaction: {exc}")
            return AnomalyResult(reasons=[f"Malformed transaction: {exc.error_count()} invalid field(s)"])
    reasons: list[str] = []
    for check in CHECKS:
        try:
            reason = check(transaction, config)
        except Exception as exc:
            logger.exception(f"{check.__name__} failed")
            reason = f"Rule {check.__name__} could not be evaluated: {exc}"
        if reason:
            reasons.append(reason)
    if reasons:
        logger.info(f"Transaction {transaction.transaction_id or '<new>'} flagged: {reasons}")
    return AnomalyResult(reasons=reasons)

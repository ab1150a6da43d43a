"""Thresholds and keyword lists for the rule evaluator.

Every number the vehicle matcher and the anomaly checks compare against lives in
RuleThresholds, and every keyword list lives in Lexicon. A RuleConfig is built once
per request (or per job) and passed to the evaluator; nothing here is global state.
"""

import copy
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from app.core.errors import ConfigurationError
from app.core.utils import get_logger
from app.rules import lexicon as default_lexicon

logger = get_logger("apnexus.rules.config")


class CategoryCeiling(BaseModel):
    """Maximum plausible amount for categories whose name contains one of the keywords."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    keywords: list[str] = Field(min_length=1)
    ceiling: Decimal = Field(gt=0)


class VendorCategoryRule(BaseModel):
    """Vendors matching vendor_keywords are expected in a category matching category_keywords."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str
    vendor_keywords: list[str]
    category_keywords: list[str] = Field(min_length=1)


class Lexicon(BaseModel):
    """Keyword lists used by the substring heuristics."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    vendor_rules: list[VendorCategoryRule] = Field(
        default_factory=lambda: [
            VendorCategoryRule(
                label="gas station",
                vendor_keywords=default_lexicon.GAS_STATION_VENDORS,
                category_keywords=default_lexicon.FUEL_CATEGORY_KEYWORDS,
            ),
            VendorCategoryRule(
                label="restaurant",
                vendor_keywords=default_lexicon.RESTAURANT_VENDORS,
                category_keywords=default_lexicon.MEAL_CATEGORY_KEYWORDS,
            ),
        ]
    )
    personal_keywords: list[str] = Field(default_factory=lambda: list(default_lexicon.PERSONAL_EXPENSE_KEYWORDS))
    cash_keywords: list[str] = Field(default_factory=lambda: list(default_lexicon.CASH_KEYWORDS))
    diesel_product_codes: list[str] = Field(default_factory=lambda: list(default_lexicon.DIESEL_PRODUCT_CODES))
    diesel_keywords: list[str] = Field(default_factory=lambda: list(default_lexicon.DIESEL_KEYWORDS))


class RuleThresholds(BaseModel):
    """Numeric thresholds. Every field is required; defaults come from DEFAULT_THRESHOLDS."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    odometer_window: int = Field(gt=0)
    tight_odometer_threshold: int = Field(ge=0)
    review_confidence_threshold: int = Field(ge=0, le=100)
    direct_id_confidence: int = Field(ge=0, le=100)
    near_match_confidence: int = Field(ge=0, le=100)
    loose_match_confidence: int = Field(ge=0, le=100)
    fallback_unavailable_confidence: int = Field(ge=0, le=100)
    fallback_error_confidence: int = Field(ge=0, le=100)
    fallback_unparseable_confidence: int = Field(ge=0, le=100)
    category_ceilings: list[CategoryCeiling]
    global_amount_ceiling: Decimal = Field(gt=0)
    large_cash_threshold: Decimal = Field(gt=0)
    min_mpg: float = Field(gt=0)
    max_mpg: float = Field(gt=0)
    history_spike_multiplier: float = Field(gt=1)
    history_window: int = Field(gt=0)
    business_hours_start: int = Field(ge=0, le=23)
    business_hours_end: int = Field(ge=0, le=23)

    @model_validator(mode="after")
    def _check_ordering(self) -> "RuleThresholds":
        if self.tight_odometer_threshold > self.odometer_window:
            msg = "tight_odometer_threshold must not exceed odometer_window"
            raise ValueError(msg)
        if self.min_mpg >= self.max_mpg:
            msg = "min_mpg must be lower than max_mpg"
            raise ValueError(msg)
        if self.business_hours_start > self.business_hours_end:
            msg = "business_hours_start must not be after business_hours_end"
            raise ValueError(msg)
        if not self.direct_id_confidence > self.near_match_confidence > self.loose_match_confidence:
            msg = "confidences must decrease: direct_id > near_match > loose_match"
            raise ValueError(msg)
        fallbacks = (
            self.fallback_unavailable_confidence,
            self.fallback_error_confidence,
            self.fallback_unparseable_confidence,
        )
        if max(fallbacks) >= self.review_confidence_threshold:
            msg = "fallback confidences must stay below review_confidence_threshold"
            raise ValueError(msg)
        return self


class RuleConfig(BaseModel):
    """Everything the evaluator needs besides the transaction and the reference set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    thresholds: RuleThresholds
    lexicon: Lexicon = Field(default_factory=Lexicon)
    trusted_drivers: list[str] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "RuleConfig":
        """Validate a plain mapping, raising ConfigurationError on any problem."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid rule configuration: {exc}"
            raise ConfigurationError(msg) from exc


DEFAULT_THRESHOLDS: dict[str, Any] = {
    "odometer_window": 10_000,
    "tight_odometer_threshold": 1_000,
    "review_confidence_threshold": 80,
    "direct_id_confidence": 100,
    "near_match_confidence": 95,
    "loose_match_confidence": 75,
    "fallback_unavailable_confidence": 60,
    "fallback_error_confidence": 65,
    "fallback_unparseable_confidence": 70,
    "category_ceilings": [
        {"name": "office", "keywords": ["office"], "ceiling": "500"},
        {"name": "meal", "keywords": ["meal", "food"], "ceiling": "200"},
        {"name": "travel", "keywords": ["travel"], "ceiling": "2000"},
    ],
    "global_amount_ceiling": "5000",
    "large_cash_threshold": "1000",
    "min_mpg": 5.0,
    "max_mpg": 50.0,
    "history_spike_multiplier": 1.5,
    "history_window": 10,
    "business_hours_start": 6,
    "business_hours_end": 19,
}


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge one level deep: nested dicts are updated, everything else replaced."""
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            nested = dict(merged[key])
            nested.update(value)
            merged[key] = nested
        else:
            merged[key] = value
    return merged


def load_rule_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> RuleConfig:
    """Build a RuleConfig from the shipped defaults, an optional JSON rules file and explicit overrides.

    The rules file has the same shape as RuleConfig: optional "thresholds", "lexicon"
    and "trusted_drivers" keys. A missing file, unreadable JSON or an invalid or
    missing threshold raises ConfigurationError.
    """
    data: dict[str, Any] = {"thresholds": copy.deepcopy(DEFAULT_THRESHOLDS), "lexicon": {}, "trusted_drivers": []}
    if path:
        rules_path = Path(path)
        try:
            file_data = json.loads(rules_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            msg = f"Rules file not found: {rules_path}"
            raise ConfigurationError(msg) from exc
        except json.JSONDecodeError as exc:
            msg = f"Rules file {rules_path} is not valid JSON: {exc}"
            raise ConfigurationError(msg) from exc
        if not isinstance(file_data, dict):
            msg = f"Rules file {rules_path} must contain a JSON object"
            raise ConfigurationError(msg)
        logger.info(f"Loaded rule overrides from {rules_path}: {sorted(file_data)}")
        data = _merge(data, file_data)
    if overrides:
        data = _merge(data, overrides)
    return RuleConfig.from_mapping(data)

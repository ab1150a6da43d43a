"""Tests for loading and validating the rule configuration."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from app.core.errors import ConfigurationError
from app.rules.config import DEFAULT_THRESHOLDS, load_rule_config


def write_rules(tmp_path: Path, data: object) -> Path:
    """Write a JSON rules file and return its path."""
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_defaults() -> None:
    """The shipped configuration carries the documented thresholds."""
    thresholds = load_rule_config().thresholds
    actual = (
        thresholds.odometer_window,
        thresholds.tight_odometer_threshold,
        thresholds.review_confidence_threshold,
        thresholds.global_amount_ceiling,
    )
    if actual != (10_000, 1_000, 80, Decimal("5000")):
        msg = f"Unexpected defaults {actual}"
        raise AssertionError(msg)
    names = [ceiling.name for ceiling in thresholds.category_ceilings]
    if names != ["office", "meal", "travel"]:
        msg = f"Unexpected category ceilings {names}"
        raise AssertionError(msg)


def test_defaults_are_not_shared() -> None:
    """Overrides never leak into the module defaults."""
    load_rule_config(overrides={"thresholds": {"odometer_window": 500, "tight_odometer_threshold": 100}})
    if DEFAULT_THRESHOLDS["odometer_window"] != 10_000:
        msg = "Module defaults were modified"
        raise AssertionError(msg)


def test_rules_file_overrides(tmp_path: Path) -> None:
    """A rules file replaces only the keys it names."""
    path = write_rules(
        tmp_path,
        {
            "thresholds": {"odometer_window": 5_000},
            "lexicon": {"cash_keywords": ["cash", "atm"]},
            "trusted_drivers": ["Ana Ruiz"],
        },
    )
    config = load_rule_config(path)
    if config.thresholds.odometer_window != 5_000 or config.thresholds.tight_odometer_threshold != 1_000:
        msg = f"Unexpected thresholds {config.thresholds}"
        raise AssertionError(msg)
    if config.lexicon.cash_keywords != ["cash", "atm"] or config.trusted_drivers != ["Ana Ruiz"]:
        msg = f"Unexpected lexicon or drivers {config}"
        raise AssertionError(msg)
    if not config.lexicon.personal_keywords:
        msg = "Unnamed lexicon entries should keep their defaults"
        raise AssertionError(msg)


def test_overrides_win_over_file(tmp_path: Path) -> None:
    """Explicit overrides are applied after the rules file."""
    path = write_rules(tmp_path, {"thresholds": {"odometer_window": 5_000}})
    config = load_rule_config(path, overrides={"thresholds": {"odometer_window": 7_000}})
    if config.thresholds.odometer_window != 7_000:
        msg = f"Expected 7000, got {config.thresholds.odometer_window}"
        raise AssertionError(msg)


def test_missing_file(tmp_path: Path) -> None:
    """A rules file that does not exist is a configuration error."""
    with pytest.raises(ConfigurationError, match="not found"):
        load_rule_config(tmp_path / "missing.json")


def test_invalid_json(tmp_path: Path) -> None:
    """Unreadable JSON is a configuration error."""
    path = tmp_path / "rules.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_rule_config(path)


def test_rules_file_must_be_object(tmp_path: Path) -> None:
    """A rules file holding a list is rejected."""
    with pytest.raises(ConfigurationError, match="JSON object"):
        load_rule_config(write_rules(tmp_path, [1, 2]))


@pytest.mark.parametrize(
    "thresholds",
    [
        {"odometer_window": None},
        {"odometer_window": -1},
        {"unknown_threshold": 3},
        {"tight_odometer_threshold": 20_000},
        {"min_mpg": 60},
        {"near_match_confidence": 100},
        {"fallback_unparseable_confidence": 85},
        {"business_hours_start": 22},
    ],
)
def test_invalid_thresholds(thresholds: dict) -> None:
    """Missing, unknown or inconsistent thresholds are configuration errors."""
    with pytest.raises(ConfigurationError):
        load_rule_config(overrides={"thresholds": thresholds})


def test_unknown_lexicon_key() -> None:
    """Lexicon keys are checked too."""
    with pytest.raises(ConfigurationError):
        load_rule_config(overrides={"lexicon": {"emoji_keywords": ["x"]}})

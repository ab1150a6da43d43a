"""Rules package: the rule evaluator for vehicle matching and transaction anomaly flagging."""

from .anomaly_detector import detect_anomalies  # noqa: F401
from .config import RuleConfig, RuleThresholds, load_rule_config  # noqa: F401
from .fuel_checks import check_fuel_anomalies  # noqa: F401
from .vehicle_matcher import match_vehicle  # noqa: F401

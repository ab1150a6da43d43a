"""Core package: provides models, errors, database helpers, settings, and shared utilities."""

from .errors import ConfigurationError, ExternalServiceError, InputError, RulesError  # noqa: F401
from .models import AnomalyResult, JobStatus, MatchMethod, MatchResult  # noqa: F401
from .settings import Settings  # noqa: F401
from .utils import get_logger  # noqa: F401

"""Error taxonomy for the rule evaluator.

Only ConfigurationError is meant to reach callers. InputError and
ExternalServiceError are raised inside the evaluator and converted into
review reasons before a result is returned.
"""


class RulesError(Exception):
    """Base class for rule evaluator errors."""


class ConfigurationError(RulesError):
    """A required threshold or lexicon entry is missing or invalid."""


class InputError(RulesError):
    """The reference set or transaction cannot be evaluated."""


class ExternalServiceError(RulesError):
    """The text-generation service failed, timed out, or returned nothing usable."""

"""Base abstraction for text-generation backed disambiguators.

The vehicle matcher only needs to send a plain-text prompt and read plain text
back, so providers hide their request and response shapes behind this interface.
"""

from abc import ABC, abstractmethod

from app.core.settings import Settings


class BaseDisambiguator(ABC):
    """Abstract base class for all disambiguators."""

    @classmethod
    def from_settings(cls, settings: Settings) -> "BaseDisambiguator | None":
        """Build an instance from settings, or None when the provider is not configured."""
        return cls()

    @abstractmethod
    def disambiguate(self, prompt: str) -> str:
        """Send a prompt and return the raw reply text.

        Implementations raise ExternalServiceError on failure or timeout.
        """

"""Deterministic disambiguator returning a fixed reply, for tests and offline deployments."""

from app.agents.base import BaseDisambiguator
from app.core.settings import Settings


class StaticDisambiguator(BaseDisambiguator):
    """Always answers with the same reply and remembers the prompts it was given."""

    def __init__(self, reply: str = "1 50") -> None:
        """Initialize with the reply to return for every prompt."""
        self.reply = reply
        self.prompts: list[str] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "StaticDisambiguator":
        """Build from the configured static reply."""
        return cls(reply=settings.static_disambiguator_reply)

    def disambiguate(self, prompt: str) -> str:
        """Record the prompt and return the fixed reply."""
        self.prompts.append(prompt)
        return self.reply

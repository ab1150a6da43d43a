"""Registry of disambiguator providers, selectable by name from settings."""

from typing import ClassVar

from app.agents.base import BaseDisambiguator


class DisambiguatorRegistry:
    """Registry for disambiguator classes."""

    _registry: ClassVar[dict[str, type[BaseDisambiguator]]] = {}

    @classmethod
    def register(cls, name: str, disambiguator_cls: type[BaseDisambiguator]) -> None:
        """Register a disambiguator class with a given name."""
        cls._registry[name] = disambiguator_cls

    @classmethod
    def get(cls, name: str) -> type[BaseDisambiguator]:
        """Retrieve a disambiguator class by name."""
        return cls._registry[name]

    @classmethod
    def available(cls) -> list[str]:
        """List all available disambiguator names."""
        return list(cls._registry.keys())

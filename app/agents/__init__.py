"""Agents package: text-generation providers behind the disambiguator interface."""

from .base import BaseDisambiguator  # noqa: F401
from .groq_agent import GroqDisambiguator, TransactionAnalyst  # noqa: F401
from .registry import DisambiguatorRegistry  # noqa: F401
from .static_disambiguator import StaticDisambiguator  # noqa: F401

DisambiguatorRegistry.register("groq", GroqDisambiguator)
DisambiguatorRegistry.register("static", StaticDisambiguator)

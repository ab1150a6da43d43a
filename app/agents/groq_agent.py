"""Groq-backed text generation: vehicle disambiguation and flagged transaction analysis.

Both classes wrap a Groq chat completion client built with a bounded timeout and
no automatic retries, so a slow or failing service costs at most one timeout per
call. Failures surface as ExternalServiceError; callers decide the fallback.
"""

from groq import Groq

from app.agents.base import BaseDisambiguator
from app.agents.prompts import (
    ANALYST_SYSTEM_PROMPT,
    ANALYST_USER_TEMPLATE,
    VEHICLE_MATCH_SYSTEM_PROMPT,
)
from app.core.errors import ExternalServiceError
from app.core.models import ExpenseTransaction
from app.core.settings import Settings
from app.core.utils import get_logger, truncate

MAX_PROMPT_LOG_LEN = 300

logger = get_logger("apnexus.agent")


def _get_color(color: str) -> str:
    try:
        from colorlog.escape_codes import escape_codes as _codes

        return _codes.get(color, "")
    except Exception:
        return ""


def build_client(settings: Settings) -> Groq | None:
    """Create a Groq client with the configured timeout, or None without an API key."""
    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY not configured, text generation unavailable")
        return None
    return Groq(api_key=settings.groq_api_key, timeout=settings.llm_timeout_seconds, max_retries=0)


class GroqChat:
    """Shared chat completion plumbing for the Groq-backed agents."""

    def __init__(self, llm_client: object, settings: Settings) -> None:
        """Initialize with a Groq client and settings."""
        self.llm_client = llm_client
        self.settings = settings

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> str:
        cyan = _get_color("cyan")
        green = _get_color("green")
        reset = _get_color("reset")
        logger.info(f"{cyan}PROMPT: {truncate(user_prompt, MAX_PROMPT_LOG_LEN)}{reset}")
        try:
            completion = self.llm_client.chat.completions.create(
                model=self.settings.llm_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_completion_tokens=max_tokens,
                stream=self.settings.llm_stream,
            )
        except Exception as exc:
            msg = f"Groq API call failed: {exc}"
            logger.warning(msg)
            raise ExternalServiceError(msg) from exc
        raw_output = self._collect_llm_output(completion).strip()
        logger.info(f"{green}OUTPUT: {truncate(raw_output, MAX_PROMPT_LOG_LEN)}{reset}")
        if not raw_output:
            msg = "Groq API returned an empty reply"
            raise ExternalServiceError(msg)
        return raw_output

    def _collect_llm_output(self, completion: object) -> str:
        """Collect the full output from a streamed or a plain completion."""
        try:
            if not self.settings.llm_stream:
                return completion.choices[0].message.content or ""
            raw_output = ""
            for chunk in completion:
                raw_output += chunk.choices[0].delta.content or ""
        except Exception as exc:
            msg = f"Groq response could not be read: {exc}"
            logger.warning(msg)
            raise ExternalServiceError(msg) from exc
        return raw_output


class GroqDisambiguator(GroqChat, BaseDisambiguator):
    """Asks a Groq-hosted model to pick one of several candidate vehicles."""

    @classmethod
    def from_settings(cls, settings: Settings) -> "GroqDisambiguator | None":
        """Build from settings; None when no API key is configured."""
        client = build_client(settings)
        if client is None:
            return None
        return cls(client, settings)

    def disambiguate(self, prompt: str) -> str:
        """Return the model's "index confidence" reply for a candidate prompt."""
        return self._complete(
            VEHICLE_MATCH_SYSTEM_PROMPT,
            prompt,
            max_tokens=self.settings.llm_max_completion_tokens,
            temperature=self.settings.llm_temperature,
        )


class TransactionAnalyst(GroqChat):
    """Writes a short review narrative for a flagged expense transaction."""

    def analyze(self, transaction: ExpenseTransaction, flag_reason: str) -> str:
        """Return the model's assessment of why the transaction was flagged."""
        prompt = ANALYST_USER_TEMPLATE.format(
            date=transaction.transaction_date.date().isoformat() if transaction.transaction_date else "Unknown",
            amount=f"{transaction.amount:,.2f}",
            vendor=transaction.vendor_name or "Unknown",
            memo=transaction.memo or "No description",
            category=transaction.category_name or "Uncategorized",
            flag_reason=flag_reason or "None given",
        )
        return self._complete(
            ANALYST_SYSTEM_PROMPT,
            prompt,
            max_tokens=self.settings.llm_analysis_max_completion_tokens,
            temperature=self.settings.llm_analysis_temperature,
        )

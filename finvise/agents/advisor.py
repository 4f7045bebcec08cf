"""
Financial Advisor Agent

DESIGN DECISION: Advice is generated by Gemini from a plain-text summary of
the user's transactions. The model only ever sees what the user recorded.

CRITICAL BOUNDARIES:
- The advisor never reads or writes storage
- The advisor never raises: any failure (timeout, transport, unparseable
  answer) returns the fixed fallback advice
- One request is bounded by GEMINI_TIMEOUT_SECONDS
"""

import asyncio
import json
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
import structlog

from finvise.config import GeminiSettings, get_settings
from finvise.models.finance import AIAdvice, Transaction, TransactionType


logger = structlog.get_logger(__name__)

FALLBACK_SUMMARY = "Unable to analyze your data right now. Please try again later."
FALLBACK_TIPS = [
    "Check your network connection",
    "Make sure you have added enough transactions",
    "Try again in a few minutes",
]


def fallback_advice() -> AIAdvice:
    """The fixed advice shown whenever the model cannot answer."""
    return AIAdvice(summary=FALLBACK_SUMMARY, tips=list(FALLBACK_TIPS), is_fallback=True)


def format_amount(amount: Decimal) -> str:
    """Whole amounts with dot thousands separators (150000 -> 150.000)."""
    if amount == amount.to_integral_value():
        return f"{int(amount):,}".replace(",", ".")
    return str(amount)


def summarize_transaction(transaction: Transaction, currency: str = "VND") -> str:
    """One prompt line: '<date>: <+|-><amount> VND (<category> - <description>)'."""
    sign = "+" if transaction.type == TransactionType.INCOME else "-"
    return (
        f"{transaction.transaction_date.isoformat()}: "
        f"{sign}{format_amount(transaction.amount)} {currency} "
        f"({transaction.category} - {transaction.description})"
    )


def summarize_transactions(transactions: list[Transaction], currency: str = "VND") -> str:
    return "\n".join(summarize_transaction(t, currency) for t in transactions)


class FinancialAdvisor:
    """
    Gemini-backed spending analysis.

    The model is created from settings unless one is injected. An injected
    model only needs an async generate_content_async(prompt) returning an
    object with a .text attribute.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        currency: str = "VND",
    ):
        self._settings = settings or get_settings().gemini
        self._currency = currency
        if model is None:
            self._configure_genai()
        else:
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def build_prompt(self, transactions: list[Transaction]) -> str:
        summary = summarize_transactions(transactions, self._currency)
        return f"""Here is a list of my recent financial transactions:
{summary}

Analyze my spending habits and give short, practical financial advice.

Respond with ONLY a JSON object in this exact format:
{{"summary": "a short summary of my current financial situation", "tips": ["tip 1", "tip 2", "tip 3"]}}

Give exactly 3 concrete tips."""

    @staticmethod
    def parse_response(text: str) -> AIAdvice:
        """
        Extract {summary, tips} from the model's answer.

        Raises:
            ValueError: No JSON object, or summary/tips missing
        """
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError("No JSON object in response")

        data = json.loads(text[start:end])
        summary = data.get("summary")
        tips = data.get("tips")
        if not isinstance(summary, str) or not summary.strip():
            raise ValueError("Response has no summary")
        if not isinstance(tips, list):
            raise ValueError("Response has no tips list")

        return AIAdvice(
            summary=summary.strip(),
            tips=[str(tip).strip() for tip in tips if str(tip).strip()],
        )

    async def get_advice(self, transactions: list[Transaction]) -> AIAdvice:
        """
        Ask the model for advice on the given transactions.

        Always returns advice; the fallback carries is_fallback=True.
        """
        prompt = self.build_prompt(transactions)
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(prompt),
                timeout=self._settings.timeout_seconds,
            )
            return self.parse_response(response.text or "")
        except asyncio.TimeoutError:
            logger.warning("advice_timeout", timeout_seconds=self._settings.timeout_seconds)
        except Exception as e:
            logger.warning("advice_failed", error=str(e))

        return fallback_advice()

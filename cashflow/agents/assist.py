"""
AI Assist Agent for Cashflow

DESIGN DECISION: The language model is a TRANSLATOR, not a bookkeeper.
It turns transactions into prose and prose into filters. It never
creates, edits or deletes ledger data.

Three operations, with deliberately different failure behavior:

1. SUMMARIZE TRANSACTIONS (hard fail):
   - Empty input: fixed message, NO remote call
   - Remote failure: raises GenerationFailure, no retry

2. EXPAND DESCRIPTION (hard fail):
   - Short note -> clear description under ~100 characters
   - Remote failure: raises GenerationFailure

3. PARSE SEARCH QUERY (soft fail):
   - Free text -> SearchFilters via a fixed JSON schema
   - ANY failure: returns SearchFilters(text=query)
   - Search must always give the user something usable

All three need a Gemini credential. A missing key raises
ConfigurationError when the agent is built, before any network call.
"""

import json
from datetime import date
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from cashflow.config import GeminiSettings, get_settings
from cashflow.models.ledger import SearchFilters, Transaction


NO_TRANSACTIONS_MESSAGE = "There are no transactions to analyze in the selected period."

# Structured-extraction schema for search parsing.
# Field names match SearchFilters' camelCase aliases.
SEARCH_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "text": {
            "type": "string",
            "nullable": True,
            "description": "General search term for description.",
        },
        "startDate": {
            "type": "string",
            "nullable": True,
            "description": "Start date in YYYY-MM-DD format.",
        },
        "endDate": {
            "type": "string",
            "nullable": True,
            "description": "End date in YYYY-MM-DD format.",
        },
        "type": {
            "type": "string",
            "enum": ["income", "expense"],
            "nullable": True,
            "description": "Transaction type.",
        },
        "minAmount": {
            "type": "number",
            "nullable": True,
            "description": "Minimum amount.",
        },
        "maxAmount": {
            "type": "number",
            "nullable": True,
            "description": "Maximum amount.",
        },
    },
}

_QUOTE_PAIRS = (('"', '"'), ("'", "'"), ("“", "”"))

logger = structlog.get_logger(__name__)


class GenerationFailure(Exception):
    """The text-generation call failed or returned nothing usable."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)


class FallbackDegradation(Exception):
    """
    Search parsing could not produce valid filters.

    Never escapes AssistAgent: it triggers the plain-text fallback.
    """
    pass


def strip_enclosing_quotes(text: str) -> str:
    """Remove ONE pair of matching quotes wrapping the whole text."""
    text = text.strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(text) >= 2 and text.startswith(opening) and text.endswith(closing):
            return text[1:-1].strip()
    return text


class AssistAgent:
    """
    Gemini-backed helper for summaries, descriptions and search.

    BOUNDARIES:
    - NEVER mutates ledger state
    - Summaries are built ONLY from the transactions passed in
    - Search output is validated against SearchFilters before use
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        """
        Args:
            settings: Gemini settings; loaded from the environment when None.
                      Raises ConfigurationError if the key is missing.
            model: A preconfigured model exposing generate_content_async.
                   Tests pass a fake here.
        """
        self._settings = settings or get_settings().gemini
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
            }
        )

    async def _generate(
        self,
        operation: str,
        prompt: str,
        generation_config: Optional[dict] = None,
    ) -> str:
        """
        One remote call. Any failure becomes GenerationFailure.

        No retry: the user sees the failure and decides.
        """
        try:
            if generation_config:
                response = await self._model.generate_content_async(
                    prompt, generation_config=generation_config
                )
            else:
                response = await self._model.generate_content_async(prompt)
            # .text raises ValueError when the response was blocked
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("generation_failed", operation=operation, error=str(e))
            raise GenerationFailure(operation, f"The {operation} request failed: {e}") from e

        if not text:
            logger.error("generation_empty", operation=operation)
            raise GenerationFailure(operation, f"The {operation} request returned no text")

        return text

    async def summarize_transactions(
        self,
        transactions: Sequence[Transaction],
    ) -> str:
        """
        Write a markdown financial summary of the given transactions.

        Returns the fixed "nothing to analyze" message for an empty list
        without calling the model.

        Raises:
            GenerationFailure: If the remote call fails
        """
        if not transactions:
            return NO_TRANSACTIONS_MESSAGE

        data = json.dumps(
            {"transactions": [tx.model_dump(mode="json") for tx in transactions]},
            indent=2,
        )

        prompt = f"""You are a financial analyst assistant for a tool called Cashflow. Based on the following list of transactions, provide a concise summary and analysis. The transactions are provided in a JSON format.

Data:
{data}

Your analysis should include:
1.  **Overall Summary**: A brief overview of the financial activity, including total income, total expenses, and the net cash flow (income - expenses).
2.  **Key Insights**: Analyze transaction descriptions to identify the largest sources of income and biggest areas of expense. Mention the top 2-3 examples and their values.
3.  **Observations or Recommendations**: Point out any notable patterns, trends, or potential areas for financial improvement (e.g., high spending in a specific area, inconsistent income). Keep it brief and actionable.

Present the report in clear, easy-to-read markdown format. Start with a top-level heading '# Financial Summary'. Use bullet points for lists.
Do not include the raw JSON data in your response.
Be friendly and encouraging."""

        summary = await self._generate("summary", prompt)
        logger.info("summary_generated", transaction_count=len(transactions))
        return summary

    async def expand_description(self, note: str) -> str:
        """
        Expand a brief note into a transaction description.

        Raises:
            GenerationFailure: If the remote call fails
        """
        prompt = (
            "Expand the following brief note into a clear, concise transaction "
            f'description. Keep it under 100 characters. Note: "{note}"'
        )

        text = await self._generate("description", prompt)
        return strip_enclosing_quotes(text)

    def _parse_filters(self, raw: str) -> SearchFilters:
        """
        Validate the model's JSON against SearchFilters.

        Raises:
            FallbackDegradation: On malformed JSON or invalid fields
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise FallbackDegradation(f"Response is not JSON: {e}")
        if not isinstance(data, dict):
            raise FallbackDegradation("Response is not a JSON object")

        # Treat explicit nulls the same as missing fields
        present = {key: value for key, value in data.items() if value is not None}
        try:
            return SearchFilters.model_validate(present)
        except ValidationError as e:
            raise FallbackDegradation(f"Response does not match the filter schema: {e}")

    async def parse_search_query(
        self,
        query: str,
        today: Optional[date] = None,
    ) -> SearchFilters:
        """
        Turn a natural-language query into structured filters.

        NEVER raises: on any failure the result is SearchFilters(text=query).

        Args:
            query: What the user typed, e.g. "coffee expenses last week"
            today: Reference date for relative phrases; defaults to today
        """
        query = query.strip()
        if not query:
            return SearchFilters()

        today = today or date.today()

        prompt = f"""Parse the user's natural language query to filter a list of financial transactions.
The current date is {today.isoformat()}.

Query: "{query}"

Extract the following information and return it as a JSON object:
- text: Any general search terms for the description.
- startDate: The start of the date range in YYYY-MM-DD format.
- endDate: The end of the date range in YYYY-MM-DD format.
- type: The transaction type, which must be either 'income' or 'expense'.
- minAmount: The minimum transaction amount.
- maxAmount: The maximum transaction amount.

Interpret relative dates like "last week", "this month", "yesterday" based on the current date.
If a field is not mentioned in the query, do not include it in the JSON object."""

        try:
            raw = await self._generate(
                "search",
                prompt,
                generation_config={
                    "response_mime_type": "application/json",
                    "response_schema": SEARCH_RESPONSE_SCHEMA,
                },
            )
            filters = self._parse_filters(raw)
        except (GenerationFailure, FallbackDegradation) as e:
            logger.warning("search_query_fallback", query=query, error=str(e))
            return SearchFilters(text=query)

        logger.info(
            "search_query_parsed",
            query=query,
            active_filters=filters.active_filter_count,
        )
        return filters

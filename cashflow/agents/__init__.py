"""AI Agents package."""

from cashflow.agents.assist import (
    NO_TRANSACTIONS_MESSAGE,
    AssistAgent,
    FallbackDegradation,
    GenerationFailure,
    strip_enclosing_quotes,
)

__all__ = [
    "NO_TRANSACTIONS_MESSAGE",
    "AssistAgent",
    "FallbackDegradation",
    "GenerationFailure",
    "strip_enclosing_quotes",
]

"""
Tests for the AI assist agent.

The Gemini model is always a mock; no test makes a network call.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest

from cashflow.agents import (
    NO_TRANSACTIONS_MESSAGE,
    AssistAgent,
    GenerationFailure,
    strip_enclosing_quotes,
)
from cashflow.config import ConfigurationError, get_settings, validate_all_settings
from cashflow.models import SearchFilters, TransactionType

from conftest import respond_with


class TestSummarize:
    """Tests for transaction summaries."""

    def test_empty_list_makes_no_call(self, assist_agent, fake_model):
        """Test the fixed message for an empty period."""
        result = asyncio.run(assist_agent.summarize_transactions([]))
        assert result == NO_TRANSACTIONS_MESSAGE
        assert fake_model.generate_content_async.call_count == 0

    def test_prompt_embeds_transactions(self, assist_agent, fake_model, sample_transactions):
        """Test that the data goes in as indented JSON inside the template."""
        respond_with(fake_model, "# Financial Summary\n- Net: 70")
        result = asyncio.run(assist_agent.summarize_transactions(sample_transactions))

        assert result == "# Financial Summary\n- Net: 70"
        assert fake_model.generate_content_async.call_count == 1
        prompt = fake_model.generate_content_async.call_args.args[0]
        assert '"transactions": [' in prompt
        assert "Office coffee" in prompt
        assert "# Financial Summary" in prompt

    def test_remote_failure(self, assist_agent, fake_model, sample_transactions):
        """Test that a failed call raises GenerationFailure without retry."""
        fake_model.generate_content_async.side_effect = RuntimeError("503")
        with pytest.raises(GenerationFailure) as exc_info:
            asyncio.run(assist_agent.summarize_transactions(sample_transactions))
        assert exc_info.value.operation == "summary"
        assert fake_model.generate_content_async.call_count == 1

    def test_empty_response(self, assist_agent, fake_model, sample_transactions):
        """Test that blank text is a failure."""
        respond_with(fake_model, "   ")
        with pytest.raises(GenerationFailure):
            asyncio.run(assist_agent.summarize_transactions(sample_transactions))


class TestExpandDescription:
    """Tests for description expansion."""

    def test_quotes_removed(self, assist_agent, fake_model):
        """Test that one enclosing pair of quotes is stripped."""
        respond_with(fake_model, '  "Monthly office rent payment"  ')
        result = asyncio.run(assist_agent.expand_description("rent"))
        assert result == "Monthly office rent payment"

    def test_prompt_mentions_note_and_limit(self, assist_agent, fake_model):
        """Test the request content."""
        respond_with(fake_model, "Coffee beans for the office")
        asyncio.run(assist_agent.expand_description("coffee"))
        prompt = fake_model.generate_content_async.call_args.args[0]
        assert '"coffee"' in prompt
        assert "100 characters" in prompt

    def test_failure(self, assist_agent, fake_model):
        """Test that a failed call raises."""
        fake_model.generate_content_async.side_effect = RuntimeError("timeout")
        with pytest.raises(GenerationFailure):
            asyncio.run(assist_agent.expand_description("rent"))

    def test_strip_enclosing_quotes(self):
        """Test the quote helper on its own."""
        assert strip_enclosing_quotes('"hello"') == "hello"
        assert strip_enclosing_quotes("'hello'") == "hello"
        assert strip_enclosing_quotes('""hello""') == '"hello"'
        assert strip_enclosing_quotes('say "hi"') == 'say "hi"'
        assert strip_enclosing_quotes('"') == '"'


class TestParseSearchQuery:
    """Tests for natural-language search."""

    def test_structured_result(self, assist_agent, fake_model):
        """Test that valid JSON becomes filters."""
        respond_with(fake_model, json.dumps({
            "text": "coffee",
            "startDate": "2024-01-01",
            "endDate": "2024-01-07",
            "type": "expense",
            "minAmount": None,
        }))
        filters = asyncio.run(assist_agent.parse_search_query("coffee last week", today=date(2024, 1, 8)))

        assert filters == SearchFilters(
            text="coffee",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 7),
            type=TransactionType.EXPENSE,
        )

    def test_request_uses_json_schema(self, assist_agent, fake_model):
        """Test that the call asks for JSON and embeds today's date."""
        respond_with(fake_model, "{}")
        asyncio.run(assist_agent.parse_search_query("big income", today=date(2024, 6, 15)))

        call = fake_model.generate_content_async.call_args
        assert "2024-06-15" in call.args[0]
        config = call.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
        assert "minAmount" in config["response_schema"]["properties"]

    def test_amount_bounds(self, assist_agent, fake_model):
        """Test numeric fields."""
        respond_with(fake_model, '{"minAmount": 500, "type": "income"}')
        filters = asyncio.run(assist_agent.parse_search_query("income over 500"))
        assert filters.min_amount == Decimal("500")
        assert filters.type == TransactionType.INCOME

    @pytest.mark.parametrize("raw", [
        "not json at all",
        "[1, 2, 3]",
        '{"type": "transfer"}',
        '{"startDate": "last tuesday"}',
    ])
    def test_bad_response_falls_back(self, assist_agent, fake_model, raw):
        """Test that unusable output degrades to a text search."""
        respond_with(fake_model, raw)
        filters = asyncio.run(assist_agent.parse_search_query("coffee"))
        assert filters == SearchFilters(text="coffee")

    def test_remote_failure_falls_back(self, assist_agent, fake_model):
        """Test that a failed call degrades to a text search."""
        fake_model.generate_content_async.side_effect = RuntimeError("offline")
        filters = asyncio.run(assist_agent.parse_search_query("rent in march"))
        assert filters == SearchFilters(text="rent in march")
        assert filters.active_filter_count == 1

    def test_blank_query(self, assist_agent, fake_model):
        """Test that an empty query needs no call."""
        assert asyncio.run(assist_agent.parse_search_query("  ")) == SearchFilters()
        fake_model.generate_content_async.assert_not_called()


class TestConfiguration:
    """Tests for credential handling."""

    def test_missing_key_raises_before_any_call(self, monkeypatch, tmp_path):
        """Test that building the agent without a key fails fast."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        get_settings.cache_clear()

        with pytest.raises(ConfigurationError) as exc_info:
            AssistAgent()
        assert exc_info.value.section == "gemini"

    def test_key_from_environment(self, monkeypatch, tmp_path, fake_model):
        """Test that either variable name is accepted."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "from-env")
        monkeypatch.chdir(tmp_path)
        get_settings.cache_clear()

        agent = AssistAgent(model=fake_model)
        assert agent._settings.api_key == "from-env"

    def test_validate_all_settings_reports_error_text(self, monkeypatch, tmp_path):
        """Test the status map carries flags and error messages."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        get_settings.cache_clear()

        results = validate_all_settings()
        assert results["gemini"] is False
        assert "GEMINI_API_KEY" in results["gemini_error"]
        assert results["storage"] is True
        assert "storage_error" not in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Unit tests for LLM reply suggestions

Tests:
- Provider initialisation
- Output validation
- Retry logic and error handling
- Conversation history formatting
"""
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ticketsync.exceptions import SuggestionGenerationError
from ticketsync.services.message_sync import AGENT, customer_collection, merge_messages, messages_from_collection
from ticketsync.services.suggestion_generator import (
    LLMProvider,
    SuggestionGenerator,
    format_conversation_history,
    parse_suggestions_output,
)


def openai_response(content: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


@pytest.fixture
def generator():
    generator = SuggestionGenerator(provider=LLMProvider.OPENAI)
    generator.openai_client = MagicMock()
    generator.openai_client.chat.completions.create = AsyncMock()
    return generator


class TestInitialization:
    def test_openai_initialization(self):
        generator = SuggestionGenerator(provider=LLMProvider.OPENAI)

        assert generator.provider == LLMProvider.OPENAI
        assert generator.model == "gpt-4o-mini"
        assert generator.max_retries == 3
        assert hasattr(generator, "openai_client")

    def test_gemini_initialization(self):
        with patch("google.generativeai.configure"):
            with patch("google.generativeai.GenerativeModel"):
                generator = SuggestionGenerator(provider=LLMProvider.GEMINI)

                assert generator.model == "gemini-2.0-flash"
                assert hasattr(generator, "gemini_model")


class TestParseSuggestionsOutput:
    def test_object_form(self):
        output = parse_suggestions_output('{"suggestions": [" Sure ", "", "No problem"]}')

        assert output.suggestions == ["Sure", "No problem"]

    def test_bare_list(self):
        assert parse_suggestions_output('["a", "b"]').suggestions == ["a", "b"]

    def test_invalid_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_suggestions_output("not json")


class TestGenerate:
    @pytest.mark.asyncio
    async def test_suggest_response_success(self, generator):
        generator.openai_client.chat.completions.create.return_value = openai_response(
            json.dumps({"suggestions": ["We are on it", "Could you share the receipt?", "Refund issued"]})
        )

        output = await generator.suggest_response("[10:00:00] Customer: refund please")

        assert len(output.suggestions) == 3
        kwargs = generator.openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "refund please" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_smart_suggestions_success(self, generator):
        generator.openai_client.chat.completions.create.return_value = openai_response('["Check balance"]')

        output = await generator.smart_suggestions("card declined")

        assert output.suggestions == ["Check balance"]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, generator):
        generator.openai_client.chat.completions.create.side_effect = [
            openai_response("garbage"),
            openai_response('{"suggestions": ["ok"]}'),
        ]

        with patch("ticketsync.services.suggestion_generator.asyncio.sleep", new=AsyncMock()):
            output = await generator.suggest_response("history")

        assert output.suggestions == ["ok"]
        assert generator.openai_client.chat.completions.create.call_count == 2

    @pytest.mark.asyncio
    async def test_fails_after_max_retries(self, generator):
        generator.openai_client.chat.completions.create.side_effect = Exception("API Error")

        with patch("ticketsync.services.suggestion_generator.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(SuggestionGenerationError, match="API Error"):
                await generator.suggest_response("history")

        assert generator.openai_client.chat.completions.create.call_count == 3


class TestFormatConversationHistory:
    def test_roles_and_times(self):
        reference = date(2026, 10, 19)
        ticket = "ticket-uuid-0001"
        messages = merge_messages(
            messages_from_collection(ticket, customer_collection("user-123"),
                                     {"10:00:00": {"content": "Card declined"}}, reference),
            messages_from_collection(ticket, AGENT, {"10:00:05": {"content": "Checking"}}, reference),
        )

        history = format_conversation_history(messages)

        assert history == "[10:00:00] Customer: Card declined\n[10:00:05] Agent: Checking"

    def test_empty(self):
        assert format_conversation_history([]) == ""

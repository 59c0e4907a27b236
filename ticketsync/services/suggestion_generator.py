"""
LLM-based reply suggestions

Two prompt contracts, both returning `SuggestionsOutput`:
- suggest_response: agent console, whole conversation history in, three replies out
- smart_suggestions: customer chat, recent chat context in, short suggestions out

Providers:
- OpenAI GPT-4o-mini (primary)
- Google Gemini (alternative)

The synchronisation core never calls this; it backs the console's
"generate suggestions" action.
"""
from functools import lru_cache
from typing import List, Optional
from enum import Enum
import json
import asyncio

import google.generativeai as genai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ticketsync.config import get_settings
from ticketsync.exceptions import SuggestionGenerationError
from ticketsync.models.schemas import (
    Message,
    Sender,
    SmartSuggestionsInput,
    SuggestResponseInput,
    SuggestionsOutput,
)
from ticketsync.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    OPENAI = "openai"
    GEMINI = "gemini"


SUGGEST_RESPONSE_PROMPT = """You are an AI assistant that provides helpful response suggestions based on the conversation history.

Given the following conversation history, suggest three possible responses the user could send. Be concise and directly relevant to the conversation.

Conversation History:
{conversation_history}

Respond with JSON only: {{"suggestions": ["...", "...", "..."]}}"""

SMART_SUGGESTIONS_PROMPT = """You are a helpful assistant that provides smart suggestions based on the current chat context.

Given the following chat context:
{chat_context}

Provide a list of suggestions that the user might find helpful. The suggestions should be short and concise.

Respond with JSON only: {{"suggestions": ["..."]}}"""


def format_conversation_history(messages: List[Message]) -> str:
    """Render a merged conversation as `[HH:MM:SS] Role: text` lines"""
    lines = []
    for message in messages:
        role = "Customer" if message.sender == Sender.CUSTOMER else "Agent"
        lines.append(f"[{message.timestamp.strftime('%H:%M:%S')}] {role}: {message.text}")
    return "\n".join(lines)


def parse_suggestions_output(raw: str) -> SuggestionsOutput:
    """
    Validate provider output against the suggestions schema.

    Accepts either `{"suggestions": [...]}` or a bare JSON array of strings.
    """
    data = json.loads(raw)
    if isinstance(data, list):
        data = {"suggestions": data}
    output = SuggestionsOutput.model_validate(data)
    output.suggestions = [s.strip() for s in output.suggestions if s and s.strip()]
    return output


class SuggestionGenerator:
    """
    Generate reply suggestions with an LLM
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        """
        Initialize generator with specified LLM provider

        Args:
            provider: LLM provider to use (default: settings.suggestion_provider)
        """
        self.provider = provider or LLMProvider(settings.suggestion_provider)
        self.max_retries = 3

        if self.provider == LLMProvider.OPENAI:
            self.openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
            self.model = "gpt-4o-mini"
        elif self.provider == LLMProvider.GEMINI:
            genai.configure(api_key=settings.google_api_key)
            self.gemini_model = genai.GenerativeModel("gemini-2.0-flash")
            self.model = "gemini-2.0-flash"

        logger.info(f"Initialized SuggestionGenerator with {self.provider.value} ({self.model})")

    async def _generate_with_openai(self, prompt: str) -> SuggestionsOutput:
        response = await self.openai_client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": "You suggest short replies for a customer support conversation."
                },
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            response_format={"type": "json_object"},
            temperature=0.4,
            max_tokens=400
        )
        return parse_suggestions_output(response.choices[0].message.content)

    def _generate_with_gemini(self, prompt: str) -> SuggestionsOutput:
        response = self.gemini_model.generate_content(
            prompt,
            generation_config=genai.GenerationConfig(
                temperature=0.4,
                max_output_tokens=400,
                response_mime_type="application/json"
            )
        )
        return parse_suggestions_output(response.text)

    async def _generate(self, prompt: str) -> SuggestionsOutput:
        """
        Run the prompt with retries

        Raises:
            SuggestionGenerationError: On failure after retries
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                if self.provider == LLMProvider.OPENAI:
                    return await self._generate_with_openai(prompt)
                # Gemini is synchronous, wrap in async
                return await asyncio.to_thread(self._generate_with_gemini, prompt)
            except (json.JSONDecodeError, ValidationError) as e:
                last_error = e
                logger.warning(
                    f"{self.provider.value} returned malformed suggestions "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{self.provider.value} suggestion attempt {attempt + 1}/{self.max_retries} failed: {e}"
                )
            if attempt < self.max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        raise SuggestionGenerationError(f"Suggestion generation failed: {last_error}")

    async def suggest_response(self, conversation_history: str) -> SuggestionsOutput:
        """Three reply suggestions for the agent, from the full history"""
        request = SuggestResponseInput(conversation_history=conversation_history)
        prompt = SUGGEST_RESPONSE_PROMPT.format(conversation_history=request.conversation_history)
        return await self._generate(prompt)

    async def smart_suggestions(self, chat_context: str) -> SuggestionsOutput:
        """Short suggestions for the customer, from the recent context"""
        request = SmartSuggestionsInput(chat_context=chat_context)
        prompt = SMART_SUGGESTIONS_PROMPT.format(chat_context=request.chat_context)
        return await self._generate(prompt)


@lru_cache()
def get_suggestion_generator() -> SuggestionGenerator:
    """Process-wide generator, created on first use"""
    return SuggestionGenerator()

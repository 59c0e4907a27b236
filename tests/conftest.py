"""
Pytest configuration and fixtures
"""
import pytest
from typing import Dict, Any


@pytest.fixture
def ticket_node() -> Dict[str, Any]:
    """Ticket node as written by the chat widget, the console and the bot"""
    return {
        "details": {
            "ticket_id": "ticket-uuid-0001",
            "status": "Active",
            "session_started_readable": "Mon Oct 19 2026 14:03:09",
            "tool_version": "AI.GOTCHA Client v1.0",
        },
        "user-123": {"messages": {"14:03:10": {"content": "Missing cash from ATM"}}},
        "Agent": {"14:03:30": {"content": "Which ATM was it?", "agent_id": "agent001"}},
        "bot_output": {
            "14:03:20": {
                "agent_script_suggestions_block": "Suggestion A: Ask for the location",
                "context_tags": "[ATM] Priority: High",
                "turn_number_in_ticket": 1,
                "detected_customer_sentiment_english": "frustrated",
            }
        },
        "global_insights_log": {
            "-Nx1": {
                "related_bot_output_id": "14:03:20",
                "source_summary": "Customer reported missing ATM cash.",
                "insight_text": "ATM dispute",
            }
        },
    }

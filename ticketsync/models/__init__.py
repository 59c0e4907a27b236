"""
Pydantic models for ticket synchronisation
"""

from ticketsync.models.schemas import (
    # Enums
    TicketStatus,
    Sender,

    # Store documents
    TicketDetails,
    BotOutputEntry,
    GlobalInsightEntry,

    # Session models
    Message,
    TicketSummary,
    SuggestionSet,
    Notice,

    # Text generation
    SuggestResponseInput,
    SmartSuggestionsInput,
    SuggestionsOutput,

    # API models
    SendMessageRequest,
    SelectSuggestionRequest,
    ClientStateResponse,
    AdminStateResponse,
    ErrorResponse,
)

__all__ = [
    # Enums
    "TicketStatus",
    "Sender",

    # Store documents
    "TicketDetails",
    "BotOutputEntry",
    "GlobalInsightEntry",

    # Session models
    "Message",
    "TicketSummary",
    "SuggestionSet",
    "Notice",

    # Text generation
    "SuggestResponseInput",
    "SmartSuggestionsInput",
    "SuggestionsOutput",

    # API models
    "SendMessageRequest",
    "SelectSuggestionRequest",
    "ClientStateResponse",
    "AdminStateResponse",
    "ErrorResponse",
]

"""
Pydantic models for ticket synchronisation

Store documents (ticket details, bot output, insights) are loose: the
external writers add fields freely, so these models allow extra keys and
never fail on unknown data. UI-facing models (messages, directory entries,
notices) are strict.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================================================
# Enums
# ============================================================================

class TicketStatus(str, Enum):
    """Ticket lifecycle states (one-way)"""
    ACTIVE = "Active"
    ENDED = "Ended"


class Sender(str, Enum):
    """Conversation party that authored a message"""
    CUSTOMER = "customer"
    AGENT = "agent"


# ============================================================================
# Store documents
# ============================================================================

class TicketDetails(BaseModel):
    """`tickets/<id>/details` node"""
    model_config = ConfigDict(extra="allow")

    ticket_id: Optional[str] = None
    status: TicketStatus = TicketStatus.ACTIVE
    session_started_iso: Optional[Any] = None
    session_started_readable: Optional[str] = None
    session_ended_iso: Optional[Any] = None
    session_ended_readable: Optional[str] = None
    last_status_update_iso: Optional[Any] = None
    tool_version: Optional[str] = None


class BotOutputEntry(BaseModel):
    """
    One generated analysis entry under `tickets/<id>/bot_output/<HH:mm:ss>`.

    Only `agent_script_suggestions_block` and `context_tags` drive the UI;
    the other fields are descriptive and kept for completeness.
    """
    model_config = ConfigDict(extra="allow")

    agent_script_suggestions_block: Optional[Union[str, List[Any], Any]] = None
    context_tags: Optional[Any] = None
    detected_customer_language: Optional[str] = None
    detected_customer_sentiment_english: Optional[str] = None
    objective_summary_english: Optional[str] = None
    priority_tag: Optional[str] = None
    related_customer_message_key: Optional[str] = None
    ticket_id: Optional[str] = None
    timestamp_iso: Optional[str] = None
    turn_number_in_ticket: Optional[int] = None


class GlobalInsightEntry(BaseModel):
    """Entry of `tickets/<id>/global_insights_log`"""
    model_config = ConfigDict(extra="allow")

    insight_text: Optional[str] = None
    related_bot_output_id: Optional[str] = None
    source_summary: Optional[str] = None
    ticket_id: Optional[str] = None
    timestamp_iso: Optional[str] = None

    @field_validator(
        "insight_text", "related_bot_output_id", "source_summary", "ticket_id", "timestamp_iso",
        mode="before"
    )
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        """Writers sometimes store ids and epoch timestamps as numbers"""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


# ============================================================================
# Session models
# ============================================================================

class Message(BaseModel):
    """
    A message as reconstructed for display.

    Attributes:
        id: `<ticket_id>-<party>-<key>`
        text: Message content
        sender: Authoring party
        timestamp: Key parsed against the reference date
        party: Collection the message lives in (`Agent` or the customer id)
        key: Store key (`HH:mm:ss`)
        agent_id: Stamp written by agent writers, if any
    """
    id: str
    text: str
    sender: Sender
    timestamp: datetime
    party: str
    key: str
    agent_id: Optional[str] = None


class TicketSummary(BaseModel):
    """Ticket directory entry"""
    id: str
    subject: str
    preview: str = ""


class SuggestionSet(BaseModel):
    """Suggestions and context tags parsed from the latest bot output"""
    suggestions: List[str] = Field(default_factory=list)
    context_tags: List[str] = Field(default_factory=list)


class Notice(BaseModel):
    """Transient user notification (toast)"""
    title: str
    description: str
    destructive: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Text generation contract
# ============================================================================

class SuggestResponseInput(BaseModel):
    """Admin suggestion request: the whole conversation as one string"""
    conversation_history: str = Field(..., description="Complete conversation history")


class SmartSuggestionsInput(BaseModel):
    """Client suggestion request: recent chat context"""
    chat_context: str = Field(..., description="Current chat context, including recent messages")


class SuggestionsOutput(BaseModel):
    """Structured output returned by the text generator"""
    suggestions: List[str] = Field(default_factory=list)


# ============================================================================
# API models
# ============================================================================

class SendMessageRequest(BaseModel):
    """Request body for sending a message"""
    text: str = Field(..., max_length=10000)


class SelectSuggestionRequest(BaseModel):
    """Request body for copying a suggestion into the input box"""
    suggestion: str


class ClientStateResponse(BaseModel):
    """Snapshot of the customer chat session"""
    available: bool
    banner: Optional[str] = None
    current_ticket_id: Optional[str] = None
    is_chat_active: bool = False
    is_loading: bool = False
    all_ticket_ids: List[str] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    query_suggestions: List[str] = Field(default_factory=list)
    notices: List[Notice] = Field(default_factory=list)


class AdminStateResponse(BaseModel):
    """Snapshot of the admin console session"""
    available: bool
    banner: Optional[str] = None
    tickets: List[TicketSummary] = Field(default_factory=list)
    selected_ticket_id: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    context_tags: List[str] = Field(default_factory=list)
    is_loading_messages: bool = False
    is_loading_suggestions: bool = False
    is_sending: bool = False
    input_value: str = ""
    notices: List[Notice] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None

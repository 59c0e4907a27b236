"""
Customer chat API routes

Drives the customer chat session: start/switch/end/delete tickets and send
messages. Every response carries the session snapshot, including the
transient notices raised by the operation.
"""
from fastapi import APIRouter, Depends, Request, status

from ticketsync.models.schemas import ClientStateResponse, SendMessageRequest, SuggestionsOutput
from ticketsync.services.customer_chat import CustomerChat
from ticketsync.services.suggestion_generator import (
    SuggestionGenerator,
    format_conversation_history,
    get_suggestion_generator,
)
from ticketsync.utils.logger import get_logger
from ticketsync.utils.validators import sanitize_input

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/client", tags=["client"])

SMART_CONTEXT_MESSAGES = 6


def get_customer_chat(request: Request) -> CustomerChat:
    """Session created at application startup"""
    return request.app.state.customer_chat


@router.get("/state", response_model=ClientStateResponse)
async def get_state(chat: CustomerChat = Depends(get_customer_chat)):
    """Current ticket, conversation and chat status"""
    return chat.snapshot()


@router.post("/tickets", response_model=ClientStateResponse, status_code=status.HTTP_201_CREATED)
async def start_new_ticket(chat: CustomerChat = Depends(get_customer_chat)):
    """Start a new ticket and switch to it"""
    await chat.start_new_ticket()
    return chat.snapshot()


@router.post("/tickets/{ticket_id}/select", response_model=ClientStateResponse)
async def select_ticket(ticket_id: str, chat: CustomerChat = Depends(get_customer_chat)):
    """Switch to an existing ticket"""
    await chat.select_ticket(ticket_id)
    return chat.snapshot()


@router.post("/messages", response_model=ClientStateResponse, status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, chat: CustomerChat = Depends(get_customer_chat)):
    """
    Send a customer message on the current ticket.

    Returns 409 when the chat has ended.
    """
    await chat.send_message(sanitize_input(body.text))
    return chat.snapshot()


@router.post("/end", response_model=ClientStateResponse)
async def end_chat(chat: CustomerChat = Depends(get_customer_chat)):
    """Mark the current ticket Ended"""
    await chat.end_chat()
    return chat.snapshot()


@router.delete("/ticket", response_model=ClientStateResponse)
async def delete_ticket(chat: CustomerChat = Depends(get_customer_chat)):
    """Delete the current ticket entirely and start a new one"""
    await chat.delete_ticket()
    return chat.snapshot()


@router.post("/suggestions/generate", response_model=SuggestionsOutput)
async def generate_smart_suggestions(
    chat: CustomerChat = Depends(get_customer_chat),
    generator: SuggestionGenerator = Depends(get_suggestion_generator)
):
    """
    Short follow-up suggestions for the customer from the latest messages.

    Returns 502 when the text generator fails.
    """
    if not chat.messages:
        return SuggestionsOutput()

    context = format_conversation_history(chat.messages[-SMART_CONTEXT_MESSAGES:])
    logger.info(f"Generating smart suggestions for ticket {chat.current_ticket_id}")
    return await generator.smart_suggestions(context)

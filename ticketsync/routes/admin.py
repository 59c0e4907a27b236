"""
Admin console API routes

Drives the agent console session: browse tickets, open one, reply, delete
agent messages and work with the bot suggestions.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ticketsync.exceptions import NoTicketSelectedError, SuggestionGenerationError
from ticketsync.models.schemas import (
    AdminStateResponse,
    SelectSuggestionRequest,
    SendMessageRequest,
    SuggestionsOutput,
    TicketSummary,
)
from ticketsync.services.admin_console import AdminConsole
from ticketsync.services.suggestion_generator import (
    SuggestionGenerator,
    format_conversation_history,
    get_suggestion_generator,
)
from ticketsync.utils.logger import get_logger
from ticketsync.utils.validators import sanitize_input

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def get_admin_console(request: Request) -> AdminConsole:
    """Session created at application startup"""
    return request.app.state.admin_console


@router.get("/tickets", response_model=List[TicketSummary])
async def list_tickets(console: AdminConsole = Depends(get_admin_console)):
    """Ticket directory with previews"""
    return console.tickets


@router.post("/tickets/{ticket_id}/select", response_model=AdminStateResponse)
async def select_ticket(ticket_id: str, console: AdminConsole = Depends(get_admin_console)):
    """Open a ticket: conversation, suggestions and tags"""
    await console.select_ticket(ticket_id)
    return console.snapshot()


@router.get("/state", response_model=AdminStateResponse)
async def get_state(console: AdminConsole = Depends(get_admin_console)):
    return console.snapshot()


@router.post("/messages", response_model=AdminStateResponse, status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, console: AdminConsole = Depends(get_admin_console)):
    """
    Send an agent reply on the selected ticket.

    Returns 409 while another send is in flight.
    """
    await console.send_message(sanitize_input(body.text))
    return console.snapshot()


@router.delete("/messages/{message_id}", response_model=AdminStateResponse)
async def delete_message(message_id: str, console: AdminConsole = Depends(get_admin_console)):
    """Delete an agent message of the selected ticket"""
    await console.delete_message(message_id)
    return console.snapshot()


@router.post("/suggestions/select", response_model=AdminStateResponse)
async def select_suggestion(body: SelectSuggestionRequest, console: AdminConsole = Depends(get_admin_console)):
    """Copy a suggestion into the reply box"""
    console.select_suggestion(body.suggestion)
    return console.snapshot()


@router.post("/suggestions/generate", response_model=SuggestionsOutput)
async def generate_suggestions(
    console: AdminConsole = Depends(get_admin_console),
    generator: SuggestionGenerator = Depends(get_suggestion_generator)
):
    """
    Ask the LLM for reply suggestions based on the selected conversation.
    """
    if console.selected_ticket_id is None:
        raise NoTicketSelectedError("Select a ticket first")

    history = format_conversation_history(console.messages)
    try:
        return await generator.suggest_response(history)
    except SuggestionGenerationError as e:
        logger.error(f"Suggestion generation failed for {console.selected_ticket_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

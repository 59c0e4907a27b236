"""
Ticket Sync - FastAPI Backend

Customer chat and admin console sessions synchronised over the Firebase
Realtime Database.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticketsync import __version__
from ticketsync.config import get_settings
from ticketsync.exceptions import (
    InvalidMessageError,
    MessageNotFoundError,
    NoTicketSelectedError,
    SendInProgressError,
    StoreError,
    StoreUnavailableError,
    SuggestionGenerationError,
    TicketEndedError,
    TicketNotFoundError,
    TicketSyncError,
)
from ticketsync.middleware.logging_middleware import LoggingMiddleware
from ticketsync.models.schemas import ErrorResponse
from ticketsync.routes import admin, client, health
from ticketsync.services.admin_console import AdminConsole
from ticketsync.services.customer_chat import CustomerChat
from ticketsync.services.firebase_client import create_store
from ticketsync.services.local_state import LocalState
from ticketsync.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS = [
    (TicketEndedError, status.HTTP_409_CONFLICT),
    (SendInProgressError, status.HTTP_409_CONFLICT),
    (NoTicketSelectedError, status.HTTP_400_BAD_REQUEST),
    (TicketNotFoundError, status.HTTP_404_NOT_FOUND),
    (MessageNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidMessageError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreError, status.HTTP_502_BAD_GATEWAY),
    (SuggestionGenerationError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(error: TicketSyncError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = create_store(settings)
    if store is None:
        logger.warning("Starting without a realtime database; chat functionality disabled")

    customer_chat = CustomerChat(store, LocalState(settings.local_state_path), settings=settings)
    admin_console = AdminConsole(store, settings=settings)
    app.state.store = store
    app.state.customer_chat = customer_chat
    app.state.admin_console = admin_console

    await customer_chat.start()
    await admin_console.start()
    logger.info(f"Ticket Sync {__version__} started (env={settings.fastapi_env})")
    try:
        yield
    finally:
        customer_chat.close()
        admin_console.close()
        logger.info("Ticket Sync stopped, all listeners released")


app = FastAPI(
    title="Ticket Sync",
    description="Customer chat and admin console over a realtime database",
    version=__version__,
    lifespan=lifespan
)

# Middleware runs bottom-up: CORS first, then logging
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(TicketSyncError)
async def ticket_sync_error_handler(request: Request, exc: TicketSyncError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=code, content=body.model_dump())


app.include_router(client.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"message": "Ticket Sync API", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)

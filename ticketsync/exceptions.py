"""
Domain exceptions for ticket synchronisation
"""


class TicketSyncError(Exception):
    """Base class for all ticket sync errors"""


class StoreUnavailableError(TicketSyncError):
    """The realtime database is not configured or failed to initialise"""


class StoreError(TicketSyncError):
    """A read, write or delete against the store failed"""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        message = f"Store {operation} failed for '{path}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class TicketEndedError(TicketSyncError):
    """Raised when writing to a ticket whose status is Ended"""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} has ended")


class NoTicketSelectedError(TicketSyncError):
    """Raised when an operation needs a selected ticket and there is none"""


class TicketNotFoundError(TicketSyncError):
    """Raised when selecting a ticket the directory does not know"""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class InvalidMessageError(TicketSyncError):
    """Raised for blank messages or messages that cannot be deleted"""


class MessageNotFoundError(TicketSyncError):
    """Raised when a message id is not part of the displayed conversation"""


class SendInProgressError(TicketSyncError):
    """Raised when a send is attempted while another is still in flight"""


class SuggestionGenerationError(TicketSyncError):
    """Raised when the text generation provider fails after all retries"""

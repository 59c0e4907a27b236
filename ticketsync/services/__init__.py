"""
Business Logic Services
"""
from .admin_console import AdminConsole
from .customer_chat import CustomerChat
from .firebase_client import FirebaseStore, create_store
from .store import Subscription, SubscriptionSet, TicketStore

__all__ = [
    "AdminConsole",
    "CustomerChat",
    "FirebaseStore",
    "create_store",
    "Subscription",
    "SubscriptionSet",
    "TicketStore",
]

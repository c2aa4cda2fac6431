"""
Store Package

Persistence for conversations and messages on top of the document store.

Modules:
- database: client construction, index setup and the per-call deadline
- conversations: conversation creation (with uniqueness) and lookup
- messages: message append with server timestamps
"""

from .conversations import ConversationService
from .database import (
    CONVERSATION_COLLECTION,
    MESSAGE_COLLECTION,
    USER_COLLECTION,
    create_client,
    ensure_indexes,
    store_deadline,
    utcnow,
)
from .messages import MessageService

__all__ = [
    "ConversationService",
    "MessageService",
    "CONVERSATION_COLLECTION",
    "MESSAGE_COLLECTION",
    "USER_COLLECTION",
    "create_client",
    "ensure_indexes",
    "store_deadline",
    "utcnow",
]

"""
Message store.

Messages are appended with server-side timestamps. The referenced
conversation is not re-checked at write time.
"""

import logging

from pymongo.errors import PyMongoError

from ..errors import BadInput, Internal
from ..ids import is_nil, new_object_id
from ..models import Message
from .database import MESSAGE_COLLECTION, store_deadline, utcnow

logger = logging.getLogger("chatserver.store.messages")


class MessageService:
    """Append messages to the ``message`` collection."""

    def __init__(self, database, timeout: float = 10.0):
        self.messages = database[MESSAGE_COLLECTION]
        self.timeout = timeout

    async def create(self, message: Message) -> Message:
        """
        Insert a message.

        Args:
            message: Record with ``conversationId``, ``senderId`` and body set

        Returns:
            The stored message; ``createdAt`` equals ``updatedAt``

        Raises:
            BadInput: If ``conversationId`` or ``senderId`` is missing
            Internal: On store failure or deadline expiry
        """
        if is_nil(message.conversationId) or is_nil(message.senderId):
            raise BadInput("conversationId and senderId are required")

        now = utcnow()
        record = message.model_copy(
            update={"id": new_object_id(), "createdAt": now, "updatedAt": now}
        )

        async with store_deadline(self.timeout, "message.create"):
            try:
                await self.messages.insert_one(record.to_document())
            except PyMongoError as exc:
                logger.error(f"Failed to create message: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        logger.debug(
            "Message stored",
            extra={
                "message_id": str(record.id),
                "conversation_id": str(record.conversationId),
            },
        )
        return record

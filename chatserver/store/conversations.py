"""
Conversation store.

A conversation links an ordered (senderId, receiverId) pair of existing
users. At most one conversation exists per ordered pair.
"""

import logging

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import BadInput, BadRequest, Conflict, Internal, NotFound
from ..ids import is_nil, new_object_id
from ..models import Conversation, ConversationWithUsers, User
from .database import (
    CONVERSATION_COLLECTION,
    USER_COLLECTION,
    store_deadline,
    utcnow,
)

logger = logging.getLogger("chatserver.store.conversations")


class ConversationService:
    """
    Create and look up conversations.

    Attributes:
        conversations: The ``conversation`` collection
        users: The ``user`` collection, read for participant checks
        timeout: Deadline in seconds applied to each call
    """

    def __init__(self, database, timeout: float = 10.0):
        self.conversations = database[CONVERSATION_COLLECTION]
        self.users = database[USER_COLLECTION]
        self.timeout = timeout

    @staticmethod
    def _validate(conversation: Conversation) -> None:
        if is_nil(conversation.senderId) or is_nil(conversation.receiverId):
            raise BadInput("senderId and receiverId are required")

    async def create(self, conversation: Conversation) -> Conversation:
        """
        Insert a new conversation between two existing users.

        Args:
            conversation: Record with ``senderId`` and ``receiverId`` set;
                any id or timestamps on it are replaced

        Returns:
            The stored conversation with a fresh id and timestamps

        Raises:
            BadInput: If either participant id is missing
            BadRequest: If fewer than two of the participants exist
            Conflict: If a conversation for the same ordered pair exists
            Internal: On store failure or deadline expiry
        """
        self._validate(conversation)

        async with store_deadline(self.timeout, "conversation.create"):
            try:
                count = await self.users.count_documents(
                    {"_id": {"$in": [conversation.senderId, conversation.receiverId]}}
                )
                if count < 2:
                    raise BadRequest("One or both users do not exist")

                existing = await self.conversations.find_one(
                    {
                        "senderId": conversation.senderId,
                        "receiverId": conversation.receiverId,
                    }
                )
                if existing is not None:
                    raise Conflict("Conversation already exists")

                now = utcnow()
                record = conversation.model_copy(
                    update={"id": new_object_id(), "createdAt": now, "updatedAt": now}
                )
                await self.conversations.insert_one(record.to_document())

            except DuplicateKeyError as exc:
                # Lost a race with a concurrent create for the same pair.
                raise Conflict("Conversation already exists") from exc
            except PyMongoError as exc:
                logger.error(f"Failed to create conversation: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        logger.info(
            "Conversation created",
            extra={
                "conversation_id": str(record.id),
                "sender_id": str(record.senderId),
                "receiver_id": str(record.receiverId),
            },
        )
        return record

    async def get_with_users(self, conversation_id: ObjectId) -> ConversationWithUsers:
        """
        Load a conversation together with both participants.

        Sender and receiver are loaded independently. If either is missing
        the raised error carries whatever was loaded in ``partial``.

        Raises:
            NotFound: If the conversation, the sender or the receiver is missing
            Internal: On store failure or deadline expiry
        """
        async with store_deadline(self.timeout, "conversation.get_with_users"):
            try:
                document = await self.conversations.find_one({"_id": conversation_id})
                if document is None:
                    raise NotFound("conversation not found")
                result = ConversationWithUsers(
                    conversation=Conversation.model_validate(document)
                )

                sender = await self.users.find_one({"_id": result.conversation.senderId})
                if sender is None:
                    raise NotFound("sender not found", partial=result)
                result.sender = User.model_validate(sender).public()

                receiver = await self.users.find_one({"_id": result.conversation.receiverId})
                if receiver is None:
                    raise NotFound("receiver not found", partial=result)
                result.receiver = User.model_validate(receiver).public()

            except PyMongoError as exc:
                logger.error(f"Failed to load conversation: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        return result

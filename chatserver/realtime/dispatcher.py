"""
Action dispatcher.

Routes a decoded frame to the conversation or message store by its
``action`` tag and writes the result back to the originating connection.
Unknown actions are logged and ignored.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple, Type

from bson import ObjectId
from pydantic import ValidationError

from ..errors import BadInput
from ..ids import NIL_OBJECT_ID
from ..models import Conversation, Message
from ..store import ConversationService, MessageService
from .frames import (
    CreateConversationFrame,
    Frame,
    GetConversationFrame,
    SendMessageFrame,
    decode_envelope,
    describe_validation_error,
)
from .hub import Connection

logger = logging.getLogger("chatserver.realtime.dispatcher")

Handler = Callable[[Connection, Frame], Awaitable[None]]


class ActionDispatcher:
    """
    Maps action tags to handlers.

    Attributes:
        conversations: Conversation store
        messages: Message store
    """

    def __init__(self, conversations: ConversationService, messages: MessageService):
        self.conversations = conversations
        self.messages = messages
        self._routes: Dict[str, Tuple[Type[Frame], Handler]] = {
            "create_conversation": (CreateConversationFrame, self.create_conversation),
            "get_conversationById": (GetConversationFrame, self.get_conversation_by_id),
            "send_message": (SendMessageFrame, self.send_message),
        }

    @property
    def actions(self):
        return tuple(self._routes)

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """
        Decode one inbound frame and run its action.

        Args:
            connection: Connection the frame arrived on
            raw: Frame text as received

        Raises:
            ChatError: Any failure; the caller reports it and keeps reading
        """
        request = decode_envelope(raw)
        action = request["action"]

        route = self._routes.get(action)
        if route is None:
            logger.info(f"Unknown action: {action}", extra={"connection_id": connection.id})
            return

        model, handler = route
        try:
            frame = model.model_validate(request)
        except ValidationError as exc:
            raise BadInput(describe_validation_error(exc)) from exc

        await handler(connection, frame)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def create_conversation(
        self, connection: Connection, frame: CreateConversationFrame
    ) -> None:
        conversation = Conversation(
            senderId=_resolve_sender(connection, frame.senderId),
            receiverId=frame.receiverId,
        )

        created = await self.conversations.create(conversation)

        logger.info(
            "Conversation created successfully",
            extra={"connection_id": connection.id, "conversation_id": str(created.id)},
        )
        await connection.send_json({"status": "success", "conversation": created.to_json()})

    async def get_conversation_by_id(
        self, connection: Connection, frame: GetConversationFrame
    ) -> None:
        result = await self.conversations.get_with_users(frame.conversation_id)
        await connection.send_json(result.to_json())

    async def send_message(self, connection: Connection, frame: SendMessageFrame) -> None:
        message = Message(
            conversationId=frame.conversationId,
            senderId=_resolve_sender(connection, frame.senderId),
            message=frame.message,
        )

        created = await self.messages.create(message)
        await connection.send_json({"status": "success", "message": created.to_json()})


def _resolve_sender(connection: Connection, claimed: Optional[ObjectId]) -> ObjectId:
    """
    An authenticated connection always speaks as its own user; the claimed
    ``senderId`` only counts on anonymous connections.
    """
    if connection.user_id is None:
        return claimed if claimed is not None else NIL_OBJECT_ID

    if claimed is not None and claimed != connection.user_id:
        logger.warning(
            "senderId does not match authenticated user, overriding",
            extra={
                "connection_id": connection.id,
                "claimed_sender_id": str(claimed),
                "user_id": str(connection.user_id),
            },
        )
    return connection.user_id

"""
Unit Tests for the action dispatcher
====================================

Test Coverage:
--------------
1. create_conversation / get_conversationById / send_message responses
2. Malformed frames, ids and wrong-typed fields => BadInput, no mutation
3. Unknown actions are logged and ignored
4. An authenticated connection's user overrides the claimed senderId

Run tests:
----------
    pytest chatserver/tests/test_dispatcher.py -v
"""

import json
import logging
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

from chatserver.errors import BadInput, Conflict, NotFound
from chatserver.realtime.dispatcher import ActionDispatcher
from chatserver.store import ConversationService, MessageService

A = "a" * 24
B = "b" * 24


class StubConnection:
    """Collects the frames the dispatcher sends back."""

    def __init__(self, user_id: Optional[ObjectId] = None):
        self.id = "stub"
        self.user_id = user_id
        self.sent: List[Dict[str, Any]] = []

    async def send_json(self, payload: Dict[str, Any]) -> bool:
        # Round-trip through JSON like the real writer does.
        self.sent.append(json.loads(json.dumps(payload)))
        return True


@pytest.fixture
def dispatcher(database):
    return ActionDispatcher(
        ConversationService(database, timeout=5.0),
        MessageService(database, timeout=5.0),
    )


def frame(**fields) -> str:
    return json.dumps(fields)


async def create_conversation(dispatcher, sender=A, receiver=B) -> str:
    connection = StubConnection()
    await dispatcher.dispatch(
        connection,
        frame(action="create_conversation", senderId=sender, receiverId=receiver),
    )
    return connection.sent[0]["conversation"]["_id"]


def test_actions(dispatcher):
    assert set(dispatcher.actions) == {
        "create_conversation",
        "get_conversationById",
        "send_message",
    }


# ============================================================================
# create_conversation
# ============================================================================

@pytest.mark.asyncio
async def test_create_conversation_acknowledges(dispatcher, database):
    connection = StubConnection()

    await dispatcher.dispatch(
        connection, frame(action="create_conversation", senderId=A, receiverId=B)
    )

    assert len(connection.sent) == 1
    response = connection.sent[0]
    assert response["status"] == "success"
    assert response["conversation"]["senderId"] == A
    assert response["conversation"]["receiverId"] == B
    assert response["conversation"]["createdAt"] is not None
    assert len(database["conversation"].docs) == 1


@pytest.mark.asyncio
async def test_create_conversation_duplicate(dispatcher, database):
    await create_conversation(dispatcher)

    with pytest.raises(Conflict):
        await create_conversation(dispatcher)
    assert len(database["conversation"].docs) == 1


@pytest.mark.asyncio
async def test_create_conversation_round_trip_preserves_fields(dispatcher):
    request = {"action": "create_conversation", "senderId": A, "receiverId": B}
    assert json.loads(json.dumps(request)) == request

    connection = StubConnection()
    await dispatcher.dispatch(connection, json.dumps(request))
    conversation = connection.sent[0]["conversation"]
    assert {conversation["senderId"], conversation["receiverId"]} == {A, B}


# ============================================================================
# get_conversationById
# ============================================================================

@pytest.mark.asyncio
async def test_get_conversation_by_id(dispatcher):
    conversation_id = await create_conversation(dispatcher)
    connection = StubConnection()

    await dispatcher.dispatch(connection, frame(action="get_conversationById", _id=conversation_id))

    assert len(connection.sent) == 1
    response = connection.sent[0]
    assert response["conversation"]["_id"] == conversation_id
    assert response["sender"]["_id"] == A
    assert response["receiver"]["_id"] == B


@pytest.mark.asyncio
async def test_get_conversation_not_found(dispatcher):
    connection = StubConnection()

    with pytest.raises(NotFound):
        await dispatcher.dispatch(connection, frame(action="get_conversationById", _id="c" * 24))
    assert connection.sent == []


@pytest.mark.asyncio
async def test_get_conversation_missing_id(dispatcher):
    with pytest.raises(BadInput, match="_id"):
        await dispatcher.dispatch(StubConnection(), frame(action="get_conversationById"))


# ============================================================================
# send_message
# ============================================================================

@pytest.mark.asyncio
async def test_send_message(dispatcher, database):
    conversation_id = await create_conversation(dispatcher)
    connection = StubConnection()

    await dispatcher.dispatch(
        connection,
        frame(action="send_message", conversationId=conversation_id, senderId=A, message="hi"),
    )

    assert len(connection.sent) == 1
    response = connection.sent[0]
    assert response["status"] == "success"
    assert response["message"]["message"] == "hi"
    assert response["message"]["conversationId"] == conversation_id
    assert response["message"]["createdAt"] == response["message"]["updatedAt"]
    assert len(database["message"].docs) == 1


@pytest.mark.asyncio
async def test_send_message_non_string_body(dispatcher, database):
    with pytest.raises(BadInput, match="message"):
        await dispatcher.dispatch(
            StubConnection(),
            frame(action="send_message", conversationId="c" * 24, senderId=A, message=42),
        )
    assert database["message"].docs == []


@pytest.mark.asyncio
async def test_send_message_malformed_conversation_id(dispatcher, database):
    with pytest.raises(BadInput) as exc_info:
        await dispatcher.dispatch(
            StubConnection(),
            frame(action="send_message", conversationId="zzz", senderId=A, message="hi"),
        )
    assert exc_info.value.message == "invalid conversationId: 'zzz' is not a valid ObjectId"
    assert database["message"].docs == []


@pytest.mark.asyncio
async def test_send_message_without_sender_on_anonymous_connection(dispatcher, database):
    with pytest.raises(BadInput, match="conversationId and senderId are required"):
        await dispatcher.dispatch(
            StubConnection(),
            frame(action="send_message", conversationId="c" * 24, message="hi"),
        )
    assert database["message"].docs == []


# ============================================================================
# Envelope & Routing
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"senderId": "x"}', '{"action": 7}'])
async def test_malformed_envelope(dispatcher, raw):
    with pytest.raises(BadInput):
        await dispatcher.dispatch(StubConnection(), raw)


@pytest.mark.asyncio
async def test_unknown_action_is_ignored(dispatcher, database, caplog):
    caplog.set_level(logging.INFO, logger="chatserver")
    connection = StubConnection()

    await dispatcher.dispatch(connection, frame(action="nope"))

    assert connection.sent == []
    assert database["conversation"].docs == []
    assert database["message"].docs == []
    assert "Unknown action: nope" in caplog.messages


@pytest.mark.asyncio
async def test_authenticated_user_overrides_claimed_sender(dispatcher, database, caplog):
    caplog.set_level(logging.WARNING, logger="chatserver")
    connection = StubConnection(user_id=ObjectId(B))

    await dispatcher.dispatch(
        connection, frame(action="create_conversation", senderId=A, receiverId=A)
    )

    stored = database["conversation"].docs[0]
    assert stored["senderId"] == ObjectId(B)
    assert stored["receiverId"] == ObjectId(A)
    assert any("does not match authenticated user" in m for m in caplog.messages)


@pytest.mark.asyncio
async def test_authenticated_user_fills_missing_sender(dispatcher, database):
    conversation_id = await create_conversation(dispatcher)
    connection = StubConnection(user_id=ObjectId(A))

    await dispatcher.dispatch(
        connection,
        frame(action="send_message", conversationId=conversation_id, message="hello"),
    )

    assert connection.sent[0]["message"]["senderId"] == A
    assert database["message"].docs[0]["senderId"] == ObjectId(A)

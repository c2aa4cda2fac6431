"""
Inbound frame models.

Each action decodes into its own model, so a wrong-typed field becomes a
``BadInput`` instead of an exception deep inside a handler.

Frames (Client -> Server):
    - {"action": "create_conversation", "senderId": "<24hex>", "receiverId": "<24hex>"}
    - {"action": "get_conversationById", "_id": "<24hex>"}
    - {"action": "send_message", "conversationId": "<24hex>", "senderId": "<24hex>", "message": "..."}
"""

import json
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from ..errors import BadInput
from ..ids import PyObjectId, parse_object_id


def _decode_id(value: Any, field: str) -> Any:
    try:
        return parse_object_id(value, field)
    except BadInput as exc:
        raise ValueError(exc.message) from exc


class Frame(BaseModel):
    """Common envelope: every frame names an action."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str


class CreateConversationFrame(Frame):
    senderId: Optional[PyObjectId] = None
    receiverId: PyObjectId

    @field_validator("senderId", "receiverId", mode="before")
    @classmethod
    def decode_ids(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None and info.field_name == "senderId":
            return None
        return _decode_id(v, info.field_name)


class GetConversationFrame(Frame):
    conversation_id: PyObjectId = Field(alias="_id")

    @field_validator("conversation_id", mode="before")
    @classmethod
    def decode_id(cls, v: Any) -> Any:
        return _decode_id(v, "_id")


class SendMessageFrame(Frame):
    conversationId: PyObjectId
    senderId: Optional[PyObjectId] = None
    message: StrictStr

    @field_validator("conversationId", "senderId", mode="before")
    @classmethod
    def decode_ids(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None and info.field_name == "senderId":
            return None
        return _decode_id(v, info.field_name)


def decode_envelope(raw: str) -> Dict[str, Any]:
    """
    Parse a raw text frame into a JSON object.

    Raises:
        BadInput: If the frame is not JSON, not an object, or has no
            string ``action``
    """
    try:
        request = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise BadInput(f"invalid message format: {e}")

    if not isinstance(request, dict) or not isinstance(request.get("action"), str):
        raise BadInput("missing or invalid action field")

    return request


def describe_validation_error(exc: ValidationError) -> str:
    """Turn the first pydantic error into a field-specific message."""
    first = exc.errors()[0]
    cause = (first.get("ctx") or {}).get("error")
    if cause is not None:
        return str(cause)
    field = ".".join(str(part) for part in first.get("loc", ())) or "frame"
    return f"invalid {field}: {first.get('msg')}"

"""
Identifier codec.

Records are keyed by 24-character hexadecimal ObjectIds. Everything that
crosses the wire goes through ``parse_object_id`` on the way in and
``format_object_id`` on the way out.
"""

import re
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import PlainSerializer, PlainValidator, WithJsonSchema

from .errors import BadInput

_HEX_24 = re.compile(r"^[0-9a-fA-F]{24}$")

NIL_OBJECT_ID = ObjectId("0" * 24)


def parse_object_id(value: Any, field: str = "id") -> ObjectId:
    """
    Decode a client-supplied identifier.

    Args:
        value: Raw value taken from a frame or request body
        field: Field name used in the error message

    Returns:
        The decoded ObjectId

    Raises:
        BadInput: If the value is not a string of exactly 24 hex characters
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise BadInput(f"invalid {field}: id is not a string")
    if not _HEX_24.match(value):
        raise BadInput(f"invalid {field}: {value!r} is not a valid ObjectId")
    return ObjectId(value)


def format_object_id(oid: ObjectId) -> str:
    return str(oid)


def new_object_id() -> ObjectId:
    return ObjectId()


def is_nil(oid: Optional[ObjectId]) -> bool:
    """True for a missing id or the all-zero sentinel."""
    return oid is None or oid == NIL_OBJECT_ID


def _validate(value: Any) -> ObjectId:
    try:
        return parse_object_id(value)
    except BadInput as exc:
        raise ValueError(exc.message) from exc


# Pydantic field type: accepts ObjectId or hex string, serializes to hex.
PyObjectId = Annotated[
    ObjectId,
    PlainValidator(_validate),
    PlainSerializer(format_object_id, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": "^[0-9a-fA-F]{24}$"}),
]

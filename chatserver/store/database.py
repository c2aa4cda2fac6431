"""
Document store access.

Builds the async MongoDB client, declares the collection names and indexes,
and provides ``store_deadline``: the cancellation scope every store call runs
under.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from pymongo import ASCENDING, AsyncMongoClient

from ..config import Settings
from ..errors import Internal

logger = logging.getLogger("chatserver.store.database")

USER_COLLECTION = "user"
CONVERSATION_COLLECTION = "conversation"
MESSAGE_COLLECTION = "message"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_client(settings: Settings) -> AsyncMongoClient:
    """
    Create the MongoDB client. Connection happens lazily on first use.

    Args:
        settings: Application settings carrying MONGODB_URI

    Returns:
        AsyncMongoClient returning timezone-aware datetimes
    """
    return AsyncMongoClient(
        settings.MONGODB_URI,
        tz_aware=True,
        serverSelectionTimeoutMS=int(settings.STORE_TIMEOUT_SECONDS * 1000),
    )


async def ensure_indexes(database) -> None:
    """
    Create the indexes the stores rely on.

    The compound conversation index is ordered: (A, B) and (B, A) are
    distinct pairs.
    """
    users = database[USER_COLLECTION]
    await users.create_index("email", unique=True)
    await users.create_index("username", unique=True)

    await database[CONVERSATION_COLLECTION].create_index(
        [("senderId", ASCENDING), ("receiverId", ASCENDING)],
        unique=True,
    )
    await database[MESSAGE_COLLECTION].create_index(
        [("conversationId", ASCENDING), ("createdAt", ASCENDING)]
    )

    logger.info("Document store indexes ensured")


@asynccontextmanager
async def store_deadline(seconds: float, operation: str) -> AsyncIterator[None]:
    """
    Run a block of store calls under a deadline.

    The scope is released when the block exits, whether it returned,
    raised or timed out.

    Args:
        seconds: Deadline for the whole block
        operation: Name used in logs and the error message

    Raises:
        Internal: If the deadline expires
    """
    try:
        async with asyncio.timeout(seconds):
            yield
    except TimeoutError as exc:
        logger.warning(
            f"Store operation timed out: {operation}",
            extra={"operation": operation, "timeout_seconds": seconds},
        )
        raise Internal(f"{operation} exceeded the {seconds:g}s deadline") from exc

"""
Data Models Module

This module defines Pydantic models for persisted records and for HTTP
request/response validation.

Models are organized by functional area:
- Persisted records (users, conversations, messages) in their document-store
  shape, keyed by ``_id`` with camelCase field names
- Authentication request/response bodies
- Health check responses

Realtime frame models live in ``chatserver.realtime.frames``.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .ids import NIL_OBJECT_ID, PyObjectId


# ============================================================================
# Persisted Records
# ============================================================================

class Document(BaseModel):
    """Base for records stored in the document store."""

    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = Field(default=NIL_OBJECT_ID, alias="_id")

    def to_document(self) -> Dict[str, Any]:
        """Shape used for inserts: ObjectIds and datetimes kept native."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> Dict[str, Any]:
        """Shape written to clients: hex ids and ISO-8601 timestamps."""
        return self.model_dump(mode="json", by_alias=True)


class User(Document):
    """User record. Owned by the auth service; read by the conversation store."""

    email: str = ""
    username: str = ""
    password: str = Field(default="", description="bcrypt hash")
    verifiedEmail: bool = False
    otpToken: Optional[str] = None
    expiredAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    def public(self) -> "UserPublic":
        return UserPublic(
            id=self.id,
            email=self.email,
            username=self.username,
            verifiedEmail=self.verifiedEmail,
            createdAt=self.createdAt,
            updatedAt=self.updatedAt,
        )


class UserPublic(Document):
    """User fields that may be shown to other clients."""

    email: str
    username: str
    verifiedEmail: bool = False
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Conversation(Document):
    """A durable record linking a sender and a receiver."""

    senderId: PyObjectId = NIL_OBJECT_ID
    receiverId: PyObjectId = NIL_OBJECT_ID
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Message(Document):
    """A single chat message inside a conversation."""

    conversationId: PyObjectId = NIL_OBJECT_ID
    senderId: PyObjectId = NIL_OBJECT_ID
    message: str = ""
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ConversationWithUsers(BaseModel):
    """A conversation joined with its two participants."""

    conversation: Conversation
    sender: Optional[UserPublic] = None
    receiver: Optional[UserPublic] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "conversation": self.conversation.to_json(),
            "sender": self.sender.to_json() if self.sender else None,
            "receiver": self.receiver.to_json() if self.receiver else None,
        }


# ============================================================================
# Authentication Models
# ============================================================================

class RegisterRequest(BaseModel):
    """Request body for account registration."""
    email: EmailStr = Field(..., description="Email address; receives the verification code")
    username: str = Field(default="", description="Unique display name")
    password: str = Field(default="", description="Plain-text password, hashed before storage")


class VerifyEmailRequest(BaseModel):
    """Request body for confirming an email address with a one-time code."""
    email: str = Field(..., description="Email address being verified")
    otpToken: str = Field(..., description="Six-digit verification code")


class SendOtpRequest(BaseModel):
    """Request body for re-sending a verification code."""
    email: str = Field(..., description="Email address of an existing account")


class LoginRequest(BaseModel):
    """Request body for password login."""
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")


class TokenResponse(BaseModel):
    """Response model containing a session token."""
    token: str = Field(..., description="Session JWT")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")


class MessageResponse(BaseModel):
    """Plain acknowledgement body."""
    message: str


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")

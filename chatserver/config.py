"""
Configuration module for the chat server.

This module uses Pydantic Settings to load and validate environment variables
for the document store, session tokens, OTP mail delivery, the realtime
gateway and CORS.

Environment variables are loaded from .env file or system environment.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Service
    # =========================================================================

    SERVICE_NAME: str = Field(
        default="chat-server",
        description="Service name reported in error bodies and health checks",
    )

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the server",
    )

    PORT: int = Field(
        default=8080,
        description="Port to bind the server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    # =========================================================================
    # Document Store
    # =========================================================================

    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
        min_length=1,
    )

    MONGODB_DATABASE: str = Field(
        default="Gomongodb",
        description="Database holding the user, conversation and message collections",
        min_length=1,
    )

    STORE_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Deadline applied to every store operation",
        gt=0,
        le=120,
    )

    # =========================================================================
    # Session Tokens
    # =========================================================================

    JWT_SECRET: str = Field(
        ...,
        description="Secret key for signing session tokens (must be cryptographically secure)",
        min_length=32,
    )

    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    JWT_EXPIRY_HOURS: int = Field(
        default=24,
        description="Session token lifetime in hours",
        ge=1,
        le=24 * 30,
    )

    # =========================================================================
    # One-Time Passwords & Mail
    # =========================================================================

    OTP_EXPIRY_MINUTES: int = Field(
        default=10,
        description="Lifetime of an email verification code",
        ge=1,
        le=24 * 60,
    )

    SMTP_HOST: Optional[str] = Field(
        None,
        description="SMTP server; OTP mail delivery is skipped when unset",
    )

    SMTP_PORT: int = Field(default=587, ge=1, le=65535)

    SMTP_USER: Optional[str] = Field(None)

    SMTP_PASSWORD: Optional[str] = Field(None)

    SMTP_SENDER: str = Field(
        default="no-reply@chat.local",
        description="From address for OTP mails",
    )

    # =========================================================================
    # Realtime Gateway
    # =========================================================================

    WS_REQUIRE_AUTH: bool = Field(
        default=True,
        description="Reject socket upgrades that do not carry a valid bearer token",
    )

    WS_SEND_QUEUE_SIZE: int = Field(
        default=64,
        description="Outbound frames buffered per connection before it is dropped",
        ge=1,
        le=10_000,
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.SMTP_HOST)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate JWT algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()

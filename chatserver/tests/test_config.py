"""
Unit Tests for Settings
=======================

Run tests:
----------
    pytest chatserver/tests/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from chatserver.config import Settings

SECRET = "x" * 32


def test_defaults():
    settings = Settings(_env_file=None, JWT_SECRET=SECRET)

    assert settings.MONGODB_DATABASE == "Gomongodb"
    assert settings.STORE_TIMEOUT_SECONDS == 10.0
    assert settings.JWT_ALGORITHM == "HS256"
    assert settings.JWT_EXPIRY_HOURS == 24
    assert settings.OTP_EXPIRY_MINUTES == 10
    assert settings.WS_REQUIRE_AUTH is True
    assert settings.WS_SEND_QUEUE_SIZE == 64
    assert settings.smtp_enabled is False


def test_short_jwt_secret_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, JWT_SECRET="too-short")


def test_unsupported_jwt_algorithm_rejected():
    with pytest.raises(ValidationError, match="JWT algorithm must be one of"):
        Settings(_env_file=None, JWT_SECRET=SECRET, JWT_ALGORITHM="RS256")


def test_log_level_is_normalised():
    settings = Settings(_env_file=None, JWT_SECRET=SECRET, LOG_LEVEL="debug")
    assert settings.LOG_LEVEL == "DEBUG"


def test_unknown_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, JWT_SECRET=SECRET, LOG_LEVEL="chatty")


def test_allowed_origins_list():
    settings = Settings(
        _env_file=None,
        JWT_SECRET=SECRET,
        ALLOWED_ORIGINS="http://localhost:3000, https://chat.example.com,",
    )
    assert settings.allowed_origins_list == [
        "http://localhost:3000",
        "https://chat.example.com",
    ]


def test_allowed_origins_empty():
    assert Settings(_env_file=None, JWT_SECRET=SECRET).allowed_origins_list == []


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", SECRET)
    monkeypatch.setenv("WS_SEND_QUEUE_SIZE", "8")
    monkeypatch.setenv("WS_REQUIRE_AUTH", "false")

    settings = Settings(_env_file=None)

    assert settings.WS_SEND_QUEUE_SIZE == 8
    assert settings.WS_REQUIRE_AUTH is False

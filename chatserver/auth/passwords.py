"""
Password policy and hashing.
"""

import re

import bcrypt

from ..errors import BadInput

BCRYPT_ROUNDS = 12

MIN_LENGTH = 8
MAX_LENGTH = 20

_HAS_DIGIT = re.compile(r"[0-9]")
_HAS_LOWER = re.compile(r"[a-z]")
_HAS_UPPER = re.compile(r"[A-Z]")


def validate_password(password: str) -> None:
    """
    Enforce the password policy.

    Raises:
        BadInput: Naming the first rule the password breaks
    """
    if len(password) < MIN_LENGTH:
        raise BadInput(f"password must be at least {MIN_LENGTH} characters long")
    if len(password) > MAX_LENGTH:
        raise BadInput(f"password must be no more than {MAX_LENGTH} characters long")
    if not _HAS_DIGIT.search(password):
        raise BadInput("password must contain at least one digit")
    if not _HAS_LOWER.search(password):
        raise BadInput("password must contain at least one lowercase letter")
    if not _HAS_UPPER.search(password):
        raise BadInput("password must contain at least one uppercase letter")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Compare a plain-text password with a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False

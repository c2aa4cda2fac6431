"""
One-time email verification codes.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional


def generate_otp() -> str:
    """Return a six-digit code in the range 100000-999999."""
    return str(secrets.randbelow(900000) + 100000)


def otp_expiry(minutes: int, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=minutes)

"""
Authentication Package

Account registration, email verification via one-time codes, password login
and the session tokens that the HTTP API and the realtime gateway accept.

Modules:
- routes: Public authentication endpoints (/v1/auth/users/...)
- dependencies: FastAPI dependencies (settings, user service, current user)
- service: UserService, the account lifecycle over the ``user`` collection
- session: Session JWT minting and verification
- passwords: Password policy and bcrypt hashing
- otp: Verification code generation
- mailer: SMTP delivery of verification codes
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]

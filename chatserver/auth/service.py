"""
User Service
============

Registration, email verification, OTP re-issue and login over the ``user``
collection. Every call runs under the store deadline.
"""

import asyncio
import logging
from typing import Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import Settings
from ..errors import BadInput, BadRequest, Conflict, Internal, NotFound, Unauthorized
from ..ids import new_object_id
from ..models import User
from ..store.database import USER_COLLECTION, store_deadline, utcnow
from .otp import generate_otp, otp_expiry
from .passwords import hash_password, validate_password, verify_password
from .session import mint_token

logger = logging.getLogger("chatserver.auth.service")


class UserService:
    """
    Account lifecycle operations.

    Attributes:
        users: The ``user`` collection
        settings: Supplies the store deadline, OTP lifetime and token settings
    """

    def __init__(self, database, settings: Settings):
        self.users = database[USER_COLLECTION]
        self.settings = settings

    @property
    def timeout(self) -> float:
        return self.settings.STORE_TIMEOUT_SECONDS

    async def create(self, email: str, username: str, password: str) -> Tuple[User, str]:
        """
        Register a new, unverified account.

        Returns:
            The stored user and the OTP to deliver

        Raises:
            BadInput: If a field is missing or the password breaks the policy
            Conflict: If the email or username is taken
            Internal: On store failure or deadline expiry
        """
        if not email or not username or not password:
            raise BadInput("email, username, and password are required")

        validate_password(password)

        async with store_deadline(self.timeout, "user.create"):
            try:
                existing = await self.users.find_one(
                    {"$or": [{"email": email}, {"username": username}]}
                )
                if existing is not None:
                    raise Conflict("user with given email or username already exists")

                hashed = await asyncio.to_thread(hash_password, password)
                otp = generate_otp()
                now = utcnow()
                user = User(
                    id=new_object_id(),
                    email=email,
                    username=username,
                    password=hashed,
                    verifiedEmail=False,
                    otpToken=otp,
                    expiredAt=otp_expiry(self.settings.OTP_EXPIRY_MINUTES, now),
                    createdAt=now,
                    updatedAt=now,
                )
                await self.users.insert_one(user.to_document())

            except DuplicateKeyError as exc:
                raise Conflict("user with given email or username already exists") from exc
            except PyMongoError as exc:
                logger.error(f"Failed to create user: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        logger.info("User registered", extra={"user_id": str(user.id)})
        return user, otp

    async def verify_email(self, email: str, otp: str) -> None:
        """
        Mark an email verified if the code matches and has not expired.

        Raises:
            NotFound: If no user has this email
            BadRequest: If the code is wrong or expired
        """
        async with store_deadline(self.timeout, "user.verify_email"):
            try:
                document = await self.users.find_one({"email": email})
                if document is None:
                    raise NotFound("user not found")
                user = User.model_validate(document)

                if not user.otpToken or user.otpToken != otp:
                    raise BadRequest("invalid OTP token")
                if user.expiredAt is None or user.expiredAt < utcnow():
                    raise BadRequest("OTP token has expired")

                await self.users.update_one(
                    {"email": email},
                    {
                        "$set": {
                            "verifiedEmail": True,
                            "otpToken": None,
                            "expiredAt": None,
                            "updatedAt": utcnow(),
                        }
                    },
                )
            except PyMongoError as exc:
                logger.error(f"Failed to verify email: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        logger.info("Email verified", extra={"user_id": str(user.id)})

    async def issue_otp(self, email: str) -> str:
        """
        Replace the pending verification code of an existing user.

        Returns:
            The new code

        Raises:
            NotFound: If no user has this email
        """
        async with store_deadline(self.timeout, "user.issue_otp"):
            try:
                document = await self.users.find_one({"email": email})
                if document is None:
                    raise NotFound("user does not exist")

                otp = generate_otp()
                await self.users.update_one(
                    {"email": email},
                    {
                        "$set": {
                            "otpToken": otp,
                            "expiredAt": otp_expiry(self.settings.OTP_EXPIRY_MINUTES),
                            "updatedAt": utcnow(),
                        }
                    },
                )
            except PyMongoError as exc:
                logger.error(f"Failed to issue OTP: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        return otp

    async def login(self, email: str, password: str) -> str:
        """
        Check credentials and mint a session token.

        Raises:
            NotFound: If no user has this email
            Unauthorized: If the password is wrong or the email is unverified
        """
        async with store_deadline(self.timeout, "user.login"):
            try:
                document = await self.users.find_one({"email": email})
            except PyMongoError as exc:
                logger.error(f"Failed to load user: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        if document is None:
            raise NotFound("user not found")
        user = User.model_validate(document)

        if not await asyncio.to_thread(verify_password, password, user.password):
            raise Unauthorized("invalid password")
        if not user.verifiedEmail:
            raise Unauthorized("please verify your email")

        return mint_token(user.id, self.settings)

    async def get(self, user_id: ObjectId) -> User:
        async with store_deadline(self.timeout, "user.get"):
            try:
                document = await self.users.find_one({"_id": user_id})
            except PyMongoError as exc:
                logger.error(f"Failed to load user: {exc}", exc_info=True)
                raise Internal("internal server error") from exc

        if document is None:
            raise NotFound("user not found")
        return User.model_validate(document)

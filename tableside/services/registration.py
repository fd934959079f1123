"""
Account Registration

Validates a signup payload, hashes the password and stores the user.
Independent of the ordering flow.

Validation runs in a fixed order and stops at the first failure:
    1. every field present and not blank
    2. email shape
    3. password length
    4. password confirmation
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from tableside.models import User
from tableside.schemas import RegisterRequest, RegisterResponse

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

MISSING_FIELDS = "Required fields are missing"
INVALID_EMAIL = "Invalid email format"
PASSWORD_TOO_SHORT = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
PASSWORD_MISMATCH = "Passwords do not match"
EMAIL_TAKEN = "Email already registered"
INTERNAL_ERROR = "Internal server error"


@dataclass
class RegistrationResult:
    """Outcome of a registration attempt, ready to be sent as JSON."""
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status_code == 201

    @classmethod
    def error(cls, status_code: int, message: str) -> "RegistrationResult":
        return cls(status_code=status_code, body={"error": message})


def parse_payload(raw: Any) -> RegisterRequest:
    """
    Build a RegisterRequest from a decoded JSON body.

    Anything that is not an object, and any non-string field, counts
    as missing.
    """
    if not isinstance(raw, dict):
        return RegisterRequest()
    fields = {
        key: value
        for key, value in raw.items()
        if key in ("email", "password", "confirmPassword") and isinstance(value, str)
    }
    return RegisterRequest.model_validate(fields)


def validate_registration(request: RegisterRequest) -> Optional[str]:
    """Return the first validation error message, or None if valid."""
    values = (request.email, request.password, request.confirm_password)
    if any(not value or not value.strip() for value in values):
        return MISSING_FIELDS

    if not EMAIL_PATTERN.match(request.email):
        return INVALID_EMAIL

    if len(request.password) < MIN_PASSWORD_LENGTH:
        return PASSWORD_TOO_SHORT

    if request.password != request.confirm_password:
        return PASSWORD_MISMATCH

    return None


def hash_password(password: str) -> str:
    """Salted, iterated hash in werkzeug's self-describing format."""
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


async def register_user(db: AsyncSession, raw_payload: Any) -> RegistrationResult:
    """
    Register a new account.

    Returns:
        201 with {id, email}; 400 on validation failure; 409 when the
        lowercased email exists; 500 on any storage failure
    """
    request = parse_payload(raw_payload)

    message = validate_registration(request)
    if message is not None:
        return RegistrationResult.error(400, message)

    email = request.email.lower()

    try:
        result = await db.execute(select(User.id).where(User.email == email))
        if result.scalar_one_or_none() is not None:
            return RegistrationResult.error(409, EMAIL_TAKEN)

        user = User(email=email, password_hash=hash_password(request.password))
        db.add(user)
        await db.commit()
    except IntegrityError:
        # A concurrent registration won the unique index
        await db.rollback()
        return RegistrationResult.error(409, EMAIL_TAKEN)
    except Exception as e:
        await db.rollback()
        logger.exception(f"Registration failed: {e}")
        return RegistrationResult.error(500, INTERNAL_ERROR)

    logger.info(f"User #{user.id} registered")
    return RegistrationResult(
        status_code=201,
        body=RegisterResponse(id=user.id, email=user.email).model_dump(),
    )

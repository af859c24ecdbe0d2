"""Registration, login and profile lookups."""

import logging
from dataclasses import dataclass

from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import (
    DuplicateEmail,
    InternalError,
    InvalidCredentials,
    NotFound,
    ServiceError,
    Unauthorized,
    ValidationError,
)
from ..models.user import Role, User, normalize_email
from ..security import hash_password, verify_password
from ..tokens import REFRESH, TokenPair, issue_tokens, verify_token

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

REGISTRATION_COUNTER = Counter("user_registrations_total", "Total users registered")
LOGIN_FAILURE_COUNTER = Counter("login_failures_total", "Total failed login attempts")


_DUMMY_HASH: str | None = None


def _dummy_hash() -> str:
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_password("not-a-real-password")
    return _DUMMY_HASH


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


def _handle_service_error(session: Session, exc: Exception) -> None:
    """Rollback the transaction and re-raise as a domain error."""
    session.rollback()
    if isinstance(exc, ServiceError):
        raise exc
    logger.exception("auth service error", exc_info=exc)
    if isinstance(exc, SQLAlchemyError):
        raise InternalError() from exc
    raise InternalError(str(exc)) from exc


def find_user_by_email(session: Session, email: str) -> User | None:
    return session.query(User).filter(User.email == normalize_email(email)).first()


def find_user_by_id(session: Session, user_id: str) -> User | None:
    return session.get(User, user_id)


def create_user(session: Session, **fields) -> User:
    """Persist a new user, translating a unique-index clash into ``DuplicateEmail``."""
    if find_user_by_email(session, fields["email"]) is not None:
        raise DuplicateEmail()
    user = User(**fields)
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        # another request won the race between the lookup and the insert
        session.rollback()
        raise DuplicateEmail() from exc
    session.refresh(user)
    return user


def register(
    session: Session,
    email: str | None,
    password: str | None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> AuthResult:
    if not email or not email.strip() or not password:
        raise ValidationError("Email and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    try:
        user = create_user(
            session,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=Role.CUSTOMER,
        )
    except Exception as exc:
        _handle_service_error(session, exc)

    REGISTRATION_COUNTER.inc()
    logger.info("registered user id=%s", user.id)
    return AuthResult(user=user, tokens=issue_tokens(user))


def login(session: Session, email: str, password: str) -> AuthResult:
    try:
        user = find_user_by_email(session, email or "")
    except Exception as exc:
        _handle_service_error(session, exc)

    # unknown emails still pay for one bcrypt check
    stored_hash = user.password_hash if user is not None else _dummy_hash()
    matches = verify_password(password or "", stored_hash)
    if user is None or not matches:
        LOGIN_FAILURE_COUNTER.inc()
        logger.info("failed login for email=%s", normalize_email(email or ""))
        raise InvalidCredentials()

    logger.info("login user id=%s", user.id)
    return AuthResult(user=user, tokens=issue_tokens(user))


def refresh(session: Session, refresh_token: str) -> AuthResult:
    """Exchange a refresh token for a new token pair.

    The user is re-read so the new tokens carry the current role.
    """
    verification = verify_token(refresh_token, REFRESH)
    if not verification.valid:
        raise Unauthorized("Invalid or expired refresh token")

    try:
        user = find_user_by_id(session, verification.claims.subject_id)
    except Exception as exc:
        _handle_service_error(session, exc)
    if user is None:
        raise Unauthorized("Invalid or expired refresh token")
    return AuthResult(user=user, tokens=issue_tokens(user))


def get_profile(session: Session, user_id: str) -> User:
    try:
        user = find_user_by_id(session, user_id)
    except Exception as exc:
        _handle_service_error(session, exc)
    if user is None:
        raise NotFound("User not found")
    return user

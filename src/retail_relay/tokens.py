"""Issue and verify signed JWT access and refresh tokens."""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from .config import settings
from .models.user import Role, User

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(text: str) -> timedelta:
    """Parse a lifetime such as ``"15m"``, ``"24h"`` or ``"7d"``.

    A bare number is read as seconds.
    """
    match = _DURATION_RE.match(str(text))
    if not match:
        raise ValueError(f"invalid duration: {text!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


class TokenStatus(enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Claims:
    subject_id: str
    email: str
    role: Role
    token_type: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenVerification:
    status: TokenStatus
    claims: Claims | None = None

    @property
    def valid(self) -> bool:
        return self.status is TokenStatus.VALID


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _secret(token_type: str) -> str:
    return settings.jwt_refresh_secret if token_type == REFRESH else settings.jwt_secret


def _lifetime(token_type: str) -> timedelta:
    return parse_duration(
        settings.jwt_refresh_expire if token_type == REFRESH else settings.jwt_expire
    )


def create_token(user: User, token_type: str = ACCESS, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": Role(user.role).value,
        "type": token_type,
        "iat": now,
        "exp": now + _lifetime(token_type),
    }
    return jwt.encode(payload, _secret(token_type), algorithm=settings.jwt_algorithm)


def issue_tokens(user: User, now: datetime | None = None) -> TokenPair:
    return TokenPair(
        access_token=create_token(user, ACCESS, now),
        refresh_token=create_token(user, REFRESH, now),
    )


def verify_token(
    token: str, token_type: str = ACCESS, now: datetime | None = None
) -> TokenVerification:
    """Check a token's signature, shape and expiry.

    Never raises: the outcome is reported through ``TokenVerification.status``.
    Expiry is checked here rather than by PyJWT so callers can pin ``now``.
    """
    try:
        payload = jwt.decode(
            token,
            _secret(token_type),
            algorithms=[settings.jwt_algorithm],
            options={
                "require": ["sub", "exp", "iat"],
                "verify_exp": False,
                "verify_iat": False,
            },
        )
    except jwt.PyJWTError as exc:
        logger.debug("token rejected: %s", exc)
        return TokenVerification(TokenStatus.INVALID)

    try:
        if payload.get("type") != token_type:
            raise ValueError("unexpected token type")
        claims = Claims(
            subject_id=str(payload["sub"]),
            email=str(payload["email"]),
            role=Role(payload["role"]),
            token_type=token_type,
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("token claims rejected: %s", exc)
        return TokenVerification(TokenStatus.INVALID)

    now = now or datetime.now(timezone.utc)
    if now > claims.expires_at:
        return TokenVerification(TokenStatus.EXPIRED, claims)
    return TokenVerification(TokenStatus.VALID, claims)

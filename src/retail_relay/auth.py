from dataclasses import dataclass
from typing import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import Forbidden, Unauthorized
from .models.user import Role
from .tokens import ACCESS, TokenStatus, verify_token

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved from a verified access token."""

    user_id: str
    email: str
    role: Role


def authenticate(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("No token provided")

    result = verify_token(credentials.credentials, ACCESS)
    if result.status is TokenStatus.EXPIRED:
        raise Unauthorized("Token expired")
    if result.status is not TokenStatus.VALID:
        raise Unauthorized("Invalid token")

    claims = result.claims
    return AuthContext(user_id=claims.subject_id, email=claims.email, role=claims.role)


def authorize(*roles: Role) -> Callable[..., AuthContext]:
    """Build a dependency that admits only the given roles.

    It depends on ``authenticate``, so a missing or bad token is a 401 before
    the role is looked at.
    """
    allowed = frozenset(Role(r) for r in roles)

    def dependency(context: AuthContext = Depends(authenticate)) -> AuthContext:
        if context.role not in allowed:
            raise Forbidden()
        return context

    return dependency

"""Shared API dependencies for authentication, identity and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from classboard.core.security import JWTError, decode_access_token
from classboard.db.session import get_db
from classboard.models import User
from classboard.services.broadcaster import Broadcaster, get_broadcaster
from classboard.services.identity import (
    IdentityResolver,
    ResolvedIdentity,
    get_identity_resolver,
)

# HTTP Bearer schemes for JWT authentication
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def load_active_user(db: Session, token: str) -> User | None:
    """Return the active user a token belongs to, or None.

    Raises:
        JWTError: If the token cannot be decoded.
    """
    user_id = decode_access_token(token)
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user = load_active_user(db, credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_optional_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)
    ],
    db: SessionDep,
) -> User | None:
    """Return the authenticated user if a valid token was sent, otherwise None."""
    if credentials is None:
        return None
    try:
        return load_active_user(db, credentials.credentials)
    except JWTError:
        return None


CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


def require_admin(current_user: CurrentUserDep) -> User:
    """Reject callers that do not hold the admin role."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User does not have required role",
        )
    return current_user


AdminUserDep = Annotated[User, Depends(require_admin)]


def get_identity_resolver_dep() -> IdentityResolver:
    """Return the shared identity resolver."""
    return get_identity_resolver()


def get_broadcaster_dep() -> Broadcaster:
    """Return the shared realtime broadcaster."""
    return get_broadcaster()


IdentityResolverDep = Annotated[IdentityResolver, Depends(get_identity_resolver_dep)]
BroadcasterDep = Annotated[Broadcaster, Depends(get_broadcaster_dep)]


def get_identity(
    request: Request,
    response: Response,
    user: OptionalUserDep,
    resolver: IdentityResolverDep,
) -> ResolvedIdentity:
    """Resolve the acting identity, setting the visitor cookie on the response."""
    return resolver.resolve(request, response, user.id if user is not None else None)


IdentityDep = Annotated[ResolvedIdentity, Depends(get_identity)]

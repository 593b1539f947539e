# app/core/auth.py
import uuid
from typing import Any, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.actor import Actor
from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so public routes (merchant pages, menus) keep working for guests.
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _default_name_from_email(email: str) -> str:
    if "@" in email:
        return email.split("@", 1)[0][:50]
    return email[:50]


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a Supabase JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' (auth user id) and 'email'.
      3. Find user profile in public.users.
      4. If missing, auto-provision a client profile. Merchant, driver and
         admin accounts are only created through provisioning.

    Raises:
        HTTPException(401): if token is malformed or missing required claims.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub/email",
        )

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    user = session.exec(select(User).where(User.id == sub_uuid)).first()

    if user is None:
        user = User(
            id=sub_uuid,
            email=email,
            name=_default_name_from_email(email),
            role="client",
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if user is None.
        HTTPException(403): if the account was blocked.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Authentication required"},
        )
    if user.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "permission_denied", "message": "Account suspended"},
        )
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "permission_denied", "message": "Admin access required"},
        )
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """
    Build a dependency that admits only the given application roles.

    Usage:
        current_user: User = Depends(require_roles("driver"))
    """

    def dependency(user: User = Depends(require_auth)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "permission_denied",
                    "message": f"Requires role: {', '.join(roles)}",
                },
            )
        return user

    return dependency


def actor_for(user: User) -> Actor:
    return Actor(role=user.role, id=str(user.id), merchant_id=user.merchant_id)


def get_actor(user: User = Depends(require_auth)) -> Actor:
    """The authenticated user as a lifecycle actor (role + id + merchant)."""
    return actor_for(user)

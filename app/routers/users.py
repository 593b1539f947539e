# app/routers/users.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth, require_admin
from app.database import get_session
from app.dependencies import Services, get_services
from app.models.user import User
from app.schemas.user import RoleUserCreate, RoleUserCreated, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["Users"])


# -------- Self profile --------


@router.get("/me", response_model=UserRead)
def read_me(
    services: Services = Depends(get_services),
    current_user: User = Depends(require_auth),
):
    """
    Return the authenticated user's profile.

    Auth:
      - Requires valid Supabase JWT. First call creates a client profile.
    """
    return services.users.get_me(current_user)


@router.patch("/me", response_model=UserRead)
def update_me(
    payload: UserUpdate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    current_user: User = Depends(require_auth),
):
    """
    Update the authenticated user's profile (partial update).

    Currently, only `name` is editable.
    """
    return services.users.update_me(session, current_user, payload)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[UserRead],
    dependencies=[Depends(require_admin)],
)
def list_users(
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
    skip: int = 0,
    limit: int = 50,
):
    """
    List all users (admin only).

    Pagination via skip/limit.
    """
    return services.users.list_users(session, skip, limit)


@router.get(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_admin)],
)
def get_user(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    return services.users.get_user(session, user_id)


@router.post(
    "/provision",
    response_model=RoleUserCreated,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def provision_user(
    payload: RoleUserCreate,
    session: Session = Depends(get_session),
    services: Services = Depends(get_services),
):
    """
    Create an account with a given role (admin only).

    Drivers start unverified and offline; an admin verifies them before
    they can go online.
    """
    return services.users.create_role_user(session, payload)

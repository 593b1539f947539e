# app/services/user_service.py
import logging
import uuid
from typing import Any, Callable

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.config import Settings
from app.models.driver import Driver
from app.models.user import User
from app.repositories.driver_repo import DriverRepository
from app.repositories.user_repo import UserRepository
from app.schemas.user import RoleUserCreate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - self profile reads/edits
      - admin listing
      - provisioning of role accounts (auth user + profile + driver row)
      - map domain errors to HTTP errors
    """

    def __init__(
        self,
        repo: UserRepository,
        driver_repo: DriverRepository,
        auth_admin: Callable[[], Any],
        settings: Settings,
    ):
        self.repo = repo
        self.driver_repo = driver_repo
        # Factory returning a Supabase client with admin rights
        self.auth_admin = auth_admin
        self.settings = settings

    # ----- Self profile -----

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    def update_me(
        self,
        session: Session,
        current_user: User,
        payload: UserUpdate,
    ) -> User:
        """
        Partial update for profile edits.
        Currently, only `name` is editable.
        """
        if payload.name is not None:
            current_user.name = payload.name

        return self.repo.update(session, current_user)

    # ----- Admin operations -----

    def list_users(self, session: Session, skip: int, limit: int) -> list[User]:
        """List users with pagination (admin only)."""
        return self.repo.list_users(session, skip=skip, limit=limit)

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        """
        Get a user by id (admin only).

        Raises:
            HTTPException(404): if not found.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "not-found", "message": "User not found"},
            )
        return user

    def create_role_user(
        self,
        session: Session,
        payload: RoleUserCreate,
    ) -> dict[str, Any]:
        """
        Provision an account for a merchant, driver, client or admin.

        Steps:
          1. Create the auth user (Supabase Admin API).
          2. Insert the `users` profile row with the requested role.
          3. For drivers, insert the `drivers` row: unverified, offline,
             unavailable, no cash in hand.

        Raises:
            HTTPException(500, code=internal): if any step fails.
        """
        if self.repo.get_by_email(session, payload.email) is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "invalid-argument", "message": "Email already registered"},
            )

        display_name = payload.display_name or payload.email.split("@", 1)[0]

        try:
            response = self.auth_admin().auth.admin.create_user(
                {
                    "email": payload.email,
                    "password": payload.password,
                    "email_confirm": True,
                    "user_metadata": {"display_name": display_name},
                }
            )
            uid = uuid.UUID(str(response.user.id))

            user = User(
                id=uid,
                email=payload.email,
                name=display_name[:50],
                role=payload.role,
                merchant_id=payload.merchant_id if payload.role == "merchant" else None,
            )
            session.add(user)

            if payload.role == "driver":
                driver_data = payload.driver_data
                session.add(
                    Driver(
                        id=uid,
                        display_name=(driver_data.display_name if driver_data else None)
                        or display_name,
                        phone=driver_data.phone if driver_data else None,
                        vehicle=driver_data.vehicle if driver_data else None,
                        assigned_restaurant_id=(
                            driver_data.assigned_restaurant_id if driver_data else None
                        ),
                        max_cash_limit=(
                            (driver_data.max_cash_limit if driver_data else None)
                            or self.settings.DEFAULT_MAX_CASH_LIMIT
                        ),
                        is_verified=False,
                        is_blocked=False,
                        is_online=False,
                        is_available=False,
                        cash_in_hand=0.0,
                    )
                )
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Error creating {payload.role} user {payload.email}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"code": "internal", "message": "Could not create the user account"},
            )

        logger.info(f"Provisioned {payload.role} user {payload.email} ({uid})")
        return {
            "success": True,
            "uid": uid,
            "message": f"{payload.role} user created",
        }

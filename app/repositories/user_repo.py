# app/repositories/user_repo.py
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Basic CRUD -----

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by unique email, or None if not found."""
        stmt = select(User).where(User.email == email)
        return session.exec(stmt).first()

    def list_users(self, session: Session, skip: int = 0, limit: int = 50) -> list[User]:
        """
        Paginated user listing.

        Args:
            skip: offset rows (for paging)
            limit: max number of rows returned

        Returns:
            List[User]
        """
        stmt = select(User).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, user: User) -> User:
        """Insert a new User and return the persisted row."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    # ----- Counters (atomic increments, no read-modify-write) -----

    def record_completed_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        at: datetime,
    ) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(total_orders=User.total_orders + 1, last_order_at=at)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.commit()
        return result.rowcount == 1

    def penalize_late_cancel(
        self,
        session: Session,
        user_id: uuid.UUID,
        penalty: int,
    ) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                trust_score=User.trust_score - penalty,
                cancelled_orders=User.cancelled_orders + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.commit()
        return result.rowcount == 1

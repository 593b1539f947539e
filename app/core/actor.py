# app/core/actor.py
import uuid
from dataclasses import dataclass

SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """
    Who is asking for a state change.

    role: client | merchant | driver | admin | system
    id:   user id, or "system" for backend-initiated changes
    merchant_id: set for merchant staff
    """

    role: str
    id: str
    merchant_id: uuid.UUID | None = None

    @property
    def user_id(self) -> uuid.UUID | None:
        if self.role == SYSTEM:
            return None
        return uuid.UUID(self.id)


SYSTEM_ACTOR = Actor(role=SYSTEM, id=SYSTEM)

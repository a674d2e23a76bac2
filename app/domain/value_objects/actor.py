"""Value Object Actor - quién invoca una operación del ciclo de vida."""

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    """Roles que pueden actuar sobre una reservación."""

    CUSTOMER = "customer"
    DRIVER = "driver"
    OPERATOR = "operator"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Identidad y rol del llamador."""

    role: ActorRole
    actor_id: str

    def __str__(self) -> str:
        return f"{self.role.value}:{self.actor_id}"

    @property
    def is_operator(self) -> bool:
        return self.role in (ActorRole.OPERATOR, ActorRole.SYSTEM)

    @classmethod
    def system(cls) -> "Actor":
        return cls(role=ActorRole.SYSTEM, actor_id="system")

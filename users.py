from dataclasses import dataclass, field

from config import ROLE_ADMIN, ROLE_MODERATOR

ANONYMOUS_ACTOR_ID = 0


@dataclass(frozen=True, slots=True)
class Actor:
    """Identity of whoever performs an operation, as supplied by the host platform."""
    actor_id: int
    name: str
    ip: str = ""
    roles: frozenset[str] = field(default_factory=frozenset)

    def __str__(self) -> str:
        if self.is_anonymous():
            return f"Anonymous ({self.ip or 'unknown'})"
        role_marker = f" [{', '.join(sorted(self.roles))}]" if self.roles else ""
        return f"Actor {self.actor_id}: {self.name}{role_marker}"

    def is_anonymous(self) -> bool:
        return self.actor_id == ANONYMOUS_ACTOR_ID

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def is_moderator(self) -> bool:
        return self.has_role(ROLE_MODERATOR) or self.has_role(ROLE_ADMIN)

    def is_admin(self) -> bool:
        return self.has_role(ROLE_ADMIN)


def anonymous(ip: str) -> Actor:
    return Actor(ANONYMOUS_ACTOR_ID, ip, ip)

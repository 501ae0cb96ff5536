"""Value types passed through lifecycle transitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Actor:
    """Party performing a transition.

    ``id`` is what lands in ``deleted_by`` and the audit log: a user id, or
    one of the role tags "system", "admin", "user".
    """
    id: str
    email: Optional[str] = None

    @classmethod
    def for_user(cls, user_id: int, email: Optional[str] = None) -> "Actor":
        return cls(id=str(user_id), email=email)


SYSTEM_ACTOR = Actor(id="system", email="system")


class TransitionOutcome(str, Enum):
    """Result of one transition attempt.

    Only FAILED is a failure: NOOP (already in target state or not eligible)
    and NOT_FOUND (entity vanished) are idempotent successes.
    """
    APPLIED = "applied"
    NOOP = "noop"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class TransitionResult:
    """Returned by every lifecycle entry point."""
    entity_type: str
    entity_id: str
    transition: str
    outcome: TransitionOutcome
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome != TransitionOutcome.FAILED

    @property
    def changed(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED

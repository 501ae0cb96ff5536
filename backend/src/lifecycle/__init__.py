"""File and account lifecycle engine.

States and pure decision logic live in ``lifecycle.states``; transition
entry points in ``lifecycle.files`` and ``lifecycle.accounts`` take an
explicit ``LifecycleContext`` (``lifecycle.context``).
"""

from .errors import LifecycleError, StoreError, CleanupStepError
from .schemas import Actor, SYSTEM_ACTOR, TransitionOutcome, TransitionResult
from .states import (
    AccountKind,
    AccountState,
    FileState,
    is_active,
    is_due_for_purge,
    is_due_for_trash,
)

# Entry points are imported from their modules to avoid circular imports
# Use: from lifecycle.files import trash_file
# Use: from lifecycle.context import LifecycleContext, open_context

__all__ = [
    "LifecycleError",
    "StoreError",
    "CleanupStepError",
    "Actor",
    "SYSTEM_ACTOR",
    "TransitionOutcome",
    "TransitionResult",
    "AccountKind",
    "AccountState",
    "FileState",
    "is_active",
    "is_due_for_purge",
    "is_due_for_trash",
]

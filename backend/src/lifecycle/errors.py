"""Exceptions raised inside the lifecycle engine.

Transition entry points never let these escape: they are converted into a
failed TransitionResult, logged and audited.
"""


class LifecycleError(Exception):
    """Base exception for lifecycle operations."""
    pass


class StoreError(LifecycleError):
    """A single store read/update/delete failed (I/O, lock timeout, constraint).

    Transient by assumption: the candidate is skipped and re-evaluated on the
    next sweep run.
    """
    pass


class CleanupStepError(LifecycleError):
    """One step of an account purge failed; later steps were not attempted."""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"cleanup step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause

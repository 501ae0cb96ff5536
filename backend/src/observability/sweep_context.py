"""Sweep run id management for log correlation.

Every sweep run and every explicit lifecycle action gets a run id stored in a
context variable; the logging filter stamps it on each record.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context variable for sweep_id (thread and async safe)
sweep_id_var: ContextVar[Optional[str]] = ContextVar("sweep_id", default=None)


def generate_sweep_id(name: str) -> str:
    """Generate a new unique run id prefixed with the sweep name."""
    return f"{name}-{uuid.uuid4().hex[:12]}"


def get_sweep_id() -> str:
    """Get current run id, or "no-sweep-id" outside a sweep."""
    return sweep_id_var.get() or "no-sweep-id"


def set_sweep_id(sweep_id: str) -> None:
    sweep_id_var.set(sweep_id)


@contextmanager
def sweep_run(name: str) -> Iterator[str]:
    """Bind a fresh run id for the duration of a sweep.

    Example:
        with sweep_run("expiration") as run_id:
            logger.info("starting")  # record carries sweep_id=run_id
    """
    token = sweep_id_var.set(generate_sweep_id(name))
    try:
        yield sweep_id_var.get()
    finally:
        sweep_id_var.reset(token)

"""Completion of a transition: metrics, log line and the audit entry."""

import logging

from observability.metrics import lifecycle_transitions_total
from .schemas import Actor, TransitionOutcome, TransitionResult

logger = logging.getLogger(__name__)


def complete_transition(ctx, result: TransitionResult, action: str, actor: Actor) -> TransitionResult:
    """Count, log and audit a finished transition attempt; returns ``result``.

    Exactly one audit entry is written per call, whatever the outcome; the
    outcome itself is part of the entry details.
    """
    lifecycle_transitions_total.labels(
        entity_type=result.entity_type,
        transition=result.transition,
        outcome=result.outcome.value,
    ).inc()

    log = logger.info if result.outcome == TransitionOutcome.APPLIED else logger.debug
    if not result.ok:
        log = logger.warning
    log(
        f"{result.entity_type} {result.entity_id} {result.transition}: {result.outcome.value}",
        extra={"actor": actor.id, "outcome": result.outcome.value},
    )

    ctx.audit.record(
        action,
        actor_id=actor.id,
        actor_email=actor.email,
        entity_type=result.entity_type,
        entity_id=result.entity_id,
        details={"outcome": result.outcome.value, **result.details},
        success=result.ok,
        error_msg=result.error,
    )
    return result

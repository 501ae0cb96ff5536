"""Ordered cleanup steps for account purges.

An account purge is a fixed list of named steps. Steps run in order, each is
logged, and the first failure stops the run; every step is idempotent, so
the next sweep simply starts again from the first one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from .errors import CleanupStepError, LifecycleError

logger = logging.getLogger(__name__)


@dataclass
class CleanupStep:
    name: str
    action: Callable[[], Any]


def run_cleanup_steps(steps: List[CleanupStep], entity_type: str, entity_id) -> Dict[str, Any]:
    """Run steps in order.

    Returns:
        Mapping of step name to the value its action returned

    Raises:
        CleanupStepError: A step failed; later steps were not attempted
    """
    results = {}
    for step in steps:
        try:
            results[step.name] = step.action()
        except LifecycleError as e:
            logger.error(
                f"Cleanup step '{step.name}' failed for {entity_type} {entity_id}: {e}",
                exc_info=True,
                extra={"account_id": entity_id},
            )
            raise CleanupStepError(step.name, e) from e

        logger.info(
            f"Cleanup step '{step.name}' done for {entity_type} {entity_id}",
            extra={"account_id": entity_id},
        )
    return results

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from societyledger.exceptions import ConcurrentModification, GenerationInProgress
from societyledger.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_conflict(operation: Callable[[], T], attempts: int | None = None, label: str = "") -> T:
    """Run ``operation``, re-running it when another writer won the race.

    Only ``ConcurrentModification`` is retried. ``GenerationInProgress`` is a
    conflict the caller has to wait out, so it surfaces immediately.
    """
    limit = attempts if attempts is not None else settings.conflict_retries
    limit = max(limit, 1)
    for attempt in range(1, limit + 1):
        try:
            return operation()
        except GenerationInProgress:
            raise
        except ConcurrentModification:
            if attempt == limit:
                logger.warning("Conflict persisted after %d attempts: %s", limit, label or operation)
                raise
            logger.warning("Conflict on attempt %d/%d, retrying: %s", attempt, limit, label or operation)
    raise AssertionError("unreachable")  # pragma: no cover

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable

logger = logging.getLogger(__name__)

BILL_GENERATED = "bill.generated"
INTEREST_APPLIED = "interest.applied"
PAYMENT_RECORDED = "payment.recorded"

Handler = Callable[[str, dict], None]


class EventBus:
    """In-process publish/subscribe for downstream notification and export hooks.

    Handlers run synchronously after the command has committed. A failing
    handler is logged and never affects the command or other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def publish(self, event: str, payload: dict) -> int:
        delivered = 0
        for handler in list(self._handlers[event]):
            try:
                handler(event, payload)
                delivered += 1
            except Exception:
                logger.exception("Event handler failed: event=%s handler=%r", event, handler)
        logger.debug("Published %s to %d handler(s)", event, delivered)
        return delivered

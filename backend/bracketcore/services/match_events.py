"""
MatchUpdated notifications.

Published after a score or advancement write has been committed, so
readers (public results page, caches, SMS hooks) can refresh just the
affected match instead of refetching everything.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchUpdated:
    match_id: int
    tournament_id: int
    reason: str  # "result" | "advancement" | "status"


MatchUpdatedHandler = Callable[[MatchUpdated], None]


class MatchEventBus:
    def __init__(self) -> None:
        self._handlers: List[MatchUpdatedHandler] = []

    def subscribe(self, handler: MatchUpdatedHandler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: MatchUpdated) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                # A failing reader must not undo or block a committed write
                logger.exception("MatchUpdated handler failed for match %d", event.match_id)


match_events = MatchEventBus()

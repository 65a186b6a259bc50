"""
Duplicate suppression for relayed events.

Each event identity moves through UNSEEN -> IN_FLIGHT -> COMPLETED. A failed
attempt moves it back to UNSEEN so a redelivery of the same log is retried.
"""

import logging
from collections import OrderedDict
from enum import Enum

from .models import EventIdentity

logger = logging.getLogger(__name__)


class EventState(Enum):
    """Processing state of one event identity."""
    UNSEEN = "unseen"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


class DuplicateSuppressionRegistry:
    """
    Tracks which events a listener has accepted for processing.

    Scoped to one listener's lifetime and never persisted. None of the methods
    suspend, so under asyncio each transition is atomic with respect to every
    other coroutine: two concurrent deliveries of the same identity cannot both
    win try_begin.

    Completed identities are kept in an OrderedDict bounded to max_completed
    entries, evicting the oldest first.
    """

    def __init__(self, max_completed: int = 10_000) -> None:
        """
        Initialize the registry.

        Args:
            max_completed: Maximum number of completed identities to remember
        """
        self.max_completed = max_completed
        self._in_flight: set[EventIdentity] = set()
        self._completed: OrderedDict[EventIdentity, None] = OrderedDict()

    def state(self, identity: EventIdentity) -> EventState:
        if identity in self._in_flight:
            return EventState.IN_FLIGHT
        if identity in self._completed:
            return EventState.COMPLETED
        return EventState.UNSEEN

    def __contains__(self, identity: object) -> bool:
        return identity in self._in_flight or identity in self._completed

    def try_begin(self, identity: EventIdentity) -> bool:
        """
        Claim an identity for processing.

        Args:
            identity: Identity of the delivered event

        Returns:
            True if the caller now owns the identity (UNSEEN -> IN_FLIGHT),
            False if it is already in flight or completed
        """
        if identity in self._in_flight or identity in self._completed:
            return False
        self._in_flight.add(identity)
        return True

    def complete(self, identity: EventIdentity) -> None:
        """Record a fully successful relay (IN_FLIGHT -> COMPLETED)."""
        if identity not in self._in_flight:
            logger.warning(f"Completing event {identity} that was not in flight")
        self._in_flight.discard(identity)

        if identity in self._completed:
            self._completed.move_to_end(identity)
            return

        if len(self._completed) >= self.max_completed:
            evicted, _ = self._completed.popitem(last=False)
            logger.debug(f"Evicted oldest completed event {evicted} due to capacity")
        self._completed[identity] = None

    def release(self, identity: EventIdentity) -> None:
        """Give up an in-flight identity after a failed attempt (IN_FLIGHT -> UNSEEN)."""
        self._in_flight.discard(identity)

    def get_stats(self) -> dict:
        """
        Get current registry statistics.

        Returns:
            Dictionary with state counts
        """
        return {
            'in_flight': len(self._in_flight),
            'completed': len(self._completed),
            'max_completed': self.max_completed
        }

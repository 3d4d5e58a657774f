"""
stakepools/protocol/pause.py

Circuit breaker for new stakes.

Only stake() consults the gate. unstake(), claim_reward() and
emergency_withdraw() keep working while paused so participants can
always exit.
"""

import logging
from typing import Any, TYPE_CHECKING

from ..access import AccessControl, Permission
from ..errors import ContractPaused
from ..events import EventLog, EventType, StakingEvent

if TYPE_CHECKING:
    from ..guard import ReentrancyGuard

logger = logging.getLogger("stakepools.protocol.pause")


class PauseGate:
    """Administrator-controlled pause flag."""

    def __init__(self, access: AccessControl, guard: "ReentrancyGuard", events: EventLog, clock: Any):
        self._access = access
        self._guard = guard
        self._events = events
        self._clock = clock
        self._paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    def require_not_paused(self) -> None:
        """
        Raises:
            ContractPaused: If the gate is closed
        """
        if self._paused:
            raise ContractPaused("Staking is paused")

    def pause(self, caller: str) -> bool:
        """Close the gate. Returns False if it was already closed."""
        return self._set(caller, True)

    def unpause(self, caller: str) -> bool:
        """Open the gate. Returns False if it was already open."""
        return self._set(caller, False)

    def _set(self, caller: str, paused: bool) -> bool:
        with self._guard.hold("pause" if paused else "unpause"):
            self._access.check(caller, Permission.ADMIN)
            if self._paused == paused:
                return False
            self._paused = paused

            logger.info(f"Staking {'paused' if paused else 'unpaused'} by {caller}")
            self._events.emit(StakingEvent(
                event_type=EventType.PAUSED if paused else EventType.UNPAUSED,
                timestamp=self._clock.now(),
                account=caller,
            ))
        return True

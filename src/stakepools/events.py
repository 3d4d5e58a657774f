"""
stakepools/events.py

Observable state-transition events.

One event is recorded per successful state transition, after every asset
transfer of that operation has completed and while the engine's guard is
still held, so the log order is the order state changes were applied in.
Subscribers register callbacks with EventLog.subscribe(); a failing callback
is logged and skipped. A callback that calls back into a mutating engine
operation is rejected with ReentrantCall.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import DEFAULT_EVENT_LOG_SIZE

logger = logging.getLogger("stakepools.events")


class EventType(Enum):
    """Kinds of recorded state transitions."""
    POOL_ADDED = "pool_added"
    STAKED = "staked"
    UNSTAKED = "unstaked"
    REWARD_PAID = "reward_paid"
    EMERGENCY_WITHDRAW = "emergency_withdraw"
    REFERRER_SET = "referrer_set"

    # Administrative
    REWARD_RATE_UPDATED = "reward_rate_updated"
    LOCK_DURATION_UPDATED = "lock_duration_updated"
    NFT_BOOST_RATE_UPDATED = "nft_boost_rate_updated"
    GOVERNANCE_DISTRIBUTED = "governance_distributed"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    PAUSED = "paused"
    UNPAUSED = "unpaused"


@dataclass
class StakingEvent:
    """A single recorded event."""
    event_type: EventType
    timestamp: int
    account: Optional[str] = None
    pool_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "account": self.account,
            "pool_id": self.pool_id,
            "data": dict(self.data),
        }


class EventLog:
    """Bounded in-memory event history with subscriber callbacks."""

    def __init__(self, maxlen: Optional[int] = DEFAULT_EVENT_LOG_SIZE):
        self.events: deque = deque(maxlen=maxlen)
        self._callbacks: List[Callable[[StakingEvent], None]] = []

    def subscribe(self, callback: Callable[[StakingEvent], None]) -> None:
        """Register a callback invoked for every new event."""
        self._callbacks.append(callback)

    def unsubscribe(self, callback: Callable[[StakingEvent], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, event: StakingEvent) -> None:
        """Record an event and notify subscribers."""
        self.events.append(event)
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event callback error for {event.event_type.value}: {e}")

    def tail(self, n: int = 200) -> List[StakingEvent]:
        """Return the last ``n`` events, oldest first."""
        if n <= 0:
            return []
        if n >= len(self.events):
            return list(self.events)
        return list(self.events)[-n:]

    def of_type(self, event_type: EventType) -> List[StakingEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self.events)

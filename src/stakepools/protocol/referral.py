"""
stakepools/protocol/referral.py

Referral ledger.

An account names its referrer once. At that moment both sides are
credited: the referrer with ``referral_bonus`` and the referee with
``referee_bonus``, regardless of any later staking activity.

Rules:
- An account's referrer is write-once
- An account cannot refer itself
"""

import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..config import EngineConfig
from ..errors import ReferrerAlreadySet, SelfReferral
from ..events import EventLog, EventType, StakingEvent

if TYPE_CHECKING:
    from ..guard import ReentrancyGuard

logger = logging.getLogger("stakepools.protocol.referral")


@dataclass
class Referral:
    """A referee -> referrer link and the bonuses credited when it was made."""
    id: str
    referee: str
    referrer: str
    timestamp: int
    referrer_bonus: int
    referee_bonus: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Referral":
        """Create from dictionary."""
        return cls(**data)

    @staticmethod
    def generate_id(referee: str, referrer: str) -> str:
        """Generate unique referral ID."""
        content = f"{referee}:{referrer}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]


class ReferralLedger:
    """
    Write-once referrer assignment and referral reward balances.

    Usage:
        referrals = ReferralLedger(config, guard, events, clock)
        referrals.set_referrer("bob", "alice")
        referrals.get_referrer("bob")            # "alice"
        referrals.get_referral_rewards("alice")  # config.referral_bonus
    """

    def __init__(self, config: EngineConfig, guard: "ReentrancyGuard", events: EventLog, clock: Any):
        self.config = config
        self._guard = guard
        self._events = events
        self._clock = clock

        self._referrals: Dict[str, Referral] = {}            # referee -> Referral
        self._rewards: Dict[str, int] = defaultdict(int)     # account -> balance
        self._by_referrer: Dict[str, List[str]] = defaultdict(list)

    def set_referrer(self, caller: str, referrer: str) -> Referral:
        """
        Record ``referrer`` as the caller's referrer and credit both bonuses.

        Raises:
            ReferrerAlreadySet: If the caller already has a referrer
            SelfReferral: If ``referrer`` is the caller
        """
        with self._guard.hold("set_referrer"):
            if caller in self._referrals:
                raise ReferrerAlreadySet(
                    f"{caller} already referred by {self._referrals[caller].referrer}"
                )
            if referrer == caller:
                raise SelfReferral(f"{caller} cannot refer itself")

            referral = Referral(
                id=Referral.generate_id(caller, referrer),
                referee=caller,
                referrer=referrer,
                timestamp=self._clock.now(),
                referrer_bonus=self.config.referral_bonus,
                referee_bonus=self.config.referee_bonus,
            )
            self._referrals[caller] = referral
            self._by_referrer[referrer].append(caller)
            self._rewards[referrer] += referral.referrer_bonus
            self._rewards[caller] += referral.referee_bonus

            logger.info(f"Referral registered: {caller[:12]} referred by {referrer[:12]}")
            self._events.emit(StakingEvent(
                event_type=EventType.REFERRER_SET,
                timestamp=referral.timestamp,
                account=caller,
                data={
                    "referrer": referrer,
                    "referrer_bonus": referral.referrer_bonus,
                    "referee_bonus": referral.referee_bonus,
                },
            ))
        return referral

    def get_referrer(self, account: str) -> Optional[str]:
        referral = self._referrals.get(account)
        return referral.referrer if referral else None

    def get_referral(self, account: str) -> Optional[Referral]:
        return self._referrals.get(account)

    def get_referral_rewards(self, account: str) -> int:
        """Accumulated referral reward balance of ``account``."""
        return self._rewards.get(account, 0)

    def get_referees(self, referrer: str) -> List[str]:
        """Accounts that named ``referrer``, in registration order."""
        return list(self._by_referrer.get(referrer, ()))

    def get_referral_count(self, referrer: str) -> int:
        return len(self._by_referrer.get(referrer, ()))

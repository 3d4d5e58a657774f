"""
stakepools/protocol/registry.py

Pool registry.

Owns the ordered list of pool configurations and their accumulator
state. Pool ids are zero-based and sequential; a pool is never removed.

Administrative operations:
- add_pool(): append a pool, accumulator at zero, accrual clock at now
- set_reward_rate(): takes effect at the next accrual
- set_lock_duration(): applies to stakes made after the change
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..access import AccessControl, Permission
from ..errors import InvalidPoolId
from ..events import EventLog, EventType, StakingEvent
from ..fixed_point import FixedPoint

if TYPE_CHECKING:
    from ..assets.base import FungibleAsset
    from ..guard import ReentrancyGuard

logger = logging.getLogger("stakepools.protocol.registry")


def asset_label(asset: Any) -> str:
    """Human-readable name for an asset handle."""
    return str(getattr(asset, "symbol", None) or type(asset).__name__)


@dataclass
class PoolRecord:
    """
    Configuration and accumulator state of one pool.

    Invariants:
        total_staked == sum of the pool's StakeRecord.principal values
        acc_reward_per_share never decreases
        last_accrual_timestamp never moves backward
    """
    pool_id: int
    staking_asset: "FungibleAsset"
    reward_asset: "FungibleAsset"
    reward_rate_per_second: int
    lock_duration_seconds: int
    total_staked: int = 0
    acc_reward_per_share: FixedPoint = field(default_factory=FixedPoint.zero)
    last_accrual_timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "pool_id": self.pool_id,
            "staking_asset": asset_label(self.staking_asset),
            "reward_asset": asset_label(self.reward_asset),
            "reward_rate_per_second": self.reward_rate_per_second,
            "lock_duration_seconds": self.lock_duration_seconds,
            "total_staked": self.total_staked,
            "acc_reward_per_share_scaled": self.acc_reward_per_share.raw,
            "last_accrual_timestamp": self.last_accrual_timestamp,
        }

    def snapshot(self) -> "PoolRecord":
        return replace(self)

    def restore(self, snapshot: "PoolRecord") -> None:
        """Overwrite this record in place with ``snapshot``'s values."""
        for f in fields(self):
            setattr(self, f.name, getattr(snapshot, f.name))


class PoolRegistry:
    """
    Ordered collection of pools.

    Usage:
        registry = PoolRegistry(access, guard, events, clock)
        pool_id = registry.add_pool("admin", stake_token, reward_token, 10**18, 86400)
        registry.set_reward_rate("admin", pool_id, 2 * 10**18)
        pool = registry.get(pool_id)
    """

    def __init__(
        self,
        access: AccessControl,
        guard: "ReentrancyGuard",
        events: EventLog,
        clock: Any,
    ):
        self._access = access
        self._guard = guard
        self._events = events
        self._clock = clock
        self._pools: List[PoolRecord] = []

    def __len__(self) -> int:
        return len(self._pools)

    def __iter__(self):
        return iter(self._pools)

    def get(self, pool_id: int) -> PoolRecord:
        """
        Look up a pool.

        Raises:
            InvalidPoolId: If ``pool_id`` is out of range
        """
        if not isinstance(pool_id, int) or isinstance(pool_id, bool) \
                or pool_id < 0 or pool_id >= len(self._pools):
            raise InvalidPoolId(f"No pool with id {pool_id!r}")
        return self._pools[pool_id]

    def find(self, pool_id: int) -> Optional[PoolRecord]:
        try:
            return self.get(pool_id)
        except InvalidPoolId:
            return None

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def add_pool(
        self,
        caller: str,
        staking_asset: "FungibleAsset",
        reward_asset: "FungibleAsset",
        reward_rate_per_second: int,
        lock_duration_seconds: int,
    ) -> int:
        """
        Append a new pool.

        Rates are trusted as given; only the caller's capability is checked.

        Returns:
            The new pool id
        """
        with self._guard.hold("add_pool"):
            self._access.check(caller, Permission.ADMIN)
            now = self._clock.now()
            pool = PoolRecord(
                pool_id=len(self._pools),
                staking_asset=staking_asset,
                reward_asset=reward_asset,
                reward_rate_per_second=reward_rate_per_second,
                lock_duration_seconds=lock_duration_seconds,
                last_accrual_timestamp=now,
            )
            self._pools.append(pool)

            logger.info(
                f"Pool {pool.pool_id} added: {asset_label(staking_asset)} -> "
                f"{asset_label(reward_asset)} at {reward_rate_per_second}/s, lock {lock_duration_seconds}s"
            )
            self._events.emit(StakingEvent(
                event_type=EventType.POOL_ADDED,
                timestamp=now,
                account=caller,
                pool_id=pool.pool_id,
                data={
                    "staking_asset": asset_label(staking_asset),
                    "reward_asset": asset_label(reward_asset),
                    "reward_rate_per_second": reward_rate_per_second,
                    "lock_duration_seconds": lock_duration_seconds,
                },
            ))
        return pool.pool_id

    def set_reward_rate(self, caller: str, pool_id: int, rate: int) -> None:
        """Change a pool's emission rate; the next accrual uses it for the whole elapsed span."""
        with self._guard.hold("set_reward_rate"):
            self._access.check(caller, Permission.ADMIN)
            pool = self.get(pool_id)
            previous = pool.reward_rate_per_second
            pool.reward_rate_per_second = rate

            logger.info(f"Pool {pool_id} reward rate: {previous} -> {rate}")
            self._events.emit(StakingEvent(
                event_type=EventType.REWARD_RATE_UPDATED,
                timestamp=self._clock.now(),
                account=caller,
                pool_id=pool_id,
                data={"previous": previous, "reward_rate_per_second": rate},
            ))

    def set_lock_duration(self, caller: str, pool_id: int, duration: int) -> None:
        """Change the lock applied to future stakes; existing lock expiries are untouched."""
        with self._guard.hold("set_lock_duration"):
            self._access.check(caller, Permission.ADMIN)
            pool = self.get(pool_id)
            previous = pool.lock_duration_seconds
            pool.lock_duration_seconds = duration

            logger.info(f"Pool {pool_id} lock duration: {previous}s -> {duration}s")
            self._events.emit(StakingEvent(
                event_type=EventType.LOCK_DURATION_UPDATED,
                timestamp=self._clock.now(),
                account=caller,
                pool_id=pool_id,
                data={"previous": previous, "lock_duration_seconds": duration},
            ))

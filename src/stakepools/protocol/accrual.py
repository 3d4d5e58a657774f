"""
stakepools/protocol/accrual.py

Lazy reward accrual using a scaled reward-per-share accumulator.

Each pool keeps ``acc_reward_per_share``: reward emitted per staked unit
since the pool was created. Bringing a pool up to date costs O(1)
regardless of how many accounts stake in it:

    acc += elapsed * reward_rate_per_second / total_staked

A stake's newly accrued reward is then
``principal * acc - reward_checkpoint``, adjusted by BoostCalculator.

Settlement protocol (every stake-affecting call):
    update_pool(pool) -> settle_user(pool, record) -> principal mutation

Note on the checkpoint: settle_user stores the adjusted pending amount
itself in ``reward_checkpoint`` (an amount-owed register that
claim_reward pays out and zeroes), not the ``principal * acc`` baseline.
Repeated settlements therefore measure against that amount. The
behavior is kept as-is and pinned down by tests/test_accrual.py.
"""

import logging
from typing import Any, TYPE_CHECKING

from ..errors import AccountingUnderflow
from ..fixed_point import FixedPoint
from .boost import BoostCalculator

if TYPE_CHECKING:
    from .ledger import StakeRecord
    from .registry import PoolRecord, PoolRegistry

logger = logging.getLogger("stakepools.protocol.accrual")


class RewardAccrualEngine:
    """
    Keeps pool accumulators current and checkpoints stakes.

    Usage:
        accrual = RewardAccrualEngine(registry, boost, clock)
        pool = accrual.update_pool(pool_id)
        settled = accrual.settle_user(pool, record)
    """

    def __init__(self, registry: "PoolRegistry", boost: BoostCalculator, clock: Any):
        self._registry = registry
        self._boost = boost
        self._clock = clock

    @staticmethod
    def accrued_per_share(pool: "PoolRecord", now: int) -> FixedPoint:
        """Accumulator value ``pool`` would have at ``now``, without mutating it."""
        elapsed = now - pool.last_accrual_timestamp
        if elapsed <= 0 or pool.total_staked <= 0:
            return pool.acc_reward_per_share
        increment = FixedPoint.from_ratio(elapsed * pool.reward_rate_per_second, pool.total_staked)
        return pool.acc_reward_per_share + increment

    def update_pool(self, pool_id: int) -> "PoolRecord":
        """
        Bring a pool's accumulator up to the current time.

        The accrual timestamp is advanced even when nothing is staked, so
        an empty period never accrues against the next staker. Calling
        twice at the same instant is a no-op.

        Raises:
            InvalidPoolId: If ``pool_id`` is out of range
        """
        pool = self._registry.get(pool_id)
        now = self._clock.now()
        if now <= pool.last_accrual_timestamp:
            return pool

        previous = pool.acc_reward_per_share
        pool.acc_reward_per_share = self.accrued_per_share(pool, now)
        elapsed = now - pool.last_accrual_timestamp
        pool.last_accrual_timestamp = now

        logger.debug(
            f"Pool {pool_id} accrued {elapsed}s over {pool.total_staked} staked: "
            f"acc {previous.raw} -> {pool.acc_reward_per_share.raw}"
        )
        return pool

    def pending_amount(self, pool: "PoolRecord", record: "StakeRecord", acc: FixedPoint, now: int) -> int:
        """
        Settled value of ``record`` against accumulator ``acc`` at ``now``.

        Raises:
            AccountingUnderflow: If the checkpoint exceeds ``principal * acc``
                or the reconstructed lock start lies after ``now``
        """
        pending_base = acc.mul_floor(record.principal) - record.reward_checkpoint
        if pending_base < 0:
            raise AccountingUnderflow(
                f"Pool {pool.pool_id} checkpoint {record.reward_checkpoint} for "
                f"{record.account} exceeds accrued {pending_base + record.reward_checkpoint}"
            )

        # Lock start is reconstructed from the pool's current lock duration
        lock_start = record.lock_expiry - pool.lock_duration_seconds
        if lock_start < 0 or now < lock_start:
            raise AccountingUnderflow(
                f"Pool {pool.pool_id} lock start {lock_start} for {record.account} "
                f"(expiry {record.lock_expiry} - lock {pool.lock_duration_seconds}s) is outside [0, {now}]"
            )
        return self._boost.adjust(pending_base, now - lock_start, record.account)

    def settle_user(self, pool: "PoolRecord", record: "StakeRecord") -> int:
        """
        Checkpoint a stake's pending reward.

        Must follow update_pool() for the same pool and precede any change
        to ``record.principal``. Performs no transfer.

        Returns:
            The new checkpoint value (0 when nothing is staked)
        """
        if record.principal <= 0:
            return record.reward_checkpoint

        settled = self.pending_amount(pool, record, pool.acc_reward_per_share, self._clock.now())
        record.reward_checkpoint = settled
        logger.debug(f"Settled {record.account} in pool {pool.pool_id}: checkpoint={settled}")
        return settled

    def preview_settlement(self, pool: "PoolRecord", record: "StakeRecord") -> int:
        """What settle_user would store right now, computed without mutation."""
        if record.principal <= 0:
            return record.reward_checkpoint
        now = self._clock.now()
        return self.pending_amount(pool, record, self.accrued_per_share(pool, now), now)

"""
stakepools/protocol/ledger.py

Per-(pool, account) stake records and the user staking operations.

Operations:
- stake(): settle, pull tokens into custody, grow principal, restart lock
- unstake(): settle, shrink principal, return tokens (after lock expiry)
- claim_reward(): settle, pay out and zero the checkpoint
- emergency_withdraw(): return full principal, forfeit rewards, no settlement

Each operation holds the engine's reentrancy guard for its whole run,
event emission included, and either applies completely or leaves the
touched pool and stake records exactly as they were.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

from ..errors import (
    AssetTransferFailed,
    InsufficientStake,
    NoStakedAmount,
    StakeLocked,
    StakingError,
    ZeroAmount,
)
from ..events import EventLog, EventType, StakingEvent
from .accrual import RewardAccrualEngine
from .pause import PauseGate
from .registry import PoolRecord, PoolRegistry, asset_label

if TYPE_CHECKING:
    from ..assets.base import FungibleAsset
    from ..guard import ReentrancyGuard

logger = logging.getLogger("stakepools.protocol.ledger")


@dataclass
class StakeRecord:
    """
    One account's position in one pool.

    Created zero-valued on the first stake; never deleted, only zeroed.
    """
    pool_id: int
    account: str
    principal: int = 0
    reward_checkpoint: int = 0
    lock_expiry: int = 0

    def is_active(self) -> bool:
        return self.principal > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "account": self.account,
            "principal": self.principal,
            "reward_checkpoint": self.reward_checkpoint,
            "lock_expiry": self.lock_expiry,
        }

    def restore(self, snapshot: "StakeRecord") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(snapshot, f.name))


def transfer_out(asset: "FungibleAsset", sender: str, recipient: str, amount: int) -> None:
    """
    Push ``amount`` of ``asset`` from ``sender`` to ``recipient``.

    Raises:
        AssetTransferFailed: If the asset refuses or errors
    """
    try:
        ok = asset.transfer(sender, recipient, amount)
    except StakingError:
        raise
    except Exception as e:
        raise AssetTransferFailed(f"{asset_label(asset)} transfer failed: {e}") from e
    if not ok:
        raise AssetTransferFailed(
            f"{asset_label(asset)} refused transfer of {amount} from {sender} to {recipient}"
        )


def transfer_in(asset: "FungibleAsset", spender: str, owner: str, amount: int) -> None:
    """
    Pull ``amount`` of ``asset`` from ``owner`` into ``spender``'s custody.

    Raises:
        AssetTransferFailed: If the asset refuses or errors
    """
    try:
        ok = asset.transfer_from(spender, owner, spender, amount)
    except StakingError:
        raise
    except Exception as e:
        raise AssetTransferFailed(f"{asset_label(asset)} transfer_from failed: {e}") from e
    if not ok:
        raise AssetTransferFailed(
            f"{asset_label(asset)} refused transfer of {amount} from {owner} into custody"
        )


class StakeLedger:
    """
    Owns every StakeRecord and runs the user staking operations.

    Usage:
        ledger = StakeLedger(registry, accrual, pause, guard, events, clock, custody)
        ledger.stake("alice", 0, 1000)
        ledger.claim_reward("alice", 0)
    """

    def __init__(
        self,
        registry: PoolRegistry,
        accrual: RewardAccrualEngine,
        pause: PauseGate,
        guard: "ReentrancyGuard",
        events: EventLog,
        clock: Any,
        custody: str,
    ):
        self._registry = registry
        self._accrual = accrual
        self._pause = pause
        self._guard = guard
        self._events = events
        self._clock = clock
        self.custody = custody

        self._records: Dict[Tuple[int, str], StakeRecord] = {}

    # ========================================================================
    # RECORDS
    # ========================================================================

    def get_record(self, pool_id: int, account: str) -> Optional[StakeRecord]:
        return self._records.get((pool_id, account))

    def view_record(self, pool_id: int, account: str) -> StakeRecord:
        """Stored record, or a zero-valued one that is not stored."""
        return self._records.get((pool_id, account)) or StakeRecord(pool_id, account)

    def records_for_pool(self, pool_id: int) -> List[StakeRecord]:
        """All records of a pool. Walks every record; for reporting only."""
        return [r for (pid, _), r in self._records.items() if pid == pool_id]

    def _get_or_create(self, pool_id: int, account: str) -> StakeRecord:
        key = (pool_id, account)
        record = self._records.get(key)
        if record is None:
            record = StakeRecord(pool_id, account)
            self._records[key] = record
        return record

    @contextmanager
    def _atomic(self, pool: PoolRecord, account: str) -> Iterator[None]:
        """Restore the pool and the account's record if the block raises."""
        key = (pool.pool_id, account)
        pool_snapshot = pool.snapshot()
        existing = self._records.get(key)
        record_snapshot = replace(existing) if existing is not None else None
        try:
            yield
        except BaseException:
            pool.restore(pool_snapshot)
            if record_snapshot is None:
                self._records.pop(key, None)
            else:
                existing.restore(record_snapshot)
            raise

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def stake(self, caller: str, pool_id: int, amount: int) -> StakeRecord:
        """
        Deposit ``amount`` of the pool's staking asset.

        The lock restarts at a full period from now on every stake.

        Raises:
            ContractPaused, ZeroAmount, InvalidPoolId, AssetTransferFailed
        """
        if amount < 0:
            raise ValueError("Amount must not be negative")

        with self._guard.hold("stake"):
            self._pause.require_not_paused()
            if amount == 0:
                raise ZeroAmount("Cannot stake zero")
            pool = self._registry.get(pool_id)

            with self._atomic(pool, caller):
                now = self._clock.now()
                self._accrual.update_pool(pool_id)
                record = self._get_or_create(pool_id, caller)
                self._accrual.settle_user(pool, record)

                transfer_in(pool.staking_asset, self.custody, caller, amount)

                record.principal += amount
                record.lock_expiry = now + pool.lock_duration_seconds
                pool.total_staked += amount

            logger.info(
                f"Stake: {caller} +{amount} in pool {pool_id} "
                f"(principal={record.principal}, lock until {record.lock_expiry})"
            )
            self._events.emit(StakingEvent(
                event_type=EventType.STAKED,
                timestamp=now,
                account=caller,
                pool_id=pool_id,
                data={
                    "amount": amount,
                    "principal": record.principal,
                    "lock_expiry": record.lock_expiry,
                    "total_staked": pool.total_staked,
                },
            ))
        return record

    def unstake(self, caller: str, pool_id: int, amount: int) -> StakeRecord:
        """
        Withdraw ``amount`` of principal once the lock has expired.

        Raises:
            InsufficientStake, StakeLocked, InvalidPoolId, AssetTransferFailed
        """
        if amount < 0:
            raise ValueError("Amount must not be negative")

        with self._guard.hold("unstake"):
            pool = self._registry.get(pool_id)
            record = self.view_record(pool_id, caller)
            now = self._clock.now()
            if amount > record.principal:
                raise InsufficientStake(
                    f"Requested {amount}, staked {record.principal} in pool {pool_id}"
                )
            if now < record.lock_expiry:
                raise StakeLocked(f"Locked until {record.lock_expiry} (now {now})")

            with self._atomic(pool, caller):
                self._accrual.update_pool(pool_id)
                self._accrual.settle_user(pool, record)

                record.principal -= amount
                pool.total_staked -= amount

                transfer_out(pool.staking_asset, self.custody, caller, amount)

            logger.info(f"Unstake: {caller} -{amount} from pool {pool_id} (principal={record.principal})")
            self._events.emit(StakingEvent(
                event_type=EventType.UNSTAKED,
                timestamp=now,
                account=caller,
                pool_id=pool_id,
                data={
                    "amount": amount,
                    "principal": record.principal,
                    "total_staked": pool.total_staked,
                },
            ))
        return record

    def claim_reward(self, caller: str, pool_id: int) -> int:
        """
        Settle and pay out the checkpointed reward.

        Returns:
            Amount of reward asset transferred

        Raises:
            InvalidPoolId, AccountingUnderflow, AssetTransferFailed
        """
        with self._guard.hold("claim_reward"):
            pool = self._registry.get(pool_id)
            record = self.view_record(pool_id, caller)
            now = self._clock.now()

            with self._atomic(pool, caller):
                self._accrual.update_pool(pool_id)
                self._accrual.settle_user(pool, record)

                owed = record.reward_checkpoint
                record.reward_checkpoint = 0

                transfer_out(pool.reward_asset, self.custody, caller, owed)

            logger.info(f"Reward paid: {caller} <- {owed} {asset_label(pool.reward_asset)} from pool {pool_id}")
            self._events.emit(StakingEvent(
                event_type=EventType.REWARD_PAID,
                timestamp=now,
                account=caller,
                pool_id=pool_id,
                data={"amount": owed},
            ))
        return owed

    def emergency_withdraw(self, caller: str, pool_id: int) -> int:
        """
        Return the full principal immediately, forfeiting unclaimed reward.

        Skips accrual and settlement, ignores the lock and the pause flag.

        Returns:
            Principal returned

        Raises:
            NoStakedAmount, InvalidPoolId, AssetTransferFailed
        """
        with self._guard.hold("emergency_withdraw"):
            pool = self._registry.get(pool_id)
            record = self.get_record(pool_id, caller)
            if record is None or record.principal == 0:
                raise NoStakedAmount(f"{caller} has nothing staked in pool {pool_id}")

            now = self._clock.now()
            with self._atomic(pool, caller):
                amount = record.principal
                forfeited = record.reward_checkpoint
                record.principal = 0
                record.reward_checkpoint = 0
                pool.total_staked -= amount

                transfer_out(pool.staking_asset, self.custody, caller, amount)

            logger.info(
                f"Emergency withdraw: {caller} <- {amount} from pool {pool_id} (forfeited checkpoint {forfeited})"
            )
            self._events.emit(StakingEvent(
                event_type=EventType.EMERGENCY_WITHDRAW,
                timestamp=now,
                account=caller,
                pool_id=pool_id,
                data={
                    "amount": amount,
                    "forfeited": forfeited,
                    "total_staked": pool.total_staked,
                },
            ))
        return amount

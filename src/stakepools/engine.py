"""
stakepools/engine.py

StakingEngine - the public surface of the staking system.

Wires the components together around one shared EngineConfig, one
reentrancy guard and one event log:

    PauseGate -> RewardAccrualEngine.update_pool -> settle_user
              -> StakeLedger mutation -> asset transfer

Usage:
    from stakepools import StakingEngine, EngineConfig
    from stakepools.assets import InMemoryToken, InMemoryNFT

    engine = StakingEngine(owner="admin")
    engine.initialize("admin", EngineConfig(), boost_nft=InMemoryNFT())

    pool_id = engine.add_pool("admin", stake_token, reward_token, 10**18, 86400)
    stake_token.approve("alice", engine.address, 1000)
    engine.stake("alice", pool_id, 1000)

    ...
    engine.claim_reward("alice", pool_id)
"""

import logging
from contextlib import contextmanager
from dataclasses import fields, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, TYPE_CHECKING

from .access import AccessControl, Permission
from .clock import SystemClock
from .config import ENGINE_ADDRESS, EngineConfig
from .errors import (
    AlreadyInitialized,
    AssetTransferFailed,
    NotInitialized,
    StakingError,
    ZeroAmount,
)
from .events import EventLog, EventType, StakingEvent
from .guard import ReentrancyGuard
from .protocol.accrual import RewardAccrualEngine
from .protocol.boost import BoostCalculator
from .protocol.ledger import StakeLedger, StakeRecord, transfer_out
from .protocol.pause import PauseGate
from .protocol.referral import Referral, ReferralLedger
from .protocol.registry import PoolRecord, PoolRegistry

if TYPE_CHECKING:
    from .assets.base import FungibleAsset, NonFungibleAsset

logger = logging.getLogger("stakepools.engine")


class StakingEngine:
    """
    Multi-pool staking and reward accrual engine.

    Every state-mutating call takes the acting account as ``caller``.
    Failures raise a StakingError subclass and leave no partial state.
    """

    def __init__(
        self,
        owner: str,
        clock: Any = None,
        address: str = ENGINE_ADDRESS,
        events: Optional[EventLog] = None,
    ):
        """
        Initialize StakingEngine.

        Args:
            owner: Account holding the administrator capability
            clock: Time source with ``now() -> int`` (default: SystemClock)
            address: Custody account for staked and reward assets
            events: Event log to record into (default: a new EventLog)
        """
        self.address = address
        self.clock = clock or SystemClock()
        self.events = events or EventLog()
        self.config = EngineConfig()

        self.access = AccessControl(owner)
        self.guard = ReentrancyGuard()
        self.pause_gate = PauseGate(self.access, self.guard, self.events, self.clock)
        self.registry = PoolRegistry(self.access, self.guard, self.events, self.clock)
        self.boost = BoostCalculator(self.config)
        self.accrual = RewardAccrualEngine(self.registry, self.boost, self.clock)
        self.ledger = StakeLedger(
            self.registry, self.accrual, self.pause_gate,
            self.guard, self.events, self.clock, custody=address,
        )
        self.referrals = ReferralLedger(self.config, self.guard, self.events, self.clock)

        self.governance_token: Optional["FungibleAsset"] = None
        self._initialized = False
        self._rejection_callbacks: List[Callable[[str, StakingError], None]] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def owner(self) -> str:
        return self.access.owner

    @property
    def paused(self) -> bool:
        return self.pause_gate.paused

    def on_rejection(self, callback: Callable[[str, StakingError], None]) -> None:
        """Register a callback invoked with (operation, error) for every rejected call."""
        self._rejection_callbacks.append(callback)

    @contextmanager
    def _observe(self, operation: str) -> Iterator[None]:
        try:
            yield
        except StakingError as e:
            logger.warning(f"{operation} rejected: {e.code}: {e}")
            for callback in self._rejection_callbacks:
                try:
                    callback(operation, e)
                except Exception as cb_error:
                    logger.error(f"Rejection callback error: {cb_error}")
            raise

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitialized("Engine has not been initialized")

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def initialize(
        self,
        caller: str,
        config: Optional[EngineConfig] = None,
        boost_nft: Optional["NonFungibleAsset"] = None,
        governance_token: Optional["FungibleAsset"] = None,
    ) -> None:
        """
        Set the engine configuration. Allowed exactly once.

        Values are copied into the shared configuration object so every
        component keeps reading the same instance.

        Raises:
            Unauthorized, AlreadyInitialized, ConfigError
        """
        with self._observe("initialize"), self.guard.hold("initialize"):
            self.access.check(caller, Permission.ADMIN)
            if self._initialized:
                raise AlreadyInitialized("Engine already initialized")
            config = config or EngineConfig()
            config.validate()

            for f in fields(EngineConfig):
                setattr(self.config, f.name, getattr(config, f.name))
            self.boost.boost_nft = boost_nft
            self.governance_token = governance_token
            self._initialized = True

        logger.info(f"Engine initialized: {self.config.to_dict()}")

    def add_pool(
        self,
        caller: str,
        staking_asset: "FungibleAsset",
        reward_asset: "FungibleAsset",
        reward_rate_per_second: int,
        lock_duration_seconds: int,
    ) -> int:
        """Create a pool; returns its id."""
        with self._observe("add_pool"):
            self._require_initialized()
            return self.registry.add_pool(
                caller, staking_asset, reward_asset,
                reward_rate_per_second, lock_duration_seconds,
            )

    def set_reward_rate(self, caller: str, pool_id: int, rate: int) -> None:
        with self._observe("set_reward_rate"):
            self.registry.set_reward_rate(caller, pool_id, rate)

    def set_lock_duration(self, caller: str, pool_id: int, duration: int) -> None:
        with self._observe("set_lock_duration"):
            self.registry.set_lock_duration(caller, pool_id, duration)

    def set_nft_boost_rate(self, caller: str, rate: int) -> None:
        """Set the boost-credential bonus percentage used by later settlements."""
        with self._observe("set_nft_boost_rate"), self.guard.hold("set_nft_boost_rate"):
            self.access.check(caller, Permission.ADMIN)
            if rate < 0:
                raise ValueError("NFT boost rate must not be negative")
            previous = self.config.nft_boost_rate
            self.config.nft_boost_rate = rate

            logger.info(f"NFT boost rate: {previous}% -> {rate}%")
            self.events.emit(StakingEvent(
                event_type=EventType.NFT_BOOST_RATE_UPDATED,
                timestamp=self.clock.now(),
                account=caller,
                data={"previous": previous, "nft_boost_rate": rate},
            ))

    def distribute_governance_tokens(self, caller: str, account: str, amount: int) -> None:
        """
        Transfer ``amount`` of the governance token from custody to ``account``.

        Raises:
            Unauthorized, ZeroAmount, AssetTransferFailed
        """
        with self._observe("distribute_governance_tokens"), self.guard.hold("distribute_governance_tokens"):
            self.access.check(caller, Permission.ADMIN)
            if amount <= 0:
                raise ZeroAmount("Governance distribution amount must be positive")
            if self.governance_token is None:
                raise AssetTransferFailed("No governance token configured")
            transfer_out(self.governance_token, self.address, account, amount)

            logger.info(f"Governance tokens: {account} <- {amount}")
            self.events.emit(StakingEvent(
                event_type=EventType.GOVERNANCE_DISTRIBUTED,
                timestamp=self.clock.now(),
                account=account,
                data={"amount": amount, "by": caller},
            ))

    def pause(self, caller: str) -> bool:
        with self._observe("pause"):
            return self.pause_gate.pause(caller)

    def unpause(self, caller: str) -> bool:
        with self._observe("unpause"):
            return self.pause_gate.unpause(caller)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self._observe("transfer_ownership"), self.guard.hold("transfer_ownership"):
            previous = self.access.transfer_ownership(caller, new_owner)

            self.events.emit(StakingEvent(
                event_type=EventType.OWNERSHIP_TRANSFERRED,
                timestamp=self.clock.now(),
                account=new_owner,
                data={"previous": previous},
            ))

    # ========================================================================
    # USER OPERATIONS
    # ========================================================================

    def stake(self, caller: str, pool_id: int, amount: int) -> StakeRecord:
        with self._observe("stake"):
            return replace(self.ledger.stake(caller, pool_id, amount))

    def unstake(self, caller: str, pool_id: int, amount: int) -> StakeRecord:
        with self._observe("unstake"):
            return replace(self.ledger.unstake(caller, pool_id, amount))

    def claim_reward(self, caller: str, pool_id: int) -> int:
        with self._observe("claim_reward"):
            return self.ledger.claim_reward(caller, pool_id)

    def emergency_withdraw(self, caller: str, pool_id: int) -> int:
        with self._observe("emergency_withdraw"):
            return self.ledger.emergency_withdraw(caller, pool_id)

    def set_referrer(self, caller: str, referrer: str) -> Referral:
        with self._observe("set_referrer"):
            self._require_initialized()
            return self.referrals.set_referrer(caller, referrer)

    # ========================================================================
    # READ SURFACE
    # ========================================================================

    def pool_count(self) -> int:
        return len(self.registry)

    def pool_info(self, pool_id: int) -> PoolRecord:
        """Copy of a pool's configuration and accumulator state."""
        return self.registry.get(pool_id).snapshot()

    def stake_info(self, pool_id: int, account: str) -> StakeRecord:
        """Copy of the stake record of ``account`` (zero-valued if it never staked)."""
        self.registry.get(pool_id)
        return replace(self.ledger.view_record(pool_id, account))

    def pending_reward(self, pool_id: int, account: str) -> int:
        """Amount claim_reward would pay right now."""
        pool = self.registry.get(pool_id)
        record = self.ledger.view_record(pool_id, account)
        return self.accrual.preview_settlement(pool, record)

    def referrer_of(self, account: str) -> Optional[str]:
        return self.referrals.get_referrer(account)

    def referral_rewards(self, account: str) -> int:
        return self.referrals.get_referral_rewards(account)

    def config_info(self) -> Dict[str, Any]:
        info = self.config.to_dict()
        info["paused"] = self.paused
        info["initialized"] = self._initialized
        info["owner"] = self.owner
        return info

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of configuration and every pool."""
        return {
            "address": self.address,
            "timestamp": self.clock.now(),
            "config": self.config_info(),
            "pools": [pool.to_dict() for pool in self.registry],
        }

"""
stakepools - Multi-pool staking and reward accrual engine

Participants stake a fungible asset into independently configured pools
and accrue a reward asset over time. Rewards are distributed with a
scaled reward-per-share accumulator, so no operation ever iterates over
the participants of a pool. Settled rewards carry:
- A duration multiplier (one step per full ramp period, capped)
- A percentage bonus for holding a boost NFT

Plus a one-shot two-sided referral bonus and a pause switch for new stakes.

Usage:
    from stakepools import StakingEngine, EngineConfig
    from stakepools.assets import InMemoryToken, InMemoryNFT

    engine = StakingEngine(owner="admin")
    engine.initialize("admin", EngineConfig(), boost_nft=InMemoryNFT())

    pool_id = engine.add_pool("admin", stake_token, reward_token, 10**18, 86400)
    engine.stake("alice", pool_id, 1000 * 10**18)
    engine.claim_reward("alice", pool_id)

REST API Usage:
    from stakepools.api import StakingAPI

    api = StakingAPI(engine, host="0.0.0.0", port=8545)
    trio.run(api.start)
"""

from .config import EngineConfig, SCALE, ENGINE_ADDRESS
from .clock import SystemClock, ManualClock
from .engine import StakingEngine
from .events import EventLog, EventType, StakingEvent
from .fixed_point import FixedPoint
from .errors import (
    StakingError,
    Unauthorized,
    InvalidPoolId,
    ZeroAmount,
    InsufficientStake,
    StakeLocked,
    NoStakedAmount,
    ReferrerAlreadySet,
    SelfReferral,
    ContractPaused,
    AssetTransferFailed,
    ReentrantCall,
    AlreadyInitialized,
    NotInitialized,
    AccountingUnderflow,
    ConfigError,
)
from .metrics import MetricsCollector

__version__ = "0.1.0"

__all__ = [
    "StakingEngine",
    "EngineConfig",
    "SCALE",
    "ENGINE_ADDRESS",
    "SystemClock",
    "ManualClock",
    "EventLog",
    "EventType",
    "StakingEvent",
    "FixedPoint",
    "MetricsCollector",
    "StakingError",
    "Unauthorized",
    "InvalidPoolId",
    "ZeroAmount",
    "InsufficientStake",
    "StakeLocked",
    "NoStakedAmount",
    "ReferrerAlreadySet",
    "SelfReferral",
    "ContractPaused",
    "AssetTransferFailed",
    "ReentrantCall",
    "AlreadyInitialized",
    "NotInitialized",
    "AccountingUnderflow",
    "ConfigError",
]

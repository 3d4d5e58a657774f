"""
stakepools.protocol - Staking engine components.

Pool registry, reward accrual, boost calculation, stake ledger,
referral ledger and pause gate.
"""

from .registry import PoolRecord, PoolRegistry
from .boost import BoostCalculator, duration_multiplier
from .accrual import RewardAccrualEngine
from .pause import PauseGate
from .ledger import StakeLedger, StakeRecord
from .referral import Referral, ReferralLedger

__all__ = [
    "PoolRecord",
    "PoolRegistry",
    "BoostCalculator",
    "duration_multiplier",
    "RewardAccrualEngine",
    "PauseGate",
    "StakeLedger",
    "StakeRecord",
    "Referral",
    "ReferralLedger",
]

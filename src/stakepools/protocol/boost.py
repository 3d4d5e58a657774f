"""
stakepools/protocol/boost.py

Reward bonus calculation.

Two bonuses are applied when a stake's pending reward is settled:

| Bonus     | Source                         | Effect                                   |
|-----------|--------------------------------|------------------------------------------|
| Duration  | full ramp periods staked       | pending x (base + m) / base, m <= cap    |
| Boost NFT | holds >= 1 boost credential    | +nft_boost_rate percent of the above     |

The duration multiplier is a step function: one unit per full
``multiplier_ramp_duration`` elapsed, capped at ``max_multiplier``.
"""

import logging
from typing import Optional, TYPE_CHECKING

from ..config import EngineConfig

if TYPE_CHECKING:
    from ..assets.base import NonFungibleAsset

logger = logging.getLogger("stakepools.protocol.boost")


def duration_multiplier(duration: int, ramp_duration: int, max_multiplier: int) -> int:
    """
    Multiplier units earned by staking for ``duration`` seconds.

    Args:
        duration: Seconds since the stake began
        ramp_duration: Seconds per multiplier unit
        max_multiplier: Cap

    Returns:
        min(duration // ramp_duration, max_multiplier)
    """
    return min(duration // ramp_duration, max_multiplier)


class BoostCalculator:
    """
    Applies the duration multiplier and the boost-credential bonus.

    Reads the shared EngineConfig by reference, so administrative changes
    to the NFT boost rate apply to the next settlement.
    """

    def __init__(self, config: EngineConfig, boost_nft: Optional["NonFungibleAsset"] = None):
        self.config = config
        self.boost_nft = boost_nft

    def duration_multiplier(self, duration: int) -> int:
        return duration_multiplier(
            duration,
            self.config.multiplier_ramp_duration,
            self.config.max_multiplier,
        )

    def holds_boost_credential(self, account: str) -> bool:
        """Whether ``account`` holds at least one boost NFT."""
        if self.boost_nft is None:
            return False
        return self.boost_nft.balance_of(account) >= 1

    def apply_duration(self, pending: int, multiplier: int) -> int:
        base = self.config.base_reward_rate
        return pending * (base + multiplier) // base

    def apply_nft_boost(self, amount: int) -> int:
        return amount + amount * self.config.nft_boost_rate // 100

    def adjust(self, pending: int, staked_duration: int, account: str) -> int:
        """
        Apply both bonuses to a base pending reward.

        Args:
            pending: Reward accrued since the last checkpoint
            staked_duration: Seconds since the stake began
            account: Staker (checked for the boost credential)

        Returns:
            Adjusted pending reward
        """
        multiplier = self.duration_multiplier(staked_duration)
        adjusted = self.apply_duration(pending, multiplier)
        if self.holds_boost_credential(account):
            adjusted = self.apply_nft_boost(adjusted)
        logger.debug(
            f"Boost for {account}: base={pending} multiplier={multiplier} adjusted={adjusted}"
        )
        return adjusted

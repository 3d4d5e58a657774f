#!/usr/bin/env python3
"""
Example: one pool, two stakers, one of them holding a boost NFT.

Shows the accrual lifecycle end to end with a manual clock:
stake -> time passes -> claim -> unlock -> unstake.

Run with: python examples/staking_scenario.py
"""

import logging

from stakepools import EngineConfig, ManualClock, StakingEngine
from stakepools.assets import InMemoryNFT, InMemoryToken
from stakepools.metrics import MetricsCollector

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
)
logger = logging.getLogger("staking_scenario")

UNIT = 10**18


def main():
    clock = ManualClock(1_700_000_000)
    engine = StakingEngine(owner="admin", clock=clock)
    metrics = MetricsCollector(engine)

    boost = InMemoryNFT("BOOST")
    engine.initialize(
        "admin",
        EngineConfig(multiplier_ramp_duration=3600, max_multiplier=10, nft_boost_rate=10),
        boost_nft=boost,
    )

    stake_token = InMemoryToken("STAKE")
    reward_token = InMemoryToken("REWARD")
    reward_token.mint(engine.address, 1_000_000 * UNIT)
    pool_id = engine.add_pool("admin", stake_token, reward_token, UNIT, 600)

    for account in ("alice", "bob"):
        stake_token.mint(account, 1000 * UNIT)
        stake_token.approve(account, engine.address, 1000 * UNIT)
        engine.stake(account, pool_id, 1000 * UNIT)
    boost.mint("bob")

    clock.advance(3600)
    for account in ("alice", "bob"):
        paid = engine.claim_reward(account, pool_id)
        logger.info(f"{account} claimed {paid / UNIT:.4f} REWARD")

    for account in ("alice", "bob"):
        engine.unstake(account, pool_id, 1000 * UNIT)
        logger.info(f"{account} balance: {stake_token.balance_of(account) / UNIT:.0f} STAKE")

    print(metrics.collect())


if __name__ == "__main__":
    main()

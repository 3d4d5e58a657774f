"""
stakepools/service.py

Standalone engine with the read API, for local testing.
Run with: python -m stakepools.service

Environment:
    STAKEPOOLS_<CONFIG_FIELD>   engine configuration overrides
    STAKEPOOLS_OWNER            administrator account (default: "admin")
    STAKEPOOLS_API_HOST         bind host
    STAKEPOOLS_API_PORT         bind port
    STAKEPOOLS_DEMO_POOL        "1" to create a funded demo pool
"""

import logging
import os
import sys

import trio

from .api import StakingAPI
from .assets import InMemoryNFT, InMemoryToken
from .config import DEFAULT_API_HOST, DEFAULT_API_PORT, ENV_PREFIX, EngineConfig
from .engine import StakingEngine
from .errors import StakingError

logger = logging.getLogger("stakepools.service")

DEMO_REWARD_RATE = 10**18
DEMO_LOCK_DURATION = 24 * 60 * 60
DEMO_REWARD_FUNDING = 10**9 * 10**18


def build_engine(environ=None) -> StakingEngine:
    """Create and initialize an engine from environment settings."""
    env = os.environ if environ is None else environ
    owner = env.get(f"{ENV_PREFIX}OWNER", "admin")

    engine = StakingEngine(owner=owner)
    config = EngineConfig.from_env(environ=env)
    engine.initialize(
        owner,
        config,
        boost_nft=InMemoryNFT("BOOST"),
        governance_token=InMemoryToken("GOV"),
    )

    if env.get(f"{ENV_PREFIX}DEMO_POOL") == "1":
        stake_token = InMemoryToken("STAKE")
        reward_token = InMemoryToken("REWARD")
        reward_token.mint(engine.address, DEMO_REWARD_FUNDING)
        pool_id = engine.add_pool(owner, stake_token, reward_token, DEMO_REWARD_RATE, DEMO_LOCK_DURATION)
        logger.info(f"Demo pool {pool_id} created")

    return engine


async def main():
    """Run the API until interrupted."""
    host = os.environ.get(f"{ENV_PREFIX}API_HOST", DEFAULT_API_HOST)
    port = int(os.environ.get(f"{ENV_PREFIX}API_PORT", str(DEFAULT_API_PORT)))

    engine = build_engine()
    api = StakingAPI(engine, host=host, port=port)
    await api.start()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
    )
    try:
        trio.run(main)
    except KeyboardInterrupt:
        logger.info("Service stopped")
        sys.exit(0)
    except (StakingError, ValueError, OSError) as e:
        logger.error(f"Service error: {type(e).__name__}: {e}")
        sys.exit(1)

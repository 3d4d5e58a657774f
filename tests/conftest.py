"""
stakepools/tests/conftest.py

Shared fixtures: a manual clock, an initialized engine with small
ramp/bonus settings, funded in-memory tokens and one default pool.
"""

import pytest

from stakepools import EngineConfig, ManualClock, StakingEngine
from stakepools.assets import InMemoryNFT, InMemoryToken

UNIT = 10**18
START_TIME = 1_700_000_000
REWARD_FUNDING = 10**40


def create_test_config(**overrides) -> EngineConfig:
    """Engine configuration with a 100s ramp so multipliers show up quickly."""
    values = dict(
        base_reward_rate=100,
        max_multiplier=5,
        multiplier_ramp_duration=100,
        nft_boost_rate=10,
        referral_bonus=100,
        referee_bonus=50,
    )
    values.update(overrides)
    return EngineConfig(**values)


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def boost_nft():
    return InMemoryNFT("BOOST")


@pytest.fixture
def governance_token():
    return InMemoryToken("GOV")


@pytest.fixture
def engine(clock, boost_nft, governance_token):
    """Initialized engine owned by "admin"."""
    engine = StakingEngine(owner="admin", clock=clock)
    engine.initialize("admin", create_test_config(), boost_nft=boost_nft, governance_token=governance_token)
    return engine


@pytest.fixture
def stake_token():
    return InMemoryToken("STAKE")


@pytest.fixture
def reward_token(engine):
    token = InMemoryToken("REWARD")
    token.mint(engine.address, REWARD_FUNDING)
    return token


@pytest.fixture
def pool_id(engine, stake_token, reward_token):
    """Pool emitting 1 UNIT per second with a 1 second lock."""
    return engine.add_pool("admin", stake_token, reward_token, UNIT, 1)


@pytest.fixture
def fund(engine, stake_token):
    """Mint staking tokens to an account and approve the engine for them."""
    def _fund(account: str, amount: int, token: InMemoryToken = None) -> None:
        token = token or stake_token
        token.mint(account, amount)
        token.approve(account, engine.address, token.allowance(account, engine.address) + amount)
    return _fund

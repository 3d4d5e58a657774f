"""
stakepools/tests/test_engine.py

Tests for stakepools/engine.py and the small components it wires together
(access control, reentrancy guard, event log).
"""

import threading
import time

import pytest

from stakepools import (
    AlreadyInitialized,
    AssetTransferFailed,
    ConfigError,
    EngineConfig,
    EventLog,
    EventType,
    ReentrantCall,
    StakingEngine,
    StakingEvent,
    Unauthorized,
    ZeroAmount,
)
from stakepools.access import AccessControl, Permission
from stakepools.assets import InMemoryToken
from stakepools.guard import ReentrancyGuard

from conftest import UNIT, create_test_config


# ============================================================================
# INITIALIZATION
# ============================================================================

class TestInitialize:
    """Tests for StakingEngine.initialize."""

    def test_initialize_once(self, clock):
        engine = StakingEngine(owner="admin", clock=clock)
        assert not engine.initialized

        engine.initialize("admin", create_test_config(max_multiplier=9))
        assert engine.initialized
        assert engine.config.max_multiplier == 9

        with pytest.raises(AlreadyInitialized):
            engine.initialize("admin", EngineConfig())
        assert engine.config.max_multiplier == 9

    def test_requires_admin(self, clock):
        engine = StakingEngine(owner="admin", clock=clock)
        with pytest.raises(Unauthorized):
            engine.initialize("mallory")
        assert not engine.initialized

    def test_invalid_config_rejected(self, clock):
        engine = StakingEngine(owner="admin", clock=clock)
        with pytest.raises(ConfigError):
            engine.initialize("admin", EngineConfig(multiplier_ramp_duration=0))
        assert not engine.initialized

    def test_defaults_when_no_config_given(self, clock):
        engine = StakingEngine(owner="admin", clock=clock)
        engine.initialize("admin")
        assert engine.config == EngineConfig()

    def test_components_share_config(self, engine):
        assert engine.boost.config is engine.config
        assert engine.referrals.config is engine.config

    def test_owner_required(self):
        with pytest.raises(ValueError):
            StakingEngine(owner="")


# ============================================================================
# ADMINISTRATION
# ============================================================================

class TestAdministration:
    """Tests for the engine-level administrative operations."""

    def test_set_nft_boost_rate(self, engine):
        engine.set_nft_boost_rate("admin", 25)
        assert engine.config.nft_boost_rate == 25

        event = engine.events.of_type(EventType.NFT_BOOST_RATE_UPDATED)[-1]
        assert event.data == {"previous": 10, "nft_boost_rate": 25}

    def test_set_nft_boost_rate_validation(self, engine):
        with pytest.raises(Unauthorized):
            engine.set_nft_boost_rate("mallory", 25)
        with pytest.raises(ValueError):
            engine.set_nft_boost_rate("admin", -1)
        assert engine.config.nft_boost_rate == 10

    def test_distribute_governance_tokens(self, engine, governance_token):
        governance_token.mint(engine.address, 1000)
        engine.distribute_governance_tokens("admin", "alice", 300)

        assert governance_token.balance_of("alice") == 300
        assert governance_token.balance_of(engine.address) == 700
        event = engine.events.of_type(EventType.GOVERNANCE_DISTRIBUTED)[-1]
        assert event.account == "alice"
        assert event.data["amount"] == 300

    def test_distribute_governance_tokens_failures(self, engine, governance_token):
        with pytest.raises(Unauthorized):
            engine.distribute_governance_tokens("mallory", "mallory", 1)
        with pytest.raises(ZeroAmount):
            engine.distribute_governance_tokens("admin", "alice", 0)
        with pytest.raises(AssetTransferFailed):
            engine.distribute_governance_tokens("admin", "alice", 1)
        assert engine.events.of_type(EventType.GOVERNANCE_DISTRIBUTED) == []

    def test_distribute_without_governance_token(self, clock):
        engine = StakingEngine(owner="admin", clock=clock)
        engine.initialize("admin")
        with pytest.raises(AssetTransferFailed):
            engine.distribute_governance_tokens("admin", "alice", 1)

    def test_transfer_ownership(self, engine, pool_id):
        engine.transfer_ownership("admin", "treasury")
        assert engine.owner == "treasury"

        with pytest.raises(Unauthorized):
            engine.set_reward_rate("admin", pool_id, 1)
        engine.set_reward_rate("treasury", pool_id, 1)

        event = engine.events.of_type(EventType.OWNERSHIP_TRANSFERRED)[-1]
        assert event.account == "treasury"
        assert event.data["previous"] == "admin"

    def test_transfer_ownership_requires_admin(self, engine):
        with pytest.raises(Unauthorized):
            engine.transfer_ownership("mallory", "mallory")
        assert engine.owner == "admin"


# ============================================================================
# OBSERVABILITY
# ============================================================================

class TestObservability:
    """Events, rejection callbacks and read views."""

    def test_no_event_on_failure(self, engine, pool_id):
        before = len(engine.events)
        with pytest.raises(ZeroAmount):
            engine.stake("alice", pool_id, 0)
        assert len(engine.events) == before

    def test_rejection_callback(self, engine, pool_id):
        rejected = []
        engine.on_rejection(lambda op, err: rejected.append((op, err.code)))

        with pytest.raises(ZeroAmount):
            engine.stake("alice", pool_id, 0)
        assert rejected == [("stake", "zero_amount")]

    def test_failing_rejection_callback_does_not_mask_error(self, engine, pool_id):
        def broken(op, err):
            raise RuntimeError("boom")

        engine.on_rejection(broken)
        with pytest.raises(ZeroAmount):
            engine.stake("alice", pool_id, 0)

    def test_pending_reward_is_read_only(self, engine, clock, pool_id, fund):
        fund("alice", 1000 * UNIT)
        engine.stake("alice", pool_id, 1000 * UNIT)
        clock.advance(7)
        before = engine.pool_info(pool_id).snapshot()

        assert engine.pending_reward(pool_id, "alice") == 7 * UNIT
        assert engine.pending_reward(pool_id, "nobody") == 0
        assert engine.pool_info(pool_id) == before
        assert engine.ledger.get_record(pool_id, "nobody") is None

    def test_read_surface_returns_copies(self, engine, clock, pool_id, fund):
        """Mutating returned records does not touch engine state."""
        fund("alice", 10 * UNIT)
        returned = engine.stake("alice", pool_id, 10 * UNIT)
        returned.principal = 0

        pool = engine.pool_info(pool_id)
        pool.total_staked = 0
        pool.reward_rate_per_second = 0
        record = engine.stake_info(pool_id, "alice")
        record.principal = 10**30
        engine.stake_info(pool_id, "nobody").principal = 5

        assert engine.pool_info(pool_id).total_staked == 10 * UNIT
        assert engine.pool_info(pool_id).reward_rate_per_second == UNIT
        assert engine.stake_info(pool_id, "alice").principal == 10 * UNIT
        assert engine.ledger.get_record(pool_id, "nobody") is None

        clock.advance(1)
        remaining = engine.unstake("alice", pool_id, 4 * UNIT)
        remaining.principal = 0
        assert engine.stake_info(pool_id, "alice").principal == 6 * UNIT

    def test_config_info(self, engine):
        info = engine.config_info()
        assert info["max_multiplier"] == 5
        assert info["owner"] == "admin"
        assert info["paused"] is False
        assert info["initialized"] is True

    def test_snapshot(self, engine, clock, pool_id):
        snap = engine.snapshot()
        assert snap["address"] == engine.address
        assert snap["timestamp"] == clock.now()
        assert [p["pool_id"] for p in snap["pools"]] == [pool_id]
        assert snap["config"]["nft_boost_rate"] == 10


# ============================================================================
# COMPONENTS
# ============================================================================

class TestAccessControl:
    """Tests for AccessControl."""

    def test_owner_has_admin(self):
        access = AccessControl("admin")
        assert access.has_permission("admin", Permission.ADMIN)
        assert not access.has_permission("alice", Permission.ADMIN)
        assert not access.has_permission("", Permission.ADMIN)

    def test_check_raises(self):
        with pytest.raises(Unauthorized):
            AccessControl("admin").check("alice", Permission.ADMIN)

    def test_transfer_rejects_empty_owner(self):
        access = AccessControl("admin")
        with pytest.raises(ValueError):
            access.transfer_ownership("admin", "")
        assert access.owner == "admin"


class TestReentrancyGuard:
    """Tests for ReentrancyGuard."""

    def test_nested_hold_rejected(self):
        guard = ReentrancyGuard()
        with guard.hold("outer"):
            assert guard.locked
            with pytest.raises(ReentrantCall):
                with guard.hold("inner"):
                    pass
        assert not guard.locked

    def test_released_after_exception(self):
        guard = ReentrancyGuard()
        with pytest.raises(KeyError):
            with guard.hold("op"):
                raise KeyError("x")
        with guard.hold("op"):
            pass

    def test_other_thread_waits(self):
        guard = ReentrancyGuard()
        order = []

        def worker():
            with guard.hold("worker"):
                order.append("worker")

        with guard.hold("main"):
            t = threading.Thread(target=worker)
            t.start()
            time.sleep(0.05)
            order.append("main")
        t.join(timeout=5)

        assert order == ["main", "worker"]


class TestEventLog:
    """Tests for EventLog."""

    def test_bounded(self):
        log = EventLog(maxlen=3)
        for i in range(5):
            log.emit(StakingEvent(EventType.STAKED, timestamp=i))
        assert len(log) == 3
        assert [e.timestamp for e in log.tail(10)] == [2, 3, 4]
        assert [e.timestamp for e in log.tail(1)] == [4]
        assert log.tail(0) == []

    def test_subscribers(self):
        log = EventLog()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        log.subscribe(broken)
        log.subscribe(seen.append)
        log.emit(StakingEvent(EventType.PAUSED, timestamp=1))
        assert len(seen) == 1

        log.unsubscribe(seen.append)
        log.emit(StakingEvent(EventType.UNPAUSED, timestamp=2))
        assert len(seen) == 1

    def test_to_dict(self):
        event = StakingEvent(EventType.STAKED, 5, account="alice", pool_id=0, data={"amount": 1})
        assert event.to_dict() == {
            "event_type": "staked",
            "timestamp": 5,
            "account": "alice",
            "pool_id": 0,
            "data": {"amount": 1},
        }


class TestInMemoryToken:
    """Tests for the in-memory asset collaborators."""

    def test_transfer_from_needs_allowance(self):
        token = InMemoryToken("T")
        token.mint("alice", 100)
        assert not token.transfer_from("bob", "alice", "bob", 10)

        token.approve("alice", "bob", 30)
        assert token.transfer_from("bob", "alice", "carol", 10)
        assert token.allowance("alice", "bob") == 20
        assert token.balance_of("carol") == 10

    def test_insufficient_balance(self):
        token = InMemoryToken("T")
        token.mint("alice", 5)
        assert not token.transfer("alice", "bob", 6)
        assert token.balance_of("alice") == 5

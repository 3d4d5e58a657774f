"""
stakepools/tests/test_api_metrics.py

Unit tests for the read-only REST API and Prometheus metrics.
"""

import json

import pytest
import trio

from stakepools import ContractPaused, MetricsCollector, StakingEngine, ZeroAmount
from stakepools.api import Request, Response, StakingAPI, MAX_EVENTS_PER_QUERY

from conftest import UNIT


def create_test_request(path: str, query=None, **path_params) -> Request:
    """Create a GET request with pre-matched path parameters."""
    return Request(
        method="GET",
        path=path,
        query=query or {},
        headers={},
        body=b"",
        path_params={k: str(v) for k, v in path_params.items()},
    )


class RecordingStream:
    """Stream double that keeps everything sent to it."""

    def __init__(self):
        self.sent = b""

    async def send_all(self, data: bytes) -> None:
        self.sent += data


@pytest.fixture
def staked_engine(engine, clock, pool_id, fund):
    """Engine with alice staking 1000 UNIT for 5 seconds."""
    fund("alice", 1000 * UNIT)
    engine.stake("alice", pool_id, 1000 * UNIT)
    clock.advance(5)
    return engine


# ============================================================================
# METRICS
# ============================================================================

class TestMetricsCollector:
    """Test MetricsCollector class."""

    def test_counts_events(self, engine, pool_id, fund):
        """Completed operations are counted by event type."""
        metrics = MetricsCollector(engine)
        fund("alice", 10 * UNIT)
        engine.stake("alice", pool_id, 5 * UNIT)
        engine.stake("alice", pool_id, 5 * UNIT)

        assert metrics.get_stats()["operations"]["staked"] == 2

    def test_counts_rejections(self, engine, pool_id):
        """Rejected operations are counted by error code."""
        metrics = MetricsCollector(engine)
        with pytest.raises(ZeroAmount):
            engine.stake("alice", pool_id, 0)

        assert metrics.get_stats()["rejections"] == {"zero_amount": 1}

    def test_collect_prometheus_format(self, staked_engine, pool_id):
        """Test collecting metrics in Prometheus format."""
        metrics = MetricsCollector(staked_engine)
        staked_engine.claim_reward("alice", pool_id)

        output = metrics.collect()

        assert "# HELP stakepools_pools" in output
        assert "# TYPE stakepools_pools gauge" in output
        assert "stakepools_pools 1" in output
        assert "stakepools_paused 0" in output
        assert f'stakepools_pool_total_staked{{pool_id="0"}} {1000 * UNIT}' in output
        assert 'stakepools_operations_total{operation="reward_paid"} 1' in output
        assert "# TYPE stakepools_operations_total counter" in output

    def test_reset_counters(self, engine, pool_id):
        """Test resetting counters."""
        metrics = MetricsCollector(engine)
        engine.pause("admin")
        with pytest.raises(ContractPaused):
            engine.stake("alice", pool_id, 1)

        metrics.reset_counters()

        stats = metrics.get_stats()
        assert stats["operations"] == {}
        assert stats["rejections"] == {}
        assert stats["paused"] is True


# ============================================================================
# ROUTE HANDLERS
# ============================================================================

class TestStakingAPIRoutes:
    """Test StakingAPI route handlers."""

    def test_api_init(self, engine):
        api = StakingAPI(engine, host="127.0.0.1", port=8080)

        assert api.engine is engine
        assert api.host == "127.0.0.1"
        assert api.port == 8080
        assert api.metrics is not None

    def test_api_init_without_metrics(self, engine):
        assert StakingAPI(engine, enable_metrics=False).metrics is None

    def test_match_path(self, engine):
        api = StakingAPI(engine, enable_metrics=False)

        assert api._match_path("/pools/{pool_id}/stakes/{account}", "/pools/3/stakes/bob") == (
            True, {"pool_id": "3", "account": "bob"},
        )
        assert api._match_path("/pools/{pool_id}", "/pools/3/stakes") == (False, {})

    @pytest.mark.trio
    async def test_handle_health(self, engine):
        api = StakingAPI(engine)
        response = await api._handle_health(create_test_request("/health"))

        assert response.status == 200
        data = json.loads(response.body)
        assert data["status"] == "healthy"
        assert data["paused"] is False

    @pytest.mark.trio
    async def test_handle_health_uninitialized(self, clock):
        api = StakingAPI(StakingEngine(owner="admin", clock=clock))
        response = await api._handle_health(create_test_request("/health"))

        assert response.status == 503
        assert json.loads(response.body)["status"] == "uninitialized"

    @pytest.mark.trio
    async def test_handle_pools(self, staked_engine, pool_id):
        api = StakingAPI(staked_engine)

        response = await api._handle_get_pools(create_test_request("/pools"))
        data = json.loads(response.body)
        assert data["count"] == 1
        assert data["pools"][0]["total_staked"] == 1000 * UNIT

        response = await api._handle_get_pool(create_test_request("/pools/0", pool_id=pool_id))
        assert json.loads(response.body)["reward_asset"] == "REWARD"

    @pytest.mark.trio
    async def test_handle_pool_errors(self, engine, pool_id):
        api = StakingAPI(engine)

        response = await api._handle_get_pool(create_test_request("/pools/x", pool_id="x"))
        assert response.status == 400

        response = await api._handle_get_pool(create_test_request("/pools/9", pool_id=9))
        assert response.status == 404

    @pytest.mark.trio
    async def test_handle_stake_and_pending(self, staked_engine, pool_id):
        api = StakingAPI(staked_engine)

        response = await api._handle_get_stake(
            create_test_request("/pools/0/stakes/alice", pool_id=pool_id, account="alice")
        )
        assert json.loads(response.body)["principal"] == 1000 * UNIT

        response = await api._handle_get_pending(
            create_test_request("/pools/0/pending/alice", pool_id=pool_id, account="alice")
        )
        data = json.loads(response.body)
        assert data["pending_reward"] == 5 * UNIT
        assert data["account"] == "alice"

    @pytest.mark.trio
    async def test_handle_referral(self, engine):
        engine.set_referrer("bob", "alice")
        api = StakingAPI(engine)

        response = await api._handle_get_referral(create_test_request("/referrals/alice", account="alice"))
        data = json.loads(response.body)
        assert data["referrer"] is None
        assert data["referees"] == ["bob"]
        assert data["referral_rewards"] == engine.config.referral_bonus

    @pytest.mark.trio
    async def test_handle_events(self, staked_engine):
        api = StakingAPI(staked_engine)

        response = await api._handle_get_events(create_test_request("/events", query={"limit": ["1"]}))
        data = json.loads(response.body)
        assert data["count"] == 1
        assert data["events"][0]["event_type"] == "staked"

        response = await api._handle_get_events(create_test_request("/events", query={"limit": ["many"]}))
        assert response.status == 400

    @pytest.mark.trio
    async def test_route_request(self, engine, pool_id):
        api = StakingAPI(engine)

        response = await api._route_request(Request("GET", "/pools/0", {}, {}, b""))
        assert response.status == 200

        response = await api._route_request(Request("POST", "/pools", {}, {}, b""))
        assert response.status == 404

    @pytest.mark.trio
    async def test_handle_metrics_disabled(self, engine):
        api = StakingAPI(engine, enable_metrics=False)
        response = await api._handle_metrics(create_test_request("/metrics"))
        assert response.status == 404

    @pytest.mark.trio
    async def test_unavailable_status_line(self, clock):
        api = StakingAPI(StakingEngine(owner="admin", clock=clock))
        stream = RecordingStream()

        response = await api._handle_health(create_test_request("/health"))
        await api._send_response(stream, response)

        assert stream.sent.split(b"\r\n", 1)[0] == b"HTTP/1.1 503 Service Unavailable"

    def test_max_events_bound(self):
        assert MAX_EVENTS_PER_QUERY == 1000
        assert Response.error("nope").status == 400


# ============================================================================
# SERVER
# ============================================================================

class TestStakingAPIServer:
    """End-to-end HTTP over a local socket."""

    @pytest.mark.trio
    @pytest.mark.timeout(10)
    async def test_http_round_trip(self, staked_engine):
        api = StakingAPI(staked_engine, host="127.0.0.1", port=0)

        async with trio.open_nursery() as nursery:
            listeners = await nursery.start(api.start)
            port = listeners[0].socket.getsockname()[1]

            stream = await trio.open_tcp_stream("127.0.0.1", port)
            await stream.send_all(b"GET /pools/0/pending/alice HTTP/1.1\r\nHost: localhost\r\n\r\n")

            data = b""
            while True:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    break
                data += chunk
            await stream.aclose()

            nursery.cancel_scope.cancel()

        head, body = data.split(b"\r\n\r\n", 1)
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert json.loads(body)["pending_reward"] == 5 * UNIT

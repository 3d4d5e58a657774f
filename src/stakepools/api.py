"""
stakepools/api.py

Read-only REST API for the staking engine.

Exposes pool configuration and accumulator state, stake records,
pending rewards, referral lookups, recent events and Prometheus metrics.
State changes go through StakingEngine directly, never through HTTP.
"""

import json
import logging
import time
import trio
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

if TYPE_CHECKING:
    from .engine import StakingEngine

from .config import DEFAULT_API_HOST, DEFAULT_API_PORT
from .errors import InvalidPoolId, StakingError
from .metrics import MetricsCollector

logger = logging.getLogger("stakepools.api")

API_VERSION = "0.1.0"
MAX_EVENTS_PER_QUERY = 1000


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes
    path_params: Dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data, indent=2).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        """Create text response."""
        return cls(
            status=status,
            headers={"Content-Type": content_type},
            body=text.encode("utf-8"),
        )

    @classmethod
    def error(cls, message: str, status: int = 400) -> "Response":
        """Create error response."""
        return cls.json({"error": message}, status=status)


class StakingAPI:
    """
    REST API server for the staking engine.

    Usage:
        engine = StakingEngine(owner="admin")
        api = StakingAPI(engine, host="0.0.0.0", port=8545)

        trio.run(api.start)

        # API available at http://localhost:8545
    """

    def __init__(
        self,
        engine: "StakingEngine",
        host: str = DEFAULT_API_HOST,
        port: int = DEFAULT_API_PORT,
        enable_metrics: bool = True,
    ):
        """
        Initialize REST API server.

        Args:
            engine: StakingEngine instance to expose
            host: Host to bind to (default: localhost)
            port: Port to listen on
            enable_metrics: Enable Prometheus metrics endpoint
        """
        self.engine = engine
        self.host = host
        self.port = port
        self.enable_metrics = enable_metrics

        self.metrics = MetricsCollector(engine) if enable_metrics else None

        # Server state
        self._running = False
        self._start_time = time.time()

        # Route handlers
        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/config"): self._handle_config,
            ("GET", "/pools"): self._handle_get_pools,
            ("GET", "/pools/{pool_id}"): self._handle_get_pool,
            ("GET", "/pools/{pool_id}/stakes/{account}"): self._handle_get_stake,
            ("GET", "/pools/{pool_id}/pending/{account}"): self._handle_get_pending,
            ("GET", "/referrals/{account}"): self._handle_get_referral,
            ("GET", "/events"): self._handle_get_events,
            ("GET", "/metrics"): self._handle_metrics,
        }

    async def start(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """Start the API server."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Starting REST API server on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
                task_status=task_status,
            )
        except Exception as e:
            logger.error(f"API server error: {e}")
            self._running = False
            raise

    async def stop(self) -> None:
        """Stop the API server."""
        self._running = False
        logger.info("REST API server stopped")

    async def _handle_connection(self, stream: trio.SocketStream) -> None:
        """Handle incoming TCP connection."""
        try:
            request = await self._read_request(stream)
            if not request:
                return

            response = await self._route_request(request)
            await self._send_response(stream, response)

        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(stream, Response.error(str(e), status=500))
            except trio.BrokenResourceError:
                pass
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.SocketStream) -> Optional[Request]:
        """Read and parse HTTP request."""
        try:
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    return None
                data += chunk

            header_end = data.index(b"\r\n\r\n")
            header_data = data[:header_end].decode("utf-8")
            body = data[header_end + 4:]

            lines = header_data.split("\r\n")
            request_line = lines[0].split(" ")
            method = request_line[0]
            path_with_query = request_line[1] if len(request_line) > 1 else "/"

            parsed = urlparse(path_with_query)

            headers = {}
            for line in lines[1:]:
                if ":" in line:
                    key, value = line.split(":", 1)
                    headers[key.strip().lower()] = value.strip()

            content_length = int(headers.get("content-length", 0))
            while len(body) < content_length:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    break
                body += chunk

            return Request(
                method=method,
                path=parsed.path,
                query=parse_qs(parsed.query),
                headers=headers,
                body=body[:content_length] if content_length else body,
            )

        except (UnicodeDecodeError, ValueError, trio.BrokenResourceError) as e:
            logger.error(f"Error reading request: {e}")
            return None

    async def _send_response(self, stream: trio.SocketStream, response: Response) -> None:
        """Send HTTP response."""
        status_text = {
            200: "OK",
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }.get(response.status, "Unknown")

        lines = [f"HTTP/1.1 {response.status} {status_text}"]

        response.headers["Content-Length"] = str(len(response.body))
        response.headers["Connection"] = "close"
        response.headers["Server"] = f"stakepools/{API_VERSION}"

        for key, value in response.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        await stream.send_all(header_bytes + response.body)

    async def _route_request(self, request: Request) -> Response:
        """Route request to appropriate handler."""
        handler = self._routes.get((request.method, request.path))
        if handler:
            return await handler(request)

        for (method, pattern), handler in self._routes.items():
            if method != request.method:
                continue

            match, params = self._match_path(pattern, request.path)
            if match:
                request.path_params = params
                return await handler(request)

        return Response.error("Not Found", status=404)

    def _match_path(self, pattern: str, path: str) -> Tuple[bool, Dict[str, str]]:
        """Match path against pattern with parameters."""
        pattern_parts = pattern.split("/")
        path_parts = path.split("/")

        if len(pattern_parts) != len(path_parts):
            return False, {}

        params = {}
        for p_part, path_part in zip(pattern_parts, path_parts):
            if p_part.startswith("{") and p_part.endswith("}"):
                params[p_part[1:-1]] = path_part
            elif p_part != path_part:
                return False, {}

        return True, params

    def _pool_id_param(self, request: Request) -> Optional[int]:
        raw = request.path_params.get("pool_id", "")
        try:
            return int(raw)
        except ValueError:
            return None

    # ========== Route Handlers ==========

    async def _handle_root(self, request: Request) -> Response:
        """Handle root endpoint."""
        return Response.json({
            "name": "stakepools",
            "version": API_VERSION,
            "endpoints": list(f"{m} {p}" for (m, p) in self._routes.keys()),
        })

    async def _handle_health(self, request: Request) -> Response:
        """Handle health check."""
        is_healthy = self.engine.initialized
        return Response.json({
            "status": "healthy" if is_healthy else "uninitialized",
            "initialized": self.engine.initialized,
            "paused": self.engine.paused,
            "uptime_seconds": time.time() - self._start_time,
        }, status=200 if is_healthy else 503)

    async def _handle_config(self, request: Request) -> Response:
        """Handle configuration endpoint."""
        return Response.json(self.engine.config_info())

    async def _handle_get_pools(self, request: Request) -> Response:
        """Handle pool list endpoint."""
        pools = [pool.to_dict() for pool in self.engine.registry]
        return Response.json({"count": len(pools), "pools": pools})

    async def _handle_get_pool(self, request: Request) -> Response:
        """Handle single pool endpoint."""
        pool_id = self._pool_id_param(request)
        if pool_id is None:
            return Response.error("pool_id must be an integer", status=400)
        try:
            return Response.json(self.engine.pool_info(pool_id).to_dict())
        except InvalidPoolId as e:
            return Response.error(str(e), status=404)

    async def _handle_get_stake(self, request: Request) -> Response:
        """Handle stake record endpoint."""
        pool_id = self._pool_id_param(request)
        if pool_id is None:
            return Response.error("pool_id must be an integer", status=400)
        account = request.path_params.get("account", "")
        try:
            return Response.json(self.engine.stake_info(pool_id, account).to_dict())
        except InvalidPoolId as e:
            return Response.error(str(e), status=404)

    async def _handle_get_pending(self, request: Request) -> Response:
        """Handle pending reward endpoint."""
        pool_id = self._pool_id_param(request)
        if pool_id is None:
            return Response.error("pool_id must be an integer", status=400)
        account = request.path_params.get("account", "")
        try:
            pending = self.engine.pending_reward(pool_id, account)
        except InvalidPoolId as e:
            return Response.error(str(e), status=404)
        except StakingError as e:
            return Response.error(f"{e.code}: {e}", status=409)
        return Response.json({
            "pool_id": pool_id,
            "account": account,
            "pending_reward": pending,
        })

    async def _handle_get_referral(self, request: Request) -> Response:
        """Handle referral lookup endpoint."""
        account = request.path_params.get("account", "")
        return Response.json({
            "account": account,
            "referrer": self.engine.referrer_of(account),
            "referral_rewards": self.engine.referral_rewards(account),
            "referees": self.engine.referrals.get_referees(account),
        })

    async def _handle_get_events(self, request: Request) -> Response:
        """Handle recent events endpoint."""
        limit = 100
        limit_param = request.query.get("limit", [])
        if limit_param:
            try:
                limit = int(limit_param[0])
            except ValueError:
                return Response.error("limit must be an integer", status=400)
        limit = max(0, min(limit, MAX_EVENTS_PER_QUERY))

        events = [e.to_dict() for e in self.engine.events.tail(limit)]
        return Response.json({"count": len(events), "events": events})

    async def _handle_metrics(self, request: Request) -> Response:
        """Handle Prometheus metrics endpoint."""
        if not self.metrics:
            return Response.error("Metrics not enabled", status=404)

        return Response.text(
            self.metrics.collect(),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )

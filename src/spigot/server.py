"""HTTP service for the spigot faucet.

Endpoints:
- GET  /health: Liveness probe (200 if process is alive)
- GET  /ready: Readiness probe (200 if a faucet is deployed)
- GET  /metrics: Prometheus metrics endpoint
- GET  /faucet: Faucet state
- GET  /faucet/accounts/{address}: Last drip block of an account
- POST /faucet/calls/{operation}: Run a faucet call
- POST /chain/advance: Advance the block height

This is a development host: the "caller" field of a call request is trusted
as given, so any client can act as any account, the owner included. Bind it
to a local interface only.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from aiohttp import web
from prometheus_client import REGISTRY, generate_latest

from spigot.persistence import HostStore
from spigot.runtime import MUTATING_OPERATIONS, ContractHost, ExecutionAborted

logger = logging.getLogger(__name__)


class ReadinessCheck(ABC):
    """A condition the service needs before it reports ready."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def check(self) -> str | None:
        """Return None when ready, otherwise the reason it is not."""
        ...


class FaucetDeployedCheck(ReadinessCheck):
    """Ready once the host has a faucet instance."""

    def __init__(self, host: ContractHost):
        self._host = host

    @property
    def name(self) -> str:
        return "faucet"

    async def check(self) -> str | None:
        return None if self._host.deployed else "faucet not deployed"


def _json_error(message: str, status: int, **extra) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


class FaucetServer:
    """HTTP server exposing the faucet, health and metrics endpoints.

    Parameters
    ----------
    host : ContractHost
        The contract host to serve.
    store : HostStore | None
        Where to persist host state after each change. Nothing is saved if None.
    bind_host : str
        Interface to bind to.
    port : int
        Port to bind to.
    """

    def __init__(
        self,
        host: ContractHost,
        store: HostStore | None = None,
        bind_host: str = "127.0.0.1",
        port: int = 8080,
    ):
        self._host = host
        self._store = store
        self._bind_host = bind_host
        self._port = port
        self._checks: list[ReadinessCheck] = [FaucetDeployedCheck(host)]
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def add_check(self, check: ReadinessCheck) -> None:
        """Add a readiness check."""
        self._checks.append(check)

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/faucet", self._handle_status)
        app.router.add_get("/faucet/accounts/{address}", self._handle_account)
        app.router.add_post("/faucet/calls/{operation}", self._handle_call)
        app.router.add_post("/chain/advance", self._handle_advance)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._bind_host, self._port)
        await self._site.start()

        logger.info(
            "Faucet server started",
            extra={"host": self._bind_host, "port": self._port},
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("Faucet server stopped")

    async def _save(self) -> None:
        if self._store is not None:
            await asyncio.to_thread(self._store.save, self._host.to_record())

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint (liveness probe)."""
        return web.json_response({"status": "ok"})

    async def _handle_ready(self, _request: web.Request) -> web.Response:
        """Handle /ready endpoint (readiness probe)."""
        checks = await self._check_readiness()
        ready = all(status == "ok" for status in checks.values())
        return web.json_response(
            {"status": "ok" if ready else "not_ready", "checks": checks},
            status=200 if ready else 503,
        )

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus)."""
        metrics = generate_latest(REGISTRY)
        return web.Response(
            body=metrics,
            content_type="text/plain",
            charset="utf-8",
        )

    async def _handle_status(self, _request: web.Request) -> web.Response:
        """Handle GET /faucet."""
        if not self._host.deployed:
            return _json_error("faucet not deployed", 404)
        faucet = self._host.faucet
        return web.json_response(
            {
                "contract": self._host.contract,
                "owner": faucet.get_owner(),
                "active": faucet.is_active(),
                "cooldown": faucet.get_cooldown(),
                "drip_amount": faucet.get_drip_amount(),
                "balance": self._host.contract_balance,
                "block_number": self._host.block_number,
            }
        )

    async def _handle_account(self, request: web.Request) -> web.Response:
        """Handle GET /faucet/accounts/{address}."""
        if not self._host.deployed:
            return _json_error("faucet not deployed", 404)
        address = request.match_info["address"]
        try:
            last_request = self._host.query(address, "last_request_of")
        except ValueError as e:
            return _json_error(str(e), 400)
        return web.json_response({"address": address, "last_request_of": last_request})

    async def _handle_call(self, request: web.Request) -> web.Response:
        """Handle POST /faucet/calls/{operation}."""
        operation = request.match_info["operation"]
        if operation not in MUTATING_OPERATIONS:
            return _json_error(f"Unknown operation: {operation}", 404)
        if not self._host.deployed:
            return _json_error("faucet not deployed", 404)

        try:
            body = await request.json()
        except ValueError:
            return _json_error("Request body must be JSON", 400)
        if not isinstance(body, dict) or "caller" not in body:
            return _json_error("Request body must include 'caller'", 400)
        args = body.get("args", [])
        if not isinstance(args, list):
            return _json_error("'args' must be a list", 400)

        try:
            result = self._host.call(body["caller"], operation, *args)
        except (ValueError, TypeError) as e:
            return _json_error(str(e), 400)
        except ExecutionAborted as e:
            logger.error("Call aborted", extra={"operation": operation, "error": str(e)})
            return _json_error(str(e), 500)

        if not result.success:
            return web.json_response(result.to_dict(), status=409)
        await self._save()
        return web.json_response(result.to_dict())

    async def _handle_advance(self, request: web.Request) -> web.Response:
        """Handle POST /chain/advance."""
        try:
            body = await request.json()
        except ValueError:
            body = {}
        blocks = body.get("blocks", 1) if isinstance(body, dict) else 1
        if isinstance(blocks, bool) or not isinstance(blocks, int):
            return _json_error("'blocks' must be an integer", 400)
        try:
            new_height = self._host.advance_blocks(blocks)
        except ValueError as e:
            return _json_error(str(e), 400)
        await self._save()
        return web.json_response({"block_number": new_height})

    async def _check_readiness(self) -> dict[str, str]:
        """Run all readiness checks, mapping each name to "ok" or a reason."""
        checks: dict[str, str] = {}
        for check in self._checks:
            try:
                reason = await check.check()
            except Exception as e:
                logger.exception("Readiness check failed", extra={"check": check.name})
                reason = f"error: {type(e).__name__}: {e}"
            checks[check.name] = "ok" if reason is None else reason
        return checks

"""HTTP server lifecycle: listen, wait for a termination signal, drain, stop."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable
from enum import StrEnum
from typing import Any

from aiohttp import web

from cm_service.errors import BindError, LifecycleError, ShutdownTimeoutError
from cm_service.observability.http import Handler

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_SECONDS = 30.0
DEFAULT_KEEPALIVE_TIMEOUT_SECONDS = 20.0
TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Bound on aiohttp's own connection shutdown once the drain wait is over.
_FORCE_CLOSE_TIMEOUT_SECONDS = 0.5


class ServerState(StrEnum):
    CREATED = "created"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class InFlightRequests:
    """Counts requests currently being handled by the application."""

    def __init__(self) -> None:
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def count(self) -> int:
        return self._count

    def create_middleware(self) -> Any:
        @web.middleware
        async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
            self._count += 1
            self._idle.clear()
            try:
                return await handler(request)
            finally:
                self._count -= 1
                if self._count == 0:
                    self._idle.set()

        return middleware

    async def wait_idle(self, timeout: float) -> bool:
        """Wait until no request is in flight; False if `timeout` elapses first."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True


class ServerLifecycle:
    """Owns the listener of an aiohttp application and its graceful shutdown.

    Example usage::

        lifecycle = ServerLifecycle(app, port=8080)

        # Start, block until SIGINT/SIGTERM, then drain and stop
        await lifecycle.serve()

        # Or drive it explicitly
        await lifecycle.start()
        ...
        await lifecycle.shutdown()
    """

    def __init__(
        self,
        app: web.Application,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
        keepalive_timeout_seconds: float = DEFAULT_KEEPALIVE_TIMEOUT_SECONDS,
    ) -> None:
        if grace_period_seconds <= 0:
            raise ValueError("grace_period_seconds must be > 0")

        self._app = app
        self._host = host
        self._port = port
        self._grace_period_seconds = grace_period_seconds
        self._keepalive_timeout_seconds = keepalive_timeout_seconds
        self._in_flight = InFlightRequests()
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._state = ServerState.CREATED

        app.middlewares.append(self._in_flight.create_middleware())

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def in_flight(self) -> int:
        return self._in_flight.count

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when binding port 0."""
        if self._runner is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple) and len(address) >= 2:
                    return int(address[1])
        return self._port

    async def start(self) -> None:
        """Bind the listener and start serving in the background.

        Raises:
            BindError: If the address cannot be bound. The lifecycle ends in
                `STOPPED`; bind failures are not retried.
        """
        self._check_transition(ServerState.CREATED, ServerState.LISTENING)

        runner = web.AppRunner(
            self._app,
            handle_signals=False,
            access_log=None,
            keepalive_timeout=self._keepalive_timeout_seconds,
            shutdown_timeout=_FORCE_CLOSE_TIMEOUT_SECONDS,
        )
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError as exc:
            await runner.cleanup()
            self._state = ServerState.STOPPED
            raise BindError(self._host, self._port, exc) from exc

        self._runner = runner
        self._site = site
        self._state = ServerState.LISTENING
        logger.info("http server listening on %s:%d", self._host, self.port)

    async def shutdown(self) -> None:
        """Stop accepting connections and drain in-flight requests.

        Raises:
            ShutdownTimeoutError: If requests are still running when the grace
                period elapses; they are cancelled before the error is raised.
        """
        if self._state in (ServerState.SHUTTING_DOWN, ServerState.STOPPED):
            return
        self._check_transition(ServerState.LISTENING, ServerState.SHUTTING_DOWN)
        runner, site = self._runner, self._site
        if runner is None or site is None:
            raise LifecycleError("server is listening without a runner")

        self._state = ServerState.SHUTTING_DOWN
        logger.info("http server is shutting down...")

        await site.stop()
        # Idle keep-alive connections close now; busy ones after their current response.
        if runner.server is not None:
            runner.server.pre_shutdown()
        drained = await self._in_flight.wait_idle(self._grace_period_seconds)
        pending = self._in_flight.count

        try:
            await runner.cleanup()
        finally:
            self._runner = None
            self._site = None
            self._state = ServerState.STOPPED

        if not drained:
            raise ShutdownTimeoutError(self._grace_period_seconds, pending)
        logger.info("http server stopped")

    async def serve(self, shutdown_trigger: Awaitable[Any] | None = None) -> None:
        """Start, wait for the shutdown trigger, then shut down.

        Without an explicit trigger the lifecycle waits for SIGINT or SIGTERM.
        Signal handlers are installed before the listener starts, so a signal
        delivered during startup is not lost.
        """
        if shutdown_trigger is not None:
            await self.start()
            await shutdown_trigger
            await self.shutdown()
            return

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in TERMINATION_SIGNALS:
            loop.add_signal_handler(sig, _on_signal, sig, stop)
        try:
            await self.start()
            await stop.wait()
        finally:
            for sig in TERMINATION_SIGNALS:
                loop.remove_signal_handler(sig)
        await self.shutdown()

    def _check_transition(self, expected: ServerState, target: ServerState) -> None:
        if self._state is not expected:
            raise LifecycleError(
                f"cannot move server from {self._state} to {target}; expected {expected}"
            )


def _on_signal(sig: signal.Signals, stop: asyncio.Event) -> None:
    logger.info("received %s", sig.name)
    stop.set()

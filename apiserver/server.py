"""Server Lifecycle: builds the app from a Config and runs it under uvicorn.

Invariants:
    - State runs uninitialized -> initialized -> listening -> shutting_down -> stopped
    - The listener binds the loopback interface only (127.0.0.1:{port})
    - Only the shutdown event (SIGINT under start()) ends serving; SIGTERM,
      SIGQUIT and SIGKILL are not intercepted
    - Shutdown is bounded by exit_timeout; past it the listening sockets and
      open connections are closed and the listener task is cancelled
    - Listener failures are logged, never raised out of serve()/start()

Design Decisions:
    - Shutdown expressed as an asyncio.Event passed into serve(): tests drive the
      lifecycle without real OS signals, start() maps SIGINT onto the event
    - uvicorn's own signal capture is disabled so SIGTERM keeps its default action
"""

import asyncio
import contextlib
import logging
import signal

import uvicorn

from apiserver.api.routing import build_app
from apiserver.config import Config
from apiserver.core.lifecycle import ServerState

LOOPBACK_HOST = "127.0.0.1"


class _Listener(uvicorn.Server):
    """uvicorn server that leaves process signals to its owner."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class Server:
    """Initialised, non-started HTTP server for a frozen Config."""

    def __init__(self, config: Config):
        self.state = ServerState.UNINITIALIZED
        self.logger = config.logger
        self.settings = config.settings
        self.logger.info("initialising")
        self.app = build_app(config)
        config.freeze()
        self._listener: _Listener | None = None
        self.state = ServerState.INITIALIZED

    @property
    def bound_port(self) -> int | None:
        """Port actually bound once listening (differs from settings.port when 0)."""
        if not self._listener or not self._listener.started:
            return None
        for server in self._listener.servers:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    def listener_config(self) -> uvicorn.Config:
        s = self.settings
        kwargs = {}
        # an idle keep-alive connection falls back to the read timeout
        if s.read_timeout:
            kwargs["timeout_keep_alive"] = s.read_timeout
        return uvicorn.Config(
            self.app,
            host=LOOPBACK_HOST,
            port=s.port,
            log_config=None,
            lifespan="off",
            timeout_graceful_shutdown=s.exit_timeout,
            **kwargs,
        )

    def start(self) -> None:
        """Serve until SIGINT, then shut down gracefully within exit_timeout."""
        asyncio.run(self._serve_until_interrupt())

    async def _serve_until_interrupt(self) -> None:
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        # SIGINT (Ctrl+C) only; SIGKILL, SIGQUIT or SIGTERM will not be caught
        loop.add_signal_handler(signal.SIGINT, shutdown.set)
        try:
            await self.serve(shutdown)
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    async def serve(self, shutdown: asyncio.Event) -> None:
        """Listen in a background task until ``shutdown`` is set, then stop."""
        if self.state is not ServerState.INITIALIZED:
            raise RuntimeError(f"cannot serve from state {self.state.value}")
        listener = _Listener(self.listener_config())
        self._listener = listener
        self.logger.info(
            "starting",
            extra={"port": self.settings.port, "state": ServerState.LISTENING.value},
        )
        task = asyncio.create_task(self._listen(listener))
        self.state = ServerState.LISTENING

        await shutdown.wait()
        # uvicorn skips its shutdown when asked to exit mid-startup
        while not (listener.started or task.done()):
            await asyncio.sleep(0.01)

        self.state = ServerState.SHUTTING_DOWN
        self.logger.info("stopping...", extra={"state": self.state.value})
        listener.should_exit = True
        # uvicorn drains connections for timeout_graceful_shutdown itself,
        # this bounds the wait should the drain overrun
        done, _ = await asyncio.wait({task}, timeout=self.settings.exit_timeout)
        if task not in done:
            self.logger.warning(
                "exit timeout elapsed before shutdown completed",
                extra={"timeout": self.settings.exit_timeout},
            )
            await self._force_close(listener, task)
        self.state = ServerState.STOPPED
        self.logger.info("stopped", extra={"state": self.state.value})

    async def _force_close(self, listener: _Listener, task: asyncio.Task) -> None:
        """Stop accepting, drop open connections and cancel the listener task."""
        listener.force_exit = True
        # the main loop polls should_exit, it may not have reached shutdown yet
        for server in getattr(listener, "servers", []):
            server.close()
        for connection in list(listener.server_state.connections):
            connection.shutdown()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _listen(self, listener: _Listener) -> None:
        try:
            await listener.serve()
        except (OSError, SystemExit) as e:
            # uvicorn exits via sys.exit(1) when the socket cannot be bound
            self.logger.error(
                f"listener failed: {e!r}", extra={"port": self.settings.port},
            )
            return
        if not listener.started:
            self.logger.error(
                "listener stopped before accepting connections",
                extra={"port": self.settings.port},
            )

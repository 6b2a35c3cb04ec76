"""
=============================================================================
APPLICATION
=============================================================================

The embedding surface: hand the App a registration callback, then run it.

    from minihttp import App, ok

    app = App()

    @app.endpoints
    def routes(router):
        router.get("/", lambda request: ok("Hello world"))

    app.run(port=3000)

=============================================================================
SHARED STATE
=============================================================================

State created once at startup can be handed to every connection's
registration callback:

    app = App(state=Database("app.db"))

    @app.endpoints
    def routes(router, db):
        router.get("/count", lambda request: ok(str(db.count())))

The object is shared as-is by all connection tasks. Making it safe for
concurrent use is up to its owner.

=============================================================================
"""

from dataclasses import replace
from typing import Any, Optional
import asyncio
import logging

from .config import ServerConfig
from .core.socket_server import ConnectionSupervisor, Endpoints, ServerError


logger = logging.getLogger(__name__)


class App:
    """
    An HTTP application: configuration, a registration callback and the
    supervisor that serves it.
    """

    def __init__(self, config: Optional[ServerConfig] = None, state: Optional[Any] = None):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().
            state: Shared application state passed to the callback.

        Raises:
            ValueError: The configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()
        self.state = state

        self._endpoints: Optional[Endpoints] = None
        self._supervisor: Optional[ConnectionSupervisor] = None

    def endpoints(self, callback: Endpoints) -> Endpoints:
        """
        Set the registration callback. Usable as a decorator.

        The callback receives an empty Router for every connection, plus
        the shared state when the App was given one.
        """
        self._endpoints = callback
        return callback

    @property
    def supervisor(self) -> Optional[ConnectionSupervisor]:
        """The running supervisor, None before serve()."""
        return self._supervisor

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound by the running supervisor."""
        return self._supervisor.bound_port if self._supervisor else None

    async def serve(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Serve on the current event loop until shutdown().

        Raises:
            RuntimeError: No registration callback was set.
            ServerError: The socket could not be bound or accept failed.
        """
        if self._endpoints is None:
            raise RuntimeError("No endpoints registered; call app.endpoints(callback) first")

        config = self.config
        if host is not None or port is not None:
            config = replace(
                config,
                host=config.host if host is None else host,
                port=config.port if port is None else port,
            )
            config.validate()

        self._supervisor = ConnectionSupervisor(config, self._endpoints, self.state)
        await self._supervisor.serve()

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Start the server (blocking) until Ctrl+C or shutdown().

        Raises:
            ServerError: The socket could not be bound or accept failed.
        """
        self._setup_logging()
        try:
            asyncio.run(self.serve(host, port))
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

    def shutdown(self) -> None:
        """Stop accepting connections. Safe from any thread."""
        if self._supervisor is not None:
            self._supervisor.shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("minihttp").setLevel(level)


def create_app(config: Optional[ServerConfig] = None, state: Optional[Any] = None) -> App:
    """
    Factory for App.

        app = create_app(ServerConfig.from_env())
    """
    return App(config, state)


__all__ = ["App", "create_app", "ServerError"]

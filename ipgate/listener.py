"""TLS listener for ipgate.

Wraps a programmatic uvicorn Server. Construction builds the SSLContext from
the ServerIdentity; bind() opens the listening socket. Connections are only
accepted once serve() is awaited, which the bootstrap sequencer allows only
after the access gate and routes are installed.

Uvicorn settings:
  proxy_headers=False       client address always comes from the socket peer;
                            X-Forwarded-For is never trusted
  access_log=False          the access gate logs every request itself
  limit_concurrency=100     HTTP 503 when exceeded
  backlog=50                OS connection queue depth
  timeout_keep_alive=5      Slow Loris mitigation
"""

from __future__ import annotations

import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI

from ipgate.config import ListenerConfig
from ipgate.constants import (
    UVICORN_BACKLOG,
    UVICORN_LIMIT_CONCURRENCY,
    UVICORN_TIMEOUT_KEEP_ALIVE,
)
from ipgate.errors import ListenerStartError
from ipgate.tls.credentials import ServerIdentity, create_ssl_context
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)


class TLSListener:
    """HTTPS listener owning the ServerIdentity for its lifetime."""

    def __init__(
        self,
        application: FastAPI,
        listener_config: ListenerConfig,
        identity: ServerIdentity,
    ) -> None:
        """Prepare the listener without binding.

        Raises:
            ListenerStartError: The certificate or key was rejected by OpenSSL.
        """
        self.host = listener_config.host
        self.requested_port = listener_config.port
        self._identity = identity
        ssl_context = create_ssl_context(identity, self.host, self.requested_port)

        self.uvicorn_config = uvicorn.Config(
            application,
            host=self.host,
            port=self.requested_port,
            proxy_headers=False,
            access_log=False,
            server_header=False,
            limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
            backlog=UVICORN_BACKLOG,
            timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
        )
        # load() would build its own context from ssl_certfile; ours comes from
        # the in-memory identity instead. The ASGI scheme is read from the TLS
        # transport, so requests still report https.
        self.uvicorn_config.load()
        self.uvicorn_config.ssl = ssl_context

        self.server = uvicorn.Server(self.uvicorn_config)
        self.socket: Optional[socket.socket] = None

    @property
    def port(self) -> int:
        """Actual bound port (differs from the requested one when that was 0)."""
        if self.socket is None:
            return self.requested_port
        return self.socket.getsockname()[1]

    def bind(self) -> socket.socket:
        """Open the listening socket.

        Raises:
            ListenerStartError: The address could not be bound.
        """
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        try:
            self.socket = socket.create_server(
                (self.host, self.requested_port),
                family=family,
                backlog=UVICORN_BACKLOG,
            )
        except OSError as exc:
            raise ListenerStartError(self.host, self.requested_port, exc) from exc

        logger.info("HTTPS listener bound", host=self.host, port=self.port)
        return self.socket

    async def serve(self) -> None:
        """Accept connections until the server is told to exit."""
        if self.socket is None:
            raise RuntimeError("TLSListener.serve() called before bind()")
        await self.server.serve(sockets=[self.socket])

    def shutdown(self) -> None:
        """Ask a running serve() to finish gracefully."""
        self.server.should_exit = True

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None

# booktracker/core/lifecycle.py

"""Startup and shutdown harness.

Boot steps report an `Outcome` instead of exiting the process, so the
decision to exit is made once, by `booktracker.main.run`.
"""
from __future__ import annotations

import asyncio
import errno
import os
import socket
from contextlib import asynccontextmanager
from dataclasses import dataclass

from booktracker.core.logging import get_logger


logger = get_logger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class Outcome:
    ok: bool
    exit_code: int = 0
    reason: str | None = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str, exit_code: int = 1) -> "Outcome":
        return cls(ok=False, exit_code=exit_code, reason=reason)


def prepare(settings) -> Outcome:
    """Checks everything that must hold before the listener is bound."""
    try:
        os.makedirs(settings.uploads_dir, exist_ok=True)
    except OSError as exc:
        logger.error("Error creating uploads directory: %s", exc)
        return Outcome.failure(f"Cannot create uploads directory: {exc}")

    if not settings.mongodb_uri:
        logger.error("MongoDB connection string is missing. Please set MONGODB_URI in your .env file")
        return Outcome.failure("MongoDB connection string is missing")

    return Outcome.success()


def bind_listener(host: str, port: int) -> tuple[Outcome, socket.socket | None]:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        logger.error("Server error: %s", exc)
        if exc.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
            return Outcome.failure(f"Port {port} is already in use"), None
        return Outcome.failure(f"Cannot bind {host}:{port}: {exc}"), None
    sock.set_inheritable(True)
    return Outcome.success(), sock


class Lifecycle:
    """
    FastAPI lifespan owning the database connection.

    The connection attempt runs in a worker thread while requests are
    already being served. A failed attempt stops the server with exit code 1.
    """

    def __init__(self, connector, shutdown_timeout: float = SHUTDOWN_TIMEOUT_SECONDS):
        self.connector = connector
        self.shutdown_timeout = shutdown_timeout
        self.server = None
        self.exit_code = 0
        self._connect_task: asyncio.Task | None = None

    @asynccontextmanager
    async def lifespan(self, app):
        self._connect_task = asyncio.create_task(self._connect())
        try:
            yield
        finally:
            await self._shutdown()

    async def _connect(self):
        outcome = await asyncio.to_thread(self.connector.connect)
        if not outcome.ok:
            self.exit_code = outcome.exit_code
            if self.server is not None:
                self.server.should_exit = True
        return outcome

    async def _shutdown(self):
        if self._connect_task is not None:
            # Bounded by the driver's server selection timeout
            outcome = await self._connect_task
            if not outcome.ok:
                return
        try:
            outcome = await asyncio.wait_for(
                asyncio.to_thread(self.connector.close), timeout=self.shutdown_timeout
            )
        except asyncio.TimeoutError:
            logger.error("Timed out closing the MongoDB connection")
            outcome = Outcome.failure("Close timed out")
        self.exit_code = outcome.exit_code

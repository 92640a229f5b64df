# booktracker/database.py

import enum
import threading
from typing import Callable

from fastapi import HTTPException, Request
from pymongo import MongoClient, monitoring
from pymongo.database import Database
from pymongo.errors import OperationFailure, PyMongoError

from booktracker.config import DEFAULT_DATABASE, redact_uri
from booktracker.core.errors import DatabaseUnavailableError
from booktracker.core.lifecycle import Outcome
from booktracker.core.logging import get_logger


logger = get_logger(__name__)

# AuthenticationFailed, and the code Atlas answers bad credentials with
AUTH_FAILURE_CODES = {18, 8000}


class ConnectionState(str, enum.Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class ConnectionEvent(str, enum.Enum):
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


Observer = Callable[["MongoConnector", object], None]


def is_auth_failure(exc: BaseException | None) -> bool:
    return isinstance(exc, OperationFailure) and exc.code in AUTH_FAILURE_CODES


# -------------------------------
# Driver Monitoring
# -------------------------------

class _DriverListener(monitoring.ServerHeartbeatListener, monitoring.TopologyListener):
    """
    Forwards pymongo monitoring events to the owning connector.
    Called from the driver's monitor threads.
    """
    def __init__(self, connector: "MongoConnector"):
        self.connector = connector

    def started(self, event):
        pass

    def succeeded(self, event):
        pass

    def failed(self, event):
        # Heartbeat failure; `reply` holds the exception
        self.connector.notify_error(event.reply)

    def opened(self, event):
        pass

    def description_changed(self, event):
        had_server = event.previous_description.has_readable_server()
        has_server = event.new_description.has_readable_server()
        if had_server and not has_server:
            self.connector.notify_disconnected()
        elif has_server and not had_server:
            self.connector.notify_reconnected()

    def closed(self, event):
        pass


# -------------------------------
# Connector
# -------------------------------

class MongoConnector:
    """
    Owns the process's single MongoDB client.

    `connect()` makes exactly one attempt; there is no retry. Once connected,
    lifecycle events are dispatched to the observers registered with `on()`.
    """

    def __init__(
        self,
        uri: str | None,
        *,
        server_selection_timeout_ms: int = 5000,
        socket_timeout_ms: int = 45000,
        database_name: str = DEFAULT_DATABASE,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ):
        self.uri = uri
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.socket_timeout_ms = socket_timeout_ms
        self.database_name = database_name
        self.client_factory = client_factory
        self.client = None
        self._state = ConnectionState.UNCONNECTED
        self._observers: dict[ConnectionEvent, list[Observer]] = {e: [] for e in ConnectionEvent}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "MongoConnector":
        return cls(
            settings.mongodb_uri,
            server_selection_timeout_ms=settings.server_selection_timeout_ms,
            socket_timeout_ms=settings.socket_timeout_ms,
            database_name=settings.database_name,
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def database(self) -> Database:
        if self.client is None or self._state not in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED):
            raise DatabaseUnavailableError(f"Database is {self._state.value}")
        return self.client.get_default_database(default=self.database_name)

    # ---- observers ----

    def on(self, event: ConnectionEvent, callback: Observer):
        with self._lock:
            self._observers[ConnectionEvent(event)].append(callback)
        return callback

    def emit(self, event: ConnectionEvent, payload=None):
        with self._lock:
            callbacks = list(self._observers[event])
        for callback in callbacks:
            try:
                callback(self, payload)
            except Exception:
                logger.exception("Observer for %s event failed", event.value)

    def notify_error(self, exc: BaseException | None):
        self.emit(ConnectionEvent.ERROR, exc)

    def notify_disconnected(self):
        with self._lock:
            if self._state != ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.DISCONNECTED
        self.emit(ConnectionEvent.DISCONNECTED)

    def notify_reconnected(self):
        with self._lock:
            if self._state != ConnectionState.DISCONNECTED:
                return
            self._state = ConnectionState.CONNECTED
        self.emit(ConnectionEvent.CONNECTED)

    def _register_default_observers(self):
        self.on(ConnectionEvent.CONNECTED, _log_connected)
        self.on(ConnectionEvent.ERROR, _log_error)
        self.on(ConnectionEvent.DISCONNECTED, _log_disconnected)

    # ---- lifecycle ----

    def connect(self) -> Outcome:
        logger.info("Attempting to connect to MongoDB...")
        if not self.uri:
            logger.error("MongoDB connection string is missing. Please set MONGODB_URI in your .env file")
            return Outcome.failure("MongoDB connection string is missing")

        with self._lock:
            if self._state != ConnectionState.UNCONNECTED:
                return Outcome.failure(f"Cannot connect while {self._state.value}")
            self._state = ConnectionState.CONNECTING

        logger.info("Connecting to MongoDB at: %s", redact_uri(self.uri))
        client = None
        try:
            client = self.client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                socketTimeoutMS=self.socket_timeout_ms,
                event_listeners=[_DriverListener(self)],
            )
            client.admin.command("ping")
        except PyMongoError as exc:
            logger.error("MongoDB Initial Connection Error: %s", exc)
            if is_auth_failure(exc):
                logger.error("Authentication failed. Please check your MongoDB credentials.")
            else:
                logger.error("Please make sure MongoDB is installed and running on your system.")
            if client is not None:
                client.close()
            with self._lock:
                self._state = ConnectionState.UNCONNECTED
            return Outcome.failure(f"Initial connection failed: {exc}")

        with self._lock:
            self.client = client
            self._state = ConnectionState.CONNECTED
        self._register_default_observers()
        self.emit(ConnectionEvent.CONNECTED)
        return Outcome.success()

    def close(self) -> Outcome:
        try:
            if self.client is not None:
                self.client.close()
        except Exception as exc:
            logger.error("Error during MongoDB disconnection: %s", exc)
            return Outcome.failure(f"Close failed: {exc}")
        with self._lock:
            self._state = ConnectionState.CLOSED
        logger.info("MongoDB connection closed through app termination")
        return Outcome.success()


# -------------------------------
# Default Observers
# -------------------------------

def _log_connected(connector: MongoConnector, payload):
    logger.info("MongoDB Connected Successfully")


def _log_error(connector: MongoConnector, exc):
    logger.error("MongoDB Connection Error: %s", exc)
    if is_auth_failure(exc):
        logger.error("Authentication failed. Please check your MongoDB credentials.")
        logger.error("Make sure your username and password are correct in the connection string.")


def _log_disconnected(connector: MongoConnector, payload):
    logger.warning("MongoDB Disconnected")


# -------------------------------
# FastAPI Dependency
# -------------------------------

def get_db(request: Request) -> Database:
    connector: MongoConnector = request.app.state.connector
    try:
        return connector.database
    except DatabaseUnavailableError:
        raise HTTPException(status_code=503, detail="Database not connected")

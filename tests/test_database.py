# tests/test_database.py

import functools
import logging
from types import SimpleNamespace

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from booktracker.core.errors import DatabaseUnavailableError
from booktracker.database import ConnectionEvent, ConnectionState, MongoConnector
from conftest import TEST_URI, FakeMongoClient


def _description(readable):
    return SimpleNamespace(has_readable_server=lambda: readable)


def _topology_change(before, after):
    return SimpleNamespace(previous_description=_description(before), new_description=_description(after))


def _listener(connector):
    return connector.client.options["event_listeners"][0]


def test_missing_uri_fails_without_creating_client():
    calls = []
    connector = MongoConnector(None, client_factory=lambda *a, **kw: calls.append(a))
    outcome = connector.connect()
    assert not outcome.ok
    assert outcome.exit_code == 1
    assert calls == []
    assert connector.state is ConnectionState.UNCONNECTED


def test_connect_passes_timeouts_and_logs_redacted_uri(caplog):
    caplog.set_level(logging.INFO)
    connector = MongoConnector(
        TEST_URI,
        server_selection_timeout_ms=5000,
        socket_timeout_ms=45000,
        client_factory=FakeMongoClient,
    )
    outcome = connector.connect()
    assert outcome.ok
    assert connector.state is ConnectionState.CONNECTED
    assert connector.client.options["serverSelectionTimeoutMS"] == 5000
    assert connector.client.options["socketTimeoutMS"] == 45000
    assert connector.client.admin.commands == ["ping"]
    assert "****:****@db.example.com:27017/booktracker" in caplog.text
    assert "s3cret" not in caplog.text
    assert "MongoDB Connected Successfully" in caplog.text


def test_initial_failure_is_terminal(caplog):
    factory = functools.partial(FakeMongoClient, error=ServerSelectionTimeoutError("no servers"))
    connector = MongoConnector(TEST_URI, client_factory=factory)
    outcome = connector.connect()
    assert not outcome.ok
    assert outcome.exit_code == 1
    assert connector.state is ConnectionState.UNCONNECTED
    assert connector.client is None
    assert "Please make sure MongoDB is installed and running" in caplog.text


def test_initial_auth_failure_logs_credential_hint(caplog):
    factory = functools.partial(FakeMongoClient, error=OperationFailure("bad auth", code=18))
    outcome = MongoConnector(TEST_URI, client_factory=factory).connect()
    assert not outcome.ok
    assert "Authentication failed" in caplog.text


def test_database_unavailable_before_connect():
    connector = MongoConnector(TEST_URI, client_factory=FakeMongoClient)
    with pytest.raises(DatabaseUnavailableError):
        connector.database


def test_database_uses_configured_name(connector):
    assert connector.database.name == "booktracker"


def test_error_event_is_logged_but_not_fatal(connector, caplog):
    _listener(connector).failed(SimpleNamespace(reply=OperationFailure("bad auth", code=8000)))
    assert connector.state is ConnectionState.CONNECTED
    assert "MongoDB Connection Error" in caplog.text
    assert "Make sure your username and password are correct" in caplog.text


def test_disconnect_is_logged_and_not_retried(connector, caplog):
    _listener(connector).description_changed(_topology_change(True, False))
    assert connector.state is ConnectionState.DISCONNECTED
    assert "MongoDB Disconnected" in caplog.text
    # The handle stays usable; the driver may recover on its own
    assert connector.database is not None


def test_driver_recovery_emits_connected(connector):
    seen = []
    connector.on(ConnectionEvent.CONNECTED, lambda c, payload: seen.append(c.state))
    listener = _listener(connector)
    listener.description_changed(_topology_change(True, False))
    listener.description_changed(_topology_change(False, True))
    assert seen == [ConnectionState.CONNECTED]


def test_observers_registered_before_connect_are_notified():
    events = []
    connector = MongoConnector(TEST_URI, client_factory=FakeMongoClient)
    connector.on(ConnectionEvent.CONNECTED, lambda c, payload: events.append("connected"))
    connector.connect()
    assert events == ["connected"]


def test_failing_observer_does_not_block_others(connector, caplog):
    seen = []

    def broken(c, payload):
        raise RuntimeError("observer blew up")

    connector.on(ConnectionEvent.ERROR, broken)
    connector.on(ConnectionEvent.ERROR, lambda c, payload: seen.append(payload))
    connector.notify_error(ValueError("x"))
    assert len(seen) == 1
    assert "observer blew up" in caplog.text


def test_close_success(connector):
    client = connector.client
    outcome = connector.close()
    assert outcome.ok and outcome.exit_code == 0
    assert client.closed
    assert connector.state is ConnectionState.CLOSED
    with pytest.raises(DatabaseUnavailableError):
        connector.database


def test_close_failure_exits_with_one():
    factory = functools.partial(FakeMongoClient, close_error=RuntimeError("stuck"))
    connector = MongoConnector(TEST_URI, client_factory=factory)
    connector.connect()
    outcome = connector.close()
    assert not outcome.ok
    assert outcome.exit_code == 1

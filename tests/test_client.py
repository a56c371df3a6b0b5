"""End-to-end tests of VipxClient against a fake device."""
import asyncio
import contextlib

import pytest

from conftest import FakeDevice, FakeWriter, encode, settle, wait_for

from vipx import (
    ConnectionLostError,
    ConnectionStatus,
    HandshakeError,
    HandshakeState,
    RpcProtocolError,
    RpcTimeoutError,
    VipxClient,
)
from vipx.connection import Connection
from vipx.transport import TcpTransport

DEVICE = {
    "handshake": {"server_selected_version": 2},
    "get_displays": {"displays": [{"id": 1, "name": "Main"}]},
    "get_layouts": {"layouts": [{"id": 10, "name": "Quad"}]},
    "get_snapshots": {"snapshots": [{"id": 3, "name": "Show A"}, {"id": 5, "name": "Show B"}]},
    "get_windows": {"windows": [{"id": 1, "name": "W1"}, {"id": 2, "name": "W2"}]},
    "get_display_inputs": {"inputs": [{"id": 7, "name": "Cam 7"}]},
    "load_snapshot": {},
    "set_display_layout": {},
}


@contextlib.asynccontextmanager
async def running(handlers=None, silent=(), flat=(), reconnect=False, **client_kwargs):
    device = FakeDevice(DEVICE if handlers is None else handlers, silent=silent, flat=flat)
    await device.start()
    client = VipxClient("127.0.0.1", device.port, reconnect=reconnect, **client_kwargs)
    client.start()
    try:
        yield device, client
    finally:
        await client.stop()
        await device.close()


@pytest.mark.asyncio
async def test_handshake_then_cache_primed():
    async with running(flat=("handshake", "get_displays")) as (device, client):
        version = await client.wait_ready(timeout=2)
        await wait_for(lambda: 1 in client.windows)

        assert version == 2
        assert client.handshake_version == "2"
        assert client.protocol_version == 2
        assert client.status is ConnectionStatus.OK
        assert client.state is HandshakeState.READY
        assert device.methods()[0] == "handshake"
        assert device.received[0]["params"] == {"client_supported_versions": [1, 2]}
        assert [(d.id, d.name) for d in client.displays] == [(1, "Main")]
        assert [w.name for w in client.windows[1]] == ["W1", "W2"]
        assert [i.id for i in client.inputs[1]] == [7]
        assert [s.id for s in client.snapshots] == [3, 5]


@pytest.mark.asyncio
async def test_call_made_before_handshake_is_sent_after_it():
    async with running() as (device, client):
        await client.load_snapshot(snapshot_id=3)

        methods = device.methods()
        assert methods.index("handshake") < methods.index("load_snapshot")
        request = device.received[methods.index("load_snapshot")]
        assert request["params"] == {"snapshot": {"id": 3}}
        assert client.last_snapshot_loaded == "id:3"


@pytest.mark.asyncio
async def test_ping_answered_and_notifications_applied():
    async with running() as (device, client):
        await client.wait_ready(timeout=2)
        await wait_for(lambda: len(client.snapshots) == 2)

        await device.push({"jsonrpc": "2.0", "id": 42, "method": "ping"})
        await wait_for(lambda: {"jsonrpc": "2.0", "id": 42, "result": "pong"} in device.received)

        await device.push({"jsonrpc": "2.0", "method": "notify_delete_snapshot", "params": {"snapshot": {"id": 5}}})
        await wait_for(lambda: [s.id for s in client.snapshots] == [3])


@pytest.mark.asyncio
async def test_malformed_line_does_not_break_the_connection():
    async with running() as (device, client):
        await client.wait_ready(timeout=2)

        await device.push_raw(b"this is not json\r\n")
        await device.push({"jsonrpc": "2.0", "id": 43, "method": "ping"})
        await wait_for(lambda: any(m.get("id") == 43 and m.get("result") == "pong" for m in device.received))

        assert client.connected


@pytest.mark.asyncio
async def test_set_display_layout_clear_sends_null():
    async with running() as (device, client):
        await client.set_display_layout({"id": 1}, None)

        request = device.received[device.methods().index("set_display_layout")]
        assert request["params"] == {"display": {"id": 1}, "layout": None}


@pytest.mark.asyncio
async def test_server_error_is_raised():
    async with running() as (device, client):
        with pytest.raises(RpcProtocolError, match="no_such_method -> Method not found"):
            await client.call("no_such_method")


@pytest.mark.asyncio
async def test_unanswered_call_times_out():
    async with running(silent=("get_status",), request_timeout=0.2) as (device, client):
        await client.wait_ready(timeout=2)

        with pytest.raises(RpcTimeoutError, match="RPC timeout: get_status"):
            await client.call("get_status")


@pytest.mark.asyncio
async def test_disconnect_rejects_pending_calls():
    async with running(silent=("get_status",)) as (device, client):
        await client.wait_ready(timeout=2)
        pending = asyncio.ensure_future(client.call("get_status"))
        await wait_for(lambda: "get_status" in device.methods())

        await device.close()

        with pytest.raises(ConnectionLostError, match="get_status -> connection lost"):
            await pending
        await wait_for(lambda: client.status is ConnectionStatus.DISCONNECTED)
        assert not client.connected
        assert client.handshake_version == ""


@pytest.mark.asyncio
async def test_missing_version_is_a_connection_failure():
    handlers = dict(DEVICE, handshake={})
    async with running(handlers) as (device, client):
        statuses = []
        client.add_status_listener(lambda status, message: statuses.append(status))

        with pytest.raises(HandshakeError):
            await client.wait_ready(timeout=2)

        assert client.status is ConnectionStatus.CONNECTION_FAILURE
        assert ConnectionStatus.CONNECTION_FAILURE in statuses
        assert "get_displays" not in device.methods()


@pytest.mark.asyncio
async def test_stop_rejects_queued_calls():
    client = VipxClient(reconnect=False)
    writer = FakeWriter()
    client.connection_made(Connection(None, writer))
    queued = asyncio.ensure_future(client.call("get_layouts"))
    await settle()

    await client.stop()

    with pytest.raises(ConnectionLostError):
        await queued
    assert writer.methods() == ["handshake"]
    assert client.status is ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_data_from_stale_connection_is_dropped():
    client = VipxClient(reconnect=False)
    old, new = FakeWriter(), FakeWriter()
    old_connection = Connection(None, old)
    client.connection_made(old_connection)
    await settle()
    client.connection_made(Connection(None, new))
    await settle()

    client.data_received(old_connection, encode({"jsonrpc": "2.0", "id": 2, "result": {"server_selected_version": 2}}))
    await settle()

    assert not client.handshake_complete
    await client.stop()


@pytest.mark.asyncio
async def test_load_snapshot_needs_exactly_one_selector():
    client = VipxClient(reconnect=False)

    with pytest.raises(ValueError):
        await client.load_snapshot()
    with pytest.raises(ValueError):
        await client.load_snapshot(snapshot_id=1, name="Show A")


@pytest.mark.asyncio
async def test_reconnect_repeats_handshake_on_new_connection(monkeypatch):
    monkeypatch.setattr(TcpTransport, "RECONNECT_BASE_DELAY", 0.01)
    async with running(reconnect=True) as (device, client):
        await client.wait_ready(timeout=2)

        device.writers[0].close()
        await wait_for(lambda: device.methods().count("handshake") == 2)
        await client.wait_ready(timeout=2)

        handshake_ids = [m["id"] for m in device.received if m.get("method") == "handshake"]
        assert handshake_ids[1] > handshake_ids[0]
        assert len(device.writers) == 2
        assert client.state is HandshakeState.READY
        assert client.status is ConnectionStatus.OK


@pytest.mark.asyncio
async def test_update_config_moves_to_new_device():
    second = FakeDevice(DEVICE)
    await second.start()
    try:
        async with running() as (device, client):
            await client.wait_ready(timeout=2)

            await client.update_config("127.0.0.1", second.port)
            await client.wait_ready(timeout=2)

            assert client.port == second.port
            assert second.methods()[0] == "handshake"
            assert second.received[0]["id"] > 1
            assert device.methods().count("handshake") == 1
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_response_with_null_method_is_matched_by_id():
    client = VipxClient(reconnect=False)
    writer = FakeWriter()
    connection = Connection(None, writer)
    client.connection_made(connection)
    await settle()

    client.data_received(
        connection,
        encode({"jsonrpc": "2.0", "id": 1, "method": None, "result": {"server_selected_version": 2}}),
    )
    await settle()

    assert client.handshake_complete
    await client.stop()


@pytest.mark.asyncio
async def test_wait_primed_reports_initial_refresh():
    async with running() as (device, client):
        await client.wait_ready(timeout=2)

        assert await client.wait_primed()
        assert [d.name for d in client.displays] == ["Main"]
        assert device.methods().count("get_displays") == 1

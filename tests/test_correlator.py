"""Tests for request ids, response matching and deadlines."""
import asyncio

import pytest

from vipx.correlator import RpcCorrelator
from vipx.errors import (
    ConnectionLostError,
    RpcProtocolError,
    RpcTimeoutError,
    TransportError,
)


@pytest.mark.asyncio
async def test_ids_start_at_one_and_increase(connection, writer):
    correlator = RpcCorrelator()
    for method in ("handshake", "get_displays", "get_layouts"):
        correlator.send(connection, method)

    assert [f["id"] for f in writer.frames()] == [1, 2, 3]
    assert correlator.pending_count == 3


@pytest.mark.asyncio
async def test_request_frame(connection, writer):
    correlator = RpcCorrelator()
    correlator.send(connection, "get_windows", {"display": {"id": 1}})
    correlator.send(connection, "get_layouts")

    frames = writer.frames()
    assert frames[0] == {"jsonrpc": "2.0", "id": 1, "method": "get_windows", "params": {"display": {"id": 1}}}
    assert "params" not in frames[1]


@pytest.mark.asyncio
async def test_resolves_with_full_response(connection):
    correlator = RpcCorrelator()
    future = correlator.send(connection, "get_displays")
    response = {"jsonrpc": "2.0", "id": 1, "result": {"displays": []}}

    assert correlator.handle_response(response)
    assert await future == response
    assert not correlator.is_pending(1)


@pytest.mark.asyncio
async def test_out_of_order_responses(connection):
    correlator = RpcCorrelator()
    first = correlator.send(connection, "get_displays")
    second = correlator.send(connection, "get_layouts")

    correlator.handle_response({"id": 2, "result": "b"})
    correlator.handle_response({"id": 1, "result": "a"})

    assert (await first)["result"] == "a"
    assert (await second)["result"] == "b"


@pytest.mark.asyncio
async def test_error_response_uses_server_message(connection):
    correlator = RpcCorrelator()
    future = correlator.send(connection, "load_snapshot")
    correlator.handle_response({"id": 1, "error": {"code": -32000, "message": "no such snapshot"}})

    with pytest.raises(RpcProtocolError) as exc_info:
        await future
    assert str(exc_info.value) == "load_snapshot -> no such snapshot"
    assert exc_info.value.error["code"] == -32000


@pytest.mark.asyncio
async def test_error_response_without_message(connection):
    correlator = RpcCorrelator()
    future = correlator.send(connection, "load_snapshot")
    correlator.handle_response({"id": 1, "error": {"code": -1}})

    with pytest.raises(RpcProtocolError, match=r"^load_snapshot -> error$"):
        await future


@pytest.mark.asyncio
async def test_unmatched_id_is_dropped(connection):
    correlator = RpcCorrelator()
    future = correlator.send(connection, "get_displays")

    assert not correlator.handle_response({"id": 99, "result": {}})
    assert not correlator.handle_response({"id": [1], "result": {}})
    assert not future.done()
    assert correlator.pending_count == 1


@pytest.mark.asyncio
async def test_timeout_names_the_method(connection):
    correlator = RpcCorrelator(timeout=0.05)
    future = correlator.send(connection, "get_snapshots")

    with pytest.raises(RpcTimeoutError, match="RPC timeout: get_snapshots"):
        await future
    assert correlator.pending_count == 0


@pytest.mark.asyncio
async def test_late_response_after_timeout_is_dropped(connection):
    correlator = RpcCorrelator(timeout=0.05)
    future = correlator.send(connection, "get_snapshots")
    with pytest.raises(RpcTimeoutError):
        await future

    assert not correlator.handle_response({"id": 1, "result": {}})


@pytest.mark.asyncio
async def test_response_cancels_deadline(connection):
    correlator = RpcCorrelator(timeout=0.05)
    future = correlator.send(connection, "get_layouts")
    correlator.handle_response({"id": 1, "result": {}})

    await asyncio.sleep(0.1)
    assert future.exception() is None


@pytest.mark.asyncio
async def test_write_failure_rejects_immediately(connection, writer):
    writer.fail = True
    correlator = RpcCorrelator()
    future = correlator.send(connection, "get_layouts")

    with pytest.raises(TransportError):
        await future
    assert correlator.pending_count == 0


@pytest.mark.asyncio
async def test_reject_all(connection):
    correlator = RpcCorrelator()
    futures = [correlator.send(connection, m) for m in ("get_displays", "get_layouts")]

    assert correlator.reject_all(ConnectionLostError) == 2
    for future in futures:
        with pytest.raises(ConnectionLostError, match="connection lost"):
            await future

"""Shared fixtures for the VIP-X client tests."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import pytest

from vipx.connection import Connection
from vipx.correlator import RpcCorrelator
from vipx.lifecycle import ConnectionLifecycle


class FakeWriter:
    """Stands in for asyncio.StreamWriter and records every write."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False
        self.fail = False

    def write(self, data: bytes) -> None:
        if self.fail:
            raise OSError("broken pipe")
        self.buffer.extend(data)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    def frames(self) -> list[dict[str, Any]]:
        text = self.buffer.decode("utf-8")
        return [json.loads(line) for line in text.split("\r\n") if line]

    def methods(self) -> list[str]:
        return [f.get("method") for f in self.frames()]

    def request(self, method: str) -> dict[str, Any]:
        """Last request sent for ``method``."""
        for frame in reversed(self.frames()):
            if frame.get("method") == method:
                return frame
        raise AssertionError(f"{method} was never sent (sent: {self.methods()})")


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks and future callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def encode(message: dict[str, Any]) -> bytes:
    return json.dumps(message).encode("utf-8") + b"\r\n"


@pytest.fixture
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture
def connection(writer: FakeWriter) -> Connection:
    return Connection(None, writer, peer="test")


async def make_ready_lifecycle(
    connection: Connection,
    writer: FakeWriter,
    version: int = 2,
    on_ready: Optional[Callable[[int], None]] = None,
) -> tuple[RpcCorrelator, ConnectionLifecycle]:
    """Lifecycle that has completed its handshake on ``connection``."""
    correlator = RpcCorrelator()
    lifecycle = ConnectionLifecycle(correlator, on_ready=on_ready)
    lifecycle.connecting()
    lifecycle.connection_made(connection)
    await settle()

    handshake = writer.request("handshake")
    correlator.handle_response(
        {"jsonrpc": "2.0", "id": handshake["id"], "result": {"server_selected_version": version}}
    )
    await settle()
    assert lifecycle.is_ready
    return correlator, lifecycle


class FakeDevice:
    """
    Minimal VIP-X peer served with asyncio.start_server.

    ``handlers`` maps a method name to a result object, a response dict
    carrying "error", or a callable(params) returning either. Unknown
    methods get an error. Methods listed in ``silent`` get no reply and
    methods listed in ``flat`` are answered with the result members at the
    top level of the response.
    """

    def __init__(
        self,
        handlers: dict[str, Any],
        silent: tuple[str, ...] = (),
        flat: tuple[str, ...] = (),
    ) -> None:
        self.handlers = handlers
        self.silent = set(silent)
        self.flat = set(flat)
        self.received: list[dict[str, Any]] = []
        self.writers: list[asyncio.StreamWriter] = []
        self.server: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def start(self) -> None:
        self.server = await asyncio.start_server(self._serve, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        for w in self.writers:
            w.close()
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()

    def methods(self) -> list[str]:
        return [m.get("method") for m in self.received]

    async def push_raw(self, data: bytes) -> None:
        for w in self.writers:
            w.write(data)
            await w.drain()

    async def push(self, message: dict[str, Any]) -> None:
        """Send a server-initiated message on every open connection."""
        for w in self.writers:
            w.write(encode(message))
            await w.drain()

    async def _serve(self, reader: asyncio.StreamReader, w: asyncio.StreamWriter) -> None:
        self.writers.append(w)
        while True:
            try:
                line = await reader.readline()
            except ConnectionError:
                break
            if not line:
                break
            message = json.loads(line)
            self.received.append(message)
            if "method" not in message or message["method"] in self.silent:
                continue

            handler = self.handlers.get(message["method"])
            if callable(handler):
                handler = handler(message.get("params"))
            if handler is None:
                response = {"error": {"code": -32601, "message": "Method not found"}}
            elif "error" in handler:
                response = dict(handler)
            elif message["method"] in self.flat:
                response = dict(handler)
            else:
                response = {"result": handler}
            response.update({"jsonrpc": "2.0", "id": message["id"]})
            w.write(encode(response))
            await w.drain()


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it is true."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)

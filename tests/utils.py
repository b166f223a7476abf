"""Shared fake collaborators for toolrelay tests."""

from __future__ import annotations

import asyncio
from typing import Any

from toolrelay.mcp.types import ToolDescriptor, ToolResult, TransportOptions
from toolrelay.tools.confirmation import ConfirmationRequest, ConfirmationResult


class FakeConnection:
    """In-memory tool connection recording every call."""

    def __init__(self, tools: list[ToolDescriptor] | None = None, name: str = "conn") -> None:
        self.name = name
        self.tools = tools or []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        self.results: dict[str, ToolResult] = {}
        # When set, call_tool blocks until the event fires
        self.block: asyncio.Event | None = None
        self.started = 0

    @property
    def is_connected(self) -> bool:
        return not self.closed

    async def list_tools(self) -> list[ToolDescriptor]:
        return list(self.tools)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append((name, arguments))
        self.started += 1
        if self.block is not None:
            await self.block.wait()
        return self.results.get(name, ToolResult.from_text(f"{name} ok"))


class FakeTransportFactory:
    """Hands out FakeConnections; an open can be held back with a gate."""

    def __init__(self, tools: list[ToolDescriptor] | None = None) -> None:
        self.tools = tools or []
        self.opened: list[FakeConnection] = []
        self.closed: list[FakeConnection] = []
        self.open_calls: list[tuple[str, str | None, TransportOptions | None]] = []
        self.fail_open: Exception | None = None
        self.fail_close: Exception | None = None
        self.gates: list[asyncio.Event] = []

    async def open(
        self,
        credential: str,
        resume_context: str | None = None,
        options: TransportOptions | None = None,
    ) -> FakeConnection:
        self.open_calls.append((credential, resume_context, options))
        if self.gates:
            await self.gates.pop(0).wait()
        if self.fail_open is not None:
            raise self.fail_open
        connection = FakeConnection(self.tools, name=f"conn-{len(self.opened) + 1}")
        self.opened.append(connection)
        return connection

    async def close(self, connection: FakeConnection) -> None:
        connection.closed = True
        self.closed.append(connection)
        if self.fail_close is not None:
            raise self.fail_close


class RecordingHandler:
    """Interactive confirmation handler with a canned answer."""

    def __init__(self, result: ConfirmationResult | None = None, interactive: bool = True) -> None:
        self.result = result or ConfirmationResult(allowed=True)
        self.interactive = interactive
        self.requests: list[tuple[str, ConfirmationRequest]] = []
        # When set, request_confirmation blocks until the event fires
        self.block: asyncio.Event | None = None

    async def request_confirmation(
        self, stream_id: str, request: ConfirmationRequest
    ) -> ConfirmationResult:
        self.requests.append((stream_id, request))
        if self.block is not None:
            await self.block.wait()
        return self.result

    def is_interactive(self) -> bool:
        return self.interactive



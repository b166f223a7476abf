"""Session registry: one tool-server connection per conversation.

The registry is the only owner of connection handles. Callers refer to a
session by its key and never see the connection itself.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from toolrelay.logging import TRACE, VERBOSE, get_logger
from toolrelay.mcp.media import ResultProcessor
from toolrelay.mcp.transport import ToolConnection, TransportFactory
from toolrelay.mcp.types import (
    SessionInfo,
    SessionOutcome,
    ToolDescriptor,
    ToolResult,
    TransportOptions,
)

log = get_logger("mcp.registry")


@dataclass
class SessionNotFound(Exception):
    """No live session exists under the key. Never retried internally."""

    session_key: str

    def __str__(self) -> str:
        return f"No MCP session found for key: {self.session_key}"


@dataclass
class TransportFailure(Exception):
    """The transport collaborator failed to open, list, dispatch or close."""

    message: str
    session_key: str | None = None
    operation: str | None = None

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation} failed: {self.message}"
        return self.message


@dataclass
class _Session:
    connection: ToolConnection
    generation: int
    created_at: float = field(default_factory=time.time)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SessionRegistry:
    """Keyed collection of open tool-server connections.

    ``create_session`` and ``destroy_session`` are the only mutators. Each
    bumps a per-key generation counter before it suspends; an open that
    completes after a newer mutation started is closed instead of
    registered, so the most recently started request wins and superseded
    connections never leak.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        result_processor: ResultProcessor | None = None,
    ) -> None:
        self._transport_factory = transport_factory
        self._result_processor = result_processor
        self._sessions: dict[str, _Session] = {}
        self._generations: dict[str, int] = {}

    def _bump_generation(self, key: str) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def _require(self, key: str) -> _Session:
        session = self._sessions.get(key)
        if session is None:
            log.error(
                "No session found for %r (active: %s)", key, list(self._sessions)
            )
            raise SessionNotFound(key)
        return session

    async def _close(self, key: str, connection: ToolConnection) -> str | None:
        """Close a connection, returning the error message instead of raising."""
        try:
            await self._transport_factory.close(connection)
        except Exception as e:
            log.warning("Error closing connection for session %r: %s", key, e)
            return _describe(e)
        return None

    async def create_session(
        self,
        key: str,
        credential: str,
        resume_context: str | None = None,
        options: TransportOptions | None = None,
    ) -> SessionOutcome:
        """Open a connection under ``key``, replacing any existing one.

        Args:
            key: Caller-chosen session key, unique per conversation
            credential: Opaque bearer token for the tool server
            resume_context: Opaque resume payload forwarded to the transport
            options: Extra transport options (client mode, user id, ...)

        Returns:
            SessionOutcome; on failure nothing is registered under ``key``.
        """
        generation = self._bump_generation(key)

        existing = self._sessions.pop(key, None)
        if existing is not None:
            log.debug("Replacing existing session %r", key)
            await self._close(key, existing.connection)

        log.log(VERBOSE, "Creating session %r (generation %d)", key, generation)
        try:
            connection = await self._transport_factory.open(credential, resume_context, options)
        except Exception as e:
            log.error("Transport creation failed for session %r: %s", key, e)
            return SessionOutcome(success=False, error=_describe(e))

        if self._generations.get(key) != generation:
            log.warning("Session %r was superseded while opening; closing it", key)
            await self._close(key, connection)
            return SessionOutcome(
                success=False,
                error=f"Session {key!r} was superseded by a newer request",
            )

        self._sessions[key] = _Session(connection=connection, generation=generation)
        log.info("Session %r created", key)
        return SessionOutcome(success=True)

    async def list_tools(self, key: str) -> list[ToolDescriptor]:
        """Fetch the tool descriptors for a session. Never cached."""
        session = self._require(key)
        try:
            tools = await session.connection.list_tools()
        except Exception as e:
            log.error("Failed to list tools for session %r: %s", key, e)
            raise TransportFailure(_describe(e), session_key=key, operation="list_tools") from e

        log.debug("Listed %d tools for session %r", len(tools), key)
        return tools

    async def call_tool(
        self,
        key: str,
        name: str,
        args: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Dispatch a tool call on the session's connection.

        If a result processor is configured and recognises the result, the
        rewritten result is returned; a failing processor is logged and the
        raw result returned instead.
        """
        session = self._require(key)
        try:
            result = await session.connection.call_tool(name, args or {})
        except Exception as e:
            raise TransportFailure(
                _describe(e), session_key=key, operation=f"call_tool {name}"
            ) from e

        log.log(TRACE, "Result of %s on %r: %r", name, key, result)

        processor = self._result_processor
        if processor is None:
            return result

        try:
            if not processor.matches(result):
                return result
            return await processor.process(key, result)
        except Exception as e:
            log.warning("Result processing failed for %s on %r, returning raw result: %s", name, key, e)
            return result

    async def destroy_session(self, key: str) -> SessionOutcome:
        """Remove and close the session under ``key``. Idempotent.

        The entry is removed even when closing fails; the failure is
        reported through the outcome.
        """
        self._bump_generation(key)
        session = self._sessions.pop(key, None)
        if session is None:
            return SessionOutcome(success=True)

        error = await self._close(key, session.connection)
        if error is not None:
            return SessionOutcome(success=False, error=error)

        log.info("Session %r destroyed", key)
        return SessionOutcome(success=True)

    async def destroy_all_sessions(self) -> None:
        for key in self.active_sessions():
            await self.destroy_session(key)

    def get_session_info(self, key: str) -> SessionInfo:
        session = self._sessions.get(key)
        if session is None:
            return SessionInfo(exists=False)
        return SessionInfo(exists=True, is_connected=session.connection.is_connected)

    def has_session(self, key: str) -> bool:
        return key in self._sessions

    def active_sessions(self) -> list[str]:
        return list(self._sessions)

"""Binds sessions, tool building and the external streaming engine per turn.

The multi-step model loop itself lives in the host's ``StreamingEngine``.
This module only prepares what a turn needs (a live session, the turn's
cancellation token, the tool set) and hands it over.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from toolrelay.config.schema import BOOTSTRAP_TOOL, ToolsConfig
from toolrelay.config.secrets import ACCESS_TOKEN_KEY, RESUME_HISTORY_KEY, fetch_secret
from toolrelay.logging import get_logger
from toolrelay.mcp.registry import SessionRegistry, TransportFailure
from toolrelay.mcp.types import TransportOptions
from toolrelay.tools.builder import ToolAdapterBuilder, ToolSet, TurnContext
from toolrelay.tools.cancellation import CancellationToken
from toolrelay.tools.models import parse_model_id

log = get_logger("engine")

CHAT_CLIENT_NAME = "toolrelay"


@runtime_checkable
class CredentialsProvider(Protocol):
    """Supplies the opaque access token and resume payload."""

    def get_access_token(self) -> str | None: ...

    def get_resume_history(self) -> str | None: ...


class EnvCredentialsProvider:
    """Reads credentials from the environment or ``.env.secrets``."""

    def get_access_token(self) -> str | None:
        return fetch_secret(ACCESS_TOKEN_KEY)

    def get_resume_history(self) -> str | None:
        return fetch_secret(RESUME_HISTORY_KEY)


@dataclass
class StreamRequest:
    """Everything the streaming engine needs to run one turn."""

    stream_id: str
    session_key: str
    model_id: str
    messages: list[dict[str, Any]]
    tools: Mapping[str, Any]
    max_steps: int
    cancellation: CancellationToken


@runtime_checkable
class StreamingEngine(Protocol):
    """Host-supplied multi-step model loop."""

    async def run(self, request: StreamRequest) -> Any: ...


@dataclass
class SessionContext:
    """Result of ``initialize_session``."""

    success: bool
    context: str | None = None
    error: str | None = None


@dataclass
class Turn:
    """A running turn. ``abort()`` cancels it, ``wait()`` yields the result."""

    stream_id: str
    cancellation: CancellationToken
    tools: ToolSet | None
    task: asyncio.Task[Any] = field(repr=False)

    def abort(self, reason: str = "Stream aborted") -> None:
        log.info("Aborting turn %s", self.stream_id)
        self.cancellation.cancel(reason)
        self.task.cancel()

    async def wait(self) -> Any:
        return await self.task


class StreamOrchestrator:
    def __init__(
        self,
        registry: SessionRegistry,
        builder: ToolAdapterBuilder,
        credentials: CredentialsProvider,
        engine: StreamingEngine,
        config: ToolsConfig | None = None,
    ) -> None:
        self._registry = registry
        self._builder = builder
        self._credentials = credentials
        self._engine = engine
        self._config = config or ToolsConfig()

    async def ensure_session(
        self, session_key: str, options: TransportOptions | None = None
    ) -> None:
        """Create the session for ``session_key`` unless one already exists.

        Raises:
            TransportFailure: If no access token is available or the
                transport could not be opened
        """
        if self._registry.get_session_info(session_key).exists:
            return

        token = self._credentials.get_access_token()
        if not token:
            raise TransportFailure(
                "No access token available", session_key=session_key, operation="create_session"
            )

        log.debug("Initializing tool session %s", session_key)
        outcome = await self._registry.create_session(
            session_key,
            token,
            self._credentials.get_resume_history(),
            options,
        )
        if not outcome.success:
            raise TransportFailure(
                f"Failed to create MCP transport: {outcome.error}",
                session_key=session_key,
                operation="create_session",
            )

    async def initialize_session(
        self, session_key: str, model_id: str, provider: str | None = None
    ) -> SessionContext:
        """Run the bootstrap tool and return the context text it produces.

        ``provider`` defaults to the one named by (or inferred from) the
        model id. Failures are reported in the returned ``SessionContext``.
        """
        if provider is None:
            provider, _ = parse_model_id(model_id)
        log.debug("Initializing session %s for %s (%s)", session_key, model_id, provider)
        try:
            await self.ensure_session(session_key)

            model_name = model_id.rsplit("/", 1)[-1] or model_id
            args = {
                "llm_context": {
                    "model_family": provider,
                    "model_name": model_name,
                    "model_version": model_id,
                    "chat_client": CHAT_CLIENT_NAME,
                }
            }
            result = await self._registry.call_tool(session_key, BOOTSTRAP_TOOL, args)
        except Exception as e:
            log.error("Failed to initialize session %s: %s", session_key, e)
            return SessionContext(success=False, error=str(e) or type(e).__name__)

        texts = [
            part["text"]
            for part in result.content
            if part.get("type") == "text" and part.get("text")
        ]
        return SessionContext(success=True, context="\n\n".join(texts).strip())

    async def _build_tools(self, context: TurnContext) -> ToolSet | None:
        if not self._credentials.get_access_token():
            log.debug("No access token; turn %s runs without remote tools", context.stream_id)
            return None
        try:
            await self.ensure_session(context.session_key)
            return await self._builder.build(context)
        except Exception as e:
            log.error("Failed to build tools for session %s: %s", context.session_key, e)
            return None

    async def start_turn(
        self,
        session_key: str,
        model_id: str,
        messages: list[dict[str, Any]],
        provided_tools: Mapping[str, Any] | None = None,
        stream_id: str | None = None,
    ) -> Turn:
        """Prepare a turn and start the streaming engine on it.

        Remote tools override host-provided tools of the same name. Tool
        setup failures are logged and the turn goes ahead without them.
        """
        stream_id = stream_id or str(uuid.uuid4())
        cancellation = CancellationToken(name=stream_id)
        context = TurnContext(
            session_key=session_key,
            stream_id=stream_id,
            model_id=model_id,
            cancellation=cancellation,
            hidden_tools=frozenset(self._config.hidden_tools),
        )

        log.debug(
            "Starting turn %s on session %s (%s, %d messages)",
            stream_id,
            session_key,
            model_id,
            len(messages),
        )

        toolset = await self._build_tools(context)
        tools: dict[str, Any] = dict(provided_tools or {})
        if toolset is not None:
            tools.update(toolset)

        request = StreamRequest(
            stream_id=stream_id,
            session_key=session_key,
            model_id=model_id,
            messages=messages,
            tools=tools,
            max_steps=self._config.max_steps,
            cancellation=cancellation,
        )
        task = asyncio.create_task(self._engine.run(request), name=f"turn-{stream_id}")
        return Turn(stream_id=stream_id, cancellation=cancellation, tools=toolset, task=task)

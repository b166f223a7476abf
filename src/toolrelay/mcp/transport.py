"""Transport collaborator: opens and closes tool-server connections.

The registry only sees the ``TransportFactory`` / ``ToolConnection``
protocols. ``StdioTransportFactory`` is the default implementation; it
spawns the tool server as a subprocess and talks MCP over stdio using the
``mcp`` SDK.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from mcp import types
from mcp.client.session import ClientSession

from toolrelay.logging import get_logger
from toolrelay.mcp.types import ToolDescriptor, ToolResult, TransportOptions

if TYPE_CHECKING:
    from toolrelay.config.schema import TransportConfig

log = get_logger("mcp.transport")

SERVER_COMMAND_ENV = "TOOLRELAY_SERVER_COMMAND"


@runtime_checkable
class ToolConnection(Protocol):
    """An open connection to a tool server."""

    @property
    def is_connected(self) -> bool: ...

    async def list_tools(self) -> list[ToolDescriptor]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult: ...


@runtime_checkable
class TransportFactory(Protocol):
    """Host-supplied opener/closer of tool-server connections."""

    async def open(
        self,
        credential: str,
        resume_context: str | None = None,
        options: TransportOptions | None = None,
    ) -> ToolConnection: ...

    async def close(self, connection: ToolConnection) -> None: ...


def _expand_env_vars(env: dict[str, str]) -> dict[str, str]:
    """Expand ``${VAR}`` references in env values."""
    result = {}
    for key, value in env.items():
        if value.startswith("${") and value.endswith("}"):
            result[key] = os.environ.get(value[2:-1], "")
        else:
            result[key] = value
    return result


def build_server_env(
    credential: str,
    resume_context: str | None = None,
    options: TransportOptions | None = None,
    config: TransportConfig | None = None,
    base_env: dict[str, str] | None = None,
) -> dict[str, str]:
    """Environment for the tool server process.

    The resume payload and automation context are forwarded untouched.
    """
    env = dict(os.environ if base_env is None else base_env)
    if config is not None:
        env.update(_expand_env_vars(config.env))

    env["TOOLPLEX_API_KEY"] = credential
    env["CLIENT_NAME"] = config.client_name if config is not None else "toolrelay"

    options = options or TransportOptions()
    resume_history = options.resume_history or resume_context
    if resume_history:
        env["TOOLPLEX_SESSION_RESUME_HISTORY"] = resume_history
    if options.user_id:
        env["TOOLPLEX_USER_ID"] = options.user_id

    client_mode = options.client_mode or (config.client_mode if config is not None else None)
    if client_mode is not None:
        env["CLIENT_MODE"] = client_mode.value
    if options.automation_context is not None:
        env["AUTOMATION_CONTEXT"] = options.automation_context.to_json()

    return env


def convert_content(blocks: list[Any]) -> list[dict[str, Any]]:
    """Turn MCP content blocks into plain dicts."""
    content: list[dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, types.TextContent):
            content.append({"type": "text", "text": block.text})
        elif isinstance(block, types.ImageContent):
            content.append({"type": "image", "data": block.data, "mimeType": block.mimeType})
        elif isinstance(block, types.EmbeddedResource):
            res = block.resource
            content.append({
                "type": "resource",
                "uri": str(res.uri),
                "mimeType": res.mimeType,
                "text": getattr(res, "text", None),
                "blob": getattr(res, "blob", None),
            })
        elif hasattr(block, "model_dump"):
            content.append(block.model_dump(mode="json", by_alias=True, exclude_none=True))
        else:
            content.append({"type": "text", "text": str(block)})
    return content


@dataclass
class StdioConnection:
    """A ``ClientSession`` running over a stdio subprocess."""

    session: ClientSession | None = None
    _transport_context: Any = None

    @property
    def is_connected(self) -> bool:
        return self.session is not None

    async def list_tools(self) -> list[ToolDescriptor]:
        if self.session is None:
            raise RuntimeError("Connection is closed")
        result = await self.session.list_tools()
        return [
            ToolDescriptor(
                name=t.name,
                description=t.description,
                input_schema=t.inputSchema,
            )
            for t in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        if self.session is None:
            raise RuntimeError("Connection is closed")
        result = await self.session.call_tool(name, arguments)
        return ToolResult(
            content=convert_content(result.content),
            is_error=bool(result.isError),
            structured_content=result.structuredContent,
        )

    async def close(self) -> None:
        if self.session is not None:
            try:
                await self.session.__aexit__(None, None, None)
            except Exception as e:
                log.warning("Error closing MCP session: %s", e)
            self.session = None
        if self._transport_context is not None:
            try:
                await self._transport_context.__aexit__(None, None, None)
            except Exception as e:
                log.warning("Error closing stdio transport: %s", e)
            self._transport_context = None


class StdioTransportFactory:
    """Spawns the tool server and connects to it over stdio."""

    def __init__(self, config: TransportConfig | None = None) -> None:
        self._config = config

    def server_command(self) -> list[str]:
        """Resolve the server command from config or TOOLRELAY_SERVER_COMMAND.

        Raises:
            ValueError: If neither is set
        """
        if self._config is not None and self._config.command:
            return list(self._config.command)

        from_env = os.environ.get(SERVER_COMMAND_ENV)
        if from_env:
            return shlex.split(from_env)

        raise ValueError(
            f"No tool server command configured; set transport.command or {SERVER_COMMAND_ENV}"
        )

    async def open(
        self,
        credential: str,
        resume_context: str | None = None,
        options: TransportOptions | None = None,
    ) -> StdioConnection:
        from mcp.client.stdio import StdioServerParameters, stdio_client

        command = self.server_command()
        params = StdioServerParameters(
            command=command[0],
            args=command[1:],
            env=build_server_env(credential, resume_context, options, self._config),
        )

        connection = StdioConnection()
        try:
            transport_context = stdio_client(params)
            read_stream, write_stream = await transport_context.__aenter__()
            connection._transport_context = transport_context

            session = ClientSession(read_stream, write_stream)
            await session.__aenter__()
            connection.session = session
            await session.initialize()
        except Exception:
            await connection.close()
            raise

        log.info("Connected to tool server: %s", command[0])
        return connection

    async def close(self, connection: ToolConnection) -> None:
        if isinstance(connection, StdioConnection):
            await connection.close()

"""Tool-server sessions for toolrelay.

Example usage:

    registry = SessionRegistry(StdioTransportFactory(config.transport))
    outcome = await registry.create_session("chat-42", access_token)
    tools = await registry.list_tools("chat-42")
    result = await registry.call_tool("chat-42", "search", {"query": "weather"})
    await registry.destroy_session("chat-42")
"""

from toolrelay.mcp.media import (
    ImageExtractor,
    ResultProcessor,
)
from toolrelay.mcp.registry import (
    SessionNotFound,
    SessionRegistry,
    TransportFailure,
)
from toolrelay.mcp.transport import (
    StdioConnection,
    StdioTransportFactory,
    ToolConnection,
    TransportFactory,
)
from toolrelay.mcp.types import (
    AutomationContext,
    ClientMode,
    SessionInfo,
    SessionOutcome,
    ToolDescriptor,
    ToolResult,
    TransportOptions,
)

__all__ = [
    # Registry
    "SessionRegistry",
    "SessionNotFound",
    "TransportFailure",
    # Transport
    "TransportFactory",
    "ToolConnection",
    "StdioTransportFactory",
    "StdioConnection",
    # Result processing
    "ResultProcessor",
    "ImageExtractor",
    # Types
    "AutomationContext",
    "ClientMode",
    "SessionInfo",
    "SessionOutcome",
    "ToolDescriptor",
    "ToolResult",
    "TransportOptions",
]

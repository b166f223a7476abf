"""toolrelay: MCP tool sessions, argument repair and confirmation gating for streaming chat."""

__version__ = "0.1.0"

# Public API
from toolrelay.config import Config, get_config, load_config
from toolrelay.engine import (
    CredentialsProvider,
    EnvCredentialsProvider,
    SessionContext,
    StreamingEngine,
    StreamOrchestrator,
    StreamRequest,
    Turn,
)
from toolrelay.mcp import (
    ClientMode,
    ImageExtractor,
    SessionInfo,
    SessionNotFound,
    SessionOutcome,
    SessionRegistry,
    StdioTransportFactory,
    ToolDescriptor,
    ToolResult,
    TransportFactory,
    TransportFailure,
    TransportOptions,
)
from toolrelay.tools import (
    AutoApproveHandler,
    CancellationToken,
    ConfirmationGate,
    ConfirmationHandler,
    ConfirmationRequest,
    ConfirmationResult,
    ConfirmationType,
    ExecutionCancelled,
    InvocableTool,
    ToolAdapterBuilder,
    ToolSet,
    TurnContext,
)

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config",
    # Engine
    "StreamOrchestrator",
    "StreamingEngine",
    "StreamRequest",
    "Turn",
    "SessionContext",
    "CredentialsProvider",
    "EnvCredentialsProvider",
    # MCP sessions
    "SessionRegistry",
    "SessionNotFound",
    "TransportFailure",
    "TransportFactory",
    "StdioTransportFactory",
    "ImageExtractor",
    "ClientMode",
    "SessionInfo",
    "SessionOutcome",
    "ToolDescriptor",
    "ToolResult",
    "TransportOptions",
    # Tools
    "ToolAdapterBuilder",
    "ToolSet",
    "InvocableTool",
    "TurnContext",
    "CancellationToken",
    "ExecutionCancelled",
    "ConfirmationGate",
    "ConfirmationHandler",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationType",
    "AutoApproveHandler",
]

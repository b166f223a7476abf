"""Per-turn orchestration around an external streaming engine."""

from toolrelay.engine.orchestrator import (
    CredentialsProvider,
    EnvCredentialsProvider,
    SessionContext,
    StreamingEngine,
    StreamOrchestrator,
    StreamRequest,
    Turn,
)

__all__ = [
    "CredentialsProvider",
    "EnvCredentialsProvider",
    "SessionContext",
    "StreamingEngine",
    "StreamOrchestrator",
    "StreamRequest",
    "Turn",
]

"""The tool-invocation pipeline.

Schema cleaning and argument normalization, provider argument fixes,
confirm-before-execute gating, and two-level cancellation, tied together by
``ToolAdapterBuilder``.
"""

from toolrelay.tools.builder import (
    InvocableTool,
    ToolAdapterBuilder,
    ToolSet,
    TurnContext,
)
from toolrelay.tools.cancellation import (
    CancellationToken,
    ExecutionCancelled,
    ExecutionRegistry,
    PendingExecution,
)
from toolrelay.tools.compat import (
    DEFAULT_ARGUMENT_FIXES,
    ArgumentRename,
    apply_argument_fixes,
)
from toolrelay.tools.confirmation import (
    AutoApproveHandler,
    ConfirmationGate,
    ConfirmationHandler,
    ConfirmationRequest,
    ConfirmationResult,
    ConfirmationRule,
    ConfirmationType,
    PolicyConfirmationHandler,
    denial_message,
)
from toolrelay.tools.schema import (
    clean_tool_schema,
    normalize_arguments,
    resolve_schema_refs,
    restrict_schema,
)

__all__ = [
    # Builder
    "ToolAdapterBuilder",
    "ToolSet",
    "InvocableTool",
    "TurnContext",
    # Cancellation
    "CancellationToken",
    "ExecutionCancelled",
    "ExecutionRegistry",
    "PendingExecution",
    # Compat
    "ArgumentRename",
    "DEFAULT_ARGUMENT_FIXES",
    "apply_argument_fixes",
    # Confirmation
    "ConfirmationGate",
    "ConfirmationHandler",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationRule",
    "ConfirmationType",
    "AutoApproveHandler",
    "PolicyConfirmationHandler",
    "denial_message",
    # Schema
    "clean_tool_schema",
    "normalize_arguments",
    "resolve_schema_refs",
    "restrict_schema",
]

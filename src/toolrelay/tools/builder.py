"""Turns remote tool descriptors into callables for the streaming engine.

Each ``InvocableTool`` runs one call through the full pipeline:

    entry check -> register -> argument fixes -> normalize -> checkpoint
    -> confirmation (interactive hosts only) -> checkpoint -> dispatch

and always unregisters its pending execution on the way out.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolrelay.config.schema import BOOTSTRAP_TOOL, ToolsConfig
from toolrelay.logging import TRACE, get_logger
from toolrelay.mcp.types import ToolDescriptor, ToolResult
from toolrelay.tools.cancellation import (
    CancellationToken,
    ExecutionCancelled,
    ExecutionRegistry,
)
from toolrelay.tools.compat import (
    DEFAULT_ARGUMENT_FIXES,
    ArgumentRename,
    apply_argument_fixes,
)
from toolrelay.tools.confirmation import ConfirmationGate, denial_message
from toolrelay.tools.models import DEFAULT_RESTRICTED_PREFIXES, is_schema_restricted
from toolrelay.tools.schema import clean_tool_schema, normalize_arguments

if TYPE_CHECKING:
    from toolrelay.mcp.registry import SessionRegistry

log = get_logger("tools.builder")


@dataclass
class TurnContext:
    """Everything a tool call needs to know about the turn it belongs to."""

    session_key: str
    stream_id: str
    model_id: str
    cancellation: CancellationToken
    hidden_tools: frozenset[str] = frozenset({BOOTSTRAP_TOOL})
    # Called with (tool_name, final_arguments, was_edited) after an edited approval
    on_args_edited: Callable[[str, dict[str, Any], bool], None] | None = None


class InvocableTool:
    """One remote tool, bound to a session and a turn."""

    def __init__(
        self,
        descriptor: ToolDescriptor,
        context: TurnContext,
        registry: SessionRegistry,
        gate: ConfirmationGate,
        pending: ExecutionRegistry,
        argument_fixes: Iterable[ArgumentRename] = DEFAULT_ARGUMENT_FIXES,
        restricted: bool = False,
    ) -> None:
        self.name = descriptor.name
        self.description = descriptor.description or f"Tool: {descriptor.name}"
        self.raw_schema = descriptor.input_schema
        self.input_schema = clean_tool_schema(descriptor.input_schema, restricted=restricted)
        self._context = context
        self._registry = registry
        self._gate = gate
        self._pending = pending
        self._argument_fixes = tuple(argument_fixes)

    def to_function_spec(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }

    async def __call__(self, arguments: Any = None) -> ToolResult:
        """Run the call.

        Returns:
            The tool's result, a denial notice when the host said no, or an
            ``is_error`` result when anything else went wrong.

        Raises:
            ExecutionCancelled: If the turn or this call was cancelled
        """
        turn = self._context.cancellation
        turn.raise_if_cancelled(self.name)

        execution = self._pending.register(self.name)
        token = execution.token
        log.debug("Starting tool execution %s", execution.execution_id)
        try:
            return await self._run(arguments, token)
        except ExecutionCancelled:
            log.debug("Tool execution %s cancelled", execution.execution_id)
            raise
        except Exception as e:
            if token.cancelled or turn.cancelled:
                raise ExecutionCancelled(tool_name=self.name) from e
            log.error("Error executing tool %s: %s", self.name, e)
            return ToolResult.from_text(f"Tool execution failed: {e}", is_error=True)
        finally:
            self._pending.unregister(execution.execution_id)

    async def _run(self, arguments: Any, token: CancellationToken) -> ToolResult:
        context = self._context

        arguments = apply_argument_fixes(
            self.name, context.model_id, arguments, self._argument_fixes
        )
        normalized = normalize_arguments(arguments, self.raw_schema)
        if normalized != arguments:
            log.debug("Normalized arguments for %s: %r -> %r", self.name, arguments, normalized)
        if normalized is None:
            normalized = {}
        elif not isinstance(normalized, dict):
            raise TypeError(f"Arguments must be an object, got {type(normalized).__name__}")

        token.raise_if_cancelled(self.name)

        if self._gate.is_interactive():
            request = self._gate.classify(self.name, normalized)
            if request is not None:
                result = await token.guard(
                    self._gate.decide(context.stream_id, request), self.name
                )
                if not result.allowed:
                    log.info("Tool %s denied: %s", self.name, result.reason)
                    return ToolResult.from_text(denial_message(result))
                if result.edited_payload is not None:
                    normalized = self._gate.apply_edit(self.name, normalized, result)
                    if context.on_args_edited is not None:
                        context.on_args_edited(self.name, normalized, result.was_edited)

        token.raise_if_cancelled(self.name)

        log.log(TRACE, "Dispatching %s with %r", self.name, normalized)
        return await token.guard(
            self._registry.call_tool(context.session_key, self.name, normalized),
            self.name,
        )

    def __repr__(self) -> str:
        return f"<InvocableTool {self.name}>"


@dataclass
class ToolSet(Mapping[str, InvocableTool]):
    """The tools built for one turn, plus that turn's in-flight calls."""

    tools: dict[str, InvocableTool] = field(default_factory=dict)
    pending: ExecutionRegistry = field(default_factory=ExecutionRegistry)

    def __getitem__(self, name: str) -> InvocableTool:
        return self.tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.tools)

    def __len__(self) -> int:
        return len(self.tools)

    def function_specs(self) -> list[dict[str, Any]]:
        return [tool.to_function_spec() for tool in self.tools.values()]


class ToolAdapterBuilder:
    """Builds a ``ToolSet`` for a turn from the session's live tool list."""

    def __init__(
        self,
        registry: SessionRegistry,
        gate: ConfirmationGate,
        argument_fixes: Iterable[ArgumentRename] = DEFAULT_ARGUMENT_FIXES,
        restricted_prefixes: Iterable[str] = DEFAULT_RESTRICTED_PREFIXES,
    ) -> None:
        self._registry = registry
        self._gate = gate
        self._argument_fixes = tuple(argument_fixes)
        self._restricted_prefixes = tuple(restricted_prefixes)

    @classmethod
    def from_config(
        cls, registry: SessionRegistry, gate: ConfirmationGate, config: ToolsConfig
    ) -> ToolAdapterBuilder:
        return cls(registry, gate, restricted_prefixes=config.restricted_model_prefixes)

    async def build(self, context: TurnContext) -> ToolSet:
        """Fetch the session's tools and wrap the visible ones.

        Raises:
            SessionNotFound: If no session exists for ``context.session_key``
            TransportFailure: If listing tools fails
        """
        descriptors = await self._registry.list_tools(context.session_key)
        restricted = is_schema_restricted(context.model_id, self._restricted_prefixes)

        toolset = ToolSet()
        for descriptor in descriptors:
            if descriptor.name in context.hidden_tools:
                continue
            toolset.tools[descriptor.name] = InvocableTool(
                descriptor,
                context,
                self._registry,
                self._gate,
                toolset.pending,
                argument_fixes=self._argument_fixes,
                restricted=restricted,
            )

        pending = toolset.pending

        def abort_pending() -> None:
            count = pending.cancel_all(context.cancellation.reason or "Tool execution cancelled")
            log.debug("Turn %s cancelled; aborted %d tool execution(s)", context.stream_id, count)

        context.cancellation.add_callback(abort_pending)

        log.debug(
            "Built %d tool(s) for session %s (restricted=%s)",
            len(toolset),
            context.session_key,
            restricted,
        )
        return toolset

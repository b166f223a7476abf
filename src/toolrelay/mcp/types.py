"""MCP session and tool type definitions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ClientMode(Enum):
    """Client mode forwarded to the tool server."""

    STANDARD = "standard"
    RESTRICTED = "restricted"
    AUTOMATION = "automation"


@dataclass
class ToolDescriptor:
    """A tool exposed by the tool server."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None


@dataclass
class ToolResult:
    """Result from calling a tool.

    ``content`` is an ordered list of typed parts, e.g.
    ``{"type": "text", "text": "..."}`` or
    ``{"type": "image", "data": "<base64>", "mimeType": "image/png"}``.
    """

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    structured_content: dict[str, Any] | None = None
    saved_files: list[str] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, is_error: bool = False) -> ToolResult:
        return cls(content=[{"type": "text", "text": text}], is_error=is_error)

    def text(self) -> str:
        """Extract text content from the result."""
        texts = []
        for item in self.content:
            if item.get("type") == "text":
                texts.append(item.get("text") or "")
        return "\n".join(texts)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape handed back to the streaming engine."""
        data: dict[str, Any] = {"content": list(self.content)}
        if self.is_error:
            data["isError"] = True
        if self.structured_content is not None:
            data["structuredContent"] = self.structured_content
        if self.saved_files:
            data["savedFiles"] = list(self.saved_files)
        return data

    def __repr__(self) -> str:
        if self.is_error:
            return f"ToolResult(error={self.text()!r})"
        return f"ToolResult(content={self.content!r})"


@dataclass
class SessionOutcome:
    """Outcome of a session lifecycle operation."""

    success: bool
    error: str | None = None


@dataclass
class SessionInfo:
    """Read-only view of a registry entry."""

    exists: bool
    is_connected: bool | None = None


@dataclass
class PreApprovedToolCall:
    server_id: str
    tool_name: str


@dataclass
class AutomationContext:
    """Human-in-the-loop settings for automation mode.

    Opaque to toolrelay; serialised as JSON for the tool server.
    """

    automation_id: str
    run_id: str
    # Format: "server_id.tool_name"
    tools_requiring_approval: list[str] = field(default_factory=list)
    notification_email: str | None = None
    expiration_hours: int = 24
    notify_instructions: str | None = None
    pre_approved_tool_call: PreApprovedToolCall | None = None

    def to_json(self) -> str:
        data = asdict(self)
        payload = {
            "automationId": data["automation_id"],
            "runId": data["run_id"],
            "toolsRequiringApproval": data["tools_requiring_approval"],
            "expirationHours": data["expiration_hours"],
        }
        if self.notification_email:
            payload["notificationEmail"] = self.notification_email
        if self.notify_instructions:
            payload["notifyInstructions"] = self.notify_instructions
        if self.pre_approved_tool_call:
            payload["preApprovedToolCall"] = {
                "serverId": self.pre_approved_tool_call.server_id,
                "toolName": self.pre_approved_tool_call.tool_name,
            }
        return json.dumps(payload)


@dataclass
class TransportOptions:
    """Extra options forwarded to the transport factory."""

    resume_history: str | None = None
    user_id: str | None = None
    client_mode: ClientMode | None = None
    automation_context: AutomationContext | None = None

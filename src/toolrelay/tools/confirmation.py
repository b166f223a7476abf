"""Confirm-before-execute policy for sensitive tools.

Some tools change the user's environment (installing or removing servers,
saving playbooks, sending feedback). Before they run, the gate builds a
``ConfirmationRequest`` and asks the host's ``ConfirmationHandler`` for a
decision. A denial is an ordinary outcome: the pipeline answers the model
with a cancellation notice instead of raising.

Rules are data. Hosts add categories through config without touching the
pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolrelay.config.schema import ConfirmationRuleConfig, ConfirmationsConfig

_log = logging.getLogger("toolrelay.tools.confirmation")

DEFAULT_DENIAL_REASON = "User denied the operation"


class ConfirmationType(str, Enum):
    """Known confirmation categories.

    Requests may also carry plain strings for categories added in config.
    """

    INSTALL = "install"
    UNINSTALL = "uninstall"
    MISSING_SERVERS = "missing-servers"
    SAVE_PLAYBOOK = "save-playbook"
    SUBMIT_FEEDBACK = "submit-feedback"
    LARGE_RESULT = "large-result"


@dataclass
class ConfirmationRequest:
    """What the host is asked to approve."""

    type: ConfirmationType | str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, ConfirmationType) else str(self.type)


@dataclass
class ConfirmationResult:
    """The host's decision. Consumed once, never cached."""

    allowed: bool
    reason: str | None = None
    action: str | None = None
    edited_payload: Any = None
    was_edited: bool = False


@runtime_checkable
class ConfirmationHandler(Protocol):
    """Host-supplied decision interface.

    Desktop hosts show a dialog, CLIs prompt, servers apply a policy.
    """

    async def request_confirmation(
        self, stream_id: str, request: ConfirmationRequest
    ) -> ConfirmationResult: ...

    def is_interactive(self) -> bool: ...


@dataclass(frozen=True)
class ConfirmationRule:
    """Maps tool names to a confirmation category.

    Attributes:
        type: Category sent to the host
        tool_names: Tools this rule applies to
        fields: Payload key -> argument key used to build ``request.data``
        edit_field: Argument replaced by an edited payload; None means edits
            are reported but the arguments stay as proposed
    """

    type: ConfirmationType | str
    tool_names: frozenset[str]
    fields: Mapping[str, str] = field(default_factory=dict)
    edit_field: str | None = None

    def build_request(self, arguments: Mapping[str, Any]) -> ConfirmationRequest:
        data = {key: arguments.get(arg) for key, arg in self.fields.items()}
        return ConfirmationRequest(type=self.type, data=data)

    @classmethod
    def from_config(cls, config: ConfirmationRuleConfig) -> ConfirmationRule:
        try:
            rule_type: ConfirmationType | str = ConfirmationType(config.type)
        except ValueError:
            rule_type = config.type
        return cls(
            type=rule_type,
            tool_names=frozenset(config.tools),
            fields=dict(config.fields),
            edit_field=config.edit_field,
        )


DEFAULT_RULES: tuple[ConfirmationRule, ...] = (
    ConfirmationRule(
        type=ConfirmationType.INSTALL,
        tool_names=frozenset({"install_server", "install_mcp_server"}),
        fields={"serverId": "server_id", "serverName": "server_name", "config": "config"},
        edit_field="config",
    ),
    ConfirmationRule(
        type=ConfirmationType.UNINSTALL,
        tool_names=frozenset({"uninstall_server", "uninstall_mcp_server"}),
        fields={"serverId": "server_id", "serverName": "server_name"},
    ),
    ConfirmationRule(
        type=ConfirmationType.SAVE_PLAYBOOK,
        tool_names=frozenset({"save_playbook"}),
        fields={
            "playbookName": "playbook_name",
            "description": "description",
            "actions": "actions",
            "privacy": "privacy",
        },
    ),
    ConfirmationRule(
        type=ConfirmationType.SUBMIT_FEEDBACK,
        tool_names=frozenset({"submit_feedback"}),
        fields={"vote": "vote", "message": "message"},
    ),
)


def denial_message(result: ConfirmationResult) -> str:
    """Text returned to the model when the host says no."""
    return f"Operation cancelled: {result.reason or DEFAULT_DENIAL_REASON}"


class ConfirmationGate:
    """Classifies tool calls and relays decisions to the host."""

    def __init__(
        self,
        handler: ConfirmationHandler,
        rules: Iterable[ConfirmationRule] = DEFAULT_RULES,
    ) -> None:
        self._handler = handler
        self._rules: dict[str, ConfirmationRule] = {}
        for rule in rules:
            self.add_rule(rule)

    @classmethod
    def from_config(
        cls, handler: ConfirmationHandler, config: ConfirmationsConfig
    ) -> ConfirmationGate:
        """Default rules plus the ones declared under ``confirmations.rules``."""
        gate = cls(handler)
        for rule_config in config.rules:
            gate.add_rule(ConfirmationRule.from_config(rule_config))
        return gate

    def add_rule(self, rule: ConfirmationRule) -> None:
        """Register a rule; later rules win for a shared tool name."""
        for name in rule.tool_names:
            self._rules[name] = rule

    def rule_for(self, tool_name: str) -> ConfirmationRule | None:
        return self._rules.get(tool_name)

    def classify(
        self, tool_name: str, arguments: Mapping[str, Any] | None
    ) -> ConfirmationRequest | None:
        """Build the confirmation request for a call, or None if not sensitive."""
        rule = self._rules.get(tool_name)
        if rule is None:
            return None
        return rule.build_request(arguments or {})

    def is_interactive(self) -> bool:
        return self._handler.is_interactive()

    async def decide(self, stream_id: str, request: ConfirmationRequest) -> ConfirmationResult:
        _log.debug("Requesting %s confirmation for stream %s", request.type_name, stream_id)
        result = await self._handler.request_confirmation(stream_id, request)
        _log.debug(
            "Confirmation %s for stream %s: allowed=%s edited=%s",
            request.type_name,
            stream_id,
            result.allowed,
            result.edited_payload is not None,
        )
        return result

    def apply_edit(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        result: ConfirmationResult,
    ) -> dict[str, Any]:
        """Return the arguments to dispatch after an approved, edited request.

        Only the rule's ``edit_field`` is replaced; the rest of the arguments
        are kept as proposed.
        """
        final = dict(arguments)
        rule = self._rules.get(tool_name)
        if result.edited_payload is not None and rule is not None and rule.edit_field:
            final[rule.edit_field] = result.edited_payload
        return final


class AutoApproveHandler:
    """Non-interactive host: the gate is bypassed and every call proceeds."""

    async def request_confirmation(
        self, stream_id: str, request: ConfirmationRequest
    ) -> ConfirmationResult:
        return ConfirmationResult(allowed=True)

    def is_interactive(self) -> bool:
        return False


class PolicyConfirmationHandler:
    """Decides from a fixed allow-list of categories.

    Categories outside ``allowed`` are denied, including ones this handler
    has never heard of.
    """

    def __init__(self, allowed: Iterable[ConfirmationType | str] = ()) -> None:
        self._allowed = {
            a.value if isinstance(a, ConfirmationType) else str(a) for a in allowed
        }

    async def request_confirmation(
        self, stream_id: str, request: ConfirmationRequest
    ) -> ConfirmationResult:
        name = request.type_name
        if name in self._allowed:
            return ConfirmationResult(allowed=True)
        known = {t.value for t in ConfirmationType}
        if name not in known:
            return ConfirmationResult(
                allowed=False, reason=f"Unsupported confirmation type: {name}"
            )
        return ConfirmationResult(allowed=False, reason=f"Policy does not allow {name}")

    def is_interactive(self) -> bool:
        return True

"""Tests for the confirmation gate and the built-in handlers."""

from __future__ import annotations

import pytest

from toolrelay.config.schema import ConfirmationRuleConfig, ConfirmationsConfig
from toolrelay.tools.confirmation import (
    AutoApproveHandler,
    ConfirmationGate,
    ConfirmationRequest,
    ConfirmationResult,
    ConfirmationRule,
    ConfirmationType,
    PolicyConfirmationHandler,
    denial_message,
)
from tests.utils import RecordingHandler


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def gate(handler):
    return ConfirmationGate(handler)


class TestClassify:
    """Tests for mapping tool calls to confirmation requests."""

    @pytest.mark.parametrize(
        ("tool_name", "expected"),
        [
            ("install_server", ConfirmationType.INSTALL),
            ("install_mcp_server", ConfirmationType.INSTALL),
            ("uninstall_server", ConfirmationType.UNINSTALL),
            ("uninstall_mcp_server", ConfirmationType.UNINSTALL),
            ("save_playbook", ConfirmationType.SAVE_PLAYBOOK),
            ("submit_feedback", ConfirmationType.SUBMIT_FEEDBACK),
        ],
    )
    def test_sensitive_tools(self, gate, tool_name, expected) -> None:
        request = gate.classify(tool_name, {})
        assert request is not None
        assert request.type is expected

    def test_ordinary_tool_not_gated(self, gate) -> None:
        assert gate.classify("search", {"query": "x"}) is None

    def test_install_payload(self, gate) -> None:
        request = gate.classify(
            "install_server",
            {"server_id": "weather", "server_name": "Weather", "config": {"env": {}}},
        )
        assert request.data == {
            "serverId": "weather",
            "serverName": "Weather",
            "config": {"env": {}},
        }
        assert request.type_name == "install"

    def test_feedback_payload(self, gate) -> None:
        request = gate.classify("submit_feedback", {"vote": "up", "message": "nice"})
        assert request.data == {"vote": "up", "message": "nice"}

    def test_missing_arguments_are_none(self, gate) -> None:
        request = gate.classify("uninstall_server", None)
        assert request.data == {"serverId": None, "serverName": None}


class TestRules:
    """Tests for rule registration."""

    def test_add_custom_rule(self, gate) -> None:
        gate.add_rule(
            ConfirmationRule(
                type="delete-data",
                tool_names=frozenset({"drop_table"}),
                fields={"table": "name"},
            )
        )
        request = gate.classify("drop_table", {"name": "users"})
        assert request.type_name == "delete-data"
        assert request.data == {"table": "users"}

    def test_later_rule_wins(self, gate) -> None:
        gate.add_rule(
            ConfirmationRule(type=ConfirmationType.LARGE_RESULT, tool_names=frozenset({"install_server"}))
        )
        assert gate.classify("install_server", {}).type is ConfirmationType.LARGE_RESULT

    def test_rule_from_config_known_type(self) -> None:
        rule = ConfirmationRule.from_config(
            ConfirmationRuleConfig(type="install", tools=["install_plugin"], edit_field="config")
        )
        assert rule.type is ConfirmationType.INSTALL
        assert rule.tool_names == frozenset({"install_plugin"})
        assert rule.edit_field == "config"

    def test_rule_from_config_custom_type(self) -> None:
        rule = ConfirmationRule.from_config(ConfirmationRuleConfig(type="wipe", tools=["wipe"]))
        assert rule.type == "wipe"

    def test_gate_from_config(self, handler) -> None:
        config = ConfirmationsConfig(
            rules=[ConfirmationRuleConfig(type="install", tools=["install_plugin"])]
        )
        gate = ConfirmationGate.from_config(handler, config)
        assert gate.rule_for("install_plugin") is not None
        assert gate.rule_for("install_server") is not None


class TestDecide:
    """Tests for relaying decisions to the host."""

    @pytest.mark.asyncio
    async def test_decide_relays_to_handler(self, gate, handler) -> None:
        request = ConfirmationRequest(type=ConfirmationType.INSTALL, data={"serverId": "x"})
        result = await gate.decide("stream-1", request)

        assert result.allowed
        assert handler.requests == [("stream-1", request)]

    def test_interactive_follows_handler(self) -> None:
        assert ConfirmationGate(RecordingHandler(interactive=True)).is_interactive()
        assert not ConfirmationGate(AutoApproveHandler()).is_interactive()


class TestApplyEdit:
    """Tests for folding host edits back into the arguments."""

    def test_edit_replaces_edit_field_only(self, gate) -> None:
        args = {"server_id": "weather", "config": {"env": {}}}
        result = ConfirmationResult(
            allowed=True, edited_payload={"env": {"KEY": "v"}}, was_edited=True
        )

        final = gate.apply_edit("install_server", args, result)

        assert final == {"server_id": "weather", "config": {"env": {"KEY": "v"}}}
        assert args["config"] == {"env": {}}

    def test_edit_ignored_without_edit_field(self, gate) -> None:
        args = {"server_id": "weather"}
        result = ConfirmationResult(allowed=True, edited_payload={"x": 1}, was_edited=True)
        assert gate.apply_edit("uninstall_server", args, result) == args

    def test_no_edit_keeps_arguments(self, gate) -> None:
        args = {"server_id": "weather", "config": {}}
        assert gate.apply_edit("install_server", args, ConfirmationResult(allowed=True)) == args


class TestHandlers:
    """Tests for the built-in confirmation handlers."""

    @pytest.mark.asyncio
    async def test_auto_approve(self) -> None:
        handler = AutoApproveHandler()
        result = await handler.request_confirmation(
            "s", ConfirmationRequest(type=ConfirmationType.INSTALL)
        )
        assert result.allowed

    @pytest.mark.asyncio
    async def test_policy_allows_listed(self) -> None:
        handler = PolicyConfirmationHandler(allowed=[ConfirmationType.SUBMIT_FEEDBACK])
        result = await handler.request_confirmation(
            "s", ConfirmationRequest(type=ConfirmationType.SUBMIT_FEEDBACK)
        )
        assert result.allowed

    @pytest.mark.asyncio
    async def test_policy_denies_unlisted(self) -> None:
        handler = PolicyConfirmationHandler(allowed=["submit-feedback"])
        result = await handler.request_confirmation(
            "s", ConfirmationRequest(type=ConfirmationType.INSTALL)
        )
        assert not result.allowed
        assert "install" in result.reason

    @pytest.mark.asyncio
    async def test_policy_denies_unknown_category(self) -> None:
        handler = PolicyConfirmationHandler()
        result = await handler.request_confirmation("s", ConfirmationRequest(type="teleport"))
        assert not result.allowed
        assert result.reason == "Unsupported confirmation type: teleport"


class TestDenialMessage:
    def test_with_reason(self) -> None:
        result = ConfirmationResult(allowed=False, reason="Not today")
        assert denial_message(result) == "Operation cancelled: Not today"

    def test_default_reason(self) -> None:
        result = ConfirmationResult(allowed=False)
        assert denial_message(result) == "Operation cancelled: User denied the operation"

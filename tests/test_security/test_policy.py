"""Tests for the permission policy engine."""

import pytest

from auracle.errors import (
    ApprovalDeniedError,
    CommandBlockedError,
    EscalationError,
    PolicyBlockedError,
)
from auracle.security import ApprovalRequest, Intervention, PolicyEngine, RiskLevel, Scope
from auracle.tools import Permission, ToolResult


def make_intervention():
    request = ApprovalRequest(
        key="writer:{}",
        tool_name="writer",
        summary="writer",
        risk=RiskLevel.HIGH,
        scope=Scope.LOCAL,
        args_preview="{}",
    )

    async def resolver(choice):
        return ToolResult.success(choice)

    return Intervention("Allow action? writer", request, resolver)


class TestValidate:
    def test_read_allowed_by_default(self, policy, make_tool):
        assert policy.allowed_permissions == frozenset({Permission.READ})
        assert policy.validate(make_tool("reader"), {}) is None

    def test_deny_wins_over_allow(self, make_tool):
        policy = PolicyEngine(allowed=[Permission.READ], denied=[Permission.READ])
        assert Permission.READ not in policy.allowed_permissions

        with pytest.raises(PolicyBlockedError) as exc_info:
            policy.validate(make_tool("reader"), {})
        assert exc_info.value.permission == "read"

    def test_any_denied_permission_blocks(self, make_tool):
        policy = PolicyEngine(
            allowed=[Permission.READ, Permission.WRITE], denied=[Permission.NETWORK]
        )
        tool = make_tool("sync", permissions=(Permission.READ, Permission.NETWORK))
        with pytest.raises(PolicyBlockedError):
            policy.validate(tool, {})

    def test_all_permissions_must_be_allowed(self, make_tool):
        policy = PolicyEngine(allowed=[Permission.READ, Permission.WRITE])
        assert policy.validate(make_tool("rw", permissions=(Permission.READ, Permission.WRITE)), {}) is None

        tool = make_tool("rwx", permissions=(Permission.READ, Permission.EXECUTE))
        with pytest.raises(ApprovalDeniedError) as exc_info:
            policy.validate(tool, {})
        assert "execute" in exc_info.value.summary

    def test_set_policy_moves_between_sets(self, policy):
        policy.set_policy(Permission.WRITE, True)
        assert Permission.WRITE in policy.allowed_permissions

        policy.set_policy(Permission.WRITE, False)
        assert Permission.WRITE in policy.denied_permissions
        assert Permission.WRITE not in policy.allowed_permissions

    def test_sensitive_blocked_unless_enabled(self, policy, make_tool):
        tool = make_tool("vault", permissions=(Permission.SENSITIVE,))
        with pytest.raises(PolicyBlockedError) as exc_info:
            policy.validate(tool, {})
        assert exc_info.value.permission == "sensitive"

        # Enabling sensitive access still requires approval
        policy.set_allow_sensitive(True)
        with pytest.raises(ApprovalDeniedError):
            policy.validate(tool, {})

        policy.set_escalation_hook(lambda tool, args: True)
        assert policy.validate(tool, {}) is None


class TestEscalation:
    def test_hook_receives_call(self, policy, make_tool):
        seen = []

        def hook(tool, args):
            seen.append((tool.name, args))
            return True

        policy.set_escalation_hook(hook)
        assert policy.has_escalation_hook
        policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {"path": "a"})
        assert seen == [("writer", {"path": "a"})]

    def test_hook_not_called_for_allowed_calls(self, policy, make_tool):
        def hook(tool, args):
            raise AssertionError("should not be called")

        policy.set_escalation_hook(hook)
        assert policy.validate(make_tool("reader"), {}) is None

    def test_hook_decline(self, policy, make_tool):
        policy.set_escalation_hook(lambda tool, args: False)
        with pytest.raises(ApprovalDeniedError) as exc_info:
            policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {})
        assert exc_info.value.source == "user"

    def test_hook_intervention_is_returned(self, policy, make_tool):
        intervention = make_intervention()
        policy.set_escalation_hook(lambda tool, args: intervention)
        result = policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {})
        assert result is intervention

    def test_hook_security_error_propagates_unchanged(self, policy, make_tool):
        def hook(tool, args):
            raise CommandBlockedError("rm -rf /")

        policy.set_escalation_hook(hook)
        with pytest.raises(CommandBlockedError):
            policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {})

    def test_unexpected_hook_result_fails_closed(self, policy, make_tool):
        policy.set_escalation_hook(lambda tool, args: "yes")
        with pytest.raises(EscalationError):
            policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {})

    def test_hook_can_be_removed(self, policy, make_tool):
        policy.set_escalation_hook(lambda tool, args: True)
        policy.set_escalation_hook(None)
        assert not policy.has_escalation_hook
        with pytest.raises(ApprovalDeniedError) as exc_info:
            policy.validate(make_tool("writer", permissions=(Permission.WRITE,)), {})
        assert exc_info.value.source == "policy"


class TestCheckPath:
    @pytest.mark.parametrize(
        "path",
        [
            ".env",
            "config/.env.production",
            "/home/dev/.ssh/id_rsa",
            "~/.ssh/id_ed25519.pub",
            "deploy/server.key",
            "aws/Credentials.json",
            "secrets.env/",
        ],
    )
    def test_sensitive_paths_blocked(self, policy, path):
        with pytest.raises(PolicyBlockedError):
            policy.check_path(path)

    @pytest.mark.parametrize("path", ["README.md", "src/environment.py", "/home/dev/.ssh", "keys/"])
    def test_ordinary_paths_pass(self, policy, path):
        policy.check_path(path)

    def test_only_the_file_name_is_checked(self, policy):
        policy.check_path("/srv/.env-backups/notes.txt")

    def test_allow_sensitive_disables_check(self, policy):
        policy.set_allow_sensitive(True)
        policy.check_path(".env")

    def test_custom_markers(self):
        policy = PolicyEngine(sensitive_markers=["secret"])
        policy.check_path(".env")
        with pytest.raises(PolicyBlockedError):
            policy.check_path("TOP-SECRET.txt")


class TestScanText:
    def test_clean_text(self, policy):
        policy.scan_text("Summarize src/main.py and ~/notes.txt please. Version 1.2 is out.")
        policy.scan_text("Hello there")
        policy.scan_text("")

    @pytest.mark.parametrize(
        "text",
        [
            "What is in .env?",
            "cat `~/.ssh/id_rsa`",
            "read (config/credentials.json), thanks",
            "open deploy/server.key.",
        ],
    )
    def test_sensitive_mentions_blocked(self, policy, text):
        with pytest.raises(PolicyBlockedError):
            policy.scan_text(text)

    def test_allow_sensitive(self, policy):
        policy.set_allow_sensitive(True)
        policy.scan_text("What is in .env?")

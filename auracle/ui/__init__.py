"""Terminal presentation for Auracle."""

from auracle.ui.approval import ApprovalDialog, parse_choice

__all__ = ["ApprovalDialog", "parse_choice"]

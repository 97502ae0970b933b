"""
tickets/exceptions.py
=====================
Domain exceptions raised by the rule engine and the approval workflow.
Permission failures use django.core.exceptions.PermissionDenied instead.
"""


class HelpdeskError(Exception):
    """Base exception for help desk operations."""


class RuleDefinitionError(HelpdeskError, ValueError):
    """A rule's JSON conditions or actions are malformed."""


class WorkflowError(HelpdeskError):
    """An approval workflow operation cannot be performed."""


class ApprovalStateError(WorkflowError):
    """The ticket is in a state where approvals can no longer be acted on."""


class ResubmissionError(WorkflowError):
    """A rejected ticket cannot be resubmitted for approval."""

"""
tickets/rules.py
================
Condition / action interpreter shared by AutomationRule and EscalationRule.

This module is kept INDEPENDENT of Django: it has no imports from models,
the ORM or settings. Tickets are read through plain attribute access, so the
engine runs against model instances in production and against simple stub
objects in unit tests.

Conditions
----------
A rule's conditions are an ordered list of ``{"field", "operator", "value"}``
objects. Every condition must hold. Entries without a field are skipped and a
missing operator means ``equals``.

Actions
-------
A rule's actions are an ordered list of ``{"type", "value"}`` objects. The
engine never touches the database: it turns an action list into a RulePlan
(field updates, tags to attach, notification targets) which the model layer
applies in one save.

Public API
----------
    RuleEngine.automation_matches(rule, ticket)
    RuleEngine.escalation_matches(rule, ticket, now)
    plan = RuleEngine.plan_automation(actions)
    plan = RuleEngine.plan_escalation(actions)
    validate_conditions(conditions, operators) / validate_actions(actions, kinds)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .exceptions import RuleDefinitionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TICKET VOCABULARIES
# ---------------------------------------------------------------------------

STATUSES: list[str] = [
    "open", "assigned", "in_progress", "pending",
    "resolved", "closed", "cancelled",
]

# Statuses that still need work; the escalation scan only looks at these.
OPEN_STATUSES: list[str] = ["open", "assigned", "in_progress", "pending"]

# Approvals can no longer be acted on once a ticket reaches one of these.
FINAL_STATUSES: set[str] = {"resolved", "closed", "cancelled"}

PRIORITIES: list[str] = ["low", "medium", "high", "critical"]

PRIORITY_RANK: dict[str, int] = {p: rank for rank, p in enumerate(PRIORITIES)}

PRIORITY_LABELS: dict[str, str] = {p: p.capitalize() for p in PRIORITIES}

SOURCES: list[str] = ["web", "email", "phone", "mobile_app", "walk_in"]

STATUS_CHOICES = [
    ("open",        "Open"),
    ("assigned",    "Assigned"),
    ("in_progress", "In Progress"),
    ("pending",     "Pending"),
    ("resolved",    "Resolved"),
    ("closed",      "Closed"),
    ("cancelled",   "Cancelled"),
]

PRIORITY_CHOICES = [(p, PRIORITY_LABELS[p]) for p in PRIORITIES]

SOURCE_CHOICES = [
    ("web",        "Web"),
    ("email",      "Email"),
    ("phone",      "Phone"),
    ("mobile_app", "Mobile App"),
    ("walk_in",    "Walk-in"),
]


# ---------------------------------------------------------------------------
# RULE VOCABULARIES
# ---------------------------------------------------------------------------

TRIGGER_EVENTS: list[str] = [
    "ticket_created",
    "ticket_updated",
    "ticket_status_changed",
]

TRIGGER_EVENT_CHOICES = [
    ("ticket_created",        "Ticket Created"),
    ("ticket_updated",        "Ticket Updated"),
    ("ticket_status_changed", "Ticket Status Changed"),
]

TIME_TRIGGER_TYPES: dict[str, str] = {
    "created_at":            "Time Since Creation",
    "updated_at":            "Time Since Last Update",
    "first_response_due_at": "Time Until First Response Due",
    "resolution_due_at":     "Time Until Resolution Due",
}

# For these the ticket must be past its due time, not merely old enough.
DUE_TIME_TRIGGERS = {"first_response_due_at", "resolution_due_at"}

TIME_TRIGGER_CHOICES = list(TIME_TRIGGER_TYPES.items())

# Fields rules are expected to test; any other ticket attribute also works.
CONDITION_FIELDS: list[str] = [
    "category_id", "project_id", "priority", "status", "source",
    "assigned_team_id", "assigned_agent_id", "requester_id",
]

AUTOMATION_OPERATORS: list[str] = [
    "equals", "not_equals", "contains", "not_contains", "in", "not_in",
    "is_empty", "is_not_empty", "greater_than", "less_than",
]

ESCALATION_OPERATORS: list[str] = [
    "equals", "not_equals", "in", "not_in", "is_empty", "is_not_empty",
]

# Operators that ignore the condition value.
VALUELESS_OPERATORS = {"is_empty", "is_not_empty"}

# Action type -> ticket attribute it writes.
AUTOMATION_FIELD_ACTIONS: dict[str, str] = {
    "assign_to_team":  "assigned_team_id",
    "assign_to_agent": "assigned_agent_id",
    "set_status":      "status",
    "set_priority":    "priority",
    "set_category":    "category_id",
    "set_sla_policy":  "sla_policy_id",
}

AUTOMATION_ACTIONS: list[str] = list(AUTOMATION_FIELD_ACTIONS) + ["add_tags"]

ESCALATION_FIELD_ACTIONS: dict[str, str] = {
    "change_priority":   "priority",
    "reassign_to_team":  "assigned_team_id",
    "reassign_to_agent": "assigned_agent_id",
    "change_status":     "status",
}

# Notification action type -> recipient kind.
ESCALATION_NOTIFY_ACTIONS: dict[str, str] = {
    "notify_team":    "team",
    "notify_agent":   "agent",
    "notify_manager": "manager",
}

ESCALATION_ACTIONS: list[str] = list(ESCALATION_FIELD_ACTIONS) + list(ESCALATION_NOTIFY_ACTIONS)

# Actions whose value is a database id.
ID_FIELDS = {"assigned_team_id", "assigned_agent_id", "category_id", "sla_policy_id"}

# Actions that need no value.
VALUELESS_ACTIONS = {"notify_manager"}


# ---------------------------------------------------------------------------
# VALUE HELPERS
# ---------------------------------------------------------------------------

def is_empty(value: Any) -> bool:
    """Emptiness as rule authors expect it: None, "", "0", 0, False, []."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == "" or value == "0"
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def loosely_equal(left: Any, right: Any) -> bool:
    """
    Compare a ticket value with a JSON condition value.

    JSON rule definitions often carry ids as strings ("3") while the ticket
    holds integers, so values of different types compare by string form.
    """
    if left is None or right is None:
        return is_empty(left) and is_empty(right)
    if type(left) is type(right):
        return left == right
    if isinstance(left, bool) or isinstance(right, bool):
        return bool(left) == bool(right)
    return str(left) == str(right)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _ordered_values(field_name: Optional[str], left: Any, right: Any):
    """Return a comparable (left, right) pair, or None when incomparable."""
    if field_name == "priority" and left in PRIORITY_RANK and right in PRIORITY_RANK:
        return PRIORITY_RANK[left], PRIORITY_RANK[right]
    lnum, rnum = _as_number(left), _as_number(right)
    if lnum is not None and rnum is not None:
        return lnum, rnum
    return None


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _coerce_id(value: Any) -> Optional[int]:
    """Turn an action value into a database id. Empty means "clear"."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not an id")
    return int(value)


def ticket_value(ticket: Any, field_name: str) -> Any:
    """Read *field_name* from a ticket; missing attributes read as None."""
    return getattr(ticket, field_name, None)


# ---------------------------------------------------------------------------
# CONDITION EVALUATION
# ---------------------------------------------------------------------------

def evaluate_condition(
    value: Any,
    operator: str,
    expected: Any,
    field_name: Optional[str] = None,
) -> bool:
    """Evaluate one operator. Unknown operators never hold."""
    if operator == "equals":
        return loosely_equal(value, expected)
    if operator == "not_equals":
        return not loosely_equal(value, expected)
    if operator == "contains":
        return isinstance(value, str) and str(expected) in value
    if operator == "not_contains":
        return isinstance(value, str) and str(expected) not in value
    if operator == "in":
        return any(loosely_equal(value, item) for item in _as_list(expected))
    if operator == "not_in":
        return not any(loosely_equal(value, item) for item in _as_list(expected))
    if operator == "is_empty":
        return is_empty(value)
    if operator == "is_not_empty":
        return not is_empty(value)
    if operator in ("greater_than", "less_than"):
        pair = _ordered_values(field_name, value, expected)
        if pair is None:
            return False
        left, right = pair
        return left > right if operator == "greater_than" else left < right
    return False


def conditions_hold(conditions, ticket: Any, operators=AUTOMATION_OPERATORS) -> bool:
    """True when every condition holds for *ticket* (an empty list holds)."""
    for condition in conditions or []:
        if not isinstance(condition, dict):
            continue
        field_name = condition.get("field")
        if not field_name:
            continue
        operator = condition.get("operator") or "equals"
        if operator not in operators:
            return False
        if not evaluate_condition(
            ticket_value(ticket, field_name), operator,
            condition.get("value"), field_name,
        ):
            return False
    return True


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes between two datetimes, ignoring direction."""
    return int(abs((end - start).total_seconds()) // 60)


def time_trigger_met(
    trigger_type: Optional[str],
    trigger_minutes: Optional[int],
    ticket: Any,
    now: datetime,
) -> bool:
    """
    Check an escalation time trigger.

    created_at / updated_at    at least N minutes have elapsed since the field.
    *_due_at                   now is past the due time by at least N minutes.
    A ticket with no value in the reference field never triggers.
    """
    if trigger_type not in TIME_TRIGGER_TYPES:
        return False
    reference = ticket_value(ticket, trigger_type)
    if reference is None:
        return False
    elapsed = minutes_between(reference, now)
    if trigger_type in DUE_TIME_TRIGGERS:
        return now > reference and elapsed >= trigger_minutes
    return elapsed >= trigger_minutes


# ---------------------------------------------------------------------------
# ACTION PLANNING
# ---------------------------------------------------------------------------

@dataclass
class RulePlan:
    """
    What applying an action list will do to a ticket.

    Fields
    ------
    updates         Ticket attribute -> new value, last action wins.
    tag_ids         Tag ids to attach (existing tags are kept).
    notifications   Recipients as {"type": "team"|"agent"|"manager", "value": id}.
    """
    updates:       dict[str, Any] = field(default_factory=dict)
    tag_ids:       list[int] = field(default_factory=list)
    notifications: list[dict] = field(default_factory=list)

    @property
    def changed_fields(self) -> list[str]:
        return list(self.updates)


def _plan_field_update(plan: RulePlan, action_type: str, target: str, value: Any) -> None:
    if target in ID_FIELDS:
        try:
            plan.updates[target] = _coerce_id(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring action %s: %r is not a valid id", action_type, value)
        return
    if target == "status" and value not in STATUSES:
        logger.warning("Ignoring action %s: unknown status %r", action_type, value)
        return
    if target == "priority" and value not in PRIORITIES:
        logger.warning("Ignoring action %s: unknown priority %r", action_type, value)
        return
    plan.updates[target] = value


def _iter_actions(actions):
    for action in actions or []:
        if not isinstance(action, dict):
            continue
        action_type = action.get("type")
        if not action_type:
            continue
        yield action_type, action.get("value")


class RuleEngine:
    """
    Pure-Python rule interpreter. No Django dependencies.

    Usage:
        if RuleEngine.automation_matches(rule, ticket):
            plan = RuleEngine.plan_automation(rule.actions)
            print(plan.updates)     # {"assigned_team_id": 4, "priority": "high"}
    """

    @staticmethod
    def automation_matches(rule: Any, ticket: Any) -> bool:
        """An active automation rule with at least one condition, all holding."""
        if not rule.is_active or not rule.conditions:
            return False
        return conditions_hold(rule.conditions, ticket, AUTOMATION_OPERATORS)

    @staticmethod
    def escalation_matches(rule: Any, ticket: Any, now: datetime) -> bool:
        """An active escalation rule whose conditions and time trigger hold."""
        if not rule.is_active:
            return False
        if not conditions_hold(rule.conditions, ticket, ESCALATION_OPERATORS):
            return False
        if rule.time_trigger_type and rule.time_trigger_minutes:
            return time_trigger_met(
                rule.time_trigger_type, rule.time_trigger_minutes, ticket, now,
            )
        return True

    @staticmethod
    def plan_automation(actions) -> RulePlan:
        plan = RulePlan()
        for action_type, value in _iter_actions(actions):
            if action_type in AUTOMATION_FIELD_ACTIONS:
                _plan_field_update(plan, action_type, AUTOMATION_FIELD_ACTIONS[action_type], value)
            elif action_type == "add_tags":
                if not isinstance(value, list):
                    continue
                for tag in value:
                    try:
                        tag_id = _coerce_id(tag)
                    except (TypeError, ValueError):
                        logger.warning("Ignoring tag %r in add_tags", tag)
                        continue
                    if tag_id is not None and tag_id not in plan.tag_ids:
                        plan.tag_ids.append(tag_id)
        return plan

    @staticmethod
    def plan_escalation(actions) -> RulePlan:
        plan = RulePlan()
        for action_type, value in _iter_actions(actions):
            if action_type in ESCALATION_FIELD_ACTIONS:
                target = ESCALATION_FIELD_ACTIONS[action_type]
                _plan_field_update(plan, action_type, target, value)
                if action_type == "reassign_to_team":
                    # The old agent belongs to the old team.
                    plan.updates["assigned_agent_id"] = None
            elif action_type in ESCALATION_NOTIFY_ACTIONS:
                kind = ESCALATION_NOTIFY_ACTIONS[action_type]
                if kind == "manager":
                    plan.notifications.append({"type": kind})
                else:
                    plan.notifications.append({"type": kind, "value": value})
        return plan


# ---------------------------------------------------------------------------
# DEFINITION VALIDATION
# ---------------------------------------------------------------------------

def validate_conditions(conditions, operators=AUTOMATION_OPERATORS, allow_empty=True) -> list:
    """
    Check a conditions definition and return it unchanged.
    Raises RuleDefinitionError describing the first problem found.
    """
    if conditions in (None, ""):
        conditions = []
    if not isinstance(conditions, list):
        raise RuleDefinitionError("Conditions must be a list.")
    if not conditions and not allow_empty:
        raise RuleDefinitionError("At least one condition is required.")
    for index, condition in enumerate(conditions, start=1):
        if not isinstance(condition, dict):
            raise RuleDefinitionError(f"Condition {index} must be an object.")
        if not condition.get("field"):
            raise RuleDefinitionError(f"Condition {index} has no field.")
        operator = condition.get("operator") or "equals"
        if operator not in operators:
            raise RuleDefinitionError(
                f"Condition {index} uses unsupported operator '{operator}'."
            )
        if operator not in VALUELESS_OPERATORS and "value" not in condition:
            raise RuleDefinitionError(f"Condition {index} needs a value.")
    return conditions


def validate_actions(actions, action_types=AUTOMATION_ACTIONS) -> list:
    """Check an actions definition and return it unchanged."""
    if actions in (None, ""):
        actions = []
    if not isinstance(actions, list) or not actions:
        raise RuleDefinitionError("At least one action is required.")
    for index, action in enumerate(actions, start=1):
        if not isinstance(action, dict):
            raise RuleDefinitionError(f"Action {index} must be an object.")
        action_type = action.get("type")
        if action_type not in action_types:
            raise RuleDefinitionError(f"Action {index} has unknown type '{action_type}'.")
        value = action.get("value")
        if action_type in VALUELESS_ACTIONS:
            continue
        if action_type == "add_tags":
            if not isinstance(value, list) or not value:
                raise RuleDefinitionError(f"Action {index} needs a list of tag ids.")
            continue
        if action_type in ("set_status", "change_status") and value not in STATUSES:
            raise RuleDefinitionError(f"Action {index} sets unknown status '{value}'.")
        if action_type in ("set_priority", "change_priority") and value not in PRIORITIES:
            raise RuleDefinitionError(f"Action {index} sets unknown priority '{value}'.")
        if value in (None, "") and action_type not in ("assign_to_agent", "reassign_to_agent"):
            raise RuleDefinitionError(f"Action {index} needs a value.")
    return actions

"""
Tests for the pure-Python rule engine. No database: tickets and rules are
plain namespaces.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tickets.exceptions import RuleDefinitionError
from tickets.rules import (
    ESCALATION_ACTIONS,
    ESCALATION_OPERATORS,
    RuleEngine,
    conditions_hold,
    evaluate_condition,
    is_empty,
    loosely_equal,
    time_trigger_met,
    validate_actions,
    validate_conditions,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_ticket(**kwargs):
    values = {
        "priority": "medium", "status": "open", "source": "web",
        "category_id": 3, "assigned_team_id": None, "assigned_agent_id": None,
        "requester_id": 7, "subject": "VPN drops every hour",
        "created_at": NOW - timedelta(hours=5), "updated_at": NOW - timedelta(hours=1),
        "first_response_due_at": None, "resolution_due_at": None,
    }
    values.update(kwargs)
    return SimpleNamespace(**values)


def make_rule(conditions, actions=(), is_active=True, trigger=None, minutes=None):
    return SimpleNamespace(
        conditions=conditions, actions=list(actions), is_active=is_active,
        time_trigger_type=trigger, time_trigger_minutes=minutes,
    )


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value", [None, "", "0", 0, False, []])
def test_is_empty_treats_falsy_values_as_empty(value):
    assert is_empty(value)


def test_is_empty_keeps_real_values():
    assert not is_empty("high")
    assert not is_empty(5)


def test_loose_equality_compares_ids_across_types():
    assert loosely_equal(3, "3")
    assert not loosely_equal(3, "4")
    assert loosely_equal(None, "")


def test_in_operator_accepts_string_ids():
    assert evaluate_condition(3, "in", ["1", "3"])
    assert not evaluate_condition(3, "not_in", ["3"])


def test_contains_only_applies_to_strings():
    assert evaluate_condition("VPN drops", "contains", "VPN")
    assert not evaluate_condition(42, "contains", "4")


def test_priority_ordering_uses_rank_not_alphabet():
    assert evaluate_condition("high", "greater_than", "medium", "priority")
    assert evaluate_condition("low", "less_than", "critical", "priority")
    assert not evaluate_condition("critical", "less_than", "high", "priority")


def test_numeric_comparison_and_incomparable_values():
    assert evaluate_condition("1500", "greater_than", 1000, "estimated_cost")
    assert not evaluate_condition("abc", "greater_than", 1, "subject")


def test_unknown_operator_never_holds():
    assert not evaluate_condition("high", "matches_regex", "h.*")


# ---------------------------------------------------------------------------
# Condition lists
# ---------------------------------------------------------------------------

def test_all_conditions_must_hold():
    ticket = make_ticket(priority="high", category_id=3)
    assert conditions_hold(
        [{"field": "priority", "operator": "equals", "value": "high"},
         {"field": "category_id", "value": "3"}],
        ticket,
    )
    assert not conditions_hold(
        [{"field": "priority", "value": "high"},
         {"field": "status", "value": "closed"}],
        ticket,
    )


def test_conditions_without_field_are_skipped():
    assert conditions_hold([{"operator": "equals", "value": "x"}], make_ticket())


def test_unknown_field_reads_as_empty():
    assert conditions_hold([{"field": "project_id", "operator": "is_empty"}], make_ticket())


def test_escalation_rejects_automation_only_operators():
    conditions = [{"field": "subject", "operator": "contains", "value": "VPN"}]
    assert not conditions_hold(conditions, make_ticket(), ESCALATION_OPERATORS)


def test_automation_rule_needs_conditions_and_active_flag():
    ticket = make_ticket()
    assert not RuleEngine.automation_matches(make_rule([]), ticket)
    assert not RuleEngine.automation_matches(
        make_rule([{"field": "status", "value": "open"}], is_active=False), ticket,
    )
    assert RuleEngine.automation_matches(make_rule([{"field": "status", "value": "open"}]), ticket)


# ---------------------------------------------------------------------------
# Time triggers
# ---------------------------------------------------------------------------

def test_created_at_trigger_waits_for_elapsed_minutes():
    ticket = make_ticket(created_at=NOW - timedelta(minutes=90))
    assert time_trigger_met("created_at", 60, ticket, NOW)
    assert not time_trigger_met("created_at", 120, ticket, NOW)


def test_due_trigger_requires_due_time_to_have_passed():
    upcoming = make_ticket(resolution_due_at=NOW + timedelta(hours=3))
    overdue = make_ticket(resolution_due_at=NOW - timedelta(hours=3))
    assert not time_trigger_met("resolution_due_at", 60, upcoming, NOW)
    assert time_trigger_met("resolution_due_at", 60, overdue, NOW)


def test_trigger_without_reference_value_never_fires():
    assert not time_trigger_met("first_response_due_at", 1, make_ticket(), NOW)
    assert not time_trigger_met("deleted_at", 1, make_ticket(), NOW)


def test_escalation_rule_without_trigger_matches_on_conditions():
    rule = make_rule([{"field": "priority", "value": "medium"}])
    assert RuleEngine.escalation_matches(rule, make_ticket(), NOW)


def test_escalation_rule_with_trigger_checks_time():
    rule = make_rule([], trigger="updated_at", minutes=120)
    assert not RuleEngine.escalation_matches(rule, make_ticket(), NOW)
    assert RuleEngine.escalation_matches(
        rule, make_ticket(updated_at=NOW - timedelta(hours=3)), NOW,
    )


# ---------------------------------------------------------------------------
# Action plans
# ---------------------------------------------------------------------------

def test_automation_plan_collects_updates_and_tags():
    plan = RuleEngine.plan_automation([
        {"type": "assign_to_team", "value": "4"},
        {"type": "set_priority", "value": "high"},
        {"type": "add_tags", "value": [1, "2", 1]},
        {"type": "set_status", "value": "exploded"},
    ])
    assert plan.updates == {"assigned_team_id": 4, "priority": "high"}
    assert plan.tag_ids == [1, 2]


def test_automation_plan_empty_agent_clears_assignment():
    plan = RuleEngine.plan_automation([{"type": "assign_to_agent", "value": ""}])
    assert plan.updates == {"assigned_agent_id": None}


def test_reassigning_team_drops_agent():
    plan = RuleEngine.plan_escalation([{"type": "reassign_to_team", "value": 9}])
    assert plan.updates == {"assigned_team_id": 9, "assigned_agent_id": None}


def test_escalation_plan_collects_notification_targets():
    plan = RuleEngine.plan_escalation([
        {"type": "notify_team", "value": 2},
        {"type": "notify_manager"},
        {"type": "change_priority", "value": "critical"},
    ])
    assert plan.notifications == [{"type": "team", "value": 2}, {"type": "manager"}]
    assert plan.changed_fields == ["priority"]


# ---------------------------------------------------------------------------
# Definition validation
# ---------------------------------------------------------------------------

def test_validate_conditions_rejects_bad_definitions():
    with pytest.raises(RuleDefinitionError):
        validate_conditions({"field": "priority"})
    with pytest.raises(RuleDefinitionError):
        validate_conditions([{"field": "priority", "operator": "like", "value": "x"}])
    with pytest.raises(RuleDefinitionError):
        validate_conditions([{"field": "priority", "operator": "equals"}])
    with pytest.raises(RuleDefinitionError):
        validate_conditions([], allow_empty=False)


def test_validate_conditions_accepts_valueless_operator():
    conditions = [{"field": "assigned_agent_id", "operator": "is_empty"}]
    assert validate_conditions(conditions, ESCALATION_OPERATORS) == conditions


def test_validate_actions():
    with pytest.raises(RuleDefinitionError):
        validate_actions([])
    with pytest.raises(RuleDefinitionError):
        validate_actions([{"type": "set_priority", "value": "urgent"}])
    with pytest.raises(RuleDefinitionError):
        validate_actions([{"type": "add_tags", "value": []}])
    with pytest.raises(RuleDefinitionError):
        validate_actions([{"type": "notify_manager"}])
    assert validate_actions([{"type": "notify_manager"}], ESCALATION_ACTIONS)
    assert validate_actions([{"type": "assign_to_agent", "value": None}])

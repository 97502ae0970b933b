import pytest

from tickets.forms import AutomationRuleForm, EscalationRuleForm, TicketImportForm

pytestmark = pytest.mark.django_db


def automation_data(**overrides):
    data = {
        "name": "Route hardware",
        "description": "",
        "trigger_event": "ticket_created",
        "conditions": '[{"field": "category_id", "operator": "equals", "value": 3}]',
        "actions": '[{"type": "assign_to_team", "value": 2}]',
        "priority": 0,
        "is_active": True,
    }
    data.update(overrides)
    return data


def test_automation_form_accepts_valid_rule():
    form = AutomationRuleForm(automation_data())
    assert form.is_valid(), form.errors
    rule = form.save()
    assert rule.conditions[0]["field"] == "category_id"


def test_automation_form_requires_conditions():
    form = AutomationRuleForm(automation_data(conditions="[]"))
    assert not form.is_valid()
    assert "conditions" in form.errors


def test_automation_form_reports_bad_action():
    form = AutomationRuleForm(automation_data(actions='[{"type": "set_status", "value": "gone"}]'))
    assert not form.is_valid()
    assert "unknown status" in form.errors["actions"][0]


def escalation_data(**overrides):
    data = {
        "name": "Stale",
        "description": "",
        "conditions": "[]",
        "actions": '[{"type": "notify_manager"}]',
        "time_trigger_type": "updated_at",
        "time_trigger_minutes": 240,
        "priority": 0,
        "is_active": True,
    }
    data.update(overrides)
    return data


def test_escalation_form_accepts_empty_conditions():
    form = EscalationRuleForm(escalation_data())
    assert form.is_valid(), form.errors


def test_escalation_form_pairs_trigger_and_minutes():
    form = EscalationRuleForm(escalation_data(time_trigger_minutes=""))
    assert not form.is_valid()
    assert "time_trigger_minutes" in form.errors

    form = EscalationRuleForm(escalation_data(time_trigger_type=""))
    assert not form.is_valid()
    assert "time_trigger_type" in form.errors


def test_escalation_form_rejects_automation_operator():
    form = EscalationRuleForm(escalation_data(
        conditions='[{"field": "subject", "operator": "contains", "value": "VPN"}]',
    ))
    assert not form.is_valid()
    assert "conditions" in form.errors


def test_import_form_resolves_related_records(requester, it_team, approval_category):
    form = TicketImportForm({
        "subject": "Access to share",
        "requester_email": requester.email,
        "category": "Access Requests",
        "team": "it-sd",
        "estimated_cost": "12.50",
    })
    assert form.is_valid(), form.errors
    data = form.ticket_data()
    assert data["requester"] == requester
    assert data["category"] == approval_category
    assert data["assigned_team"] == it_team
    assert (data["priority"], data["source"], data["tags"]) == ("medium", "web", [])


def test_import_form_rejects_unknown_team(requester):
    form = TicketImportForm({
        "subject": "x", "requester_email": requester.email, "team": "NOPE",
    })
    assert not form.is_valid()
    assert "team" in form.errors

import pytest
from django.core.exceptions import ValidationError

from tickets.automation import AutomationService
from tickets.models import AutomationRule, Project, Tag

pytestmark = pytest.mark.django_db


def make_rule(conditions, actions, **kwargs):
    kwargs.setdefault("name", "Rule")
    return AutomationRule.objects.create(conditions=conditions, actions=actions, **kwargs)


def test_matching_rule_updates_ticket_and_statistics(make_ticket, it_team):
    rule = make_rule(
        [{"field": "priority", "operator": "equals", "value": "critical"}],
        [{"type": "assign_to_team", "value": str(it_team.pk)}],
    )
    ticket = make_ticket(priority="critical")

    executed = AutomationService.execute_rules(ticket, "ticket_created")

    ticket.refresh_from_db()
    rule.refresh_from_db()
    assert executed == [rule]
    assert ticket.assigned_team == it_team
    assert rule.execution_count == 1
    assert rule.last_executed_at is not None


def test_non_matching_and_inactive_rules_are_skipped(make_ticket, it_team):
    make_rule([{"field": "priority", "value": "low"}],
              [{"type": "set_status", "value": "closed"}])
    make_rule([{"field": "priority", "value": "medium"}],
              [{"type": "set_status", "value": "closed"}], is_active=False)
    ticket = make_ticket(priority="medium")

    assert AutomationService.execute_rules(ticket) == []
    ticket.refresh_from_db()
    assert ticket.status == "open"


def test_rules_run_only_for_their_trigger(make_ticket):
    make_rule([{"field": "status", "value": "open"}],
              [{"type": "set_priority", "value": "high"}],
              trigger_event="ticket_status_changed")
    ticket = make_ticket()

    assert AutomationService.on_ticket_created(ticket) == []
    assert len(AutomationService.on_ticket_status_changed(ticket)) == 1
    ticket.refresh_from_db()
    assert ticket.priority == "high"


def test_every_match_runs_in_priority_order_and_sees_earlier_changes(make_ticket):
    first = make_rule([{"field": "source", "value": "phone"}],
                      [{"type": "set_priority", "value": "high"}], priority=10)
    second = make_rule([{"field": "priority", "value": "high"}],
                       [{"type": "set_status", "value": "in_progress"}], priority=1)
    ticket = make_ticket(source="phone", priority="low")

    executed = AutomationService.execute_rules(ticket)

    assert executed == [first, second]
    ticket.refresh_from_db()
    assert (ticket.priority, ticket.status) == ("high", "in_progress")


def test_rule_without_conditions_never_matches(make_ticket):
    make_rule([], [{"type": "set_priority", "value": "critical"}])
    assert AutomationService.execute_rules(make_ticket()) == []


def test_add_tags_keeps_existing_tags(make_ticket):
    vip = Tag.objects.create(name="vip")
    outage = Tag.objects.create(name="outage")
    make_rule([{"field": "priority", "value": "critical"}],
              [{"type": "add_tags", "value": [outage.pk, 9999]}])
    ticket = make_ticket(priority="critical")
    ticket.tags.add(vip)

    AutomationService.execute_rules(ticket)

    assert set(ticket.tags.values_list("name", flat=True)) == {"vip", "outage"}


def test_empty_action_list_changes_nothing(make_ticket):
    rule = make_rule([{"field": "status", "value": "open"}], [])
    ticket = make_ticket()

    plan = rule.execute(ticket)

    rule.refresh_from_db()
    assert plan.updates == {}
    assert rule.execution_count == 0
    assert rule.last_executed_at is None


def test_failing_rule_is_logged_not_raised(make_ticket, caplog, monkeypatch):
    make_rule([{"field": "status", "value": "open"}],
              [{"type": "set_priority", "value": "high"}])
    ticket = make_ticket()

    def explode(self, ticket):
        raise RuntimeError("boom")

    monkeypatch.setattr(AutomationRule, "execute", explode)
    with caplog.at_level("ERROR", logger="tickets.automation"):
        AutomationService.execute_rules(ticket)

    assert "Failed to execute automation rules" in caplog.text


def test_clean_rejects_malformed_definitions():
    rule = AutomationRule(
        name="Broken",
        conditions=[{"field": "priority", "operator": "sounds_like", "value": "hi"}],
        actions=[{"type": "launch_rocket", "value": 1}],
    )
    with pytest.raises(ValidationError) as exc:
        rule.full_clean()
    assert set(exc.value.message_dict) >= {"conditions", "actions"}


def test_project_condition_matches_ticket_project(make_ticket):
    move = Project.objects.create(name="Office move", code="MOVE-24")
    make_rule([{"field": "project_id", "operator": "equals", "value": str(move.pk)}],
              [{"type": "set_priority", "value": "high"}])
    in_project = make_ticket(project=move)
    elsewhere = make_ticket()

    assert len(AutomationService.execute_rules(in_project)) == 1
    assert AutomationService.execute_rules(elsewhere) == []

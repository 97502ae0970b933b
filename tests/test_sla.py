from datetime import timedelta

import pytest
from django.utils import timezone

from tickets.lifecycle import add_comment
from tickets.models import Notification, SlaPolicy
from tickets.sla import apply_sla_policy, check_sla_breaches, flag_late_response, policy_for_priority

pytestmark = pytest.mark.django_db


def test_policy_lookup_skips_inactive(medium_sla):
    SlaPolicy.objects.create(name="Old", priority="high", response_time=5,
                             resolution_time=10, is_active=False)
    assert policy_for_priority("medium") == medium_sla
    assert policy_for_priority("high") is None


def test_apply_policy_sets_due_dates(make_ticket, medium_sla):
    now = timezone.now()
    ticket = make_ticket()

    apply_sla_policy(ticket, now=now)

    assert ticket.sla_policy == medium_sla
    assert ticket.first_response_due_at == now + timedelta(minutes=60)
    assert ticket.resolution_due_at == now + timedelta(minutes=480)


def test_apply_policy_overwrite(make_ticket, medium_sla):
    now = timezone.now()
    ticket = make_ticket(resolution_due_at=now)
    apply_sla_policy(ticket, now=now)
    assert ticket.resolution_due_at == now
    apply_sla_policy(ticket, now=now, overwrite=True)
    assert ticket.resolution_due_at == now + timedelta(minutes=480)


def test_no_policy_leaves_ticket_alone(make_ticket):
    ticket = make_ticket(priority="low")
    assert apply_sla_policy(ticket) is None
    assert ticket.first_response_due_at is None


def test_breaches_flagged_once_and_notified(make_ticket, agent, it_team):
    past = timezone.now() - timedelta(hours=1)
    late = make_ticket(first_response_due_at=past, resolution_due_at=past,
                       assigned_team=it_team, assigned_agent=agent)
    answered = make_ticket(first_response_due_at=past, first_response_at=past)
    make_ticket(resolution_due_at=past, status="resolved")

    assert check_sla_breaches() == {"response": 1, "resolution": 1}

    late.refresh_from_db()
    answered.refresh_from_db()
    assert late.response_sla_breached and late.resolution_sla_breached
    assert not answered.response_sla_breached
    assert late.history.filter(action="sla_breached").count() == 2
    assert Notification.objects.filter(recipient=agent, type="sla_breached").count() == 2

    assert check_sla_breaches() == {"response": 0, "resolution": 0}
    assert Notification.objects.filter(type="sla_breached").count() == 2


def test_late_first_response_counts_as_breach(make_ticket):
    now = timezone.now()
    late_reply = make_ticket(first_response_due_at=now - timedelta(hours=2),
                             first_response_at=now - timedelta(hours=1))

    assert check_sla_breaches(now) == {"response": 1, "resolution": 0}

    late_reply.refresh_from_db()
    assert late_reply.response_sla_breached


def test_late_reply_is_flagged_when_it_is_posted(make_ticket, agent):
    ticket = make_ticket(assigned_agent=agent,
                         first_response_due_at=timezone.now() - timedelta(minutes=5))

    add_comment(ticket, agent, "Sorry for the wait, on it now.")

    ticket.refresh_from_db()
    assert ticket.response_sla_breached
    assert ticket.history.filter(action="sla_breached").count() == 1
    assert check_sla_breaches() == {"response": 0, "resolution": 0}


def test_timely_reply_is_not_flagged(make_ticket, agent):
    ticket = make_ticket(first_response_due_at=timezone.now() + timedelta(hours=1))
    ticket.first_response_at = timezone.now()
    assert not flag_late_response(ticket)
    assert not ticket.response_sla_breached

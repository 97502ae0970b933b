from types import SimpleNamespace

import pytest
from django.contrib.admin.sites import site
from django.contrib.messages import get_messages
from django.contrib.messages.storage.fallback import FallbackStorage
from django.test import RequestFactory

from tickets.models import Notification, Tag, Ticket, TicketApproval

pytestmark = pytest.mark.django_db


@pytest.fixture
def ticket_admin():
    return site._registry[Ticket]


@pytest.fixture
def admin_request(admin_user):

    def _make(data=None):
        request = RequestFactory().post("/admin/tickets/ticket/", data or {})
        request.user = admin_user
        request.session = {}
        request._messages = FallbackStorage(request)
        return request

    return _make


def messages_of(request):
    return [str(m) for m in get_messages(request)]


# ---------------------------------------------------------------------------
# Add / change
# ---------------------------------------------------------------------------

def test_ticket_added_in_admin_runs_intake_workflow(ticket_admin, admin_request, requester,
                                                    approval_category, line_manager, medium_sla):
    ticket = Ticket(subject="Access to the payroll share", requester=requester,
                    category=approval_category)

    ticket_admin.save_model(admin_request(), ticket, form=None, change=False)

    ticket.refresh_from_db()
    assert ticket.ticket_number
    assert ticket.sla_policy == medium_sla
    assert ticket.first_response_due_at is not None
    assert ticket.status == "pending"
    assert ticket.approvals.filter(status=TicketApproval.PENDING, approver=line_manager).exists()
    assert ticket.history.filter(action="created", user__isnull=True).exists()
    assert Notification.objects.filter(recipient=line_manager, type="approval_requested").exists()


def test_status_edit_in_admin_records_history_and_stamps(ticket_admin, admin_request,
                                                         make_ticket, requester):
    ticket = make_ticket()
    ticket.status = "resolved"
    form = SimpleNamespace(changed_data=["status"], cleaned_data={"status": "resolved"})

    ticket_admin.save_model(admin_request(), ticket, form, change=True)

    ticket.refresh_from_db()
    assert ticket.resolved_at is not None
    entry = ticket.history.get(action="status_changed")
    assert entry.user is None
    assert (entry.old_value, entry.new_value) == ("Open", "Resolved")
    assert Notification.objects.filter(recipient=requester, type="ticket_resolved").exists()


def test_assignment_edit_in_admin_notifies_agent(ticket_admin, admin_request, make_ticket, agent):
    ticket = make_ticket()
    ticket.assigned_agent = agent
    form = SimpleNamespace(changed_data=["assigned_agent"], cleaned_data={"assigned_agent": agent})

    ticket_admin.save_model(admin_request(), ticket, form, change=True)

    assert ticket.assigned_agent == agent
    assert Notification.objects.filter(recipient=agent, type="ticket_assigned").exists()


def test_flag_edits_are_saved_without_workflow(ticket_admin, admin_request, make_ticket):
    ticket = make_ticket()
    ticket.response_sla_breached = True
    form = SimpleNamespace(changed_data=["response_sla_breached"],
                           cleaned_data={"response_sla_breached": True})

    ticket_admin.save_model(admin_request(), ticket, form, change=True)

    ticket.refresh_from_db()
    assert ticket.response_sla_breached
    assert not ticket.history.exists()


# ---------------------------------------------------------------------------
# Bulk actions
# ---------------------------------------------------------------------------

def test_bulk_status_action(ticket_admin, admin_request, make_ticket):
    make_ticket()
    make_ticket()
    request = admin_request({"value": "closed"})

    ticket_admin.bulk_set_status(request, Ticket.objects.all())

    assert set(Ticket.objects.values_list("status", flat=True)) == {"closed"}
    assert "2 ticket(s) updated, 0 failed." in messages_of(request)


def test_bulk_tag_action_takes_tag_names(ticket_admin, admin_request, make_ticket):
    Tag.objects.create(name="vip")
    Tag.objects.create(name="outage")
    ticket = make_ticket()

    ticket_admin.bulk_add_tags(admin_request({"value": "vip, outage"}), Ticket.objects.all())

    assert set(ticket.tags.values_list("name", flat=True)) == {"vip", "outage"}


def test_bulk_assign_team_by_code(ticket_admin, admin_request, make_ticket, fin_team, agent):
    ticket = make_ticket(assigned_agent=agent)

    ticket_admin.bulk_assign_team(admin_request({"value": "fin"}), Ticket.objects.all())

    ticket.refresh_from_db()
    assert ticket.assigned_team == fin_team
    assert ticket.assigned_agent is None


def test_bulk_action_with_bad_value_reports_error(ticket_admin, admin_request, make_ticket):
    make_ticket()
    request = admin_request({"value": "sideways"})

    ticket_admin.bulk_set_priority(request, Ticket.objects.all())

    assert Ticket.objects.get().priority == "medium"
    assert messages_of(request) == ["Unknown priority 'sideways'"]

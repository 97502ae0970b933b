from datetime import timedelta

import pytest

from tickets.models import Project, SavedSearch, Tag, Ticket, TicketApproval
from tickets.permissions import Role
from tickets.search import paginate, search_tickets, suggestions, visible_to

pytestmark = pytest.mark.django_db


def numbers(qs):
    return [t.ticket_number for t in qs]


def test_free_text_matches_subject_and_requester(make_ticket, requester):
    vpn = make_ticket(subject="VPN drops every hour")
    make_ticket(subject="Printer jam")

    assert numbers(search_tickets({"q": "vpn"})) == [vpn.ticket_number]
    assert len(search_tickets({"q": requester.email})) == 2


def test_status_and_priority_accept_scalars_or_lists(make_ticket):
    make_ticket(status="open", priority="low")
    make_ticket(status="pending", priority="high")
    make_ticket(status="closed", priority="high")

    assert search_tickets({"status": "open"}).count() == 1
    assert search_tickets({"status": ["open", "pending"]}).count() == 2
    assert search_tickets({"priority": ["high"], "status": "closed"}).count() == 1


def test_unassigned_agent_filter(make_ticket, agent):
    make_ticket(assigned_agent=agent)
    free = make_ticket()
    assert numbers(search_tickets({"agent": "__none"})) == [free.ticket_number]
    assert search_tickets({"agent": agent.pk}).count() == 1


def test_sla_and_tag_filters(make_ticket):
    tag = Tag.objects.create(name="outage")
    late = make_ticket(resolution_sla_breached=True)
    late.tags.add(tag)
    make_ticket()

    assert numbers(search_tickets({"sla_breached": "any"})) == [late.ticket_number]
    assert search_tickets({"sla_breached": "response"}).count() == 0
    assert numbers(search_tickets({"tags": [tag.pk]})) == [late.ticket_number]


def test_approval_status_filter(make_ticket):
    pending = make_ticket()
    TicketApproval.objects.create(ticket=pending, approval_level="lm")
    rejected = make_ticket()
    TicketApproval.objects.create(ticket=rejected, approval_level="lm", status="rejected")
    plain = make_ticket()

    assert numbers(search_tickets({"approval_status": "pending"})) == [pending.ticket_number]
    assert numbers(search_tickets({"approval_status": "rejected"})) == [rejected.ticket_number]
    assert numbers(search_tickets({"approval_status": "none"})) == [plain.ticket_number]


def test_date_range_is_inclusive(make_ticket):
    old = make_ticket(age=timedelta(days=10))
    new = make_ticket()
    since = (new.created_at - timedelta(days=1)).date().isoformat()
    assert numbers(search_tickets({"date_from": since})) == [new.ticket_number]
    assert numbers(search_tickets({"date_to": old.created_at.date().isoformat()})) == [old.ticket_number]


def test_priority_ordering_uses_rank(make_ticket):
    for priority in ("medium", "critical", "low", "high"):
        make_ticket(priority=priority)
    ordered = search_tickets({"order_by": "priority", "order_dir": "asc"})
    assert [t.priority for t in ordered] == ["low", "medium", "high", "critical"]


def test_unknown_order_field_falls_back_to_newest_first(make_ticket):
    old = make_ticket(age=timedelta(days=1))
    new = make_ticket()
    assert numbers(search_tickets({"order_by": "password"})) == [new.ticket_number, old.ticket_number]


def test_visibility_rules(make_ticket, make_employee, requester, agent, it_team, it_manager, ops_dept):
    mine = make_ticket()
    team = make_ticket(requester=it_manager, assigned_team=it_team)
    watched = make_ticket(requester=it_manager)
    watched.watchers.add(requester)
    make_ticket(requester=it_manager)

    assert set(numbers(visible_to(Ticket.objects.all(), requester))) == {
        mine.ticket_number, watched.ticket_number,
    }
    assert numbers(visible_to(Ticket.objects.all(), agent)) == [team.ticket_number]
    assert visible_to(Ticket.objects.all(), it_manager).count() == 4

    manager = make_employee(Role.MANAGER, ops_dept)
    it_team.manager = manager
    it_team.save()
    assert team.ticket_number in numbers(visible_to(Ticket.objects.all(), manager))


def test_saved_search_runs_and_counts(make_ticket, requester, line_manager):
    make_ticket(priority="critical")
    make_ticket(priority="low")
    saved = SavedSearch.objects.create(owner=line_manager, name="Critical", is_shared=True,
                                       filters={"priority": "critical"})

    assert saved.run().count() == 1
    saved.refresh_from_db()
    assert saved.usage_count == 1
    assert list(SavedSearch.objects.visible_to(requester)) == [saved]


def test_suggestions_and_pagination(make_ticket):
    tickets = [make_ticket(subject=f"Keyboard issue {n}") for n in range(20)]

    hints = suggestions("keyboard")
    assert len(hints["subjects"]) == 5
    assert suggestions(tickets[0].ticket_number)["tickets"] == [tickets[0].ticket_number]
    assert suggestions("  ") == {"tickets": [], "subjects": []}

    page = paginate(search_tickets({}), page=2)
    assert len(page.object_list) == 5
    assert page.paginator.count == 20


def test_project_filter(make_ticket):
    move = Project.objects.create(name="Office move", code="MOVE-24")
    moving = make_ticket(project=move)
    make_ticket()

    assert numbers(search_tickets({"project": move.pk})) == [moving.ticket_number]

from decimal import Decimal

import pytest
from django.test import override_settings

from tickets.approvals import RESUBMISSION_NOTE, ApprovalWorkflowService as Workflow
from tickets.exceptions import ApprovalStateError, ResubmissionError
from tickets.models import Notification, TicketApproval
from tickets.permissions import Role

pytestmark = pytest.mark.django_db


def history_actions(ticket):
    return list(ticket.history.values_list("action", flat=True))


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------

def test_ticket_without_approval_is_routed_to_default_team(make_ticket, no_approval_category, it_team):
    ticket = make_ticket(category=no_approval_category)

    assert Workflow.initialize_workflow(ticket) is None

    ticket.refresh_from_db()
    assert ticket.assigned_team == it_team
    assert ticket.status == "assigned"
    assert "routed" in history_actions(ticket)


def test_cost_over_threshold_forces_both_stages(make_ticket, purchase_category):
    ticket = make_ticket(category=purchase_category, estimated_cost=Decimal("1500"))
    assert Workflow.requires_approval(ticket)
    assert Workflow.requires_hod_approval(ticket)

    cheap = make_ticket(category=purchase_category, estimated_cost=Decimal("999.99"))
    assert not Workflow.requires_approval(cheap)
    assert not Workflow.requires_hod_approval(cheap)


def test_missing_cost_counts_as_zero(make_ticket, purchase_category):
    ticket = make_ticket(category=purchase_category)
    assert not Workflow.requires_approval(ticket)


def test_auto_approve_requester_skips_optional_approval(make_employee, make_ticket, fin_team):
    director = make_employee(Role.DIRECTOR, fin_team)
    assert not Workflow.requires_approval(make_ticket(requester=director))
    assert Workflow.requires_approval(make_ticket())


def test_category_flag_beats_auto_approve(make_employee, make_ticket, approval_category, fin_team):
    director = make_employee(Role.DIRECTOR, fin_team)
    assert Workflow.requires_approval(make_ticket(requester=director, category=approval_category))


def test_high_priority_needs_hod(make_ticket):
    assert Workflow.requires_hod_approval(make_ticket(priority="high"))
    assert not Workflow.requires_hod_approval(make_ticket(priority="low"))


# ---------------------------------------------------------------------------
# Line manager stage
# ---------------------------------------------------------------------------

def test_initialize_creates_pending_line_manager_approval(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)

    approval = Workflow.initialize_workflow(ticket)

    ticket.refresh_from_db()
    assert approval.approval_level == TicketApproval.LINE_MANAGER
    assert approval.sequence == 1
    assert approval.approver == line_manager
    assert ticket.status == "pending"
    assert "approval_requested" in history_actions(ticket)
    assert Notification.objects.filter(recipient=line_manager, type="approval_requested").exists()


def test_initialize_twice_keeps_single_pending_approval(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    Workflow.initialize_workflow(ticket)

    assert Workflow.initialize_workflow(ticket) is None
    assert ticket.approvals.count() == 1


def test_initialize_without_any_approver_still_creates_approval(make_ticket, approval_category):
    approval = Workflow.initialize_workflow(make_ticket(category=approval_category))
    assert approval.approver is None
    assert approval.is_pending


def test_line_manager_approval_routes_to_category_team(make_ticket, approval_category, line_manager,
                                                      it_team, requester):
    ticket = make_ticket(category=approval_category)
    approval = Workflow.initialize_workflow(ticket)

    Workflow.approve(approval, comments="Fine by me", actor=line_manager)

    ticket.refresh_from_db()
    approval.refresh_from_db()
    assert approval.status == TicketApproval.APPROVED
    assert approval.approved_at is not None
    assert approval.comments == "Fine by me"
    assert ticket.status == "assigned"
    assert ticket.assigned_team == it_team
    assert Notification.objects.filter(recipient=requester, type="approval_approved").exists()


def test_explicit_team_wins_over_category_team(make_ticket, approval_category, line_manager, fin_team):
    ticket = make_ticket(category=approval_category)
    approval = Workflow.initialize_workflow(ticket)

    Workflow.approve(approval, routed_to_team=fin_team)

    ticket.refresh_from_db()
    assert ticket.assigned_team == fin_team


def test_uncategorised_ticket_falls_back_to_it_department(make_ticket, line_manager, it_team, ops_dept):
    ticket = make_ticket()
    approval = Workflow.initialize_workflow(ticket)

    Workflow.approve(approval)

    ticket.refresh_from_db()
    assert ticket.assigned_team == it_team


# ---------------------------------------------------------------------------
# Head of department stage
# ---------------------------------------------------------------------------

def test_high_priority_goes_through_hod(make_ticket, approval_category, line_manager, hod, it_team):
    ticket = make_ticket(category=approval_category, priority="high")
    lm = Workflow.initialize_workflow(ticket)

    Workflow.approve(lm)

    hod_approval = ticket.current_approval()
    assert hod_approval.approval_level == TicketApproval.HEAD_OF_DEPT
    assert hod_approval.sequence == 2
    assert hod_approval.approver == hod
    ticket.refresh_from_db()
    assert ticket.status == "pending"

    Workflow.approve(hod_approval, actor=hod)

    ticket.refresh_from_db()
    assert ticket.status == "assigned"
    assert ticket.assigned_team == it_team
    assert ticket.current_approval() is None


def test_hod_found_in_category_team_first(make_employee, make_ticket, approval_category,
                                          line_manager, hod, it_team):
    it_head = make_employee(Role.HEAD_OF_DEPARTMENT, it_team)
    ticket = make_ticket(category=approval_category)
    assert Workflow.find_head_of_department(ticket) == it_head


def test_director_stands_in_when_no_hod_exists(make_employee, make_ticket, fin_team):
    director = make_employee(Role.DIRECTOR, fin_team)
    assert Workflow.find_head_of_department(make_ticket()) == director


def test_hod_approval_without_team_resolves_ticket(make_ticket, line_manager, hod):
    ticket = make_ticket(priority="critical")
    Workflow.approve(Workflow.initialize_workflow(ticket))

    Workflow.approve(ticket.current_approval())

    ticket.refresh_from_db()
    assert ticket.status == "resolved"
    assert ticket.resolved_at is not None


# ---------------------------------------------------------------------------
# Rejection and resubmission
# ---------------------------------------------------------------------------

def test_reject_cancels_ticket_and_blocks_further_action(make_ticket, approval_category,
                                                          line_manager, requester):
    ticket = make_ticket(category=approval_category)
    approval = Workflow.initialize_workflow(ticket)

    Workflow.reject(approval, comments="Not budgeted", actor=line_manager)

    ticket.refresh_from_db()
    assert ticket.status == "cancelled"
    assert ticket.rejected_approval() == approval
    assert Notification.objects.filter(recipient=requester, type="approval_rejected").exists()
    with pytest.raises(ApprovalStateError):
        Workflow.approve(approval)


def test_cannot_act_on_approval_of_closed_ticket(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    approval = Workflow.initialize_workflow(ticket)
    ticket.status = "closed"
    ticket.save()

    with pytest.raises(ApprovalStateError):
        Workflow.reject(approval)


def test_resubmit_restarts_workflow(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    Workflow.reject(Workflow.initialize_workflow(ticket))
    ticket.refresh_from_db()

    Workflow.resubmit(ticket)

    ticket.refresh_from_db()
    assert ticket.status == "pending"
    assert ticket.approvals.filter(status=TicketApproval.PENDING).count() == 1
    entry = ticket.history.get(action="resubmitted")
    assert entry.description.endswith("(Attempt 1 of 3)")


def test_resubmit_requires_rejection(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    Workflow.initialize_workflow(ticket)
    with pytest.raises(ResubmissionError):
        Workflow.resubmit(ticket)


@override_settings(HELPDESK={"MAX_RESUBMISSIONS": 2})
def test_resubmission_limit(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    Workflow.reject(Workflow.initialize_workflow(ticket))
    ticket.refresh_from_db()
    Workflow.resubmit(ticket)
    Workflow.reject(ticket.current_approval())
    ticket.refresh_from_db()

    with pytest.raises(ResubmissionError, match="limit"):
        Workflow.resubmit(ticket)


def test_resubmit_closes_stale_pending_approvals(make_ticket, approval_category, line_manager):
    ticket = make_ticket(category=approval_category)
    Workflow.reject(Workflow.initialize_workflow(ticket))
    stale = TicketApproval.objects.create(
        ticket=ticket, approval_level=TicketApproval.HEAD_OF_DEPT, sequence=2,
    )
    ticket.refresh_from_db()

    Workflow.resubmit(ticket)

    stale.refresh_from_db()
    assert stale.status == TicketApproval.REJECTED
    assert stale.comments.endswith(RESUBMISSION_NOTE)


# ---------------------------------------------------------------------------
# Guards and queues
# ---------------------------------------------------------------------------

def test_can_act_on(make_ticket, approval_category, line_manager, agent, it_manager):
    approval = Workflow.initialize_workflow(make_ticket(category=approval_category))
    assert Workflow.can_act_on(approval, line_manager)
    assert Workflow.can_act_on(approval, it_manager)
    assert not Workflow.can_act_on(approval, agent)


def test_pending_for_lists_own_and_unassigned(make_ticket, approval_category, line_manager):
    mine = Workflow.initialize_workflow(make_ticket(category=approval_category))
    unassigned = TicketApproval.objects.create(
        ticket=make_ticket(), approval_level=TicketApproval.LINE_MANAGER,
    )
    finished = Workflow.initialize_workflow(make_ticket(category=approval_category))
    finished.ticket.status = "resolved"
    finished.ticket.save()

    assert set(Workflow.pending_for(line_manager)) == {mine, unassigned}

"""
tickets/approvals.py
====================
Two-stage approval router: a Line Manager (lm) stage, optionally followed by
a Head of Department (hod) stage, then routing to a support team.

    submit ──► lm pending ──approve──► hod pending ──approve──► routed
                   │                       │
                   └──reject──► cancelled ◄┘   (resubmit ──► lm pending)

Tickets that need no approval are routed straight to their category's
default team.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Max, Q
from django.utils import timezone

from .exceptions import ApprovalStateError, ResubmissionError
from .models import Department, Employee, TicketApproval, helpdesk_setting
from .notifications import NotificationService
from .permissions import APPROVAL_ROLES, HOD_ROLES, Perm, Role
from .rules import FINAL_STATUSES

logger = logging.getLogger(__name__)

LEVEL_LABELS = {
    TicketApproval.LINE_MANAGER: "Line Manager",
    TicketApproval.HEAD_OF_DEPT: "Head of Department",
}

RESUBMISSION_NOTE = "[Cancelled due to resubmission]"


def _cost(ticket) -> Decimal:
    return Decimal(ticket.estimated_cost or 0)


def _over_threshold(ticket) -> bool:
    category = ticket.category
    if category is None or not category.hod_approval_threshold:
        return False
    return _cost(ticket) >= category.hod_approval_threshold


class ApprovalWorkflowService:

    # ── Requirements ──────────────────────────────────────────────────────

    @staticmethod
    def requires_approval(ticket) -> bool:
        """
        Decide whether a ticket enters the approval chain.

        A cost at or over the category threshold always needs approval, even
        in a category that otherwise skips it. Requesters holding
        tickets.auto_approve bypass the chain unless the category demands it.
        """
        category = ticket.category
        if _over_threshold(ticket):
            logger.debug("Ticket %s needs approval: cost over threshold", ticket.pk)
            return True
        if category is not None and category.requires_approval:
            return True
        if ticket.requester_id and ticket.requester.has_perm(Perm.AUTO_APPROVE):
            logger.debug("Ticket %s auto-approved for requester %s", ticket.pk, ticket.requester_id)
            return False
        if category is not None:
            return category.requires_approval
        return True

    @staticmethod
    def requires_hod_approval(ticket) -> bool:
        category = ticket.category
        if ticket.priority in ("high", "critical"):
            return True
        if _over_threshold(ticket):
            return True
        return bool(
            category is not None
            and category.requires_hod_approval
            and not category.hod_approval_threshold
        )

    # ── Approver resolution ───────────────────────────────────────────────

    @staticmethod
    def find_line_manager(ticket):
        approvers = Employee.objects.filter(is_active=True, role__in=APPROVAL_ROLES).order_by("id")

        requester = ticket.requester
        if requester is not None and requester.department_id:
            manager = approvers.filter(department_id=requester.department_id).first()
            if manager:
                return manager

        if ticket.assigned_team_id:
            manager = approvers.filter(department_id=ticket.assigned_team_id).first()
            if manager:
                return manager

        return approvers.first()

    @staticmethod
    def find_head_of_department(ticket):
        heads = Employee.objects.filter(is_active=True, role__in=HOD_ROLES).order_by("id")
        category = ticket.category
        requester = ticket.requester

        candidates = [
            ("assigned team", ticket.assigned_team_id),
            ("category default team", category.default_team_id if category else None),
            ("requester department", requester.department_id if requester else None),
        ]
        for source, department_id in candidates:
            if not department_id:
                continue
            hod = heads.filter(department_id=department_id).first()
            if hod:
                logger.info("HOD for ticket %s found in %s", ticket.pk, source)
                return hod

        for source, queryset in (
            ("any department", heads),
            ("Director fallback", Employee.objects.filter(is_active=True, role=Role.DIRECTOR)),
            ("Super Admin fallback", Employee.objects.filter(is_active=True, role=Role.SUPER_ADMIN)),
        ):
            hod = queryset.order_by("id").first()
            if hod:
                logger.warning("HOD for ticket %s resolved via %s", ticket.pk, source)
                return hod
        return None

    # ── Workflow ──────────────────────────────────────────────────────────

    @classmethod
    def initialize_workflow(cls, ticket, actor=None):
        if ticket.approvals.filter(status=TicketApproval.PENDING).exists():
            logger.warning(
                "Workflow already initialized for ticket %s: pending approval exists", ticket.pk,
            )
            return None

        if not cls.requires_approval(ticket):
            cls._route_directly(ticket, actor)
            return None

        approver = cls.find_line_manager(ticket)
        approval = TicketApproval.objects.create(
            ticket=ticket,
            approval_level=TicketApproval.LINE_MANAGER,
            approver=approver,
            status=TicketApproval.PENDING,
            sequence=1,
        )
        old_status = ticket.status
        ticket.status = "pending"
        ticket.save(update_fields=["status", "updated_at"])
        ticket.record_history(
            "approval_requested",
            description="Ticket submitted for Line Manager approval",
            user=actor, field_name="approval",
            old_value=None, new_value="Line Manager Approval",
        )
        if old_status != "pending":
            ticket.record_history(
                "status_changed", user=actor, field_name="status",
                old_value=old_status, new_value="pending",
                description="Awaiting approval",
            )

        if approver is None:
            logger.warning(
                "No Line Manager approver found for ticket %s (requester %s)",
                ticket.pk, ticket.requester_id,
            )
        else:
            cls._safely(NotificationService.notify_approval_requested, ticket, approver, "lm")
            logger.info(
                "[workflow] Approval workflow initialized for ticket %s, approver %s",
                ticket.pk, approver.pk,
            )
        return approval

    @classmethod
    def approve(cls, approval, comments=None, routed_to_team=None, actor=None):
        ticket = approval.ticket
        cls._ensure_actionable(approval)

        with transaction.atomic():
            approval.status = TicketApproval.APPROVED
            approval.comments = comments or ""
            approval.approved_at = timezone.now()
            approval.routed_to_team = routed_to_team
            approval.save()

            level = LEVEL_LABELS[approval.approval_level]
            ticket.record_history(
                "approved", user=actor, field_name="approval",
                old_value="pending", new_value="approved",
                description=f"{level} approved the ticket" + (f": {comments}" if comments else ""),
            )

        approver = approval.approver or actor
        cls._safely(
            NotificationService.notify_approval_approved,
            ticket, approver, approval.approval_level, comments,
        )
        logger.info(
            "[workflow] Ticket %s approved at %s level by %s",
            ticket.pk, approval.approval_level, approver.pk if approver else None,
        )

        if approval.is_line_manager:
            if cls.requires_hod_approval(ticket):
                cls._request_hod_approval(ticket, actor)
            else:
                cls._route_after_lm(ticket, routed_to_team, actor)
        else:
            cls._route_after_hod(ticket, routed_to_team, actor)
        return approval

    @classmethod
    def reject(cls, approval, comments=None, actor=None):
        """Cancel the ticket. The record is kept so it can be resubmitted."""
        ticket = approval.ticket
        cls._ensure_actionable(approval)

        with transaction.atomic():
            approval.status = TicketApproval.REJECTED
            approval.comments = comments or ""
            approval.rejected_at = timezone.now()
            approval.save()

            ticket.status = "cancelled"
            ticket.save(update_fields=["status", "updated_at"])

            level = LEVEL_LABELS[approval.approval_level]
            ticket.record_history(
                "rejected", user=actor, field_name="approval",
                old_value="pending", new_value="rejected",
                description=f"{level} rejected the ticket" + (f": {comments}" if comments else ""),
            )

        approver = approval.approver or actor
        cls._safely(
            NotificationService.notify_approval_rejected,
            ticket, approver, approval.approval_level, comments,
        )
        logger.info(
            "[workflow] Ticket %s rejected at %s level by %s",
            ticket.pk, approval.approval_level, approver.pk if approver else None,
        )
        return approval

    @classmethod
    def resubmit(cls, ticket, actor=None):
        if not ticket.has_rejected_approval():
            raise ResubmissionError("Ticket has not been rejected and cannot be resubmitted.")
        if ticket.status != "cancelled":
            raise ResubmissionError("Only cancelled tickets can be resubmitted.")

        max_resubmissions = helpdesk_setting("MAX_RESUBMISSIONS")
        rejected_count = ticket.approvals.filter(status=TicketApproval.REJECTED).count()
        if rejected_count >= max_resubmissions:
            raise ResubmissionError(
                f"Ticket has been rejected {rejected_count} times. Maximum resubmission "
                f"limit ({max_resubmissions}) reached. Please create a new ticket or "
                f"contact an administrator."
            )

        with transaction.atomic():
            for pending in ticket.approvals.filter(status=TicketApproval.PENDING):
                pending.status = TicketApproval.REJECTED
                pending.comments = f"{pending.comments or ''} {RESUBMISSION_NOTE}".strip()
                pending.rejected_at = timezone.now()
                pending.save()
                logger.info(
                    "Cancelled pending %s approval %s of ticket %s due to resubmission",
                    pending.approval_level, pending.pk, ticket.pk,
                )

            ticket.status = "open"
            ticket.save(update_fields=["status", "updated_at"])
            ticket.record_history(
                "resubmitted", user=actor, field_name="status",
                old_value="cancelled", new_value="open",
                description=(
                    f"Ticket resubmitted for approval after rejection "
                    f"(Attempt {rejected_count} of {max_resubmissions})"
                ),
            )

        cls.initialize_workflow(ticket, actor)
        logger.info(
            "[workflow] Ticket %s resubmitted (%d of %d)",
            ticket.pk, rejected_count, max_resubmissions,
        )

    # ── Guards & queries ──────────────────────────────────────────────────

    @staticmethod
    def can_act_on(approval, employee) -> bool:
        if employee is None or not employee.is_active:
            return False
        if approval.approver_id is None or approval.approver_id == employee.pk:
            return True
        return employee.has_perm(Perm.ASSIGN_TICKETS)

    @staticmethod
    def pending_for(employee):
        return (
            TicketApproval.objects
            .filter(status=TicketApproval.PENDING)
            .filter(Q(approver=employee) | Q(approver__isnull=True))
            .exclude(ticket__status__in=FINAL_STATUSES)
            .select_related("ticket", "ticket__requester")
            .order_by("-created_at", "-id")
        )

    @staticmethod
    def _ensure_actionable(approval):
        if not approval.is_pending:
            raise ApprovalStateError(
                f"This approval has already been {approval.status}."
            )
        if approval.ticket.status in FINAL_STATUSES:
            raise ApprovalStateError(
                f"Cannot act on an approval for a {approval.ticket.status} ticket."
            )

    # ── Routing ───────────────────────────────────────────────────────────

    @staticmethod
    def _assign_team(ticket, team, actor, description):
        ticket.assigned_team = team
        ticket.status = "assigned"
        ticket.save(update_fields=["assigned_team", "status", "updated_at"])
        ticket.record_history(
            "routed", user=actor, field_name="assigned_team_id",
            old_value=None, new_value=team.pk, description=description,
        )
        logger.info("[workflow] Ticket %s routed to %s", ticket.pk, team.name)

    @classmethod
    def _route_directly(cls, ticket, actor=None):
        category = ticket.category
        if category is None or category.default_team is None:
            return
        cls._assign_team(
            ticket, category.default_team, actor,
            f"Ticket routed directly to {category.default_team.name} (no approval required)",
        )

    @staticmethod
    def _it_department():
        departments = Department.objects.filter(is_active=True).order_by("id")
        for lookup in (
            {"code": helpdesk_setting("IT_DEPARTMENT_CODE")},
            {"name__icontains": "Information Technology"},
            {"name__contains": "IT"},
        ):
            team = departments.filter(**lookup).first()
            if team is not None:
                return team
        return None

    @classmethod
    def _route_after_lm(cls, ticket, team=None, actor=None):
        category = ticket.category
        if team is None and category is not None:
            team = category.default_team
        if team is None:
            team = cls._it_department()
        if team is None:
            logger.warning("Ticket %s approved by LM but no team to route to", ticket.pk)
            return
        cls._assign_team(ticket, team, actor, f"Ticket routed to {team.name} after LM approval")

    @classmethod
    def _route_after_hod(cls, ticket, team=None, actor=None):
        category = ticket.category
        if team is None and category is not None:
            team = category.default_team
        if team is None:
            logger.warning(
                "HOD approval completed but no team to route ticket %s (category %s)",
                ticket.pk, ticket.category_id,
            )
            ticket.status = "resolved"
            ticket.resolved_at = timezone.now()
            ticket.save(update_fields=["status", "resolved_at", "updated_at"])
            return
        cls._assign_team(ticket, team, actor, f"Ticket routed to {team.name} after HOD approval")

    @classmethod
    def _request_hod_approval(cls, ticket, actor=None):
        hod_approvals = ticket.approvals.filter(approval_level=TicketApproval.HEAD_OF_DEPT)
        if hod_approvals.filter(
            status__in=[TicketApproval.PENDING, TicketApproval.APPROVED]
        ).exists():
            return None

        sequence = (ticket.approvals.aggregate(top=Max("sequence"))["top"] or 0) + 1
        approver = cls.find_head_of_department(ticket)
        approval = TicketApproval.objects.create(
            ticket=ticket,
            approval_level=TicketApproval.HEAD_OF_DEPT,
            approver=approver,
            status=TicketApproval.PENDING,
            sequence=sequence,
        )
        ticket.record_history(
            "approval_requested", user=actor, field_name="approval",
            old_value=None, new_value="HOD Approval",
            description="Ticket submitted for Head of Department approval",
        )
        if approver is None:
            logger.warning("No HOD approver found for ticket %s", ticket.pk)
        else:
            cls._safely(NotificationService.notify_approval_requested, ticket, approver, "hod")
        return approval

    @staticmethod
    def _safely(notify, ticket, *args):
        try:
            notify(ticket, *args)
        except Exception:
            logger.exception(
                "[workflow] Failed to send %s for ticket %s", notify.__name__, ticket.pk,
            )

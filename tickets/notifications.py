"""
tickets/notifications.py
========================
In-app notifications. Every helper writes Notification rows; nothing here
sends e-mail.

The acting employee is never notified about their own change, and nobody is
notified twice about the same event.
"""

import logging

from django.utils import timezone

from .models import Department, Employee, Notification

logger = logging.getLogger(__name__)


def _excerpt(text, length=100):
    text = text or ""
    return text if len(text) <= length else text[:length] + "..."


def _lookup(model, pk):
    try:
        return model.objects.filter(pk=int(pk)).first()
    except (TypeError, ValueError):
        return None


def _name(employee):
    return employee.full_name if employee else "System"


class NotificationService:
    """
    Usage:
        NotificationService.notify_ticket_created(ticket)
        NotificationService.unread_count(employee)
    """

    # ── Primitives ────────────────────────────────────────────────────────

    @staticmethod
    def create(recipient, type, title, message, ticket=None, related_user=None, data=None):
        if recipient is None:
            return None
        return Notification.objects.create(
            recipient=recipient,
            type=type,
            title=title,
            message=message,
            ticket=ticket,
            related_user=related_user,
            data=data,
        )

    @classmethod
    def notify_requester(cls, ticket, type, title, message, data=None, exclude=()):
        if ticket.requester_id and ticket.requester_id not in exclude:
            return cls.create(ticket.requester, type, title, message, ticket, data=data)
        return None

    @classmethod
    def notify_agent(cls, ticket, type, title, message, data=None, exclude=()):
        if ticket.assigned_agent_id and ticket.assigned_agent_id not in exclude:
            return cls.create(ticket.assigned_agent, type, title, message, ticket, data=data)
        return None

    @classmethod
    def notify_team(cls, team, type, title, message, ticket=None, exclude=()):
        """Notify every active member of *team*. Returns the rows created."""
        if team is None:
            return []
        return [
            cls.create(member, type, title, message, ticket)
            for member in team.active_members().exclude(pk__in=list(exclude))
        ]

    @classmethod
    def notify_watchers(cls, ticket, type, title, message, exclude=(), data=None):
        watchers = ticket.watchers.filter(is_active=True).exclude(pk__in=list(exclude))
        return [cls.create(w, type, title, message, ticket, data=data) for w in watchers]

    # ── Ticket events ─────────────────────────────────────────────────────

    @classmethod
    def notify_ticket_created(cls, ticket):
        if ticket.assigned_agent_id:
            cls.notify_agent(
                ticket, "ticket_assigned", "New Ticket Assigned",
                f"Ticket #{ticket.ticket_number} has been assigned to you: {ticket.subject}",
            )
        elif ticket.assigned_team_id:
            cls.notify_team(
                ticket.assigned_team, "ticket_assigned", "New Ticket for Team",
                f"Ticket #{ticket.ticket_number} has been assigned to your team: {ticket.subject}",
                ticket=ticket,
            )

    @classmethod
    def notify_ticket_assigned(cls, ticket, assigned_by=None):
        exclude = [assigned_by.pk] if assigned_by else []
        if ticket.assigned_agent_id:
            cls.notify_agent(
                ticket, "ticket_assigned", "Ticket Assigned",
                f"Ticket #{ticket.ticket_number} has been assigned to you by "
                f"{_name(assigned_by)}: {ticket.subject}",
                exclude=exclude,
            )
        elif ticket.assigned_team_id:
            cls.notify_team(
                ticket.assigned_team, "ticket_assigned", "New Ticket for Team",
                f"Ticket #{ticket.ticket_number} has been assigned to your team: {ticket.subject}",
                ticket=ticket, exclude=exclude,
            )

    @classmethod
    def notify_ticket_updated(cls, ticket, updated_by=None, changes=None):
        exclude = [updated_by.pk] if updated_by else []
        message = f"Ticket #{ticket.ticket_number} has been updated by {_name(updated_by)}"
        if cls.notify_requester(ticket, "ticket_updated", "Ticket Updated", message,
                                data=changes, exclude=exclude):
            exclude.append(ticket.requester_id)
        if cls.notify_agent(
            ticket, "ticket_updated", "Ticket Updated",
            f"Ticket #{ticket.ticket_number} has been updated: {ticket.subject}",
            data=changes, exclude=exclude,
        ):
            exclude.append(ticket.assigned_agent_id)
        cls.notify_watchers(ticket, "ticket_updated", "Ticket Updated", message,
                            exclude=exclude, data=changes)

    @classmethod
    def notify_ticket_resolved(cls, ticket, resolved_by=None):
        exclude = [resolved_by.pk] if resolved_by else []
        if cls.notify_requester(
            ticket, "ticket_resolved", "Ticket Resolved",
            f"Ticket #{ticket.ticket_number} has been resolved: {ticket.subject}",
            exclude=exclude,
        ):
            exclude.append(ticket.requester_id)
        cls.notify_watchers(
            ticket, "ticket_resolved", "Ticket Resolved",
            f"Ticket #{ticket.ticket_number} has been resolved by {_name(resolved_by)}",
            exclude=exclude,
        )

    @classmethod
    def notify_ticket_closed(cls, ticket, closed_by=None):
        exclude = [closed_by.pk] if closed_by else []
        if cls.notify_requester(
            ticket, "ticket_closed", "Ticket Closed",
            f"Ticket #{ticket.ticket_number} has been closed: {ticket.subject}",
            exclude=exclude,
        ):
            exclude.append(ticket.requester_id)
        if cls.notify_agent(
            ticket, "ticket_closed", "Ticket Closed",
            f"Ticket #{ticket.ticket_number} has been closed by {_name(closed_by)}",
            exclude=exclude,
        ):
            exclude.append(ticket.assigned_agent_id)
        cls.notify_watchers(
            ticket, "ticket_closed", "Ticket Closed",
            f"Ticket #{ticket.ticket_number} has been closed by {_name(closed_by)}",
            exclude=exclude,
        )

    @classmethod
    def notify_ticket_reassigned(cls, ticket, previous_agent, reassigned_by=None):
        """Tell the agent who lost the ticket where it went."""
        if previous_agent is None or (reassigned_by and previous_agent.pk == reassigned_by.pk):
            return None
        if ticket.assigned_agent_id:
            target = _name(ticket.assigned_agent)
            title = "Ticket Reassigned"
        else:
            target = f"team {ticket.assigned_team.name}" if ticket.assigned_team_id else "nobody"
            title = "Ticket Reassigned to Team"
        return cls.create(
            previous_agent, "ticket_reassigned", title,
            f"Ticket #{ticket.ticket_number} has been reassigned from you to {target}: "
            f"{ticket.subject}",
            ticket, related_user=reassigned_by,
        )

    @classmethod
    def notify_comment_added(cls, ticket, comment, commenter):
        """Internal notes reach the assigned agent only."""
        type = "comment_internal" if comment.is_internal else "comment_added"
        title = "Internal Comment Added" if comment.is_internal else "New Comment"
        message = (
            f"{_name(commenter)} commented on ticket #{ticket.ticket_number}: "
            f"{_excerpt(comment.body)}"
        )
        exclude = [commenter.pk] if commenter else []

        if not comment.is_internal:
            if cls.notify_requester(ticket, type, title, message, exclude=exclude):
                exclude.append(ticket.requester_id)
        if cls.notify_agent(ticket, type, title, message, exclude=exclude):
            exclude.append(ticket.assigned_agent_id)
        if not comment.is_internal:
            cls.notify_watchers(ticket, type, title, message, exclude=exclude)

    @classmethod
    def notify_ticket_escalated(cls, ticket, rule, targets):
        """Deliver the notification targets collected from an escalation rule."""
        title = "Ticket Escalated"
        message = f"Ticket #{ticket.ticket_number} has been escalated: {ticket.subject}"
        data = {"rule_id": rule.pk, "rule": rule.name} if rule is not None else None

        for target in targets:
            kind = target.get("type")
            if kind == "team":
                team = _lookup(Department, target.get("value"))
                if team is None:
                    logger.warning("Escalation team %r not found", target.get("value"))
                    continue
                for member in team.active_members():
                    cls.create(member, "ticket_escalated", title, message, ticket, data=data)
            elif kind == "agent":
                agent = _lookup(Employee, target.get("value"))
                if agent is None:
                    logger.warning("Escalation agent %r not found", target.get("value"))
                    continue
                cls.create(
                    agent, "ticket_escalated", title,
                    f"Ticket #{ticket.ticket_number} has been escalated to you: {ticket.subject}",
                    ticket, data=data,
                )
            elif kind == "manager":
                team = ticket.assigned_team
                if team is not None and team.manager_id:
                    cls.create(team.manager, "ticket_escalated", title, message, ticket, data=data)

    @classmethod
    def notify_sla_breached(cls, ticket, breach_type):
        title = (
            "SLA Response Time Breached" if breach_type == "response"
            else "SLA Resolution Time Breached"
        )
        message = f"Ticket #{ticket.ticket_number} has breached its {breach_type} SLA time limit."
        cls.notify_agent(ticket, "sla_breached", title, message)
        if ticket.assigned_team_id:
            exclude = [ticket.assigned_agent_id] if ticket.assigned_agent_id else []
            cls.notify_team(ticket.assigned_team, "sla_breached", title, message,
                            ticket=ticket, exclude=exclude)

    # ── Approval events ───────────────────────────────────────────────────

    @classmethod
    def notify_approval_requested(cls, ticket, approver, level):
        label = "Line Manager" if level == "lm" else "Head of Department"
        return cls.create(
            approver, "approval_requested", f"{label} Approval Required",
            f"Ticket #{ticket.ticket_number} from {_name(ticket.requester)} needs your "
            f"approval: {ticket.subject}",
            ticket, related_user=ticket.requester, data={"approval_level": level},
        )

    @classmethod
    def notify_approval_approved(cls, ticket, approver, level, comments=None):
        label = "Line Manager" if level == "lm" else "Head of Department"
        message = f"Ticket #{ticket.ticket_number} was approved by {_name(approver)} ({label})."
        if comments:
            message += f" Comments: {comments}"
        return cls.create(
            ticket.requester, "approval_approved", "Ticket Approved", message,
            ticket, related_user=approver, data={"approval_level": level},
        )

    @classmethod
    def notify_approval_rejected(cls, ticket, approver, level, comments=None):
        label = "Line Manager" if level == "lm" else "Head of Department"
        message = f"Ticket #{ticket.ticket_number} was rejected by {_name(approver)} ({label})."
        if comments:
            message += f" Reason: {comments}"
        return cls.create(
            ticket.requester, "approval_rejected", "Ticket Rejected", message,
            ticket, related_user=approver, data={"approval_level": level},
        )

    # ── Inbox ─────────────────────────────────────────────────────────────

    @staticmethod
    def unread_count(employee) -> int:
        return Notification.objects.filter(recipient=employee).unread().count()

    @staticmethod
    def mark_all_read(employee) -> int:
        return (
            Notification.objects.filter(recipient=employee).unread()
            .update(is_read=True, read_at=timezone.now())
        )

"""
tickets/lifecycle.py
====================
Create, update and comment on tickets. These are the entry points callers
(admin actions, management commands, imports) go through so that history,
automation, approvals, escalation and notifications all fire.

`actor=None` means the change comes from the Django admin or another
trusted system caller: permission checks are skipped and history rows have
no user.

Side effects after the main write are best-effort: a failing rule or
notification is logged and never undoes the ticket change.
"""

import logging
from dataclasses import dataclass, field

from django.core.exceptions import PermissionDenied
from django.db import models, transaction
from django.utils import timezone

from .approvals import ApprovalWorkflowService
from .automation import AutomationService
from .escalation import EscalationService
from .models import Department, Employee, Tag, Ticket, TicketComment
from .notifications import NotificationService
from .permissions import AGENT_ROLES, Perm
from .rules import PRIORITIES, SOURCES, STATUSES
from .sla import apply_sla_policy, flag_late_response

logger = logging.getLogger(__name__)

HISTORY_ACTIONS = {
    "status":            "status_changed",
    "priority":          "priority_changed",
    "assigned_agent_id": "assigned",
    "assigned_team_id":  "assigned",
    "category_id":       "category_changed",
    "sla_policy_id":     "sla_changed",
    "project_id":        "project_changed",
}

# Fields a caller may change through update_ticket().
EDITABLE_FIELDS = {
    "subject", "description", "status", "priority", "source", "estimated_cost",
    "requester_id", "assigned_team_id", "assigned_agent_id", "category_id",
    "sla_policy_id", "project_id", "first_response_due_at", "resolution_due_at",
}

# Statuses that carry a resolved_at / closed_at stamp.
FINISHED_STATUSES = {"resolved", "closed"}

BULK_ACTIONS = ["status", "priority", "assign_agent", "assign_team", "add_tags", "remove_tags"]


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------

def _attname_changes(changes: dict) -> dict:
    """
    Accept `assigned_agent=<Employee>` or `assigned_agent_id=3` alike and
    return {attname: python value}.
    """
    normalized = {}
    for key, value in changes.items():
        field = Ticket._meta.get_field(key)
        attname = field.attname
        if attname not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{key}' cannot be updated")
        if isinstance(value, models.Model):
            value = value.pk
        if value == "":
            value = None
        normalized[attname] = field.to_python(value) if value is not None else None
    return normalized


def _display(attname, value):
    if value is None or value == "":
        return "empty"
    field = Ticket._meta.get_field(attname)
    if field.is_relation:
        related = field.related_model.objects.filter(pk=value).first()
        return str(related) if related else str(value)
    if field.choices:
        return dict(field.flatchoices).get(value, value)
    return str(value)


def _label(attname):
    return Ticket._meta.get_field(attname).name.replace("_", " ").capitalize()


def _best_effort(what, func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except Exception:
        logger.exception("[workflow] %s failed", what)
        return None


def _actor_id(actor):
    return actor.pk if actor is not None else None


def can_change_status(employee, ticket) -> bool:
    if employee.has_perm(Perm.ASSIGN_TICKETS):
        return True
    if ticket.assigned_agent_id:
        return ticket.assigned_agent_id == employee.pk
    if ticket.assigned_team_id:
        return (
            employee.department_id == ticket.assigned_team_id
            and employee.role in AGENT_ROLES
        )
    return True


def _check_assignment(actor, ticket, new_agent_id):
    if actor.has_perm(Perm.ASSIGN_TICKETS):
        return
    if new_agent_id == actor.pk:
        if ticket.assigned_agent_id is None and ticket.assigned_team_id == actor.department_id:
            return
        raise PermissionDenied(
            "You can only pick unassigned tickets that belong to your team."
        )
    if new_agent_id is not None:
        raise PermissionDenied(
            "You can only assign tickets to yourself. Only managers and admins "
            "can assign tickets to others."
        )


# ---------------------------------------------------------------------------
# CREATE
# ---------------------------------------------------------------------------

def create_ticket(data: dict, actor=None) -> Ticket:
    """
    Create a ticket from a dict of model field values. `tags` and `watchers`
    may hold instances or ids. The requester defaults to *actor*.
    """
    if actor is not None and not actor.has_perm(Perm.CREATE_TICKETS):
        raise PermissionDenied("You do not have permission to create tickets.")

    data = dict(data)
    tags = data.pop("tags", None)
    watchers = data.pop("watchers", None)
    return register_ticket(Ticket(**data), actor, tags=tags, watchers=watchers)


def register_ticket(ticket: Ticket, actor=None, tags=None, watchers=None) -> Ticket:
    """
    Save a new, unsaved ticket and run the intake workflow on it: SLA due
    dates, `created` history, creation automation, the approval chain and
    creation notifications.
    """
    if ticket.source not in SOURCES:
        ticket.source = "web"

    with transaction.atomic():
        if ticket.requester_id is None and actor is not None:
            ticket.requester = actor
        apply_sla_policy(ticket)
        ticket.save()
        if tags:
            ticket.tags.set(tags)
        if watchers:
            ticket.watchers.set(watchers)
        ticket.record_history(
            "created", user=actor, description=f"Ticket {ticket.ticket_number} created",
        )

    logger.info("[workflow] Ticket %s created by %s", ticket.ticket_number, _actor_id(actor))

    AutomationService.on_ticket_created(ticket)
    ticket.refresh_from_db()
    _best_effort("Approval workflow", ApprovalWorkflowService.initialize_workflow, ticket, actor)
    ticket.refresh_from_db()
    _best_effort("Creation notifications", NotificationService.notify_ticket_created, ticket)
    return ticket


# ---------------------------------------------------------------------------
# UPDATE
# ---------------------------------------------------------------------------

def update_ticket(ticket: Ticket, changes: dict, actor=None) -> dict:
    """
    Apply *changes* on behalf of *actor*. Returns the recorded diff as
    {attname: {"old": ..., "new": ...}}; unchanged values are left out.
    Raises PermissionDenied when the actor may not make the change.
    """
    if actor is not None and not actor.has_perm(Perm.EDIT_TICKETS):
        raise PermissionDenied("You do not have permission to edit tickets.")

    changes = dict(changes)
    tags = changes.pop("tags", None)
    watchers = changes.pop("watchers", None)
    data = _attname_changes(changes)

    if actor is not None:
        if "assigned_agent_id" in data and data["assigned_agent_id"] != ticket.assigned_agent_id:
            _check_assignment(actor, ticket, data["assigned_agent_id"])
        if "status" in data and data["status"] != ticket.status:
            if not can_change_status(actor, ticket):
                raise PermissionDenied(
                    "You can only change the status of tickets assigned to you or your "
                    "team. Managers and admins can change any ticket status."
                )

    diff = {}
    for attname, new in data.items():
        old = getattr(ticket, attname)
        if (old is None or old == "") and (new is None or new == ""):
            continue
        if old != new:
            diff[attname] = {"old": old, "new": new}

    if not diff and tags is None and watchers is None:
        return {}

    now = timezone.now()
    with transaction.atomic():
        for attname, change in diff.items():
            setattr(ticket, attname, change["new"])
        if "status" in diff:
            if ticket.status == "resolved":
                ticket.resolved_at = now
            elif ticket.status == "closed":
                ticket.closed_at = now
                ticket.resolved_at = ticket.resolved_at or now
            else:
                ticket.resolved_at = None
                ticket.closed_at = None
        if "sla_policy_id" in diff and ticket.sla_policy_id:
            apply_sla_policy(ticket, now=now, overwrite=True)
        ticket.save()
        if tags is not None:
            ticket.tags.set(tags)
        if watchers is not None:
            ticket.watchers.set(watchers)

        for attname, change in diff.items():
            old_display = _display(attname, change["old"])
            new_display = _display(attname, change["new"])
            ticket.record_history(
                HISTORY_ACTIONS.get(attname, "field_changed"),
                user=actor, field_name=attname,
                old_value=old_display, new_value=new_display,
                description=f"{_label(attname)} changed from {old_display} to {new_display}",
            )

    if not diff:
        return diff

    logger.info("[workflow] Ticket %s updated by %s: %s",
                ticket.ticket_number, _actor_id(actor), ", ".join(diff))

    ticket.refresh_from_db()
    AutomationService.on_ticket_updated(ticket)
    if "status" in diff:
        AutomationService.on_ticket_status_changed(ticket)
    _best_effort("Escalation check", EscalationService.check_ticket, ticket)
    ticket.refresh_from_db()
    _best_effort("Update notifications", _notify_update, ticket, diff, actor)
    return diff


def _notify_update(ticket, diff, actor):
    payload = {
        attname: {"old": _display(attname, c["old"]), "new": _display(attname, c["new"])}
        for attname, c in diff.items()
    }
    if any(diff.get(a, {}).get("new") for a in ("assigned_agent_id", "assigned_team_id")):
        NotificationService.notify_ticket_assigned(ticket, assigned_by=actor)
    previous_agent_id = diff.get("assigned_agent_id", {}).get("old")
    if previous_agent_id:
        NotificationService.notify_ticket_reassigned(
            ticket, Employee.objects.filter(pk=previous_agent_id).first(), actor,
        )
    NotificationService.notify_ticket_updated(ticket, actor, payload)
    new_status = diff.get("status", {}).get("new")
    if new_status == "resolved":
        NotificationService.notify_ticket_resolved(ticket, actor)
    elif new_status == "closed":
        NotificationService.notify_ticket_closed(ticket, actor)


# ---------------------------------------------------------------------------
# BULK UPDATE
# ---------------------------------------------------------------------------

@dataclass
class BulkResult:
    """
    Fields
    ------
    updated   Tickets that changed.
    failed    Tickets the actor was not allowed to change.
    errors    One message per failed ticket.
    """
    updated: int = 0
    failed:  int = 0
    errors:  list = field(default_factory=list)


def _bulk_changes(action, value):
    if action == "status":
        if value not in STATUSES:
            raise ValueError(f"Unknown status '{value}'")
        return {"status": value}
    if action == "priority":
        if value not in PRIORITIES:
            raise ValueError(f"Unknown priority '{value}'")
        return {"priority": value}
    if action == "assign_agent":
        agent = Employee.objects.filter(pk=value, is_active=True).first()
        if agent is None:
            raise ValueError(f"Agent {value!r} not found")
        return {"assigned_agent_id": agent.pk}
    team = Department.objects.filter(pk=value, is_active=True).first()
    if team is None:
        raise ValueError(f"Team {value!r} not found")
    return {"assigned_team_id": team.pk, "assigned_agent_id": None}


def _bulk_tags(ticket, action, tags, actor) -> bool:
    current = set(ticket.tags.values_list("pk", flat=True))
    if action == "add_tags":
        affected = [t for t in tags if t.pk not in current]
        if affected:
            ticket.tags.add(*affected)
        verb = "added"
    else:
        affected = [t for t in tags if t.pk in current]
        if affected:
            ticket.tags.remove(*affected)
        verb = "removed"
    if not affected:
        return False
    ticket.record_history(
        "tags_changed", user=actor, field_name="tags",
        description=f"Tags {verb}: {', '.join(t.name for t in affected)}",
    )
    return True


def bulk_update_tickets(tickets, action: str, value, actor=None) -> BulkResult:
    """
    Apply one *action* to many tickets. Each ticket goes through the same
    checks and side effects as a single update; tickets the actor may not
    change are counted in `failed` and skipped.

    action   status | priority | assign_agent | assign_team | add_tags | remove_tags
    value    the new status / priority, an employee or department id, or a
             list of tag ids
    """
    if action not in BULK_ACTIONS:
        raise ValueError(f"Unknown bulk action '{action}'")
    if actor is not None:
        needed = Perm.ASSIGN_TICKETS if action == "assign_team" else Perm.EDIT_TICKETS
        if not actor.has_perm(needed):
            raise PermissionDenied("You do not have permission to update these tickets.")

    if action in ("add_tags", "remove_tags"):
        ids = value if isinstance(value, (list, tuple, set)) else [value]
        tags = list(Tag.objects.filter(pk__in=ids))
        if not tags:
            raise ValueError("No matching tags")
    else:
        changes = _bulk_changes(action, value)

    result = BulkResult()
    for ticket in list(tickets):
        try:
            if action in ("add_tags", "remove_tags"):
                changed = _bulk_tags(ticket, action, tags, actor)
            else:
                changed = bool(update_ticket(ticket, changes, actor))
        except PermissionDenied as exc:
            result.failed += 1
            result.errors.append(f"Ticket #{ticket.ticket_number}: {exc}")
            continue
        if changed:
            result.updated += 1

    logger.info("[workflow] Bulk %s by %s: %d updated, %d failed",
                action, _actor_id(actor), result.updated, result.failed)
    return result


# ---------------------------------------------------------------------------
# COMMENTS
# ---------------------------------------------------------------------------

def add_comment(ticket: Ticket, author, body: str, is_internal=False, parent=None) -> TicketComment:
    """
    The first public reply from anyone but the requester counts as the
    ticket's first response. A first response posted after its due time is
    flagged as a response SLA breach straight away.
    """
    if author is not None and not author.has_perm(Perm.VIEW_TICKETS):
        raise PermissionDenied("You do not have permission to comment on tickets.")

    first_response = False
    with transaction.atomic():
        comment = TicketComment.objects.create(
            ticket=ticket, author=author, body=body,
            is_internal=is_internal, parent=parent,
        )
        if (
            not is_internal
            and author is not None
            and author.pk != ticket.requester_id
            and ticket.first_response_at is None
        ):
            ticket.first_response_at = comment.created_at
            ticket.save(update_fields=["first_response_at", "updated_at"])
            first_response = True
        ticket.record_history(
            "internal_note_added" if is_internal else "commented",
            user=author,
            description="Internal note added" if is_internal else "Comment added",
        )

    if first_response:
        _best_effort("Late response check", flag_late_response, ticket)
    _best_effort("Comment notifications", NotificationService.notify_comment_added,
                 ticket, comment, author)
    return comment

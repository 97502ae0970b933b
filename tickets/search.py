"""
tickets/search.py
=================
Ticket search: free text, field filters, per-user visibility and ordering.
Filters are a plain dict so they can be stored in SavedSearch.filters.

Recognised keys
---------------
q                 text in number / subject / description / requester name or email
status, priority  a value or a list of values
team, agent       department / employee id; agent="__none" means unassigned
category, requester, project
date_from, date_to    ISO dates, inclusive, on created_at
sla_breached      "response" | "resolution" | "any"
tags              a tag id or a list of ids
approval_status   "pending" | "approved" | "rejected" | "none"
order_by, order_dir
"""

import logging

from django.core.paginator import Paginator
from django.db.models import Case, IntegerField, Q, Value, When

from .models import Employee, Ticket, TicketApproval
from .permissions import Perm, Role
from .rules import PRIORITY_RANK

logger = logging.getLogger(__name__)

ORDER_FIELDS = ["created_at", "updated_at", "status", "priority", "ticket_number", "subject"]

UNASSIGNED = "__none"


def _as_list(value):
    return list(value) if isinstance(value, (list, tuple, set)) else [value]


def visible_to(queryset, user: Employee):
    """Restrict *queryset* to tickets *user* may see."""
    if user.has_perm(Perm.ASSIGN_TICKETS):
        return queryset

    scope = Q(requester=user) | Q(assigned_agent=user) | Q(watchers=user)
    if user.department_id:
        scope |= Q(assigned_team_id=user.department_id)
        if user.role == Role.MANAGER:
            scope |= Q(assigned_team__manager=user)
    return queryset.filter(scope).distinct()


def _approval_filter(queryset, approval_status):
    approvals = TicketApproval.objects.filter
    if approval_status == "pending":
        return queryset.filter(pk__in=approvals(status="pending").values("ticket_id"))
    if approval_status == "approved":
        return queryset.filter(
            pk__in=approvals(status="approved").values("ticket_id"),
        ).exclude(pk__in=approvals(status="pending").values("ticket_id"))
    if approval_status == "rejected":
        return queryset.filter(pk__in=approvals(status="rejected").values("ticket_id"))
    if approval_status == "none":
        return queryset.filter(approvals__isnull=True)
    return queryset


def _ordered(queryset, order_by, order_dir):
    if order_by not in ORDER_FIELDS:
        order_by = "created_at"
    descending = str(order_dir or "desc").lower() != "asc"

    if order_by == "priority":
        queryset = queryset.annotate(
            priority_rank=Case(
                *[When(priority=p, then=Value(rank)) for p, rank in PRIORITY_RANK.items()],
                default=Value(-1),
                output_field=IntegerField(),
            )
        )
        order_by = "priority_rank"
    return queryset.order_by(f"-{order_by}" if descending else order_by, "-id")


def search_tickets(filters: dict, user=None):
    """Return a queryset of the tickets matching *filters*."""
    filters = filters or {}
    qs = Ticket.objects.select_related(
        "requester", "assigned_team", "assigned_agent", "category", "sla_policy",
        "project",
    ).prefetch_related("tags")

    if user is not None:
        qs = visible_to(qs, user)

    text = (filters.get("q") or "").strip()
    if text:
        qs = qs.filter(
            Q(ticket_number__icontains=text)
            | Q(subject__icontains=text)
            | Q(description__icontains=text)
            | Q(requester__first_name__icontains=text)
            | Q(requester__last_name__icontains=text)
            | Q(requester__email__icontains=text)
        )

    for key in ("status", "priority"):
        if filters.get(key):
            qs = qs.filter(**{f"{key}__in": _as_list(filters[key])})

    if filters.get("team"):
        qs = qs.filter(assigned_team_id=filters["team"])

    agent = filters.get("agent")
    if agent == UNASSIGNED:
        qs = qs.filter(assigned_agent__isnull=True)
    elif agent:
        qs = qs.filter(assigned_agent_id=agent)

    if filters.get("category"):
        qs = qs.filter(category_id=filters["category"])
    if filters.get("requester"):
        qs = qs.filter(requester_id=filters["requester"])
    if filters.get("project"):
        qs = qs.filter(project_id=filters["project"])
    if filters.get("date_from"):
        qs = qs.filter(created_at__date__gte=filters["date_from"])
    if filters.get("date_to"):
        qs = qs.filter(created_at__date__lte=filters["date_to"])

    breached = filters.get("sla_breached")
    if breached == "response":
        qs = qs.filter(response_sla_breached=True)
    elif breached == "resolution":
        qs = qs.filter(resolution_sla_breached=True)
    elif breached == "any":
        qs = qs.filter(Q(response_sla_breached=True) | Q(resolution_sla_breached=True))

    if filters.get("tags"):
        qs = qs.filter(tags__in=_as_list(filters["tags"])).distinct()

    if filters.get("approval_status"):
        qs = _approval_filter(qs, filters["approval_status"])

    return _ordered(qs, filters.get("order_by"), filters.get("order_dir"))


def paginate(queryset, page=1, per_page=15):
    return Paginator(queryset, per_page).get_page(page)


def suggestions(query: str, limit=5) -> dict:
    """Ticket numbers and subjects containing *query*."""
    query = (query or "").strip()
    if not query:
        return {"tickets": [], "subjects": []}
    tickets = Ticket.objects.order_by()
    return {
        "tickets": list(
            tickets.filter(ticket_number__icontains=query)
            .values_list("ticket_number", flat=True)[:limit]
        ),
        "subjects": list(
            tickets.filter(subject__icontains=query)
            .values_list("subject", flat=True).distinct()[:limit]
        ),
    }

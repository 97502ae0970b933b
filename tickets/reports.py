"""
tickets/reports.py
==================
Dashboard and report figures. Every function returns plain dicts/lists so
the results can be rendered by the admin, dumped to JSON or exported.

Periods: "7d", "30d", "90d" or "all" (unknown values mean "7d").
"""

from datetime import timedelta

from django.db.models import Count, F, Q
from django.db.models.functions import TruncDate
from django.utils import timezone

from .models import Employee, SlaPolicy, Ticket
from .rules import OPEN_STATUSES, PRIORITIES, STATUSES

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "all": None}

DONE = Q(status__in=["resolved", "closed"])


def _pct(part, whole, places=1):
    return round(part / whole * 100, places) if whole else 0


def period_range(period="7d", now=None):
    """Return (start, end) for *period*; both None for "all"."""
    now = now or timezone.now()
    days = PERIOD_DAYS.get(period, 7)
    if days is None:
        return None, None
    return now - timedelta(days=days), now


def _tickets(period="all", now=None):
    start, end = period_range(period, now)
    qs = Ticket.objects.order_by()
    if start is not None:
        qs = qs.filter(created_at__range=(start, end))
    return qs


# ---------------------------------------------------------------------------
# OVERVIEW
# ---------------------------------------------------------------------------

def overview(period="7d", now=None) -> dict:
    qs = _tickets(period, now)
    counts = qs.aggregate(
        total=Count("id"),
        open=Count("id", filter=Q(status__in=OPEN_STATUSES)),
        resolved=Count("id", filter=Q(status="resolved")),
        closed=Count("id", filter=Q(status="closed")),
        cancelled=Count("id", filter=Q(status="cancelled")),
    )

    durations = [
        (resolved_at - created_at).total_seconds() / 3600
        for created_at, resolved_at in qs.filter(resolved_at__isnull=False)
        .values_list("created_at", "resolved_at")
    ]
    counts["avg_resolution_hours"] = round(sum(durations) / len(durations), 1) if durations else 0
    counts["resolution_rate"] = _pct(counts["resolved"] + counts["closed"], counts["total"])
    return counts


def status_breakdown() -> dict:
    rows = dict(Ticket.objects.order_by().values_list("status").annotate(n=Count("id")))
    return {status: rows.get(status, 0) for status in STATUSES}


def priority_breakdown() -> dict:
    rows = dict(Ticket.objects.order_by().values_list("priority").annotate(n=Count("id")))
    return {priority: rows.get(priority, 0) for priority in PRIORITIES}


# ---------------------------------------------------------------------------
# SLA
# ---------------------------------------------------------------------------

def sla_compliance(period="7d", now=None) -> dict:
    qs = _tickets(period, now).filter(sla_policy__isnull=False)
    counts = qs.aggregate(
        total=Count("id"),
        response=Count("id", filter=Q(response_sla_breached=True)),
        resolution=Count("id", filter=Q(resolution_sla_breached=True)),
    )
    total = counts["total"]
    return {
        "total_with_sla":             total,
        "response_breached":          counts["response"],
        "resolution_breached":        counts["resolution"],
        "response_compliance_rate":   _pct(total - counts["response"], total),
        "resolution_compliance_rate": _pct(total - counts["resolution"], total),
    }


def sla_by_policy(date_from=None, date_to=None) -> list:
    """Per-policy compliance; a policy with no tickets is 100% compliant."""
    ticket_filter = Q()
    if date_from:
        ticket_filter &= Q(tickets__created_at__date__gte=date_from)
    if date_to:
        ticket_filter &= Q(tickets__created_at__date__lte=date_to)

    policies = SlaPolicy.objects.annotate(
        total=Count("tickets", filter=ticket_filter),
        response_breaches=Count(
            "tickets", filter=ticket_filter & Q(tickets__response_sla_breached=True)),
        resolution_breaches=Count(
            "tickets", filter=ticket_filter & Q(tickets__resolution_sla_breached=True)),
    ).order_by("name")

    return [
        {
            "id":                    p.pk,
            "name":                  p.name,
            "priority":              p.priority,
            "total_tickets":         p.total,
            "response_breaches":     p.response_breaches,
            "resolution_breaches":   p.resolution_breaches,
            "response_compliance":   _pct(p.total - p.response_breaches, p.total, 2) if p.total else 100,
            "resolution_compliance": _pct(p.total - p.resolution_breaches, p.total, 2) if p.total else 100,
        }
        for p in policies
    ]


# ---------------------------------------------------------------------------
# TEAMS, CATEGORIES, AGENTS
# ---------------------------------------------------------------------------

def team_performance(period="7d", now=None) -> list:
    rows = (
        _tickets(period, now)
        .filter(assigned_team__isnull=False)
        .values("assigned_team_id", team_name=F("assigned_team__name"))
        .annotate(total=Count("id"), resolved=Count("id", filter=DONE))
        .order_by("-total", "team_name")
    )
    return [
        {
            "team_id":          row["assigned_team_id"],
            "team_name":        row["team_name"],
            "total_tickets":    row["total"],
            "resolved_tickets": row["resolved"],
            "resolution_rate":  _pct(row["resolved"], row["total"]),
        }
        for row in rows
    ]


def category_distribution(period="7d", now=None, limit=10) -> list:
    rows = (
        _tickets(period, now)
        .filter(category__isnull=False)
        .values("category_id", category_name=F("category__name"))
        .annotate(count=Count("id"))
        .order_by("-count", "category_name")[:limit]
    )
    return [dict(row) for row in rows]


def agent_workload(limit=10) -> list:
    agents = (
        Employee.objects
        .filter(assigned_tickets__isnull=False)
        .annotate(
            open_tickets=Count(
                "assigned_tickets",
                filter=Q(assigned_tickets__status__in=OPEN_STATUSES),
            ),
            total_tickets=Count("assigned_tickets"),
        )
        .order_by("-open_tickets", "last_name")
        .distinct()[:limit]
    )
    return [
        {
            "id":            agent.pk,
            "name":          agent.full_name,
            "open_tickets":  agent.open_tickets,
            "total_tickets": agent.total_tickets,
        }
        for agent in agents
    ]


def ticket_trends(period="30d", now=None) -> list:
    """Tickets created per day; "all" shows the last 30 days."""
    now = now or timezone.now()
    start, end = period_range(period, now)
    if start is None:
        start, end = now - timedelta(days=30), now

    rows = (
        Ticket.objects.filter(created_at__range=(start, end))
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(count=Count("id"))
        .order_by("day")
    )
    return [{"date": row["day"].isoformat(), "count": row["count"]} for row in rows]


def recent_tickets(limit=10) -> list:
    tickets = Ticket.objects.select_related("requester", "assigned_team", "category")[:limit]
    return [
        {
            "id":            t.pk,
            "ticket_number": t.ticket_number,
            "subject":       t.subject,
            "status":        t.status,
            "priority":      t.priority,
            "requester":     t.requester.full_name if t.requester_id else None,
            "team":          t.assigned_team.name if t.assigned_team_id else None,
            "category":      t.category.name if t.category_id else None,
            "created_at":    t.created_at.isoformat(),
        }
        for t in tickets
    ]


def dashboard(period="7d") -> dict:
    """Everything the dashboard shows, in one dict."""
    return {
        "overview":              overview(period),
        "status_breakdown":      status_breakdown(),
        "priority_breakdown":    priority_breakdown(),
        "sla_compliance":        sla_compliance(period),
        "team_performance":      team_performance(period),
        "category_distribution": category_distribution(period),
        "recent_tickets":        recent_tickets(),
        "agent_workload":        agent_workload(),
        "ticket_trends":         ticket_trends(period),
        "period":                period,
    }

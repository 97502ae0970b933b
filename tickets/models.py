"""
tickets/models.py
=================
Database models:
  Department      teams and organisational units (support teams receive tickets)
  Employee        staff member: requester, agent or approver
  TicketCategory  nested categories carrying approval flags
  SlaPolicy       response / resolution targets per priority
  Tag             free labels attached to tickets
  Project         client or internal project a ticket belongs to
  Ticket          the support request itself
  TicketHistory   append-only audit trail
  TicketComment   public replies and internal notes
  TicketApproval  one stage (lm / hod) of the approval chain
  TimeEntry       time an employee logged against a ticket
  AutomationRule  event-driven condition/action rule
  EscalationRule  time-driven condition/action rule
  Notification    in-app notification for one employee
  Setting         admin-editable typed key/value store
  SavedSearch     named ticket filter sets
"""

import json
import logging
import random
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .exceptions import RuleDefinitionError
from .permissions import ROLE_CHOICES, Role, role_has_perm
from .rules import (
    AUTOMATION_ACTIONS,
    AUTOMATION_OPERATORS,
    ESCALATION_ACTIONS,
    ESCALATION_OPERATORS,
    OPEN_STATUSES,
    PRIORITY_CHOICES,
    PRIORITY_LABELS,
    SOURCE_CHOICES,
    STATUS_CHOICES,
    TIME_TRIGGER_CHOICES,
    TRIGGER_EVENT_CHOICES,
    RuleEngine,
    RulePlan,
    validate_actions,
    validate_conditions,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ORGANISATION
# ---------------------------------------------------------------------------

class Department(models.Model):
    """
    An organisational unit. Departments flagged as support teams are the
    ones tickets get routed to; `manager` receives escalation notices.
    """
    name            = models.CharField("Name", max_length=100, unique=True)
    code            = models.CharField("Code", max_length=20, unique=True)
    description     = models.TextField("Description", blank=True)
    is_support_team = models.BooleanField("Support Team", default=False)
    is_active       = models.BooleanField("Active", default=True)
    manager         = models.ForeignKey(
        "Employee", null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="managed_departments",
        verbose_name="Manager",
    )
    created_at      = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Department"
        verbose_name_plural = "Departments"

    def __str__(self):
        return f"{self.name} ({self.code})"

    def active_members(self):
        return self.members.filter(is_active=True)


class Employee(models.Model):
    """A staff member. `role` is one of the names in permissions.Role."""
    employee_id = models.CharField("Employee ID", max_length=30, unique=True)
    first_name  = models.CharField("First Name",  max_length=60)
    last_name   = models.CharField("Last Name",   max_length=60)
    email       = models.EmailField("Email",      unique=True)
    department  = models.ForeignKey(
        Department, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="members",
        verbose_name="Department",
    )
    role        = models.CharField("Role", max_length=40, choices=ROLE_CHOICES,
                                   default=Role.REQUESTER)
    is_active   = models.BooleanField("Active", default=True)
    created_at  = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering    = ["last_name", "first_name"]
        verbose_name = "Employee"
        verbose_name_plural = "Employees"

    def __str__(self):
        return f"{self.full_name} ({self.employee_id})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def has_perm(self, codename: str) -> bool:
        return self.is_active and role_has_perm(self.role, codename)

    def has_role(self, *roles) -> bool:
        return self.role in roles


# ---------------------------------------------------------------------------
# CLASSIFICATION
# ---------------------------------------------------------------------------

class TicketCategory(models.Model):
    name          = models.CharField("Name", max_length=100)
    slug          = models.SlugField("Slug", max_length=120, unique=True)
    description   = models.TextField("Description", blank=True)
    parent        = models.ForeignKey(
        "self", null=True, blank=True,
        on_delete=models.CASCADE,
        related_name="children",
        verbose_name="Parent Category",
    )
    default_team  = models.ForeignKey(
        Department, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="default_categories",
        verbose_name="Default Team",
    )
    is_active     = models.BooleanField("Active", default=True)
    sort_order    = models.IntegerField("Sort Order", default=0)

    # Approval chain
    requires_approval      = models.BooleanField("Requires LM Approval", default=True)
    requires_hod_approval  = models.BooleanField("Requires HOD Approval", default=False)
    hod_approval_threshold = models.DecimalField(
        "HOD Cost Threshold", max_digits=10, decimal_places=2,
        null=True, blank=True,
    )

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name = "Ticket Category"
        verbose_name_plural = "Ticket Categories"

    def __str__(self):
        return self.name

    def descendants(self) -> list:
        """Every nested child category, depth first."""
        found = []
        for child in self.children.all():
            found.append(child)
            found.extend(child.descendants())
        return found


class SlaPolicy(models.Model):
    """Times are in minutes."""
    name            = models.CharField("Name", max_length=100)
    description     = models.TextField("Description", blank=True)
    priority        = models.CharField("Priority", max_length=10,
                                       choices=PRIORITY_CHOICES, default="medium")
    response_time   = models.PositiveIntegerField("Response Time (min)")
    resolution_time = models.PositiveIntegerField("Resolution Time (min)")
    is_active       = models.BooleanField("Active", default=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "SLA Policy"
        verbose_name_plural = "SLA Policies"

    def __str__(self):
        return self.name


class Tag(models.Model):
    name  = models.CharField("Name", max_length=50, unique=True)
    color = models.CharField("Color", max_length=7, default="#6b7280")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Project(models.Model):
    STATUS_CHOICES = [
        ("planned",   "Planned"),
        ("active",    "Active"),
        ("on_hold",   "On Hold"),
        ("completed", "Completed"),
    ]

    name        = models.CharField("Name", max_length=150)
    code        = models.CharField("Code", max_length=30, unique=True)
    client_name = models.CharField("Client", max_length=150, blank=True)
    description = models.TextField("Description", blank=True)
    status      = models.CharField("Status", max_length=20, choices=STATUS_CHOICES,
                                   default="active")
    start_date  = models.DateField("Start Date", null=True, blank=True)
    end_date    = models.DateField("End Date", null=True, blank=True)
    is_active   = models.BooleanField("Active", default=True)
    created_at  = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Project"
        verbose_name_plural = "Projects"

    def __str__(self):
        return f"{self.name} ({self.code})"


# ---------------------------------------------------------------------------
# TICKET
# ---------------------------------------------------------------------------

class TicketQuerySet(models.QuerySet):

    def open(self):
        return self.filter(status__in=OPEN_STATUSES)


class Ticket(models.Model):
    """
    A support request. The number is generated on first save from the
    `ticket_number_prefix` setting.
    """

    # Auto-generated identifier
    ticket_number = models.CharField(max_length=20, unique=True, editable=False)

    subject       = models.CharField("Subject", max_length=255)
    description   = models.TextField("Description", blank=True)

    requester      = models.ForeignKey(
        Employee, on_delete=models.PROTECT,
        related_name="requested_tickets",
        verbose_name="Requester",
    )
    assigned_team  = models.ForeignKey(
        Department, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="team_tickets",
        verbose_name="Assigned Team",
    )
    assigned_agent = models.ForeignKey(
        Employee, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="assigned_tickets",
        verbose_name="Assigned Agent",
    )
    category       = models.ForeignKey(
        TicketCategory, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="tickets",
        verbose_name="Category",
    )
    sla_policy     = models.ForeignKey(
        SlaPolicy, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="tickets",
        verbose_name="SLA Policy",
    )
    project        = models.ForeignKey(
        Project, null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="tickets",
        verbose_name="Project",
    )

    status   = models.CharField(max_length=20, choices=STATUS_CHOICES, default="open")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    source   = models.CharField(max_length=20, choices=SOURCE_CHOICES, default="web")

    estimated_cost = models.DecimalField(
        "Estimated Cost", max_digits=12, decimal_places=2,
        null=True, blank=True,
    )

    # SLA tracking
    first_response_at       = models.DateTimeField(null=True, blank=True)
    first_response_due_at   = models.DateTimeField(null=True, blank=True)
    resolution_due_at       = models.DateTimeField(null=True, blank=True)
    resolved_at             = models.DateTimeField(null=True, blank=True)
    closed_at               = models.DateTimeField(null=True, blank=True)
    response_sla_breached   = models.BooleanField(default=False)
    resolution_sla_breached = models.BooleanField(default=False)

    tags     = models.ManyToManyField(Tag, blank=True, related_name="tickets")
    watchers = models.ManyToManyField(Employee, blank=True, related_name="watched_tickets")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TicketQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Ticket"
        verbose_name_plural = "Tickets"

    def __str__(self):
        return f"{self.ticket_number}: {self.subject}"

    def save(self, *args, **kwargs):
        if not self.ticket_number:
            self.ticket_number = self.generate_number()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_number() -> str:
        prefix = Setting.get_value("ticket_number_prefix") or helpdesk_setting("TICKET_NUMBER_PREFIX")
        while True:
            number = f"{prefix}-{random.randint(10000, 99999)}"
            if not Ticket.objects.filter(ticket_number=number).exists():
                return number

    # ── Convenience ───────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def priority_label(self) -> str:
        return PRIORITY_LABELS.get(self.priority, "Unknown")

    @property
    def sla_breached(self) -> bool:
        return self.response_sla_breached or self.resolution_sla_breached

    def current_approval(self):
        return self.approvals.filter(status=TicketApproval.PENDING).order_by("sequence").first()

    def rejected_approval(self):
        return (
            self.approvals.filter(status=TicketApproval.REJECTED)
            .order_by("-rejected_at", "-id")
            .first()
        )

    def has_rejected_approval(self) -> bool:
        return self.approvals.filter(status=TicketApproval.REJECTED).exists()

    def time_spent_minutes(self) -> int:
        return self.time_entries.aggregate(total=models.Sum("duration_minutes"))["total"] or 0

    def record_history(self, action, description="", user=None,
                       field_name="", old_value=None, new_value=None):
        return TicketHistory.objects.create(
            ticket=self,
            user=user,
            action=action,
            field_name=field_name,
            old_value=_history_text(old_value),
            new_value=_history_text(new_value),
            description=description,
        )


def _history_text(value):
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def helpdesk_setting(name):
    from django.conf import settings
    defaults = {
        "MAX_RESUBMISSIONS":    3,
        "ESCALATION_STATUSES":  list(OPEN_STATUSES),
        "TICKET_NUMBER_PREFIX": "TKT",
        "IT_DEPARTMENT_CODE":   "IT-SD",
    }
    return getattr(settings, "HELPDESK", {}).get(name, defaults[name])


class TicketHistory(models.Model):
    ticket      = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="history")
    user        = models.ForeignKey(
        Employee, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    action      = models.CharField(max_length=40)
    field_name  = models.CharField(max_length=60, blank=True)
    old_value   = models.TextField(null=True, blank=True)
    new_value   = models.TextField(null=True, blank=True)
    description = models.TextField(blank=True)
    created_at  = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = "Ticket History"
        verbose_name_plural = "Ticket History"

    def __str__(self):
        return f"{self.ticket.ticket_number} {self.action}"


class TicketComment(models.Model):
    ticket      = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="comments")
    author      = models.ForeignKey(
        Employee, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="comments",
    )
    body        = models.TextField()
    is_internal = models.BooleanField("Internal Note", default=False)
    parent      = models.ForeignKey(
        "self", null=True, blank=True,
        on_delete=models.CASCADE, related_name="replies",
    )
    created_at  = models.DateTimeField(auto_now_add=True)
    updated_at  = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Comment on {self.ticket.ticket_number}"


# ---------------------------------------------------------------------------
# APPROVALS
# ---------------------------------------------------------------------------

class TicketApproval(models.Model):
    LINE_MANAGER = "lm"
    HEAD_OF_DEPT = "hod"
    LEVEL_CHOICES = [
        (LINE_MANAGER, "Line Manager"),
        (HEAD_OF_DEPT, "Head of Department"),
    ]

    PENDING  = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    STATUS_CHOICES = [
        (PENDING,  "Pending"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
    ]

    ticket         = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="approvals")
    approval_level = models.CharField(max_length=5, choices=LEVEL_CHOICES)
    approver       = models.ForeignKey(
        Employee, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="ticket_approvals",
    )
    status         = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    comments       = models.TextField(blank=True, default="")
    approved_at    = models.DateTimeField(null=True, blank=True)
    rejected_at    = models.DateTimeField(null=True, blank=True)
    routed_to_team = models.ForeignKey(
        Department, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    sequence       = models.PositiveIntegerField(default=1)
    created_at     = models.DateTimeField(auto_now_add=True)
    updated_at     = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sequence", "id"]
        verbose_name = "Ticket Approval"
        verbose_name_plural = "Ticket Approvals"

    def __str__(self):
        return f"{self.ticket.ticket_number} {self.get_approval_level_display()} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.PENDING

    @property
    def is_line_manager(self) -> bool:
        return self.approval_level == self.LINE_MANAGER


# ---------------------------------------------------------------------------
# TIME TRACKING
# ---------------------------------------------------------------------------

ACTIVITY_TYPES = [
    "Development", "Support", "Meeting", "Research",
    "Documentation", "Testing", "Training", "Other",
]


class TimeEntryQuerySet(models.QuerySet):

    def billable(self):
        return self.filter(is_billable=True)

    def between(self, start, end):
        return self.filter(date__range=(start, end))


class TimeEntry(models.Model):
    """
    Work logged against a ticket. When both start and end times are given
    the duration is derived from them (an end before the start means the
    work ran past midnight). `amount` is filled from `hourly_rate`.
    """
    ticket           = models.ForeignKey(Ticket, on_delete=models.CASCADE,
                                         related_name="time_entries")
    employee         = models.ForeignKey(Employee, on_delete=models.CASCADE,
                                         related_name="time_entries",
                                         verbose_name="Employee")
    date             = models.DateField("Date", default=timezone.localdate)
    start_time       = models.TimeField("Start", null=True, blank=True)
    end_time         = models.TimeField("End", null=True, blank=True)
    duration_minutes = models.PositiveIntegerField("Duration (min)", default=0)
    description      = models.TextField("Description", blank=True)
    activity_type    = models.CharField("Activity", max_length=30, blank=True,
                                        choices=[(a, a) for a in ACTIVITY_TYPES])
    is_billable      = models.BooleanField("Billable", default=True)
    hourly_rate      = models.DecimalField("Hourly Rate", max_digits=10, decimal_places=2,
                                           null=True, blank=True)
    amount           = models.DecimalField("Amount", max_digits=10, decimal_places=2,
                                           null=True, blank=True)
    created_at       = models.DateTimeField(auto_now_add=True)

    objects = TimeEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-date", "-id"]
        verbose_name = "Time Entry"
        verbose_name_plural = "Time Entries"

    def __str__(self):
        return f"{self.ticket.ticket_number} {self.formatted_duration}"

    def save(self, *args, **kwargs):
        if self.start_time and self.end_time:
            start = self.start_time.hour * 60 + self.start_time.minute
            end = self.end_time.hour * 60 + self.end_time.minute
            if end < start:
                end += 24 * 60
            self.duration_minutes = end - start
        if self.hourly_rate and self.duration_minutes:
            amount = Decimal(self.duration_minutes) / 60 * Decimal(self.hourly_rate)
            self.amount = amount.quantize(Decimal("0.01"))
        super().save(*args, **kwargs)

    @property
    def duration_hours(self) -> float:
        return round(self.duration_minutes / 60, 2)

    @property
    def formatted_duration(self) -> str:
        hours, minutes = divmod(self.duration_minutes, 60)
        if hours and minutes:
            return f"{hours}h {minutes}m"
        if hours:
            return f"{hours}h"
        return f"{minutes}m"


# ---------------------------------------------------------------------------
# RULES
# ---------------------------------------------------------------------------

class RuleQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def ordered(self):
        return self.order_by("-priority", "id")

    def for_trigger(self, event):
        return self.filter(trigger_event=event)


def apply_plan(ticket, plan: RulePlan) -> None:
    """Write a plan's field updates in one save and attach its tags."""
    if plan.updates:
        for attname, value in plan.updates.items():
            setattr(ticket, attname, value)
        ticket.save(update_fields=[*plan.updates, "updated_at"])
    if plan.tag_ids:
        ticket.tags.add(*Tag.objects.filter(pk__in=plan.tag_ids))


class BaseRule(models.Model):
    name             = models.CharField("Name", max_length=150)
    description      = models.TextField("Description", blank=True)
    conditions       = models.JSONField("Conditions", default=list, blank=True)
    actions          = models.JSONField("Actions", default=list)
    priority         = models.IntegerField("Priority", default=0,
                                           help_text="Higher runs first.")
    is_active        = models.BooleanField("Active", default=True)
    execution_count  = models.PositiveIntegerField(default=0, editable=False)
    last_executed_at = models.DateTimeField(null=True, blank=True, editable=False)
    created_at       = models.DateTimeField(auto_now_add=True)
    updated_at       = models.DateTimeField(auto_now=True)

    objects = RuleQuerySet.as_manager()

    operators    = AUTOMATION_OPERATORS
    action_types = AUTOMATION_ACTIONS

    class Meta:
        abstract = True
        ordering = ["-priority", "id"]

    def __str__(self):
        return self.name

    def clean(self):
        errors = {}
        try:
            validate_conditions(self.conditions, self.operators)
        except RuleDefinitionError as exc:
            errors["conditions"] = str(exc)
        try:
            validate_actions(self.actions, self.action_types)
        except RuleDefinitionError as exc:
            errors["actions"] = str(exc)
        if errors:
            raise ValidationError(errors)

    def record_execution(self):
        self.execution_count = models.F("execution_count") + 1
        self.last_executed_at = timezone.now()
        self.save(update_fields=["execution_count", "last_executed_at"])
        self.refresh_from_db(fields=["execution_count"])


class AutomationRule(BaseRule):
    trigger_event = models.CharField("Trigger", max_length=40,
                                     choices=TRIGGER_EVENT_CHOICES,
                                     default="ticket_created")

    class Meta(BaseRule.Meta):
        verbose_name = "Automation Rule"
        verbose_name_plural = "Automation Rules"

    def matches(self, ticket) -> bool:
        return RuleEngine.automation_matches(self, ticket)

    def execute(self, ticket) -> RulePlan:
        plan = RuleEngine.plan_automation(self.actions)
        if not self.actions:
            return plan
        apply_plan(ticket, plan)
        self.record_execution()
        return plan


class EscalationRule(BaseRule):
    time_trigger_type    = models.CharField("Time Trigger", max_length=40,
                                            choices=TIME_TRIGGER_CHOICES, blank=True)
    time_trigger_minutes = models.PositiveIntegerField("After (minutes)", null=True, blank=True)

    operators    = ESCALATION_OPERATORS
    action_types = ESCALATION_ACTIONS

    class Meta(BaseRule.Meta):
        verbose_name = "Escalation Rule"
        verbose_name_plural = "Escalation Rules"

    def matches(self, ticket, now=None) -> bool:
        return RuleEngine.escalation_matches(self, ticket, now or timezone.now())

    def execute(self, ticket) -> RulePlan:
        from .notifications import NotificationService

        plan = RuleEngine.plan_escalation(self.actions)
        if not self.actions:
            return plan
        apply_plan(ticket, plan)
        ticket.record_history(
            "escalated",
            description=f"Escalated by rule '{self.name}'",
            new_value=plan.updates or None,
        )
        NotificationService.notify_ticket_escalated(ticket, self, plan.notifications)
        self.record_execution()
        return plan


# ---------------------------------------------------------------------------
# NOTIFICATIONS
# ---------------------------------------------------------------------------

class NotificationQuerySet(models.QuerySet):

    def unread(self):
        return self.filter(is_read=False)


class Notification(models.Model):
    recipient    = models.ForeignKey(Employee, on_delete=models.CASCADE,
                                     related_name="notifications")
    type         = models.CharField(max_length=40)
    title        = models.CharField(max_length=255)
    message      = models.TextField()
    ticket       = models.ForeignKey(Ticket, null=True, blank=True,
                                     on_delete=models.CASCADE, related_name="notifications")
    related_user = models.ForeignKey(Employee, null=True, blank=True,
                                     on_delete=models.SET_NULL, related_name="+")
    data         = models.JSONField(null=True, blank=True)
    is_read      = models.BooleanField(default=False)
    read_at      = models.DateTimeField(null=True, blank=True)
    created_at   = models.DateTimeField(auto_now_add=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.type} -> {self.recipient}"

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at"])


# ---------------------------------------------------------------------------
# SETTINGS & SAVED SEARCHES
# ---------------------------------------------------------------------------

class Setting(models.Model):
    """
    Typed key/value pair editable in the admin. Values are stored as text
    and converted on read according to `type`.
    """
    TYPE_CHOICES = [
        ("string",  "String"),
        ("integer", "Integer"),
        ("boolean", "Boolean"),
        ("json",    "JSON"),
    ]

    key         = models.CharField(max_length=100, unique=True)
    value       = models.TextField(blank=True, default="")
    type        = models.CharField(max_length=10, choices=TYPE_CHOICES, default="string")
    group       = models.CharField(max_length=50, default="general")
    description = models.CharField(max_length=255, blank=True)
    updated_at  = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["group", "key"]

    def __str__(self):
        return self.key

    @property
    def typed_value(self):
        if self.type == "integer":
            try:
                return int(self.value)
            except ValueError:
                return 0
        if self.type == "boolean":
            return self.value.strip().lower() in ("1", "true", "yes", "on")
        if self.type == "json":
            try:
                return json.loads(self.value) if self.value else None
            except ValueError:
                logger.warning("Setting %s holds invalid JSON", self.key)
                return None
        return self.value

    @classmethod
    def get_value(cls, key, default=None):
        setting = cls.objects.filter(key=key).first()
        if setting is None:
            return default
        return setting.typed_value

    @classmethod
    def set_value(cls, key, value, type="string", group="general", description=""):
        if type == "json":
            stored = json.dumps(value)
        elif type == "boolean":
            stored = "1" if value else "0"
        else:
            stored = str(value)
        setting, _ = cls.objects.update_or_create(
            key=key,
            defaults={"value": stored, "type": type, "group": group,
                      "description": description},
        )
        return setting

    @classmethod
    def get_group(cls, group) -> dict:
        return {s.key: s.typed_value for s in cls.objects.filter(group=group)}


class SavedSearchQuerySet(models.QuerySet):

    def visible_to(self, employee):
        return self.filter(models.Q(owner=employee) | models.Q(is_shared=True))


class SavedSearch(models.Model):
    owner       = models.ForeignKey(Employee, on_delete=models.CASCADE,
                                    related_name="saved_searches")
    name        = models.CharField(max_length=150)
    filters     = models.JSONField(default=dict, blank=True)
    is_shared   = models.BooleanField("Shared", default=False)
    usage_count = models.PositiveIntegerField(default=0, editable=False)
    created_at  = models.DateTimeField(auto_now_add=True)
    updated_at  = models.DateTimeField(auto_now=True)

    objects = SavedSearchQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        verbose_name = "Saved Search"
        verbose_name_plural = "Saved Searches"

    def __str__(self):
        return self.name

    def run(self, user=None):
        """Count the use and return the matching tickets."""
        from .search import search_tickets

        SavedSearch.objects.filter(pk=self.pk).update(usage_count=models.F("usage_count") + 1)
        self.usage_count += 1
        return search_tickets(self.filters, user=user)

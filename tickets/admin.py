"""
tickets/admin.py
================
Django admin registration. The admin is the management surface for
departments, employees, categories, SLA policies, rules and settings, and
exposes the workflow operations (approve / reject / resubmit, escalation
check, bulk updates, exports) as admin actions.

Tickets added or edited here go through lifecycle.register_ticket() and
lifecycle.update_ticket() with no actor, so SLA dates, history, automation,
approvals and notifications behave as for any other caller.
"""

from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.db.models import Q
from django.http import HttpResponse

from .approvals import ApprovalWorkflowService
from .escalation import EscalationService
from .exceptions import WorkflowError
from .exports import export_csv, export_xlsx
from .forms import AutomationRuleForm, EscalationRuleForm
from .lifecycle import EDITABLE_FIELDS, bulk_update_tickets, register_ticket, update_ticket
from .models import (
    AutomationRule,
    Department,
    Employee,
    EscalationRule,
    Notification,
    Project,
    SavedSearch,
    Setting,
    SlaPolicy,
    Tag,
    Ticket,
    TicketApproval,
    TicketCategory,
    TicketComment,
    TicketHistory,
    TimeEntry,
)


# ---------------------------------------------------------------------------
# ORGANISATION
# ---------------------------------------------------------------------------

@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display  = ["name", "code", "is_support_team", "manager", "is_active"]
    list_filter   = ["is_support_team", "is_active"]
    search_fields = ["name", "code"]
    raw_id_fields = ["manager"]


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display  = ["employee_id", "last_name", "first_name", "email", "department", "role", "is_active"]
    list_filter   = ["role", "department", "is_active"]
    search_fields = ["employee_id", "first_name", "last_name", "email"]


# ---------------------------------------------------------------------------
# CLASSIFICATION
# ---------------------------------------------------------------------------

@admin.register(TicketCategory)
class TicketCategoryAdmin(admin.ModelAdmin):
    list_display  = [
        "name", "parent", "default_team", "requires_approval",
        "requires_hod_approval", "hod_approval_threshold", "is_active", "sort_order",
    ]
    list_filter   = ["is_active", "requires_approval", "requires_hod_approval"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ["name"]}


@admin.register(SlaPolicy)
class SlaPolicyAdmin(admin.ModelAdmin):
    list_display = ["name", "priority", "response_time", "resolution_time", "is_active"]
    list_filter  = ["priority", "is_active"]


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display  = ["name", "color"]
    search_fields = ["name"]


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display  = ["name", "code", "client_name", "status", "start_date", "end_date", "is_active"]
    list_filter   = ["status", "is_active"]
    search_fields = ["name", "code", "client_name"]


# ---------------------------------------------------------------------------
# TICKETS
# ---------------------------------------------------------------------------

class TicketApprovalInline(admin.TabularInline):
    model = TicketApproval
    extra = 0
    fields = ["sequence", "approval_level", "approver", "status", "comments",
              "approved_at", "rejected_at", "routed_to_team"]
    readonly_fields = ["approved_at", "rejected_at"]


class TicketCommentInline(admin.StackedInline):
    model = TicketComment
    extra = 0
    fields = ["author", "body", "is_internal", "parent"]


class TicketHistoryInline(admin.TabularInline):
    model = TicketHistory
    extra = 0
    can_delete = False
    fields = ["created_at", "action", "field_name", "old_value", "new_value", "user", "description"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class TimeEntryInline(admin.TabularInline):
    model = TimeEntry
    extra = 0
    fields = ["date", "employee", "start_time", "end_time", "duration_minutes",
              "activity_type", "is_billable", "hourly_rate", "amount", "description"]
    readonly_fields = ["amount"]
    raw_id_fields = ["employee"]


class TicketActionForm(ActionForm):
    value = forms.CharField(
        required=False, label="Value",
        help_text="Status or priority, employee id / e-mail, team code, or tag names "
                  "separated by commas.",
    )


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = [
        "ticket_number", "subject", "requester", "category", "priority",
        "status", "assigned_team", "assigned_agent", "sla_breached", "created_at",
    ]
    list_filter  = [
        "status", "priority", "source", "assigned_team", "category", "project",
        "response_sla_breached", "resolution_sla_breached",
    ]
    search_fields = ["ticket_number", "subject", "description", "requester__email",
                     "requester__last_name"]
    raw_id_fields = ["requester", "assigned_agent"]
    filter_horizontal = ["tags", "watchers"]
    readonly_fields = [
        "ticket_number", "first_response_at", "resolved_at", "closed_at",
        "created_at", "updated_at",
    ]
    inlines = [TicketApprovalInline, TicketCommentInline, TimeEntryInline, TicketHistoryInline]
    action_form = TicketActionForm
    actions = [
        "run_escalation_check", "resubmit_for_approval",
        "bulk_set_status", "bulk_set_priority", "bulk_assign_agent", "bulk_assign_team",
        "bulk_add_tags", "bulk_remove_tags",
        "export_as_csv", "export_as_xlsx",
    ]

    fieldsets = [
        ("Ticket",         {"fields": ["ticket_number", "subject", "description", "status",
                                       "priority", "source", "category", "project",
                                       "estimated_cost"]}),
        ("People",         {"fields": ["requester", "assigned_team", "assigned_agent",
                                       "watchers", "tags"]}),
        ("SLA",            {"fields": ["sla_policy", "first_response_due_at", "resolution_due_at",
                                       "first_response_at", "response_sla_breached",
                                       "resolution_sla_breached"]}),
        ("Timestamps",     {"fields": ["resolved_at", "closed_at", "created_at", "updated_at"]}),
    ]

    @admin.display(boolean=True, description="SLA breached")
    def sla_breached(self, obj):
        return obj.sla_breached

    def save_model(self, request, obj, form, change):
        if not change:
            register_ticket(obj)
            return

        current = Ticket.objects.get(pk=obj.pk)
        changes, direct = {}, []
        for name in form.changed_data:
            model_field = Ticket._meta.get_field(name)
            if model_field.many_to_many:
                continue  # saved by save_related()
            if model_field.attname in EDITABLE_FIELDS:
                changes[name] = form.cleaned_data[name]
            else:
                setattr(current, model_field.attname, getattr(obj, model_field.attname))
                direct.append(model_field.attname)
        if direct:
            current.save(update_fields=[*direct, "updated_at"])
        update_ticket(current, changes)
        obj.refresh_from_db()

    # ── Bulk updates ──────────────────────────────────────────────────────

    def _bulk(self, request, queryset, action, value):
        try:
            result = bulk_update_tickets(queryset, action, value)
        except ValueError as exc:
            self.message_user(request, str(exc), messages.ERROR)
            return
        for error in result.errors:
            self.message_user(request, error, messages.WARNING)
        self.message_user(request, f"{result.updated} ticket(s) updated, {result.failed} failed.")

    @staticmethod
    def _value(request):
        return (request.POST.get("value") or "").strip()

    @admin.action(description="Set status of selected tickets")
    def bulk_set_status(self, request, queryset):
        self._bulk(request, queryset, "status", self._value(request))

    @admin.action(description="Set priority of selected tickets")
    def bulk_set_priority(self, request, queryset):
        self._bulk(request, queryset, "priority", self._value(request))

    @admin.action(description="Assign selected tickets to an agent")
    def bulk_assign_agent(self, request, queryset):
        value = self._value(request)
        agent = Employee.objects.filter(Q(employee_id=value) | Q(email__iexact=value)).first()
        self._bulk(request, queryset, "assign_agent", agent.pk if agent else value)

    @admin.action(description="Assign selected tickets to a team")
    def bulk_assign_team(self, request, queryset):
        value = self._value(request)
        team = Department.objects.filter(code__iexact=value).first()
        self._bulk(request, queryset, "assign_team", team.pk if team else value)

    def _tag_ids(self, request):
        names = [n.strip() for n in self._value(request).split(",") if n.strip()]
        return list(Tag.objects.filter(name__in=names).values_list("pk", flat=True))

    @admin.action(description="Add tags to selected tickets")
    def bulk_add_tags(self, request, queryset):
        self._bulk(request, queryset, "add_tags", self._tag_ids(request))

    @admin.action(description="Remove tags from selected tickets")
    def bulk_remove_tags(self, request, queryset):
        self._bulk(request, queryset, "remove_tags", self._tag_ids(request))

    @admin.action(description="Apply escalation rules to selected tickets")
    def run_escalation_check(self, request, queryset):
        escalated = sum(1 for t in queryset if EscalationService.check_ticket(t) is not None)
        self.message_user(request, f"{escalated} ticket(s) escalated.")

    @admin.action(description="Resubmit rejected tickets for approval")
    def resubmit_for_approval(self, request, queryset):
        for ticket in queryset:
            try:
                ApprovalWorkflowService.resubmit(ticket)
            except WorkflowError as exc:
                self.message_user(request, f"{ticket.ticket_number}: {exc}", messages.ERROR)

    @admin.action(description="Export selected tickets as CSV")
    def export_as_csv(self, request, queryset):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="tickets.csv"'
        export_csv(queryset, response)
        return response

    @admin.action(description="Export selected tickets as Excel")
    def export_as_xlsx(self, request, queryset):
        response = HttpResponse(
            export_xlsx(queryset),
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        response["Content-Disposition"] = 'attachment; filename="tickets.xlsx"'
        return response


@admin.register(TicketApproval)
class TicketApprovalAdmin(admin.ModelAdmin):
    list_display  = ["ticket", "approval_level", "approver", "status", "sequence", "created_at"]
    list_filter   = ["approval_level", "status"]
    search_fields = ["ticket__ticket_number", "ticket__subject"]
    raw_id_fields = ["ticket", "approver"]
    actions = ["approve_selected", "reject_selected"]

    def _run(self, request, queryset, operation, verb):
        done = 0
        for approval in queryset.select_related("ticket"):
            try:
                operation(approval)
                done += 1
            except WorkflowError as exc:
                self.message_user(request, f"{approval}: {exc}", messages.ERROR)
        self.message_user(request, f"{done} approval(s) {verb}.")

    @admin.action(description="Approve selected")
    def approve_selected(self, request, queryset):
        self._run(request, queryset, ApprovalWorkflowService.approve, "approved")

    @admin.action(description="Reject selected")
    def reject_selected(self, request, queryset):
        self._run(request, queryset, ApprovalWorkflowService.reject, "rejected")


@admin.register(TimeEntry)
class TimeEntryAdmin(admin.ModelAdmin):
    list_display  = ["ticket", "employee", "date", "formatted_duration", "activity_type",
                     "is_billable", "amount"]
    list_filter   = ["activity_type", "is_billable", "date"]
    search_fields = ["ticket__ticket_number", "employee__last_name", "description"]
    raw_id_fields = ["ticket", "employee"]
    readonly_fields = ["amount"]

    @admin.display(description="Duration")
    def formatted_duration(self, obj):
        return obj.formatted_duration


# ---------------------------------------------------------------------------
# RULES
# ---------------------------------------------------------------------------

@admin.register(AutomationRule)
class AutomationRuleAdmin(admin.ModelAdmin):
    form = AutomationRuleForm
    list_display  = ["name", "trigger_event", "priority", "is_active",
                     "execution_count", "last_executed_at"]
    list_filter   = ["trigger_event", "is_active"]
    search_fields = ["name"]
    readonly_fields = ["execution_count", "last_executed_at"]


@admin.register(EscalationRule)
class EscalationRuleAdmin(admin.ModelAdmin):
    form = EscalationRuleForm
    list_display  = ["name", "time_trigger_type", "time_trigger_minutes", "priority",
                     "is_active", "execution_count", "last_executed_at"]
    list_filter   = ["time_trigger_type", "is_active"]
    search_fields = ["name"]
    readonly_fields = ["execution_count", "last_executed_at"]


# ---------------------------------------------------------------------------
# MISC
# ---------------------------------------------------------------------------

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display  = ["recipient", "type", "title", "ticket", "is_read", "created_at"]
    list_filter   = ["type", "is_read"]
    search_fields = ["title", "recipient__email"]
    raw_id_fields = ["recipient", "ticket", "related_user"]


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display  = ["key", "value", "type", "group", "updated_at"]
    list_filter   = ["group", "type"]
    search_fields = ["key", "description"]


@admin.register(SavedSearch)
class SavedSearchAdmin(admin.ModelAdmin):
    list_display  = ["name", "owner", "is_shared", "usage_count", "updated_at"]
    list_filter   = ["is_shared"]
    search_fields = ["name"]
    raw_id_fields = ["owner"]

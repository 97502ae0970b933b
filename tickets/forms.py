"""
tickets/forms.py
================
Admin forms for rule definitions and the per-row form used by the CSV
import. Rule JSON is checked by the model's clean(), which runs the
validators from rules.py; these forms add the cross-field checks.
"""

from django import forms

from .models import AutomationRule, Department, Employee, EscalationRule, Tag, TicketCategory
from .rules import (
    AUTOMATION_ACTIONS,
    AUTOMATION_OPERATORS,
    CONDITION_FIELDS,
    ESCALATION_ACTIONS,
    ESCALATION_OPERATORS,
    PRIORITY_CHOICES,
    SOURCE_CHOICES,
)


def _help(operators, actions):
    return {
        "conditions": (
            'List of {"field", "operator", "value"}. Fields: '
            + ", ".join(CONDITION_FIELDS) + ". Operators: " + ", ".join(operators) + "."
        ),
        "actions": 'List of {"type", "value"}. Types: ' + ", ".join(actions) + ".",
    }


class AutomationRuleForm(forms.ModelForm):

    class Meta:
        model = AutomationRule
        fields = [
            "name", "description", "trigger_event", "conditions", "actions",
            "priority", "is_active",
        ]
        help_texts = _help(AUTOMATION_OPERATORS, AUTOMATION_ACTIONS)

    def clean(self):
        cleaned = super().clean()
        if not cleaned.get("conditions"):
            self.add_error("conditions", "An automation rule needs at least one condition.")
        return cleaned


class EscalationRuleForm(forms.ModelForm):

    class Meta:
        model = EscalationRule
        fields = [
            "name", "description", "conditions", "actions",
            "time_trigger_type", "time_trigger_minutes", "priority", "is_active",
        ]
        help_texts = _help(ESCALATION_OPERATORS, ESCALATION_ACTIONS)

    def clean(self):
        cleaned = super().clean()
        trigger = cleaned.get("time_trigger_type")
        minutes = cleaned.get("time_trigger_minutes")
        if trigger and not minutes:
            self.add_error("time_trigger_minutes", "Set how many minutes the trigger waits.")
        if minutes and not trigger:
            self.add_error("time_trigger_type", "Choose which time the minutes count from.")
        return cleaned


# ---------------------------------------------------------------------------
# CSV IMPORT
# ---------------------------------------------------------------------------

class TicketImportForm(forms.Form):
    """
    One CSV row. Column names match the form fields; related records are
    looked up by a human key (requester e-mail, category slug or name,
    team code, tag names separated by ";").
    """
    subject         = forms.CharField(max_length=255)
    description     = forms.CharField(required=False)
    requester_email = forms.EmailField()
    category        = forms.CharField(required=False)
    priority        = forms.ChoiceField(choices=PRIORITY_CHOICES, required=False)
    source          = forms.ChoiceField(choices=SOURCE_CHOICES, required=False)
    team            = forms.CharField(required=False)
    estimated_cost  = forms.DecimalField(max_digits=12, decimal_places=2,
                                         min_value=0, required=False)
    tags            = forms.CharField(required=False)

    def clean_requester_email(self):
        email = self.cleaned_data["requester_email"]
        requester = Employee.objects.filter(email__iexact=email, is_active=True).first()
        if requester is None:
            raise forms.ValidationError(f"No active employee with e-mail {email}.")
        return requester

    def clean_category(self):
        key = (self.cleaned_data.get("category") or "").strip()
        if not key:
            return None
        category = (
            TicketCategory.objects.filter(slug=key).first()
            or TicketCategory.objects.filter(name__iexact=key).first()
        )
        if category is None:
            raise forms.ValidationError(f"Unknown category '{key}'.")
        return category

    def clean_team(self):
        code = (self.cleaned_data.get("team") or "").strip()
        if not code:
            return None
        team = Department.objects.filter(code__iexact=code).first()
        if team is None:
            raise forms.ValidationError(f"Unknown team code '{code}'.")
        return team

    def clean_tags(self):
        names = [n.strip() for n in (self.cleaned_data.get("tags") or "").split(";") if n.strip()]
        tags = list(Tag.objects.filter(name__in=names))
        missing = sorted(set(names) - {t.name for t in tags})
        if missing:
            raise forms.ValidationError(f"Unknown tags: {', '.join(missing)}.")
        return tags

    def ticket_data(self) -> dict:
        """Keyword arguments for lifecycle.create_ticket()."""
        data = self.cleaned_data
        return {
            "subject":        data["subject"],
            "description":    data.get("description") or "",
            "requester":      data["requester_email"],
            "category":       data.get("category"),
            "priority":       data.get("priority") or "medium",
            "source":         data.get("source") or "web",
            "assigned_team":  data.get("team"),
            "estimated_cost": data.get("estimated_cost"),
            "tags":           data.get("tags") or [],
        }

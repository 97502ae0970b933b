"""
tickets/permissions.py
======================
Role names and the permissions each role grants.

Like rules.py this module has no Django imports: Employee.has_perm() and the
workflow services look roles up here, and the role groups drive approver
resolution in approvals.py.
"""


# ---------------------------------------------------------------------------
# ROLE NAMES
# ---------------------------------------------------------------------------

class Role:
    # Executive level
    SUPER_ADMIN         = "Super Admin"
    CEO                 = "CEO"
    DIRECTOR            = "Director"
    HEAD_OF_DEPARTMENT  = "Head of Department"

    # Management level
    IT_MANAGER          = "IT Manager"
    OPERATIONS_MANAGER  = "Operations Manager"
    FINANCE_MANAGER     = "Finance Manager"
    HR_MANAGER          = "HR Manager"
    PROCUREMENT_MANAGER = "Procurement Manager"
    SAFETY_MANAGER      = "Safety Manager"
    LINE_MANAGER        = "Line Manager"
    MANAGER             = "Manager"
    PROJECT_MANAGER     = "Project Manager"

    # Operations level
    IT_ADMINISTRATOR    = "IT Administrator"
    SENIOR_AGENT        = "Senior Agent"
    AGENT               = "Agent"

    # User level
    REQUESTER           = "Requester"
    CONTRACTOR          = "Contractor"


ALL_ROLES: list[str] = [
    Role.SUPER_ADMIN, Role.CEO, Role.DIRECTOR, Role.HEAD_OF_DEPARTMENT,
    Role.IT_MANAGER, Role.OPERATIONS_MANAGER, Role.FINANCE_MANAGER,
    Role.HR_MANAGER, Role.PROCUREMENT_MANAGER, Role.SAFETY_MANAGER,
    Role.LINE_MANAGER, Role.MANAGER, Role.PROJECT_MANAGER,
    Role.IT_ADMINISTRATOR, Role.SENIOR_AGENT, Role.AGENT,
    Role.REQUESTER, Role.CONTRACTOR,
]

ROLE_CHOICES = [(role, role) for role in ALL_ROLES]

# Roles that the seed data and admin must never rename or delete.
PROTECTED_ROLES = {
    Role.SUPER_ADMIN, Role.LINE_MANAGER, Role.MANAGER,
    Role.AGENT, Role.SENIOR_AGENT, Role.HEAD_OF_DEPARTMENT,
}

EXECUTIVE_ROLES = {Role.SUPER_ADMIN, Role.CEO, Role.DIRECTOR}

MANAGEMENT_ROLES = {
    Role.IT_MANAGER, Role.OPERATIONS_MANAGER, Role.FINANCE_MANAGER,
    Role.HR_MANAGER, Role.PROCUREMENT_MANAGER, Role.SAFETY_MANAGER,
    Role.LINE_MANAGER, Role.MANAGER, Role.PROJECT_MANAGER,
}

AGENT_ROLES = {Role.AGENT, Role.SENIOR_AGENT}

# Roles that may act as Line Manager approvers.
APPROVAL_ROLES = [Role.MANAGER, Role.LINE_MANAGER, Role.SUPER_ADMIN]

HOD_ROLES = [Role.HEAD_OF_DEPARTMENT]


# ---------------------------------------------------------------------------
# PERMISSIONS
# ---------------------------------------------------------------------------

class Perm:
    VIEW_TICKETS   = "tickets.view"
    CREATE_TICKETS = "tickets.create"
    EDIT_TICKETS   = "tickets.edit"
    ASSIGN_TICKETS = "tickets.assign"
    DELETE_TICKETS = "tickets.delete"
    AUTO_APPROVE   = "tickets.auto_approve"
    MANAGE_RULES   = "rules.manage"
    VIEW_REPORTS   = "reports.view"
    MANAGE_SETTINGS = "settings.manage"


ALL_PERMISSIONS = {
    Perm.VIEW_TICKETS, Perm.CREATE_TICKETS, Perm.EDIT_TICKETS,
    Perm.ASSIGN_TICKETS, Perm.DELETE_TICKETS, Perm.AUTO_APPROVE,
    Perm.MANAGE_RULES, Perm.VIEW_REPORTS, Perm.MANAGE_SETTINGS,
}

_REQUESTER_PERMS = {Perm.VIEW_TICKETS, Perm.CREATE_TICKETS}
_AGENT_PERMS     = _REQUESTER_PERMS | {Perm.EDIT_TICKETS}
_MANAGER_PERMS   = _AGENT_PERMS | {Perm.ASSIGN_TICKETS, Perm.VIEW_REPORTS}

ROLE_PERMISSIONS: dict[str, set[str]] = {
    Role.SUPER_ADMIN:         set(ALL_PERMISSIONS),
    Role.CEO:                 _MANAGER_PERMS | {Perm.AUTO_APPROVE},
    Role.DIRECTOR:            _MANAGER_PERMS | {Perm.AUTO_APPROVE},
    Role.HEAD_OF_DEPARTMENT:  _MANAGER_PERMS | {Perm.AUTO_APPROVE},
    Role.IT_MANAGER:          _MANAGER_PERMS | {Perm.MANAGE_RULES},
    Role.OPERATIONS_MANAGER:  _MANAGER_PERMS,
    Role.FINANCE_MANAGER:     _MANAGER_PERMS,
    Role.HR_MANAGER:          _MANAGER_PERMS,
    Role.PROCUREMENT_MANAGER: _MANAGER_PERMS,
    Role.SAFETY_MANAGER:      _MANAGER_PERMS,
    Role.LINE_MANAGER:        _MANAGER_PERMS,
    Role.MANAGER:             _MANAGER_PERMS,
    Role.PROJECT_MANAGER:     _MANAGER_PERMS,
    Role.IT_ADMINISTRATOR:    _AGENT_PERMS | {Perm.MANAGE_RULES, Perm.MANAGE_SETTINGS},
    Role.SENIOR_AGENT:        _AGENT_PERMS | {Perm.VIEW_REPORTS},
    Role.AGENT:               _AGENT_PERMS,
    Role.REQUESTER:           _REQUESTER_PERMS,
    Role.CONTRACTOR:          {Perm.VIEW_TICKETS},
}


def role_has_perm(role: str, codename: str) -> bool:
    """Return True when *role* grants *codename*. Unknown roles grant nothing."""
    return codename in ROLE_PERMISSIONS.get(role, set())


def is_protected(role: str) -> bool:
    return role in PROTECTED_ROLES

# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


# -- BRANCHES --

BRANCH_CAPABILITIES = [
    (
        "VIEW_BRANCHES",
        "View Branches",
        "List branches in the caller's accessible set",
        CapabilityCategory.BRANCHES,
    ),
    (
        "MANAGE_BRANCHES",
        "Manage Branches",
        "Create, rename, archive and delete branches",
        CapabilityCategory.BRANCHES,
    ),
    (
        "ASSIGN_MANAGERS",
        "Assign Managers",
        "Assign and unassign managers to branches",
        CapabilityCategory.BRANCHES,
    ),
    (
        "ASSIGN_STAFF",
        "Assign Staff",
        "Assign and unassign branch staff",
        CapabilityCategory.BRANCHES,
    ),
]


# -- FINANCIALS --

FINANCIAL_CAPABILITIES = [
    (
        "VIEW_FINANCIALS",
        "View Financials",
        "Read daily financial records of accessible branches",
        CapabilityCategory.FINANCIALS,
    ),
    (
        "WRITE_FINANCIALS",
        "Write Financials",
        "Create and update daily financial records (staff are date-windowed)",
        CapabilityCategory.FINANCIALS,
    ),
]


# -- APPROVALS --

APPROVAL_CAPABILITIES = [
    (
        "SUBMIT_CHANGE_REQUESTS",
        "Submit Change Requests",
        "Propose edits outside the direct write window",
        CapabilityCategory.APPROVALS,
    ),
    (
        "APPROVE_CHANGE_REQUESTS",
        "Approve Change Requests",
        "Approve or reject pending change requests",
        CapabilityCategory.APPROVALS,
    ),
]


# -- REPORTING --

REPORTING_CAPABILITIES = [
    (
        "VIEW_FINANCIAL_LOGS",
        "View Financial Logs",
        "Read the financial audit log",
        CapabilityCategory.REPORTING,
    ),
    (
        "VIEW_DASHBOARD",
        "View Dashboard",
        "Read aggregated rollups",
        CapabilityCategory.REPORTING,
    ),
]


# -- USERS --

USER_CAPABILITIES = [
    (
        "MANAGE_ROLES",
        "Manage Roles",
        "Change the role of any profile",
        CapabilityCategory.USERS,
    ),
]


# Combined list of all capabilities
CAPABILITY_DEFINITIONS = (
    BRANCH_CAPABILITIES
    + FINANCIAL_CAPABILITIES
    + APPROVAL_CAPABILITIES
    + REPORTING_CAPABILITIES
    + USER_CAPABILITIES
)

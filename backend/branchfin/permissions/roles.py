# Overview: Static role -> capability table and page gateway rules.

ADMIN = "admin"
MANAGER = "manager"
BRANCH_STAFF = "branch_staff"
USER = "user"

ROLES = (ADMIN, MANAGER, BRANCH_STAFF, USER)


DEFAULT_ROLE_CAPABILITIES = {
    ADMIN: frozenset({
        "VIEW_BRANCHES",
        "MANAGE_BRANCHES",
        "ASSIGN_MANAGERS",
        "ASSIGN_STAFF",
        "VIEW_FINANCIALS",
        "WRITE_FINANCIALS",
        "APPROVE_CHANGE_REQUESTS",
        "VIEW_FINANCIAL_LOGS",
        "VIEW_DASHBOARD",
        "MANAGE_ROLES",
    }),
    # Manager capabilities are scoped to assigned branches by policy_service
    MANAGER: frozenset({
        "VIEW_BRANCHES",
        "ASSIGN_STAFF",
        "VIEW_FINANCIALS",
        "WRITE_FINANCIALS",
        "APPROVE_CHANGE_REQUESTS",
        "VIEW_FINANCIAL_LOGS",
        "VIEW_DASHBOARD",
    }),
    # Staff capabilities are scoped to staff_branch_id; writes are date-windowed
    BRANCH_STAFF: frozenset({
        "VIEW_BRANCHES",
        "VIEW_FINANCIALS",
        "WRITE_FINANCIALS",
        "SUBMIT_CHANGE_REQUESTS",
        "VIEW_DASHBOARD",
    }),
    USER: frozenset(),
}


# Page gateway: where a denied page request is sent
ACCESS_PENDING_PATH = "/authorization-pending"

# Paths a pending (role = user) profile may open
PUBLIC_PATHS = frozenset({"/", "/login", "/signup", ACCESS_PENDING_PATH})

# manager: everything except these prefixes
MANAGER_DENIED_PREFIXES = ("/admin/roles",)

# branch_staff: only these prefixes
STAFF_ALLOWED_PREFIXES = ("/branch",)

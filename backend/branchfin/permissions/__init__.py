# Overview: Role policy package.
# Re-exports the static capability table and its lookup helpers.

from .categories import CapabilityCategory
from .definitions import (
    CAPABILITY_DEFINITIONS,
    BRANCH_CAPABILITIES,
    FINANCIAL_CAPABILITIES,
    APPROVAL_CAPABILITIES,
    REPORTING_CAPABILITIES,
    USER_CAPABILITIES,
)
from .roles import (
    ADMIN,
    MANAGER,
    BRANCH_STAFF,
    USER,
    ROLES,
    DEFAULT_ROLE_CAPABILITIES,
    ACCESS_PENDING_PATH,
    PUBLIC_PATHS,
    MANAGER_DENIED_PREFIXES,
    STAFF_ALLOWED_PREFIXES,
)
from .helpers import (
    get_all_capability_codes,
    get_capabilities_by_category,
    get_capability_definition,
    validate_capability_code,
    validate_role,
    capabilities_for_role,
)

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "BRANCH_CAPABILITIES",
    "FINANCIAL_CAPABILITIES",
    "APPROVAL_CAPABILITIES",
    "REPORTING_CAPABILITIES",
    "USER_CAPABILITIES",
    "ADMIN",
    "MANAGER",
    "BRANCH_STAFF",
    "USER",
    "ROLES",
    "DEFAULT_ROLE_CAPABILITIES",
    "ACCESS_PENDING_PATH",
    "PUBLIC_PATHS",
    "MANAGER_DENIED_PREFIXES",
    "STAFF_ALLOWED_PREFIXES",
    "get_all_capability_codes",
    "get_capabilities_by_category",
    "get_capability_definition",
    "validate_capability_code",
    "validate_role",
    "capabilities_for_role",
]

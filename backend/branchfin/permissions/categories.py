# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    BRANCHES = "BRANCHES"
    FINANCIALS = "FINANCIALS"
    APPROVALS = "APPROVALS"
    REPORTING = "REPORTING"
    USERS = "USERS"

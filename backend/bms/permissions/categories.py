# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    USERS = "USERS"
    COMPANIES = "COMPANIES"
    SALES = "SALES"
    CATALOG = "CATALOG"
    EXPENSES = "EXPENSES"
    REPORTS = "REPORTS"
    SYSTEM = "SYSTEM"

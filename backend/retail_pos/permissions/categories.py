# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    CUSTOMERS = "CUSTOMERS"
    RETURNS = "RETURNS"
    PURCHASING = "PURCHASING"
    EXPENSES = "EXPENSES"
    REPORTS = "REPORTS"
    USERS = "USERS"
    SYSTEM = "SYSTEM"

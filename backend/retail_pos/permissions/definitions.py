# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "Browse and search the product catalog",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and archive products",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Restock or correct stock quantities",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_STOCK_HISTORY",
        "View Stock History",
        "View the stock movement log",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Check out a cart",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_TRANSACTIONS",
        "View Transactions",
        "View transaction history",
        PermissionCategory.SALES,
    ),
    (
        "EXPORT_TRANSACTIONS",
        "Export Transactions",
        "Download transactions as CSV",
        PermissionCategory.SALES,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "Search and view customers",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "CREATE_CUSTOMER",
        "Create Customer",
        "Add a customer at checkout",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Edit customers and their credit terms",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "VIEW_DEBTS",
        "View Debts",
        "View outstanding customer debts",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "RECORD_DEBT_PAYMENT",
        "Record Debt Payment",
        "Record payments against outstanding debts",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- RETURNS --

RETURN_PERMISSIONS = [
    (
        "CREATE_RETURN",
        "Create Return",
        "Open a return request against a transaction",
        PermissionCategory.RETURNS,
    ),
    (
        "VIEW_RETURNS",
        "View Returns",
        "View return requests",
        PermissionCategory.RETURNS,
    ),
    (
        "APPROVE_RETURNS",
        "Approve Returns",
        "Approve, reject or revert return requests",
        PermissionCategory.RETURNS,
    ),
]


# -- PURCHASING --

PURCHASING_PERMISSIONS = [
    (
        "MANAGE_PURCHASE_ORDERS",
        "Manage Purchase Orders",
        "Create, edit and receive purchase orders",
        PermissionCategory.PURCHASING,
    ),
]


# -- EXPENSES --

EXPENSE_PERMISSIONS = [
    (
        "MANAGE_EXPENSES",
        "Manage Expenses",
        "Record expenses and manage expense categories",
        PermissionCategory.EXPENSES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View dashboard KPIs, trends and summaries",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and delete user accounts",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "MANAGE_TENANT_SETTINGS",
        "Manage Tenant Settings",
        "Change business name, currency and defaults",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + RETURN_PERMISSIONS
    + PURCHASING_PERMISSIONS
    + EXPENSE_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)

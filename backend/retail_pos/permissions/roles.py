# Overview: Default permission sets per role.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    # Admin: everything
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],

    # Sales person: the point of sale, transaction history and returns intake
    "sales_person": [
        "VIEW_PRODUCTS",
        "CREATE_SALE",
        "VIEW_TRANSACTIONS",
        "VIEW_CUSTOMERS",
        "CREATE_CUSTOMER",
        "CREATE_RETURN",
        "VIEW_RETURNS",
    ],
}

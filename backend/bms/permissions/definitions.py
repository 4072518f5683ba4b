# Overview: The closed set of permission tokens and their display metadata.
# Each definition is: (permission, name, description, category)

from enum import Enum

from .categories import PermissionCategory


class Permission(str, Enum):
    """Every action token a route guard may ask for."""

    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    VIEW_USERS = "view_users"

    CREATE_COMPANY = "create_company"
    UPDATE_COMPANY = "update_company"
    DELETE_COMPANY = "delete_company"
    VIEW_COMPANIES = "view_companies"

    RECORD_PAYMENT = "record_payment"
    DELETE_INVOICE = "delete_invoice"
    CANCEL_INVOICE = "cancel_invoice"
    DELETE_RECEIPT = "delete_receipt"

    MANAGE_ITEMS = "manage_items"
    DELETE_ITEM = "delete_item"
    DELETE_CUSTOMER = "delete_customer"

    APPROVE_EXPENSE = "approve_expense"
    DELETE_EXPENSE = "delete_expense"

    VIEW_FINANCIAL_REPORTS = "view_financial_reports"
    VIEW_SYSTEM_REPORTS = "view_system_reports"
    EXPORT_DATA = "export_data"

    MANAGE_SUBSCRIPTIONS = "manage_subscriptions"
    ACCESS_ALL_COMPANIES = "access_all_companies"

    def __str__(self) -> str:
        return self.value


# -- USERS --

USER_PERMISSIONS = [
    (Permission.CREATE_USER, "Create Users", "Create user accounts in the company", PermissionCategory.USERS),
    (Permission.UPDATE_USER, "Update Users", "Edit user details, roles and activation", PermissionCategory.USERS),
    (Permission.DELETE_USER, "Delete Users", "Deactivate user accounts", PermissionCategory.USERS),
    (Permission.VIEW_USERS, "View Users", "List users in the company", PermissionCategory.USERS),
]

# -- COMPANIES --

COMPANY_PERMISSIONS = [
    (Permission.CREATE_COMPANY, "Create Companies", "Register new tenants", PermissionCategory.COMPANIES),
    (Permission.UPDATE_COMPANY, "Update Company", "Edit company profile and settings", PermissionCategory.COMPANIES),
    (Permission.DELETE_COMPANY, "Delete Companies", "Deactivate tenants", PermissionCategory.COMPANIES),
    (Permission.VIEW_COMPANIES, "View Companies", "View company profile", PermissionCategory.COMPANIES),
]

# -- SALES --

SALES_PERMISSIONS = [
    (Permission.RECORD_PAYMENT, "Record Payments", "Apply payments to invoices", PermissionCategory.SALES),
    (Permission.DELETE_INVOICE, "Delete Invoices", "Delete draft invoices", PermissionCategory.SALES),
    (Permission.CANCEL_INVOICE, "Cancel Invoices", "Move unpaid invoices to cancelled", PermissionCategory.SALES),
    (Permission.DELETE_RECEIPT, "Delete Receipts", "Delete sales receipts", PermissionCategory.SALES),
]

# -- CATALOG --

CATALOG_PERMISSIONS = [
    (Permission.MANAGE_ITEMS, "Manage Items", "Activate or deactivate catalog items", PermissionCategory.CATALOG),
    (Permission.DELETE_ITEM, "Delete Items", "Remove catalog items", PermissionCategory.CATALOG),
    (Permission.DELETE_CUSTOMER, "Delete Customers", "Remove customers without invoices", PermissionCategory.CATALOG),
]

# -- EXPENSES --

EXPENSE_PERMISSIONS = [
    (Permission.APPROVE_EXPENSE, "Approve Expenses", "Approve, reject or mark expenses paid", PermissionCategory.EXPENSES),
    (Permission.DELETE_EXPENSE, "Delete Expenses", "Remove expenses", PermissionCategory.EXPENSES),
]

# -- REPORTS --

REPORT_PERMISSIONS = [
    (Permission.VIEW_FINANCIAL_REPORTS, "View Financial Reports", "Dashboard, P&L, aging", PermissionCategory.REPORTS),
    (Permission.VIEW_SYSTEM_REPORTS, "View System Reports", "Activity log and system health detail", PermissionCategory.REPORTS),
    (Permission.EXPORT_DATA, "Export Data", "Download report data", PermissionCategory.REPORTS),
]

# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (Permission.MANAGE_SUBSCRIPTIONS, "Manage Subscriptions", "Change plans and subscription status", PermissionCategory.SYSTEM),
    (Permission.ACCESS_ALL_COMPANIES, "Access All Companies", "Act inside any tenant", PermissionCategory.SYSTEM),
]


PERMISSION_DEFINITIONS = (
    USER_PERMISSIONS
    + COMPANY_PERMISSIONS
    + SALES_PERMISSIONS
    + CATALOG_PERMISSIONS
    + EXPENSE_PERMISSIONS
    + REPORT_PERMISSIONS
    + SYSTEM_PERMISSIONS
)

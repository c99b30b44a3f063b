"""ORM models for the procurement kernel."""

from procurement_kernel.models.approval_history import ApprovalHistory
from procurement_kernel.models.budget_alert import BudgetAlert
from procurement_kernel.models.notification import Notification
from procurement_kernel.models.organization import AdditionalRole, Department, User
from procurement_kernel.models.purchase_order import PurchaseOrder
from procurement_kernel.models.purchase_request import PurchaseRequest
from procurement_kernel.models.supplier import Supplier

__all__ = [
    "AdditionalRole",
    "ApprovalHistory",
    "BudgetAlert",
    "Department",
    "Notification",
    "PurchaseOrder",
    "PurchaseRequest",
    "Supplier",
    "User",
]

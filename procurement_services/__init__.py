"""
procurement_services -- Package init and public API.

Responsibility:
    The approval-routing-and-notification engine: routing, authorization,
    the request state machine, multi-channel notification fanout, budget
    threshold monitoring, purchase orders, and the trigger facade that owns
    transaction boundaries.

Architecture position:
    Services -- orchestration over the kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        procurement_services/ -> procurement_config/  (allowed)
        procurement_services/ -> procurement_kernel/  (allowed)
        procurement_kernel/   -> procurement_services/ (FORBIDDEN)
        procurement_kernel/   -> procurement_config/   (FORBIDDEN)
"""

from procurement_services.approval_processor import ApprovalProcessor
from procurement_services.approval_router import ApprovalRouter
from procurement_services.authorization_guard import AuthorizationGuard
from procurement_services.budget_monitor import BudgetThresholdMonitor
from procurement_services.channels import (
    DisabledEmailChannel,
    EmailChannel,
    InProcessPushChannel,
    PushChannel,
    SmtpEmailChannel,
)
from procurement_services.dispatch import (
    DeliveryQueue,
    EmailJob,
    InlineDeliveryQueue,
    PushJob,
    ThreadPoolDeliveryQueue,
)
from procurement_services.email_templates import EmailTemplates
from procurement_services.notification_fanout import NotificationFanout
from procurement_services.purchase_orders import PurchaseOrderService
from procurement_services.workflow import (
    ProcurementWorkflow,
    ServiceBundle,
    build_services,
    build_workflow,
)

__all__ = [
    "ApprovalProcessor",
    "ApprovalRouter",
    "AuthorizationGuard",
    "BudgetThresholdMonitor",
    "DeliveryQueue",
    "DisabledEmailChannel",
    "EmailChannel",
    "EmailJob",
    "EmailTemplates",
    "InProcessPushChannel",
    "InlineDeliveryQueue",
    "NotificationFanout",
    "ProcurementWorkflow",
    "PurchaseOrderService",
    "PushChannel",
    "PushJob",
    "ServiceBundle",
    "SmtpEmailChannel",
    "ThreadPoolDeliveryQueue",
    "build_services",
    "build_workflow",
]

"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP layer, workflow triggers, tests) must react to failures by
TYPE, never by parsing message strings:

    try:
        workflow.approve(request_id, actor_id)
    except UnauthorizedApproverError as e:
        api_response(status=403, code=e.code, request=e.request_id)
    except InvalidRequestStateError as e:
        api_response(status=409, code=e.code, status_now=e.current_status)

Every exception:
  1. Has a machine-readable ``code`` class attribute.
  2. Stores its context as attributes (survives logging/serialization).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- RequestNotFoundError
    |   +-- DepartmentNotFoundError
    |   +-- NotificationNotFoundError
    |   +-- OrderNotFoundError
    |
    +-- ApprovalError
    |   +-- UnauthorizedApproverError   (Forbidden)
    |   +-- InvalidRequestStateError    (InvalidState)
    |   +-- SupplierNotApprovedError
    |
    +-- OrderError
    |   +-- DuplicateOrderError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                    | When Raised
--------------|-------------------------|------------------------------------------
NotFound      | USER_NOT_FOUND          | Requester/actor id does not resolve
              | REQUEST_NOT_FOUND       | Purchase request id does not resolve
              | DEPARTMENT_NOT_FOUND    | Department id does not resolve
              | NOTIFICATION_NOT_FOUND  | Notification absent or not owned by user
              | ORDER_NOT_FOUND         | Purchase order id does not resolve
--------------|-------------------------|------------------------------------------
Approval      | UNAUTHORIZED_APPROVER   | Actor fails the authorization rules
              | INVALID_REQUEST_STATE   | Request not in the status the action needs
              | SUPPLIER_NOT_APPROVED   | Approve blocked on supplier eligibility
--------------|-------------------------|------------------------------------------
Order         | DUPLICATE_ORDER         | Request already has a purchase order
--------------|-------------------------|------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION  | UPDATE/DELETE of an approval history row
--------------|-------------------------|------------------------------------------
Config        | CONFIGURATION_ERROR     | Invalid or missing configuration value

===============================================================================
AUDIT NOTE ON SupplierNotApprovedError
===============================================================================

The approval history row for an APPROVE action is written BEFORE the
supplier-eligibility gate runs.  When the gate fails, that row stands as an
"attempted approval" while the request remains PENDING.  REJECT has no such
gate, so the approve and reject paths are intentionally asymmetric.  API
consumers should present the history row as an attempt, not a decision.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Lookup failures


class NotFoundError(ProcurementKernelError):
    """Base exception for records that do not resolve."""

    code: str = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class RequestNotFoundError(NotFoundError):
    """Purchase request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Purchase request not found: {request_id}")


class DepartmentNotFoundError(NotFoundError):
    """Department with given ID was not found."""

    code: str = "DEPARTMENT_NOT_FOUND"

    def __init__(self, department_id: str):
        self.department_id = department_id
        super().__init__(f"Department not found: {department_id}")


class NotificationNotFoundError(NotFoundError):
    """Notification absent, or not owned by the requesting user."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, notification_id: str, user_id: str):
        self.notification_id = notification_id
        self.user_id = user_id
        super().__init__(
            f"Notification {notification_id} not found for user {user_id}"
        )


class OrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Purchase order not found: {order_id}")


# Approval workflow


class ApprovalError(ProcurementKernelError):
    """Base exception for approval workflow errors."""

    code: str = "APPROVAL_ERROR"


class UnauthorizedApproverError(ApprovalError):
    """Actor is not permitted to approve or reject this request."""

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(self, actor_id: str, request_id: str):
        self.actor_id = actor_id
        self.request_id = request_id
        super().__init__(
            f"User {actor_id} does not have permission to act on request {request_id}"
        )


class InvalidRequestStateError(ApprovalError):
    """Request is not in the status required by the attempted transition."""

    code: str = "INVALID_REQUEST_STATE"

    def __init__(self, request_id: str, current_status: str, expected: str):
        self.request_id = request_id
        self.current_status = current_status
        self.expected = expected
        super().__init__(
            f"Request {request_id} is {current_status}, expected {expected}"
        )


class SupplierNotApprovedError(ApprovalError):
    """
    Approval blocked because the request's supplier is not eligible.

    The approval history row for the attempt has already been written.
    """

    code: str = "SUPPLIER_NOT_APPROVED"

    def __init__(self, request_id: str, supplier_id: str, supplier_status: str):
        self.request_id = request_id
        self.supplier_id = supplier_id
        self.supplier_status = supplier_status
        super().__init__(
            f"Cannot approve request {request_id}: supplier {supplier_id} "
            f"has status {supplier_status}"
        )


# Purchase orders


class OrderError(ProcurementKernelError):
    """Base exception for purchase order errors."""

    code: str = "ORDER_ERROR"


class DuplicateOrderError(OrderError):
    """A purchase order already exists for the request."""

    code: str = "DUPLICATE_ORDER"

    def __init__(self, request_id: str, order_id: str):
        self.request_id = request_id
        self.order_id = order_id
        super().__init__(
            f"Purchase order {order_id} already exists for request {request_id}"
        )


# Immutability


class ImmutabilityError(ProcurementKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(ProcurementKernelError):
    """Configuration value is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")

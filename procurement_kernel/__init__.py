"""
Procurement Kernel

The approval-routing-and-notification core of the procurement platform:
- Approval chain routing over the organizational hierarchy
- Authorization of approve/reject actions
- Exactly-once request state transitions with supplier-eligibility gating
- Append-only approval history
- In-app notification persistence
"""

__version__ = "0.1.0"

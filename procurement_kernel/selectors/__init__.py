"""Read-only selectors for the procurement kernel."""

from procurement_kernel.selectors.base import BaseSelector
from procurement_kernel.selectors.organization_selector import OrganizationSelector
from procurement_kernel.selectors.spend_selector import SpendSelector

__all__ = [
    "BaseSelector",
    "OrganizationSelector",
    "SpendSelector",
]

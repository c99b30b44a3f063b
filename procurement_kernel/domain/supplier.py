"""
Supplier status boundary type.

Supplier records arrive from the supplier CRUD layer with free-form status
strings ("Standard", "preferred", "Review Pending", ...).  They are
converted ONCE, at ingestion, into ``SupplierStatus``; every eligibility
check afterwards is an enum membership test.
"""

from __future__ import annotations

import re
from enum import Enum

_SEPARATORS = re.compile(r"[\s\-]+")


class SupplierStatus(str, Enum):
    """Normalized supplier status."""

    STANDARD = "STANDARD"
    PREFERRED = "PREFERRED"
    ACTIVE = "ACTIVE"
    REVIEW_PENDING = "REVIEW_PENDING"
    INACTIVE = "INACTIVE"
    BLOCKED = "BLOCKED"
    UNRECOGNIZED = "UNRECOGNIZED"

    @classmethod
    def from_legacy(cls, value: str | None) -> SupplierStatus:
        """Normalize a free-form status string.

        Case, surrounding whitespace, and space/hyphen separators are
        ignored.  Anything unknown (including None and "") maps to
        UNRECOGNIZED, which is never eligible.
        """
        if value is None:
            return cls.UNRECOGNIZED
        key = _SEPARATORS.sub("_", value.strip()).upper()
        try:
            return cls(key)
        except ValueError:
            return cls.UNRECOGNIZED

    @property
    def is_approved(self) -> bool:
        return self in APPROVED_SUPPLIER_STATUSES


APPROVED_SUPPLIER_STATUSES: frozenset[SupplierStatus] = frozenset({
    SupplierStatus.STANDARD,
    SupplierStatus.PREFERRED,
    SupplierStatus.ACTIVE,
})


def is_supplier_eligible(
    status: SupplierStatus | None,
    approved: frozenset[SupplierStatus] = APPROVED_SUPPLIER_STATUSES,
) -> bool:
    """A request with no supplier (status None) is always eligible."""
    if status is None:
        return True
    return status in approved

"""
Budget threshold tiers -- pure spend-to-budget classification.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Ratios come from
    configuration; spend and budget come from selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from procurement_kernel.domain.types import NotificationType


class ThresholdTier(str, Enum):
    """How far a department's committed spend has progressed."""

    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    EXCEEDED = "EXCEEDED"

    @property
    def notification_type(self) -> NotificationType:
        return _TIER_NOTIFICATION_TYPES[self]

    @property
    def title(self) -> str:
        return _TIER_TITLES[self]


_TIER_NOTIFICATION_TYPES: dict[ThresholdTier, NotificationType] = {
    ThresholdTier.WARNING: NotificationType.BUDGET_WARNING,
    ThresholdTier.CRITICAL: NotificationType.BUDGET_CRITICAL,
    ThresholdTier.EXCEEDED: NotificationType.BUDGET_EXCEEDED,
}

_TIER_TITLES: dict[ThresholdTier, str] = {
    ThresholdTier.WARNING: "Budget Warning",
    ThresholdTier.CRITICAL: "Budget Critical",
    ThresholdTier.EXCEEDED: "Budget Exceeded",
}


@dataclass(frozen=True)
class ThresholdRatios:
    """
    Tier boundaries as fractions of budget.

    Contract:
        0 < warning < critical < exceeded.  Validated by the config
        loader, not here.
    """

    warning: Decimal = Decimal("0.8")
    critical: Decimal = Decimal("0.9")
    exceeded: Decimal = Decimal("1.0")


def classify_spend(
    spend: Decimal,
    budget: Decimal,
    ratios: ThresholdRatios = ThresholdRatios(),
) -> ThresholdTier | None:
    """
    Return the single highest tier crossed, or None.

    Tiers are evaluated highest-first and are mutually exclusive.  A
    non-positive budget means monitoring is disabled and always yields None.
    """
    if budget <= 0:
        return None
    ratio = spend / budget
    if ratio >= ratios.exceeded:
        return ThresholdTier.EXCEEDED
    if ratio >= ratios.critical:
        return ThresholdTier.CRITICAL
    if ratio >= ratios.warning:
        return ThresholdTier.WARNING
    return None


def spend_percentage(spend: Decimal, budget: Decimal) -> int:
    """Whole-number percentage of budget spent, rounded half up."""
    if budget <= 0:
        return 0
    return int((spend / budget * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_money(amount: Decimal) -> str:
    """Render an amount with thousands separators and no trailing zeros."""
    quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if quantized == quantized.to_integral_value():
        return f"{quantized:,.0f}"
    return f"{quantized:,.2f}"


def decimal_to_str(amount: Decimal) -> str:
    """Plain string for JSON metadata, free of trailing zeros and exponents."""
    return format(amount.normalize(), "f")

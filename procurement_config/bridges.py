"""
Config-to-kernel bridges.

Translate ``ProcurementConfig`` sections into the value types the kernel
domain consumes, so that the kernel never imports ``procurement_config``.
"""

from __future__ import annotations

from datetime import timedelta

from procurement_config.schema import BudgetConfig, ProcurementConfig
from procurement_kernel.domain.budget import ThresholdRatios
from procurement_kernel.domain.supplier import SupplierStatus


def threshold_ratios(budget: BudgetConfig) -> ThresholdRatios:
    return ThresholdRatios(
        warning=budget.warning_ratio,
        critical=budget.critical_ratio,
        exceeded=budget.exceeded_ratio,
    )


def dedup_window(budget: BudgetConfig) -> timedelta:
    return timedelta(hours=budget.dedup_window_hours)


def approved_supplier_statuses(config: ProcurementConfig) -> frozenset[SupplierStatus]:
    return frozenset(config.suppliers.approved_statuses)

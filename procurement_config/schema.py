"""
Configuration schema (``procurement_config.schema``).

Frozen dataclasses describing runtime configuration.  Instances are only
ever produced by ``procurement_config.loader`` and handed out through
``procurement_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from procurement_kernel.domain.supplier import SupplierStatus


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class BudgetConfig:
    """Threshold ratios are fractions of the department budget."""

    warning_ratio: Decimal = Decimal("0.8")
    critical_ratio: Decimal = Decimal("0.9")
    exceeded_ratio: Decimal = Decimal("1.0")
    dedup_window_hours: int = 24
    currency_symbol: str = "£"


@dataclass(frozen=True)
class NotificationConfig:
    app_base_url: str = "http://localhost:3000"
    email_enabled: bool = True


@dataclass(frozen=True)
class SmtpConfig:
    host: str = "localhost"
    port: int = 587
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    use_tls: bool = True
    from_address: str = "noreply@procurement.local"


@dataclass(frozen=True)
class SupplierConfig:
    approved_statuses: frozenset[SupplierStatus] = frozenset({
        SupplierStatus.STANDARD,
        SupplierStatus.PREFERRED,
        SupplierStatus.ACTIVE,
    })


@dataclass(frozen=True)
class ProcurementConfig:
    """The sole runtime configuration artifact."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    suppliers: SupplierConfig = field(default_factory=SupplierConfig)

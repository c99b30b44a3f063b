"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``procurement_config.schema``, applying environment overrides for
secrets and the database URL.  Runtime callers go through
``procurement_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections and keys are rejected, not ignored.
* Budget ratios are positive and strictly ascending
  (warning < critical < exceeded).

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ConfigurationError`` naming the offending key.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import (
    BudgetConfig,
    DatabaseConfig,
    NotificationConfig,
    ProcurementConfig,
    SmtpConfig,
    SupplierConfig,
)
from procurement_kernel.domain.supplier import SupplierStatus
from procurement_kernel.exceptions import ConfigurationError

DATABASE_URL_ENV = "DATABASE_URL"
SMTP_PASSWORD_ENV = "SMTP_PASSWORD"

_SECTIONS = ("database", "budget", "notifications", "smtp", "suppliers")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", "top-level YAML document must be a mapping")
    return data


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(name, "section must be a mapping")
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigurationError(f"{name}.{unknown[0]}", "unknown key")
    return raw


def _bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(key, f"expected true/false, got {value!r}")
    return value


def _int(key: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}, got {value}")
    return value


def _str(key: str, value: Any, allow_none: bool = False) -> str | None:
    if value is None and allow_none:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(key, f"expected a non-empty string, got {value!r}")
    return value


def _decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(key, f"expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigurationError(key, f"expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise ConfigurationError(key, f"expected a finite number, got {value!r}")
    return result


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any], env: Mapping[str, str]) -> DatabaseConfig:
    default = DatabaseConfig()
    raw = _section(data, "database", {"url", "echo", "pool_size"})
    url = env.get(DATABASE_URL_ENV) or raw.get("url", default.url)
    return DatabaseConfig(
        url=_str("database.url", url),
        echo=_bool("database.echo", raw.get("echo", default.echo)),
        pool_size=_int("database.pool_size", raw.get("pool_size", default.pool_size), minimum=1),
    )


def parse_budget(data: Mapping[str, Any]) -> BudgetConfig:
    default = BudgetConfig()
    raw = _section(
        data,
        "budget",
        {
            "warning_ratio",
            "critical_ratio",
            "exceeded_ratio",
            "dedup_window_hours",
            "currency_symbol",
        },
    )
    warning = _decimal("budget.warning_ratio", raw.get("warning_ratio", default.warning_ratio))
    critical = _decimal("budget.critical_ratio", raw.get("critical_ratio", default.critical_ratio))
    exceeded = _decimal("budget.exceeded_ratio", raw.get("exceeded_ratio", default.exceeded_ratio))

    if warning <= 0:
        raise ConfigurationError("budget.warning_ratio", "must be positive")
    if critical <= warning:
        raise ConfigurationError("budget.critical_ratio", "must be greater than warning_ratio")
    if exceeded <= critical:
        raise ConfigurationError("budget.exceeded_ratio", "must be greater than critical_ratio")

    return BudgetConfig(
        warning_ratio=warning,
        critical_ratio=critical,
        exceeded_ratio=exceeded,
        dedup_window_hours=_int(
            "budget.dedup_window_hours",
            raw.get("dedup_window_hours", default.dedup_window_hours),
            minimum=1,
        ),
        currency_symbol=_str(
            "budget.currency_symbol",
            raw.get("currency_symbol", default.currency_symbol),
        ),
    )


def parse_notifications(data: Mapping[str, Any]) -> NotificationConfig:
    default = NotificationConfig()
    raw = _section(data, "notifications", {"app_base_url", "email_enabled"})
    base_url = _str(
        "notifications.app_base_url",
        raw.get("app_base_url", default.app_base_url),
    )
    return NotificationConfig(
        app_base_url=base_url.rstrip("/"),
        email_enabled=_bool(
            "notifications.email_enabled",
            raw.get("email_enabled", default.email_enabled),
        ),
    )


def parse_smtp(data: Mapping[str, Any], env: Mapping[str, str]) -> SmtpConfig:
    default = SmtpConfig()
    raw = _section(
        data,
        "smtp",
        {"host", "port", "username", "password", "use_tls", "from_address"},
    )
    password = env.get(SMTP_PASSWORD_ENV) or raw.get("password", default.password)
    port = _int("smtp.port", raw.get("port", default.port), minimum=1)
    if port > 65535:
        raise ConfigurationError("smtp.port", f"must be <= 65535, got {port}")
    return SmtpConfig(
        host=_str("smtp.host", raw.get("host", default.host)),
        port=port,
        username=_str("smtp.username", raw.get("username", default.username), allow_none=True),
        password=_str("smtp.password", password, allow_none=True),
        use_tls=_bool("smtp.use_tls", raw.get("use_tls", default.use_tls)),
        from_address=_str("smtp.from_address", raw.get("from_address", default.from_address)),
    )


def parse_suppliers(data: Mapping[str, Any]) -> SupplierConfig:
    raw = _section(data, "suppliers", {"approved_statuses"})
    if "approved_statuses" not in raw:
        return SupplierConfig()

    values = raw["approved_statuses"]
    if not isinstance(values, list) or not values:
        raise ConfigurationError("suppliers.approved_statuses", "expected a non-empty list")

    statuses = set()
    for value in values:
        status = SupplierStatus.from_legacy(value if isinstance(value, str) else None)
        if status is SupplierStatus.UNRECOGNIZED:
            raise ConfigurationError(
                "suppliers.approved_statuses",
                f"unknown supplier status {value!r}",
            )
        statuses.add(status)
    return SupplierConfig(approved_statuses=frozenset(statuses))


def parse_config(
    data: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
) -> ProcurementConfig:
    """
    Parse a full configuration mapping.

    Args:
        data: Parsed YAML document.
        env: Environment overrides (``DATABASE_URL``, ``SMTP_PASSWORD``).
            Defaults to no overrides.

    Raises:
        ConfigurationError: on any unknown or invalid key.
    """
    env = env or {}
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(unknown[0], "unknown configuration section")

    return ProcurementConfig(
        database=parse_database(data, env),
        budget=parse_budget(data),
        notifications=parse_notifications(data),
        smtp=parse_smtp(data, env),
        suppliers=parse_suppliers(data),
    )


def load_config(path: Path, env: Mapping[str, str] | None = None) -> ProcurementConfig:
    return parse_config(load_yaml_file(path), env)

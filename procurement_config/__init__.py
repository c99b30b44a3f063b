"""
procurement_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``procurement_kernel`` and below
    ``procurement_services``.  The kernel MUST NEVER import from
    ``procurement_config``; ``bridges`` translates config sections into
    kernel value types.

Failure modes:
    - ``FileNotFoundError`` -- the named configuration file does not exist.
    - ``ConfigurationError`` -- a value failed validation.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from procurement_config.loader import load_config
from procurement_config.schema import (
    BudgetConfig,
    DatabaseConfig,
    NotificationConfig,
    ProcurementConfig,
    SmtpConfig,
    SupplierConfig,
)
from procurement_kernel.logging_config import get_logger

CONFIG_PATH_ENV = "PROCUREMENT_CONFIG"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"

logger = get_logger("config")


def get_active_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcurementConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: ``path`` argument, then the
    ``PROCUREMENT_CONFIG`` environment variable, then the bundled
    ``defaults.yaml``.  ``DATABASE_URL`` and ``SMTP_PASSWORD`` override
    the corresponding file values.

    Args:
        path: Explicit configuration file.
        env: Environment mapping; defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ConfigurationError: If a value fails validation.
    """
    env = os.environ if env is None else env
    config_path = Path(path or env.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_FILE)

    config = load_config(config_path, env)

    logger.info(
        "config_loaded",
        extra={
            "config_path": str(config_path),
            "email_enabled": config.notifications.email_enabled,
            "dedup_window_hours": config.budget.dedup_window_hours,
        },
    )
    return config


__all__ = [
    "BudgetConfig",
    "CONFIG_PATH_ENV",
    "DatabaseConfig",
    "NotificationConfig",
    "ProcurementConfig",
    "SmtpConfig",
    "SupplierConfig",
    "get_active_config",
]

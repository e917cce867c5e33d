"""Centralised settings for the inspector service.

Values default from environment variables, optionally loaded from a ``.env``
file in the project root when this module is imported.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_request_duration() -> float:
    """Serverless deployments cap a request at a few seconds."""
    if "VERCEL" in os.environ:
        return 9.0
    return 600.0


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Link liveness checking
    # ------------------------------------------------------------------
    max_concurrent_checks: int = field(
        default_factory=lambda: int(os.environ.get("INSPECTOR_MAX_CONCURRENT_CHECKS", "256"))
    )
    check_timeout: float = field(
        default_factory=lambda: float(os.environ.get("INSPECTOR_CHECK_TIMEOUT", "30"))
    )

    # ------------------------------------------------------------------
    # Root page fetch
    # ------------------------------------------------------------------
    fetch_timeout: float = field(
        default_factory=lambda: float(os.environ.get("INSPECTOR_FETCH_TIMEOUT", "10"))
    )
    max_content_size: int = field(
        default_factory=lambda: int(
            os.environ.get("INSPECTOR_MAX_CONTENT_SIZE", str(10 * 1024 * 1024))
        )
    )
    allow_private_addresses: bool = field(
        default_factory=lambda: _env_bool("INSPECTOR_ALLOW_PRIVATE_ADDRESSES")
    )

    # ------------------------------------------------------------------
    # /inspect endpoint
    # ------------------------------------------------------------------
    max_request_duration: float = field(
        default_factory=lambda: float(
            os.environ.get("INSPECTOR_MAX_REQUEST_DURATION", _default_request_duration())
        )
    )
    report_interval: float = field(
        default_factory=lambda: float(os.environ.get("INSPECTOR_REPORT_INTERVAL", "20"))
    )
    initial_report_delay: float = field(
        default_factory=lambda: float(os.environ.get("INSPECTOR_INITIAL_REPORT_DELAY", "2"))
    )


settings = Settings()

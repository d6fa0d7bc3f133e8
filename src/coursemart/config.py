"""Lightweight application configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass

from coursemart.features import DEFAULT_FRIEND_LIMIT
from coursemart.sync import DEFAULT_MUTATION_TIMEOUT


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppSettings:
    """Immutable configuration sourced from environment variables."""

    environment: str = "development"
    cms_url: str | None = None
    cms_token: str | None = None
    user_id: str | None = None
    request_timeout: float = 30.0
    mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT
    friend_limit: int = DEFAULT_FRIEND_LIMIT
    notification_history: int = 50
    log_level: str = "WARNING"

    @property
    def uses_cms(self) -> bool:
        return bool(self.cms_url)

    @classmethod
    def from_env(cls) -> AppSettings:
        return cls(
            environment=os.getenv("COURSEMART_ENV", cls.environment),
            cms_url=os.getenv("COURSEMART_CMS_URL") or None,
            cms_token=os.getenv("COURSEMART_CMS_TOKEN") or None,
            user_id=os.getenv("COURSEMART_USER_ID") or None,
            request_timeout=_env_float("COURSEMART_REQUEST_TIMEOUT", cls.request_timeout),
            mutation_timeout=_env_float("COURSEMART_MUTATION_TIMEOUT", cls.mutation_timeout),
            friend_limit=_env_int("COURSEMART_FRIEND_LIMIT", cls.friend_limit),
            notification_history=_env_int(
                "COURSEMART_NOTIFICATION_HISTORY", cls.notification_history
            ),
            log_level=os.getenv("COURSEMART_LOG_LEVEL", cls.log_level).upper(),
        )


__all__ = ["AppSettings"]

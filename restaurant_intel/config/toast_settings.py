"""Toast POS configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from restaurant_intel.services.toast_errors import ConfigurationError

load_dotenv()

DEFAULT_BASE_URL = "https://ws-api.toasttab.com"
DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class ToastCredentials:
    """Immutable process-lifetime settings for one Toast restaurant location."""

    client_id: str
    client_secrets: Tuple[str, ...]
    restaurant_guid: str
    base_url: str = DEFAULT_BASE_URL
    timezone: str = DEFAULT_TIMEZONE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    user_access_type: str = field(default="TOAST_MACHINE_CLIENT")

    def __post_init__(self) -> None:
        secrets = tuple(secret.strip() for secret in (self.client_secrets or ()) if secret and secret.strip())
        object.__setattr__(self, "client_secrets", secrets)
        object.__setattr__(self, "base_url", (self.base_url or "").strip().rstrip("/"))

        missing: List[str] = []
        if not (self.client_id or "").strip():
            missing.append("client_id")
        if not secrets:
            missing.append("client_secret")
        if not (self.restaurant_guid or "").strip():
            missing.append("restaurant_guid")
        if not self.base_url:
            missing.append("base_url")
        if missing:
            raise ConfigurationError(f"Missing required Toast API configuration: {', '.join(missing)}")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown restaurant timezone: {self.timezone}") from exc
        if self.request_timeout <= 0:
            raise ConfigurationError("Toast request timeout must be positive.")
        if self.page_size <= 0:
            raise ConfigurationError("Toast page size must be positive.")

    @property
    def client_secret(self) -> str:
        return self.client_secrets[0]

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_toast_credentials(environ: Optional[Mapping[str, str]] = None) -> ToastCredentials:
    """Build credentials from TOAST_* variables, failing fast on missing values."""

    env = os.environ if environ is None else environ
    secrets: List[str] = []
    for key in ("TOAST_CLIENT_SECRET", "TOAST_CLIENT_SECRET2"):
        value = env.get(key)
        if value:
            secrets.append(value)
    for value in (env.get("TOAST_CLIENT_SECRETS") or "").split(","):
        if value.strip() and value.strip() not in secrets:
            secrets.append(value.strip())

    return ToastCredentials(
        client_id=env.get("TOAST_CLIENT_ID", ""),
        client_secrets=tuple(secrets),
        restaurant_guid=env.get("TOAST_RESTAURANT_GUID", ""),
        base_url=env.get("TOAST_BASE_URL") or DEFAULT_BASE_URL,
        timezone=env.get("TOAST_RESTAURANT_TIMEZONE") or DEFAULT_TIMEZONE,
        request_timeout=_read_number(env, "TOAST_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
        page_size=_read_number(env, "TOAST_PAGE_SIZE", DEFAULT_PAGE_SIZE, int),
    )


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Return the first characters of a secret followed by an ellipsis."""

    if not value:
        return "NOT SET"
    return f"{value[:visible]}..."


def _read_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}.") from exc


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEZONE",
    "ToastCredentials",
    "load_toast_credentials",
    "mask_secret",
]

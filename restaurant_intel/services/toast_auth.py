"""Access-token lifecycle for the Toast machine-client login."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from restaurant_intel.config.toast_settings import ToastCredentials, mask_secret
from restaurant_intel.services.toast_errors import AuthenticationError, vendor_error_message

logger = logging.getLogger(__name__)

LOGIN_PATH = "/authentication/v1/authentication/login"
DEFAULT_EXPIRES_IN = 3600
EXPIRY_SAFETY_MARGIN_SECONDS = 300


@dataclass(frozen=True)
class AccessToken:
    """Bearer token plus the instant after which it must not be used."""

    value: str
    expires_at: float
    expires_in: int


class ToastTokenManager:
    """Obtain, cache and refresh the bearer token for one set of credentials."""

    def __init__(
        self,
        credentials: ToastCredentials,
        http_client: httpx.AsyncClient,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._credentials = credentials
        self._http = http_client
        self._clock = clock
        self._token: Optional[AccessToken] = None

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token.expires_at

    def invalidate(self) -> None:
        self._token = None

    async def ensure_authenticated(self) -> AccessToken:
        """Return the cached token, logging in again when it is missing or stale."""

        if self.is_valid() and self._token is not None:
            return self._token
        return await self.authenticate()

    async def authenticate(self) -> AccessToken:
        """Log in with each configured secret in turn, keeping the first token issued."""

        secrets = self._credentials.client_secrets
        failures: List[Tuple[str, str]] = []
        for index, secret in enumerate(secrets, start=1):
            label = f"secret {index}"
            try:
                token = await self._login(secret)
            except AuthenticationError as exc:
                logger.warning("Toast login with %s (%s) failed: %s", label, mask_secret(secret), exc)
                failures.append((label, str(exc)))
                continue
            self._token = token
            logger.info("Toast login succeeded with %s, token valid for %ss", label, token.expires_in)
            return token

        if len(failures) == 1:
            raise AuthenticationError(failures[0][1])
        detail = "; ".join(f"{label}: {reason}" for label, reason in failures)
        raise AuthenticationError(f"All {len(secrets)} client secrets failed authentication: {detail}")

    async def _login(self, client_secret: str) -> AccessToken:
        url = f"{self._credentials.base_url}{LOGIN_PATH}"
        payload = {
            "clientId": self._credentials.client_id,
            "clientSecret": client_secret,
            "userAccessType": self._credentials.user_access_type,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        try:
            response = await self._http.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:  # pragma: no cover - network layer
            logger.error("Toast authentication unreachable: %s", exc)
            raise AuthenticationError(f"Unable to reach Toast authentication: {exc}") from exc

        data = _json_or_text(response)
        if not response.is_success:
            message = vendor_error_message(data) or f"Authentication failed with HTTP {response.status_code}"
            raise AuthenticationError(message)

        token_block = data.get("token") if isinstance(data, dict) else None
        access_token = (token_block or {}).get("accessToken") if isinstance(token_block, dict) else None
        if not access_token:
            logger.error("Toast login response missing token.accessToken")
            raise AuthenticationError("Toast authentication response did not include an access token.")

        try:
            expires_in = int(token_block.get("expiresIn") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        expires_at = self._clock() + expires_in - EXPIRY_SAFETY_MARGIN_SECONDS
        return AccessToken(value=str(access_token), expires_at=expires_at, expires_in=expires_in)

    def describe(self) -> Dict[str, Any]:
        expiry = None
        if self._token is not None:
            expiry = datetime.fromtimestamp(self._token.expires_at, tz=timezone.utc).isoformat()
        return {"hasAccessToken": self._token is not None, "tokenExpiry": expiry, "tokenValid": self.is_valid()}


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["AccessToken", "ToastTokenManager", "EXPIRY_SAFETY_MARGIN_SECONDS"]

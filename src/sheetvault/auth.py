# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Identity and authorization helpers.

SheetVault does not run the OAuth2 consent flow itself: an access token
carrying the spreadsheets and userinfo.email scopes is obtained elsewhere
and handed to the application. This module only covers what the rest of the
application consumes:

- a persisted token cache (access token, lifetime, issue time) so that a
  still-valid token is reused at startup without signing in again,
- the "has the token expired?" check, with a safety buffer,
- the identity lookup (email of the token owner),
- the allow-list check.

The token file also keeps the dark/light UI preference, which survives
logout.
"""

import json
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import requests

from .errors import AccessDeniedError, RemoteStoreError, TokenExpiredError

logger = logging.getLogger(__name__)

USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
USERINFO_SCOPE = "https://www.googleapis.com/auth/userinfo.email"
DEFAULT_EXPIRY_BUFFER_SECONDS = 60.0


@dataclass(frozen=True)
class TokenData:
    """
    A cached access token.

    Attributes:
        access_token: The bearer token.
        expires_in: Lifetime in seconds, as returned by the token endpoint.
        issued_at: Epoch seconds at which the token was stored.
    """

    access_token: str
    expires_in: float
    issued_at: float

    def is_expired(
        self,
        now: float,
        buffer_seconds: float = DEFAULT_EXPIRY_BUFFER_SECONDS,
    ) -> bool:
        return now - self.issued_at >= self.expires_in - buffer_seconds


class TokenCache:
    """
    JSON file holding the current token and the UI preferences.

    Parameters
    ----------
    path:
        Location of the JSON file. Parent directories are created on save.
    buffer_seconds:
        Tokens expiring within this margin are considered expired.
    clock:
        Returns epoch seconds. Injected by tests.
    """

    def __init__(
        self,
        path: Path,
        *,
        buffer_seconds: float = DEFAULT_EXPIRY_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.buffer_seconds = buffer_seconds
        self._clock = clock

    # -- file helpers ------------------------------------------------------

    def _read(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Token file %s is unreadable, ignoring it", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    # -- token -------------------------------------------------------------

    def save(self, access_token: str, expires_in: float) -> TokenData:
        """Store a freshly issued token, stamped with the current time."""
        token = TokenData(
            access_token=access_token,
            expires_in=float(expires_in),
            issued_at=self._clock(),
        )
        data = self._read()
        data["token"] = asdict(token)
        self._write(data)
        return token

    def load(self) -> Optional[TokenData]:
        """
        Return the cached token if it is still valid.

        An expired or malformed token is removed from the file and None is
        returned.
        """
        raw = self._read().get("token")
        if not raw:
            return None

        try:
            token = TokenData(
                access_token=str(raw["access_token"]),
                expires_in=float(raw["expires_in"]),
                issued_at=float(raw["issued_at"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed token entry in %s, clearing it", self.path)
            self.clear()
            return None

        if token.is_expired(self._clock(), self.buffer_seconds):
            logger.info("Cached access token has expired")
            self.clear()
            return None

        return token

    def require(self) -> TokenData:
        """Like ``load`` but raises ``TokenExpiredError`` when no token is usable."""
        token = self.load()
        if token is None:
            raise TokenExpiredError("No valid access token. Please sign in again.")
        return token

    def clear(self) -> None:
        """Forget the token, keep the preferences."""
        data = self._read()
        if "token" in data:
            del data["token"]
            self._write(data)

    # -- preferences -------------------------------------------------------

    @property
    def dark_mode(self) -> bool:
        return bool(self._read().get("dark_mode", False))

    @dark_mode.setter
    def dark_mode(self, enabled: bool) -> None:
        data = self._read()
        data["dark_mode"] = bool(enabled)
        self._write(data)


def fetch_user_email(
    access_token: str,
    *,
    session: Optional[requests.Session] = None,
    url: str = USERINFO_URL,
    timeout: float = 30.0,
) -> str:
    """
    Return the email address of the token owner.

    Raises
    ------
    TokenExpiredError
        If the identity endpoint rejects the token.
    RemoteStoreError
        On any other failure (network error, unexpected payload).
    """
    http = session or requests
    try:
        response = http.get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise RemoteStoreError(f"Identity lookup failed: {exc}") from exc

    if response.status_code == 401:
        raise TokenExpiredError("Access token rejected by the identity endpoint.")
    if response.status_code != 200:
        raise RemoteStoreError(
            f"Identity lookup failed: {response.status_code} - {response.text}",
            status=response.status_code,
            retryable=False,
        )

    email = response.json().get("email")
    if not email:
        raise RemoteStoreError("Identity lookup returned no email.", retryable=False)
    return str(email)


def ensure_allowed(email: str, allowed_emails: Iterable[str]) -> None:
    """
    Enforce the allow-list. Comparison is case-insensitive.

    Raises
    ------
    AccessDeniedError
        If ``email`` is not in ``allowed_emails``.
    """
    allowed = {e.strip().lower() for e in allowed_emails if e and e.strip()}
    if email.strip().lower() not in allowed:
        raise AccessDeniedError(email)

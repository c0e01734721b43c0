# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Session state container.

A ``Session`` owns everything that lives between sign-in and sign-out:
the repository (and therefore the read cache), the latest data snapshot,
the signed-in email and the background refresh thread.

Lifecycle
---------
- ``login`` validates the token, checks the identity against the
  allow-list, provisions the spreadsheet, loads a first snapshot and
  (optionally) starts the background refresh.
- ``refresh`` clears the cache and re-reads every collection.
- ``logout`` stops the refresh, forgets the token, cache and snapshot.

Any ``AuthorizationError`` raised along the way sends the session back to
the unauthenticated state: the token is cleared and the user-facing message
is kept in ``auth_error``.
"""

import logging
import threading
from collections.abc import Callable
from typing import Optional

from .auth import TokenCache, ensure_allowed, fetch_user_email
from .cache import TTLCache
from .config import AppConfig
from .errors import AuthorizationError, TokenExpiredError, VaultError
from .repository import VaultRepository, VaultSnapshot
from .sheets import SheetsClient, SheetStore

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = 3600.0


class Session:
    """
    Parameters
    ----------
    config:
        Application configuration.
    token_cache:
        Persisted token store. Built from ``config.auth`` when omitted.
    store_factory:
        Builds the remote store from an access token. Defaults to a
        ``SheetsClient`` on the configured spreadsheet.
    identity:
        Returns the email of the token owner. Defaults to the userinfo
        endpoint lookup.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        token_cache: Optional[TokenCache] = None,
        store_factory: Optional[Callable[[str], SheetStore]] = None,
        identity: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.config = config
        self.token_cache = token_cache or TokenCache(
            config.auth.token_file,
            buffer_seconds=config.auth.expiry_buffer_seconds,
        )
        self._store_factory = store_factory or self._default_store
        self._identity = identity or self._default_identity

        self.repository: Optional[VaultRepository] = None
        self.snapshot: Optional[VaultSnapshot] = None
        self.user_email: Optional[str] = None
        self.auth_error: Optional[str] = None
        self.last_refresh_error: Optional[str] = None
        self.created_sheets: list[str] = []

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -- defaults ----------------------------------------------------------

    def _default_store(self, access_token: str) -> SheetStore:
        return SheetsClient(
            self.config.spreadsheet.spreadsheet_id,
            access_token,
            api_base=self.config.spreadsheet.api_base,
            attempts=self.config.retry.attempts,
            base_delay=self.config.retry.base_delay_seconds,
        )

    def _default_identity(self, access_token: str) -> str:
        return fetch_user_email(access_token, url=self.config.auth.userinfo_url)

    # -- state -------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.repository is not None

    @property
    def is_refreshing(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _reset(self) -> None:
        with self._lock:
            if self.repository is not None:
                self.repository.cache.clear()
            self.repository = None
            self.snapshot = None
            self.user_email = None

    def _fail_auth(self, exc: AuthorizationError) -> None:
        logger.warning("Authorization failed: %s", exc)
        self.stop_background_refresh()
        self.token_cache.clear()
        self._reset()
        self.auth_error = str(exc)

    # -- lifecycle ---------------------------------------------------------

    def login(
        self,
        access_token: Optional[str] = None,
        expires_in: Optional[float] = None,
        *,
        start_refresh: bool = True,
    ) -> VaultSnapshot:
        """
        Sign in and load the first snapshot.

        When ``access_token`` is None the cached token is reused, provided
        it has not expired.

        Raises
        ------
        AuthorizationError
            Expired token, email not allow-listed, or no access to the
            spreadsheet. The session is reset and ``auth_error`` is set.
        RemoteStoreError
            If the store stays unreachable after the retries.
        """
        try:
            if access_token is not None:
                token = self.token_cache.save(
                    access_token,
                    DEFAULT_TOKEN_LIFETIME if expires_in is None else expires_in,
                )
            else:
                token = self.token_cache.require()

            email = self._identity(token.access_token)
            ensure_allowed(email, self.config.auth.allowed_emails)

            repository = VaultRepository(
                self._store_factory(token.access_token),
                TTLCache(self.config.cache_ttl_seconds),
                default_partners=self.config.default_partners,
            )
            self.created_sheets = repository.initialize_sheets()
            snapshot = repository.fetch_all()
        except AuthorizationError as exc:
            self._fail_auth(exc)
            raise

        with self._lock:
            self.repository = repository
            self.snapshot = snapshot
            self.user_email = email
            self.auth_error = None
        logger.info("Signed in as %s", email)

        if start_refresh:
            self.start_background_refresh()
        return snapshot

    def require_repository(self) -> VaultRepository:
        if self.repository is None:
            raise TokenExpiredError("Not signed in.")
        return self.repository

    def refresh(self) -> VaultSnapshot:
        """Clear the cache and re-read every collection."""
        repository = self.require_repository()
        try:
            snapshot = repository.fetch_all()
        except AuthorizationError as exc:
            self._fail_auth(exc)
            raise

        with self._lock:
            self.snapshot = snapshot
            self.last_refresh_error = None
        return snapshot

    def logout(self) -> None:
        self.stop_background_refresh()
        self.token_cache.clear()
        self._reset()
        self.auth_error = None
        logger.info("Signed out")

    def close(self) -> None:
        self.stop_background_refresh()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- background refresh ------------------------------------------------

    def start_background_refresh(self, interval: Optional[float] = None) -> None:
        """Re-run ``refresh`` every ``interval`` seconds on a daemon thread."""
        if self.is_refreshing:
            return
        interval = self.config.refresh_interval_seconds if interval is None else interval
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval,),
            name="sheetvault-refresh",
            daemon=True,
        )
        self._thread.start()

    def stop_background_refresh(self, timeout: float = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _refresh_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.refresh()
            except AuthorizationError:
                # _fail_auth already reset the session.
                return
            except VaultError as exc:
                logger.error("Background refresh failed: %s", exc)
                self.last_refresh_error = str(exc)
            except Exception as exc:  # noqa: BLE001
                # Keep the loop alive; the next tick retries.
                logger.exception("Unexpected error during background refresh")
                self.last_refresh_error = str(exc)

    # -- preferences -------------------------------------------------------

    @property
    def dark_mode(self) -> bool:
        return self.token_cache.dark_mode

    def toggle_dark_mode(self) -> bool:
        self.token_cache.dark_mode = not self.token_cache.dark_mode
        return self.token_cache.dark_mode

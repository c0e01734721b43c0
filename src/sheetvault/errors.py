# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error classes for SheetVault.

The hierarchy mirrors the four kinds of failures the application has to
tell apart:

- transient remote-store errors (``RemoteStoreError``, ``RateLimitError``):
  retried automatically by ``sheets.with_retry``;
- authorization errors (``AuthorizationError`` and subclasses): never
  retried, they send the session back to the unauthenticated state;
- validation errors (``ValidationError``): raised before any network call,
  with one message per offending field;
- referential errors (``ReferentialError``): an operation refers to a
  partner, row or sheet that does not exist.
"""

from __future__ import annotations

from typing import Optional

PERMISSION_DENIED_MESSAGE = (
    "Access Denied: You do not have permission to access the Google Sheet. "
    "Please ask the owner to share it with your email."
)


class VaultError(Exception):
    """Base class for all SheetVault errors."""


class RemoteStoreError(VaultError):
    """
    A call to the remote spreadsheet store failed.

    Attributes:
        status: HTTP status code returned by the store, or None when the
            request never got a response (connection error, timeout).
        retryable: Whether ``with_retry`` is allowed to try the call again.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retryable: bool = True,
    ) -> None:
        self.status = status
        self.retryable = retryable
        super().__init__(message)


class RateLimitError(RemoteStoreError):
    """The store answered 429 Too Many Requests."""

    def __init__(self, message: str = "Too many requests") -> None:
        super().__init__(message, status=429, retryable=True)


class AuthorizationError(VaultError):
    """Base class for errors that require the user to sign in again."""


class TokenExpiredError(AuthorizationError):
    """No access token is available, or the cached one has expired."""


class AccessDeniedError(AuthorizationError):
    """The signed-in identity is not on the allow-list."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Access Denied: Email {email} is not authorized.")


class PermissionDeniedError(AuthorizationError):
    """The token is valid but cannot read or write the spreadsheet (401/403)."""

    def __init__(self, message: str = PERMISSION_DENIED_MESSAGE) -> None:
        super().__init__(message)


class ValidationError(VaultError, ValueError):
    """
    User input failed validation.

    Attributes:
        errors: Mapping of field name to a human-readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        details = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(f"Invalid input ({details})")


class ReferentialError(VaultError, LookupError):
    """An operation refers to a record or sheet that does not exist."""


class PartnerNotFoundError(ReferentialError):
    """Raised when a partner id cannot be resolved."""

    def __init__(self, partner_id: str) -> None:
        self.partner_id = partner_id
        super().__init__(f"Partner {partner_id} not found")

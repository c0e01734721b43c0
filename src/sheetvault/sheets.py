# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Remote store boundary: the Google Sheets REST API (v4).

The rest of the application only depends on the small ``SheetStore``
protocol defined here:

- ``get_values(range)``        read a range as a list of rows,
- ``append_values(range, ..)`` append rows after the last filled row,
- ``update_values(range, ..)`` overwrite a range,
- ``batch_update(requests)``   structural changes (add a sheet, delete rows),
- ``list_sheets()``            titles and numeric ids of the existing sheets.

``SheetsClient`` implements it over HTTPS with ``requests`` and a bearer
token. Every call goes through ``with_retry``:

- up to ``attempts`` tries (3 by default),
- the delay before retry *i* is ``base_delay * i`` seconds, doubled when
  the store answered 429 Too Many Requests,
- authorization failures (401 / 403) and other client errors are never
  retried,
- the last failure is re-raised to the caller unchanged.
"""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Protocol, TypeVar
from urllib.parse import quote

import requests

from .errors import (
    PermissionDeniedError,
    RateLimitError,
    RemoteStoreError,
    TokenExpiredError,
)

logger = logging.getLogger(__name__)

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_TIMEOUT = 30.0

T = TypeVar("T")


@dataclass(frozen=True)
class SheetInfo:
    """Title and numeric id of one sheet (tab) of the spreadsheet."""

    title: str
    sheet_id: int


class SheetStore(Protocol):
    """Operations the repository needs from the spreadsheet."""

    def get_values(self, range_: str) -> list[list[Any]]: ...

    def append_values(self, range_: str, values: Sequence[Sequence[Any]]) -> None: ...

    def update_values(self, range_: str, values: Sequence[Sequence[Any]]) -> None: ...

    def batch_update(self, requests_: Sequence[dict[str, Any]]) -> None: ...

    def list_sheets(self) -> list[SheetInfo]: ...


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


def with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` and retry it on transient remote-store errors.

    Only ``RemoteStoreError`` instances flagged ``retryable`` are retried.
    Anything else (authorization errors, programming errors) propagates on
    the first failure.

    Raises
    ------
    ValueError
        If ``attempts`` is lower than 1.
    RemoteStoreError
        The error raised by the last attempt.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except RemoteStoreError as exc:
            if not exc.retryable or attempt == attempts:
                raise

            delay = base_delay * attempt
            if exc.status == 429:
                delay *= 2

            logger.warning(
                "Sheets call failed (attempt %d/%d, status=%s): %s. "
                "Retrying in %.1fs",
                attempt,
                attempts,
                exc.status,
                exc,
                delay,
            )
            sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise RemoteStoreError("Max retries reached")


# ---------------------------------------------------------------------------
# Batch request builders
# ---------------------------------------------------------------------------


def add_sheet_request(title: str) -> dict[str, Any]:
    return {"addSheet": {"properties": {"title": title}}}


def delete_rows_request(sheet_id: int, start_index: int, end_index: int) -> dict[str, Any]:
    """Delete rows ``[start_index, end_index)`` (zero-based, header is row 0)."""
    return {
        "deleteDimension": {
            "range": {
                "sheetId": sheet_id,
                "dimension": "ROWS",
                "startIndex": start_index,
                "endIndex": end_index,
            }
        }
    }


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


def _raise_for_status(response: requests.Response) -> None:
    """Translate an HTTP error response into the SheetVault error taxonomy."""
    status = response.status_code
    if status < 400:
        return

    try:
        payload = response.json()
        message = payload.get("error", {}).get("message") or response.text
    except ValueError:
        message = response.text

    if status == 429:
        raise RateLimitError(f"Sheets API rate limit: {message}")
    if status == 401:
        raise TokenExpiredError(f"Access token rejected by the Sheets API: {message}")
    if status == 403:
        raise PermissionDeniedError()
    if status >= 500:
        raise RemoteStoreError(f"Sheets API error {status}: {message}", status=status)

    raise RemoteStoreError(
        f"Sheets API error {status}: {message}",
        status=status,
        retryable=False,
    )


class SheetsClient:
    """
    ``SheetStore`` implementation over the Google Sheets REST API.

    Parameters
    ----------
    spreadsheet_id:
        Identifier of the spreadsheet document.
    access_token:
        OAuth2 bearer token carrying the spreadsheets scope.
    session:
        Optional ``requests.Session`` (or compatible object). Tests pass a
        fake one; a new session is created otherwise.
    api_base:
        Base URL of the spreadsheets collection.
    attempts, base_delay, sleep:
        Retry policy (see ``with_retry``).
    """

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        api_base: str = SHEETS_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not spreadsheet_id:
            raise ValueError("A spreadsheet id is required.")

        self.spreadsheet_id = spreadsheet_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.attempts = attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            }
        )

    # -- internals ---------------------------------------------------------

    def _url(self, suffix: str = "") -> str:
        return f"{self.api_base}/{self.spreadsheet_id}{suffix}"

    def _values_url(self, range_: str, action: str = "") -> str:
        return self._url(f"/values/{quote(range_, safe='')}{action}")

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            try:
                response = self._session.request(
                    method, url, timeout=self.timeout, **kwargs
                )
            except requests.RequestException as exc:
                raise RemoteStoreError(f"Sheets API unreachable: {exc}") from exc

            _raise_for_status(response)
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteStoreError(
                    f"Sheets API returned a non-JSON body: {response.text[:200]}",
                    status=response.status_code,
                    retryable=False,
                ) from exc

        return with_retry(
            call,
            attempts=self.attempts,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )

    # -- SheetStore --------------------------------------------------------

    def get_values(self, range_: str) -> list[list[Any]]:
        payload = self._request("GET", self._values_url(range_))
        return payload.get("values") or []

    def append_values(self, range_: str, values: Sequence[Sequence[Any]]) -> None:
        self._request(
            "POST",
            self._values_url(range_, ":append"),
            params={
                "valueInputOption": "USER_ENTERED",
                "insertDataOption": "INSERT_ROWS",
            },
            json={"values": [list(row) for row in values]},
        )

    def update_values(self, range_: str, values: Sequence[Sequence[Any]]) -> None:
        self._request(
            "PUT",
            self._values_url(range_),
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": [list(row) for row in values]},
        )

    def batch_update(self, requests_: Sequence[dict[str, Any]]) -> None:
        self._request(
            "POST",
            self._url(":batchUpdate"),
            json={"requests": list(requests_)},
        )

    def list_sheets(self) -> list[SheetInfo]:
        payload = self._request(
            "GET",
            self._url(),
            params={"fields": "sheets.properties(sheetId,title)"},
        )
        sheets: list[SheetInfo] = []
        for sheet in payload.get("sheets") or []:
            props = sheet.get("properties") or {}
            sheets.append(
                SheetInfo(
                    title=str(props.get("title", "")),
                    sheet_id=int(props.get("sheetId", 0)),
                )
            )
        return sheets

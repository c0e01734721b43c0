# SheetVault - Financial dashboard for small partnerships, backed by Google Sheets
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SheetVault.

This module is responsible for:
- loading the application configuration from a TOML file,
- applying environment overrides (spreadsheet id),
- exposing typed dataclasses used by the rest of the application.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .auth import DEFAULT_EXPIRY_BUFFER_SECONDS, USERINFO_URL
from .cache import DEFAULT_TTL_SECONDS
from .sheets import DEFAULT_ATTEMPTS, DEFAULT_BASE_DELAY, SHEETS_API_BASE

SPREADSHEET_ID_ENV = "SHEETVAULT_SPREADSHEET_ID"
DEFAULT_CONFIG_FILE = "sheetvault_config.toml"


@dataclass(frozen=True)
class DefaultPartner:
    """Partner row written when the Partners sheet is provisioned empty."""

    partner_id: str
    name: str
    email: str = ""


DEFAULT_PARTNERS: tuple[DefaultPartner, ...] = (
    DefaultPartner("P001", "Partner 1"),
    DefaultPartner("P002", "Partner 2"),
    DefaultPartner("P003", "Business Account"),
)


@dataclass(frozen=True)
class SpreadsheetConfig:
    """Where the data lives."""

    spreadsheet_id: str
    api_base: str = SHEETS_API_BASE


@dataclass(frozen=True)
class AuthConfig:
    """Allow-list and token persistence."""

    allowed_emails: tuple[str, ...]
    token_file: Path
    expiry_buffer_seconds: float = DEFAULT_EXPIRY_BUFFER_SECONDS
    userinfo_url: str = USERINFO_URL


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = DEFAULT_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY


@dataclass(frozen=True)
class CompanyConfig:
    name: str = "Arneor Labs"
    currency: str = "INR"
    currency_symbol: str = "₹"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SheetVault.

    This aggregates:
    - the spreadsheet location,
    - authorization settings (allow-list, token file),
    - cache, retry and background refresh timings,
    - company / currency information,
    - default partners used when provisioning an empty spreadsheet,
    - display and logging options for the CLI.
    """

    spreadsheet: SpreadsheetConfig
    auth: AuthConfig
    cache_ttl_seconds: float
    retry: RetryConfig
    refresh_interval_seconds: float
    company: CompanyConfig
    default_partners: tuple[DefaultPartner, ...]
    display_mode: str
    decimals: int
    output_dir: Path
    log_level: str = "WARNING"
    extra: dict[str, Any] = field(default_factory=dict)


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a sub-table, or an empty mapping when missing or malformed."""
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_default_partners(raw: Mapping[str, Any]) -> tuple[DefaultPartner, ...]:
    """
    Read ``[[partners.defaults]]`` entries.

    Entries without an id or a name are skipped. When nothing usable is
    configured, the built-in three-partner layout is used.
    """
    partners_section = _section(raw, "partners")
    entries = partners_section.get("defaults") or []
    if not isinstance(entries, list):
        return DEFAULT_PARTNERS

    partners: list[DefaultPartner] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        partner_id = str(entry.get("id") or "").strip()
        name = str(entry.get("name") or "").strip()
        if not partner_id or not name:
            continue
        partners.append(
            DefaultPartner(
                partner_id=partner_id,
                name=name,
                email=str(entry.get("email") or ""),
            )
        )

    return tuple(partners) or DEFAULT_PARTNERS


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SheetVault application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [spreadsheet]
        ``id`` of the Google Sheets document (mandatory unless the
        SHEETVAULT_SPREADSHEET_ID environment variable is set, which wins)
        and optional ``api_base``.

    [auth]
        ``allowed_emails`` (list), ``token_file``, ``expiry_buffer_seconds``,
        ``userinfo_url``. An empty allow-list denies everyone.

    [cache]
        ``ttl_seconds`` of the read cache (default 30).

    [retry]
        ``attempts`` (default 3) and ``base_delay_seconds`` (default 1.0).

    [refresh]
        ``interval_seconds`` of the background refresh (default 30).

    [company]
        ``name``, ``currency``, ``currency_symbol``.

    [[partners.defaults]]
        ``id``, ``name``, ``email`` of the partners created when the
        spreadsheet is provisioned with an empty Partners sheet.

    [display]
        ``mode`` ("table" | "csv" | "both"), ``decimals``, ``output_dir``.

    [logging]
        ``level`` (default "WARNING").

    All file paths in the TOML are resolved relative to the directory of
    the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        ``sheetvault_config.toml`` in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If the file cannot be parsed or no spreadsheet id is configured.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Spreadsheet
    spreadsheet_section = _section(raw, "spreadsheet")
    spreadsheet_id = os.environ.get(SPREADSHEET_ID_ENV) or str(
        spreadsheet_section.get("id") or ""
    )
    if not spreadsheet_id:
        raise ValueError(
            "No spreadsheet configured. Set [spreadsheet].id in the configuration "
            f"file or the {SPREADSHEET_ID_ENV} environment variable."
        )
    spreadsheet = SpreadsheetConfig(
        spreadsheet_id=spreadsheet_id,
        api_base=str(spreadsheet_section.get("api_base") or SHEETS_API_BASE),
    )

    # 2) Authorization
    auth_section = _section(raw, "auth")
    raw_allowed = auth_section.get("allowed_emails") or []
    if isinstance(raw_allowed, str):
        raw_allowed = [raw_allowed]
    allowed_emails = tuple(str(e) for e in raw_allowed if str(e).strip())

    token_file_raw = auth_section.get("token_file") or "data/token.json"
    auth = AuthConfig(
        allowed_emails=allowed_emails,
        token_file=(base_dir / str(token_file_raw)).resolve(),
        expiry_buffer_seconds=_as_float(
            auth_section.get("expiry_buffer_seconds"), DEFAULT_EXPIRY_BUFFER_SECONDS
        ),
        userinfo_url=str(auth_section.get("userinfo_url") or USERINFO_URL),
    )

    # 3) Cache, retry, refresh
    cache_ttl = _as_float(_section(raw, "cache").get("ttl_seconds"), DEFAULT_TTL_SECONDS)

    retry_section = _section(raw, "retry")
    retry = RetryConfig(
        attempts=max(1, _as_int(retry_section.get("attempts"), DEFAULT_ATTEMPTS)),
        base_delay_seconds=_as_float(
            retry_section.get("base_delay_seconds"), DEFAULT_BASE_DELAY
        ),
    )

    refresh_interval = _as_float(
        _section(raw, "refresh").get("interval_seconds"), 30.0
    )

    # 4) Company
    company_section = _section(raw, "company")
    company = CompanyConfig(
        name=str(company_section.get("name") or CompanyConfig.name),
        currency=str(company_section.get("currency") or CompanyConfig.currency),
        currency_symbol=str(
            company_section.get("currency_symbol") or CompanyConfig.currency_symbol
        ),
    )

    # 5) Display options
    display_section = _section(raw, "display")
    display_mode = str(display_section.get("mode", "table"))
    decimals = _as_int(display_section.get("decimals", 2), 2)
    output_dir_raw = display_section.get("output_dir") or "data/output"

    # 6) Logging
    log_level = str(_section(raw, "logging").get("level") or "WARNING").upper()

    known = {
        "spreadsheet",
        "auth",
        "cache",
        "retry",
        "refresh",
        "company",
        "partners",
        "display",
        "logging",
    }

    return AppConfig(
        spreadsheet=spreadsheet,
        auth=auth,
        cache_ttl_seconds=cache_ttl,
        retry=retry,
        refresh_interval_seconds=refresh_interval,
        company=company,
        default_partners=_parse_default_partners(raw),
        display_mode=display_mode,
        decimals=decimals,
        output_dir=(base_dir / str(output_dir_raw)).resolve(),
        log_level=log_level,
        extra={k: v for k, v in raw.items() if k not in known},
    )

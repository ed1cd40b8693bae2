"""Agenda service configuration loading and validation.

Reads ``agenda.toml``, resolves ``${VAR}`` references from the environment,
parses all sections, and returns a validated ``AgendaConfig`` dataclass.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("agenda.toml")
DEFAULT_PORT = 40300

# Matches ${VAR_NAME}; alphanumeric and underscore names only.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DB_SCHEMA_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    """Raised when the agenda configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [agenda.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class CalendarConfig:
    """Unified calendar settings from [agenda.calendar].

    ``fetch_timeout_s`` bounds the concurrent source fetches of one request;
    ``0`` disables the limit.
    """

    timezone: str = "UTC"
    fetch_timeout_s: float = 10.0

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class AuthConfig:
    """[agenda.auth]: trusted gateway headers are off unless enabled."""

    trusted_headers: bool = False


@dataclass
class AgendaConfig:
    """Parsed and validated agenda configuration."""

    name: str = "agenda"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    db_name: str = "erp"
    db_schema: str | None = None
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_db(section: dict) -> tuple[str, str | None]:
    db_name = str(section.get("name", "erp")).strip()
    if not db_name:
        raise ConfigError("agenda.db.name must be a non-empty string")

    raw_schema = section.get("schema")
    if raw_schema is None:
        return db_name, None
    if not isinstance(raw_schema, str) or not raw_schema.strip():
        raise ConfigError("agenda.db.schema must be a non-empty string when set")
    schema = raw_schema.strip()
    if _DB_SCHEMA_PATTERN.fullmatch(schema) is None:
        raise ConfigError(
            f"Invalid agenda.db.schema: {raw_schema!r}. "
            "Expected a valid SQL identifier-style value."
        )
    return db_name, schema


def _parse_calendar(section: dict) -> CalendarConfig:
    timezone = str(section.get("timezone", "UTC")).strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Invalid agenda.calendar.timezone: {timezone!r}") from exc

    try:
        timeout = float(section.get("fetch_timeout_s", 10.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError("agenda.calendar.fetch_timeout_s must be a number") from exc
    if timeout < 0:
        raise ConfigError(
            f"Invalid agenda.calendar.fetch_timeout_s: {timeout!r}. Must be >= 0 (0 disables)."
        )
    return CalendarConfig(timezone=timezone, fetch_timeout_s=timeout)


def _parse_auth(section: dict) -> AuthConfig:
    trusted = section.get("trusted_headers", False)
    if not isinstance(trusted, bool):
        raise ConfigError(
            f"agenda.auth.trusted_headers must be a TOML boolean, got {trusted!r}"
        )
    return AuthConfig(trusted_headers=trusted)


def _parse_logging(section: dict) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"Invalid agenda.logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(level=level, format=fmt, log_root=section.get("log_root"))


def parse_config(data: dict[str, Any]) -> AgendaConfig:
    """Validate an already-decoded TOML document."""
    data = resolve_env_vars(data)

    section = data.get("agenda")
    if not isinstance(section, dict):
        raise ConfigError("Missing [agenda] section in config")

    try:
        port = int(section.get("port", DEFAULT_PORT))
    except (TypeError, ValueError) as exc:
        raise ConfigError("agenda.port must be an integer") from exc

    db_name, db_schema = _parse_db(section.get("db", {}))

    raw_origins = section.get("cors", {}).get("origins", ["http://localhost:3000"])
    if not isinstance(raw_origins, list) or not all(isinstance(o, str) for o in raw_origins):
        raise ConfigError("agenda.cors.origins must be a list of strings")

    return AgendaConfig(
        name=str(section.get("name", "agenda")),
        host=str(section.get("host", "0.0.0.0")),
        port=port,
        db_name=db_name,
        db_schema=db_schema,
        calendar=_parse_calendar(section.get("calendar", {})),
        auth=_parse_auth(section.get("auth", {})),
        cors_origins=raw_origins,
        logging=_parse_logging(section.get("logging", {})),
    )


def load_config(path: Path) -> AgendaConfig:
    """Load and validate the TOML file at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or has invalid values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    return parse_config(data)


def config_path_from_env() -> Path:
    """Return the config path named by ``AGENDA_CONFIG`` (default ``agenda.toml``)."""
    return Path(os.environ.get("AGENDA_CONFIG", str(DEFAULT_CONFIG_PATH)))


def load_config_or_default(path: Path | None = None) -> AgendaConfig:
    """Like ``load_config`` but a missing file yields the defaults."""
    path = path or config_path_from_env()
    if not path.exists():
        logger.warning("Config file %s not found; using defaults", path)
        return AgendaConfig()
    return load_config(path)

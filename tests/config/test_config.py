"""Tests for agenda.toml loading, env-var resolution, and validation."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from agenda.config import (
    DEFAULT_PORT,
    AgendaConfig,
    ConfigError,
    load_config,
    load_config_or_default,
    parse_config,
    resolve_env_vars,
)

pytestmark = pytest.mark.unit


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "agenda.toml"
    path.write_text(content)
    return path


class TestLoadConfig:
    def test_full_file(self, tmp_path: Path):
        path = _write(
            tmp_path,
            """
[agenda]
name = "agenda-eu"
port = 41000

[agenda.db]
name = "erp_eu"
schema = "erp"

[agenda.calendar]
timezone = "Europe/Paris"
fetch_timeout_s = 2.5

[agenda.auth]
trusted_headers = true

[agenda.cors]
origins = ["https://erp.example.com"]

[agenda.logging]
level = "debug"
format = "JSON"
log_root = "/var/log"
""",
        )
        config = load_config(path)

        assert config.name == "agenda-eu"
        assert config.port == 41000
        assert config.db_name == "erp_eu"
        assert config.db_schema == "erp"
        assert config.calendar.timezone == "Europe/Paris"
        assert config.calendar.tzinfo == ZoneInfo("Europe/Paris")
        assert config.calendar.fetch_timeout_s == 2.5
        assert config.auth.trusted_headers is True
        assert config.cors_origins == ["https://erp.example.com"]
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.logging.log_root == "/var/log"

    def test_minimal_file_uses_defaults(self, tmp_path: Path):
        config = load_config(_write(tmp_path, "[agenda]\n"))

        assert config.port == DEFAULT_PORT
        assert config.db_name == "erp"
        assert config.db_schema is None
        assert config.calendar.timezone == "UTC"
        assert config.calendar.fetch_timeout_s == 10.0
        assert config.auth.trusted_headers is False

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(_write(tmp_path, "[agenda\n"))

    def test_missing_section(self, tmp_path: Path):
        with pytest.raises(ConfigError, match=r"\[agenda\]"):
            load_config(_write(tmp_path, "[other]\nname = 'x'\n"))


class TestValidation:
    def test_invalid_timezone(self):
        with pytest.raises(ConfigError, match="timezone"):
            parse_config({"agenda": {"calendar": {"timezone": "Mars/Olympus"}}})

    def test_negative_timeout(self):
        with pytest.raises(ConfigError, match="fetch_timeout_s"):
            parse_config({"agenda": {"calendar": {"fetch_timeout_s": -1}}})

    def test_zero_timeout_disables(self):
        config = parse_config({"agenda": {"calendar": {"fetch_timeout_s": 0}}})
        assert config.calendar.fetch_timeout_s == 0

    def test_non_numeric_port(self):
        with pytest.raises(ConfigError, match="port"):
            parse_config({"agenda": {"port": "eighty"}})

    def test_invalid_schema(self):
        with pytest.raises(ConfigError, match="schema"):
            parse_config({"agenda": {"db": {"schema": "erp; DROP TABLE users"}}})

    def test_invalid_log_format(self):
        with pytest.raises(ConfigError, match="format"):
            parse_config({"agenda": {"logging": {"format": "xml"}}})

    def test_cors_origins_must_be_strings(self):
        with pytest.raises(ConfigError, match="origins"):
            parse_config({"agenda": {"cors": {"origins": "http://a"}}})


class TestEnvVars:
    def test_resolves_nested_values(self, monkeypatch):
        monkeypatch.setenv("AGENDA_DB", "erp_prod")
        resolved = resolve_env_vars(
            {"db": {"name": "${AGENDA_DB}"}, "port": 1, "tags": ["${AGENDA_DB}"]}
        )
        assert resolved == {"db": {"name": "erp_prod"}, "port": 1, "tags": ["erp_prod"]}

    def test_missing_variables_are_reported_together(self, monkeypatch):
        monkeypatch.delenv("AGENDA_A", raising=False)
        monkeypatch.delenv("AGENDA_B", raising=False)
        with pytest.raises(ConfigError, match="AGENDA_A, AGENDA_B"):
            resolve_env_vars("${AGENDA_A}-${AGENDA_B}")

    def test_config_file_with_env_reference(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("AGENDA_TZ", "America/Toronto")
        path = _write(tmp_path, '[agenda.calendar]\ntimezone = "${AGENDA_TZ}"\n')
        assert load_config(path).calendar.timezone == "America/Toronto"


class TestLoadConfigOrDefault:
    def test_missing_file_gives_defaults(self, tmp_path: Path, caplog):
        with caplog.at_level("WARNING", logger="agenda.config"):
            config = load_config_or_default(tmp_path / "absent.toml")
        assert config == AgendaConfig()
        assert "using defaults" in caplog.text

    def test_reads_path_from_env(self, tmp_path: Path, monkeypatch):
        path = _write(tmp_path, '[agenda]\nname = "from-env"\n')
        monkeypatch.setenv("AGENDA_CONFIG", str(path))
        assert load_config_or_default().name == "from-env"

    def test_invalid_file_still_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config_or_default(_write(tmp_path, "not toml ["))


class TestTrustedHeaders:
    def test_defaults_to_off(self):
        assert parse_config({"agenda": {}}).auth.trusted_headers is False

    @pytest.mark.parametrize("value", ["false", "true", 1, 0])
    def test_non_boolean_rejected(self, value):
        with pytest.raises(ConfigError, match="trusted_headers"):
            parse_config({"agenda": {"auth": {"trusted_headers": value}}})

    def test_env_reference_is_a_string_and_rejected(self, monkeypatch):
        monkeypatch.setenv("AGENDA_TRUST", "false")
        with pytest.raises(ConfigError, match="trusted_headers"):
            parse_config({"agenda": {"auth": {"trusted_headers": "${AGENDA_TRUST}"}}})

    def test_shipped_config_does_not_trust_headers(self):
        shipped = Path(__file__).resolve().parents[2] / "agenda.toml"
        assert load_config(shipped).auth.trusted_headers is False

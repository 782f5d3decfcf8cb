"""
Tests for configuration loading and logging setup.
"""

import json
import logging
from pathlib import Path

import pytest

from src.utils.config_loader import AppConfig, PathsConfig, get_env_var, load_config, load_env
from src.utils.logging_config import JSONFormatter, TextFormatter, log_event, setup_logging


class TestConfigLoader:
    """Tests for load_config."""

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test defaults when no file exists."""
        config = load_config(tmp_path / "missing.yaml")

        assert config == AppConfig()
        assert config.rates.cache_ttl_seconds == 900
        assert config.location.cache_ttl_seconds == 3600
        assert config.notifications.enabled is False

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == AppConfig()

    def test_sections_override_defaults(self, tmp_path: Path) -> None:
        """Test values from YAML replace defaults section by section."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "rates:\n"
            "  timeout_seconds: 3\n"
            "server:\n"
            "  port: 9000\n"
            "  form_rpm: 2\n"
        )

        config = load_config(path)

        assert config.rates.timeout_seconds == 3
        assert config.rates.cache_ttl_seconds == 900
        assert config.server.port == 9000
        assert config.server.form_rpm == 2
        assert config.zoho.payment_terms_days == 30

    def test_unknown_keys_ignored(self, tmp_path: Path, caplog) -> None:
        """Test unknown keys are logged and dropped."""
        path = tmp_path / "config.yaml"
        path.write_text("location:\n  api_url: https://geo.example/json/\n  colour: blue\n")

        with caplog.at_level(logging.WARNING):
            config = load_config(path)

        assert config.location.api_url == "https://geo.example/json/"
        assert "colour" in caplog.text

    def test_repository_config_loads(self) -> None:
        """Test the shipped config file parses."""
        config = load_config(Path(__file__).parent.parent / "config" / "config.yaml")
        assert config.server.title == "Mechinweb Portal API"
        assert config.location.address_url == "https://ipapi.co/{ip}/json/"
        assert config.paths.preferences_path == Path("data/store/user_preferences.json")

    def test_load_env(self, tmp_path: Path, monkeypatch) -> None:
        """Test .env values reach the environment."""
        monkeypatch.delenv("ZOHO_ORGANIZATION_ID", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("ZOHO_ORGANIZATION_ID=60099999\n")

        load_env(env_file)

        assert get_env_var("ZOHO_ORGANIZATION_ID") == "60099999"
        monkeypatch.delenv("ZOHO_ORGANIZATION_ID")

    def test_get_env_var_default(self, monkeypatch) -> None:
        monkeypatch.delenv("EMAIL_USER", raising=False)
        assert get_env_var("EMAIL_USER", "fallback") == "fallback"


class TestPathsConfig:
    """Tests for path resolution."""

    def test_store_files_under_data_dir(self) -> None:
        """Test relative store files resolve under data_dir."""
        paths = PathsConfig(data_dir="/srv/portal")

        assert paths.preferences_path == Path("/srv/portal/store/user_preferences.json")
        assert paths.clients_path == Path("/srv/portal/store/clients.json")
        assert paths.orders_path == Path("/srv/portal/store/orders.json")

    def test_absolute_store_file_kept(self, tmp_path: Path) -> None:
        """Test absolute store files ignore data_dir."""
        paths = PathsConfig(data_dir="data", clients_file=str(tmp_path / "clients.json"))
        assert paths.clients_path == tmp_path / "clients.json"

    def test_log_path(self) -> None:
        """Test the log file lives under logs_dir, and is off without a name."""
        paths = PathsConfig(logs_dir="/var/log/portal")

        assert paths.log_path("portal.log") == Path("/var/log/portal/portal.log")
        assert paths.log_path(None) is None


class TestLogging:
    """Tests for logging setup and structured events."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def _record(self, **fields) -> logging.LogRecord:
        record = logging.LogRecord("src.currency.rates", logging.WARNING, __file__, 10, "Using fallback", None, None)
        if fields:
            record.extra_fields = fields
        return record

    def test_json_formatter_merges_fields(self) -> None:
        """Test structured fields appear at the top level."""
        formatter = JSONFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

        data = json.loads(formatter.format(self._record(event="rates_fallback", fallback_count=30)))

        assert data["event"] == "rates_fallback"
        assert data["fallback_count"] == 30
        assert data["level"] == "WARNING"
        assert data["logger"] == "src.currency.rates"
        assert "extra_fields" not in data

    def test_text_formatter_appends_fields(self) -> None:
        """Test text output lists fields as key=value."""
        formatter = TextFormatter("%(levelname)s %(message)s")

        text = formatter.format(self._record(event="location_fallback", fallback_country="US"))

        assert text == "WARNING Using fallback [event=location_fallback fallback_country=US]"

    def test_text_formatter_without_fields(self) -> None:
        assert TextFormatter("%(message)s").format(self._record()) == "Using fallback"

    def test_log_event(self, caplog) -> None:
        """Test events carry their name and fields."""
        logger = logging.getLogger("tests.events")

        with caplog.at_level(logging.INFO, logger="tests.events"):
            log_event(logger, "rate_substituted", "Invalid rate", level=logging.WARNING, currency="XYZ")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.extra_fields == {"event": "rate_substituted", "currency": "XYZ"}

    def test_setup_logging_json_file(self, tmp_path: Path) -> None:
        """Test JSON output to a rotating file."""
        log_file = tmp_path / "logs" / "portal.log"

        setup_logging(level="DEBUG", log_format="json", log_file=log_file)
        logging.getLogger("tests.file").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(line["message"] == "hello" for line in lines)

    def test_setup_logging_replaces_handlers(self) -> None:
        """Test repeated setup does not stack handlers."""
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

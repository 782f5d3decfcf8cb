"""
Configuration loader module.

Loads application configuration from YAML files and environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class PathsConfig:
    """
    File path configuration.

    Relative store files are resolved under ``data_dir`` and a relative
    log file under ``logs_dir``. Absolute paths are used as given.
    """

    data_dir: str = "data"
    preferences_file: str = "store/user_preferences.json"
    clients_file: str = "store/clients.json"
    orders_file: str = "store/orders.json"
    logs_dir: str = "logs"

    @property
    def preferences_path(self) -> Path:
        return Path(self.data_dir) / self.preferences_file

    @property
    def clients_path(self) -> Path:
        return Path(self.data_dir) / self.clients_file

    @property
    def orders_path(self) -> Path:
        return Path(self.data_dir) / self.orders_file

    def log_path(self, log_file: str | None) -> Path | None:
        """Where ``logging.file`` is written, or None when file logging is off."""
        if not log_file:
            return None
        return Path(self.logs_dir) / log_file


@dataclass
class CurrencyConfig:
    """Currency table configuration."""

    # Optional override directory for the YAML tables shipped with the package
    tables_dir: str | None = None


@dataclass
class LocationConfig:
    """Geo-IP lookup configuration."""

    api_url: str = "https://ipapi.co/json/"
    # Lookup for an explicit visitor address; {ip} is replaced by the address
    address_url: str = "https://ipapi.co/{ip}/json/"
    timeout_seconds: int = 10
    cache_ttl_seconds: int = 60 * 60


@dataclass
class RatesConfig:
    """Exchange rate lookup configuration."""

    api_url: str = "https://api.exchangerate-api.com/v4/latest/USD"
    timeout_seconds: int = 10
    cache_ttl_seconds: int = 15 * 60


@dataclass
class ZohoConfig:
    """Zoho Invoice API configuration."""

    accounts_url: str = "https://accounts.zoho.com/oauth/v2/token"
    base_url: str = "https://invoice.zoho.com/api/v3"
    timeout: int = 30
    payment_terms_days: int = 30
    client_id_env: str = "ZOHO_CLIENT_ID"
    client_secret_env: str = "ZOHO_CLIENT_SECRET"
    refresh_token_env: str = "ZOHO_REFRESH_TOKEN"
    organization_id_env: str = "ZOHO_ORGANIZATION_ID"
    # Shared secret Zoho sends in the X-Zoho-Webhook-Token header; unset accepts any caller
    webhook_token_env: str = "ZOHO_WEBHOOK_TOKEN"


@dataclass
class NotificationsConfig:
    """Outbound email configuration."""

    enabled: bool = False
    smtp_host: str = "smtp.zoho.in"
    smtp_port: int = 587
    use_tls: bool = True
    sender: str = "contact@mechinweb.com"
    business_inbox: str = "contact@mechinweb.com"
    user_env: str = "EMAIL_USER"
    password_env: str = "EMAIL_PASSWORD"
    timeout: int = 30


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "text"
    file: str | None = None


@dataclass
class ServerConfig:
    """Web server configuration."""

    title: str = "Mechinweb Portal API"
    host: str = "127.0.0.1"
    port: int = 8000
    rate_limit_enabled: bool = True
    form_rpm: int = 5
    api_rpm: int = 60


@dataclass
class AppConfig:
    """
    Main application configuration.

    Aggregates all configuration sections into a single object.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    zoho: ZohoConfig = field(default_factory=ZohoConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_env(env_file: Path = Path(".env")) -> None:
    """
    Load environment variables from .env file.

    Args:
        env_file: Path to .env file.
    """
    if env_file.exists():
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from: {env_file}")
    else:
        logger.debug(f"No .env file found at: {env_file}")


def load_config(config_file: Path = Path("config/config.yaml")) -> AppConfig:
    """
    Load application configuration from YAML file.

    Args:
        config_file: Path to configuration YAML file.

    Returns:
        AppConfig: Loaded configuration object.

    Raises:
        yaml.YAMLError: If config file is invalid.
    """
    if not config_file.exists():
        logger.warning(f"Config file not found: {config_file}. Using defaults.")
        return AppConfig()

    with open(config_file, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return AppConfig()

    config = _parse_config(raw_config)
    logger.info(f"Loaded configuration from: {config_file}")
    return config


def _section(raw: dict[str, Any], cls: type, name: str) -> Any:
    """
    Build one dataclass section, ignoring unknown keys.

    Args:
        raw: Raw dictionary from YAML file.
        cls: Dataclass type for the section.
        name: Top-level key of the section.

    Returns:
        Instance of ``cls`` with values from YAML over its defaults.
    """
    section_raw = raw.get(name) or {}
    known = {k: v for k, v in section_raw.items() if k in cls.__dataclass_fields__}
    unknown = set(section_raw) - set(known)
    if unknown:
        logger.warning(f"Ignoring unknown keys in '{name}' config: {sorted(unknown)}")
    return cls(**known)


def _parse_config(raw: dict[str, Any]) -> AppConfig:
    """
    Parse raw YAML dict into AppConfig dataclass.

    Args:
        raw: Raw dictionary from YAML file.

    Returns:
        AppConfig: Parsed configuration object.
    """
    return AppConfig(
        paths=_section(raw, PathsConfig, "paths"),
        currency=_section(raw, CurrencyConfig, "currency"),
        location=_section(raw, LocationConfig, "location"),
        rates=_section(raw, RatesConfig, "rates"),
        zoho=_section(raw, ZohoConfig, "zoho"),
        notifications=_section(raw, NotificationsConfig, "notifications"),
        logging=_section(raw, LoggingConfig, "logging"),
        server=_section(raw, ServerConfig, "server"),
    )


def get_env_var(key: str, default: str | None = None) -> str | None:
    """
    Get an environment variable with optional default.

    Args:
        key: Environment variable name.
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(key, default)

"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev, .env files)
  - AWS Secrets Manager (aws-secret://name#key)
  - GCP Secret Manager (gcp-secret://name)

The four connectivity parameters (AppId, AppSecret, Username, Password) can
also be supplied directly by a host as a mapping, see
ConnectorConfig.from_parameters().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from partner_import.errors import ConfigurationError
from partner_import.secrets import SecretBuffer, resolve_database_url, resolve_secret_buffer

DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
DEFAULT_RESOURCE = "https://api.partnercenter.microsoft.com"
DEFAULT_API_BASE_URL = "https://api.partnercenter.microsoft.com"

# Host connectivity parameter names
APP_ID = "AppId"
APP_SECRET = "AppSecret"
USERNAME = "Username"
PASSWORD = "Password"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 4


@dataclass(frozen=True)
class ConnectorConfig:
    app_id: str
    app_secret: SecretBuffer
    username: str
    password: SecretBuffer
    authority: str = DEFAULT_AUTHORITY
    resource: str = DEFAULT_RESOURCE
    api_base_url: str = DEFAULT_API_BASE_URL
    page_size: int = 25
    http_timeout: float = 30.0

    @classmethod
    def from_parameters(
        cls,
        parameters: Mapping[str, str],
        **overrides,
    ) -> "ConnectorConfig":
        """Build from host connectivity parameters. Missing values are fatal."""
        values = {}
        for name in (APP_ID, APP_SECRET, USERNAME, PASSWORD):
            value = parameters.get(name)
            if not value:
                raise ConfigurationError(f"Expected parameter was not found: {name}")
            values[name] = value
        return cls(
            app_id=values[APP_ID],
            app_secret=resolve_secret_buffer(values[APP_SECRET]),
            username=values[USERNAME],
            password=resolve_secret_buffer(values[PASSWORD]),
            **overrides,
        )

    def clear_secrets(self) -> None:
        self.app_secret.clear()
        self.password.clear()


@dataclass(frozen=True)
class SchedulerConfig:
    import_interval_min: int = 60
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class ImportConfig:
    connector: Optional[ConnectorConfig] = None
    database: Optional[DatabaseConfig] = None
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def _int_env(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_connector_config() -> ConnectorConfig:
    """Load the Partner Center connectivity settings from the environment."""
    parameters = {
        APP_ID: os.environ.get("PARTNER_APP_ID", ""),
        APP_SECRET: os.environ.get("PARTNER_APP_SECRET", ""),
        USERNAME: os.environ.get("PARTNER_USERNAME", ""),
        PASSWORD: os.environ.get("PARTNER_PASSWORD", ""),
    }
    return ConnectorConfig.from_parameters(
        parameters,
        authority=os.environ.get("PARTNER_AUTHORITY", DEFAULT_AUTHORITY).rstrip("/"),
        resource=os.environ.get("PARTNER_RESOURCE", DEFAULT_RESOURCE),
        api_base_url=os.environ.get("PARTNER_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        page_size=_int_env("PARTNER_PAGE_SIZE", "25"),
        http_timeout=_float_env("PARTNER_HTTP_TIMEOUT", "30"),
    )


def load_config(with_database: bool = True, with_connector: bool = True) -> ImportConfig:
    """Load configuration from environment variables.

    In cloud environments, secrets are resolved via AWS Secrets Manager or
    GCP Secret Manager. Locally, plain env vars or .env files are used.
    Commands that only read the consumer store pass with_connector=False
    and need no Partner Center credentials.
    """
    load_dotenv()

    connector = load_connector_config() if with_connector else None

    database = None
    if with_database:
        database = DatabaseConfig(
            url=resolve_database_url(),
            min_connections=_int_env("DB_MIN_CONNECTIONS", "1"),
            max_connections=_int_env("DB_MAX_CONNECTIONS", "4"),
        )

    scheduler = SchedulerConfig(
        import_interval_min=_int_env("IMPORT_INTERVAL_MIN", "60"),
        misfire_grace_time=_int_env("IMPORT_MISFIRE_GRACE_TIME", "300"),
        max_retries=_int_env("IMPORT_MAX_RETRIES", "3"),
    )

    return ImportConfig(connector=connector, database=database, scheduler=scheduler)

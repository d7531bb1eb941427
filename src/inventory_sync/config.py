"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Currency rate provider connection settings."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    base_url: str = "https://api.freecurrencyapi.com/v1"
    api_key: SecretStr = SecretStr("")
    timeout_seconds: float = 30.0


class CurrencySettings(BaseSettings):
    """Currency history synchronization parameters.

    ``codes`` are seeded into the currency table at startup. The base
    currency is the provider pivot and never receives history rows.
    Set from the environment as a JSON list: CURRENCY_CODES='["USD","EUR"]'.
    """

    model_config = SettingsConfigDict(env_prefix="CURRENCY_")

    base_currency: str = "USD"
    codes: list[str] = ["USD", "EUR", "GBP", "JPY", "CHF", "AUD", "CAD"]
    sync_interval_seconds: float = 2700.0  # 45 minutes
    initial_delay_seconds: float = 10.0
    tick_timeout_seconds: float = 300.0


class AgentSettings(BaseSettings):
    """Remote agent scanning parameters.

    Certificate references stored on agent profiles are resolved
    relative to ``cert_dir``; ``ca_file`` is the CA bundle shared by all agents.
    """

    model_config = SettingsConfigDict(env_prefix="AGENT_")

    cert_dir: str = "certificate"
    ca_file: str = "ca.crt"
    timeout_seconds: float = 180.0  # agents may return long trade histories
    scan_interval_seconds: float = 3600.0  # one scheduler tick
    initial_delay_seconds: float = 2.0
    tick_timeout_seconds: float = 1800.0
    trade_topic: str = "runtime.trade"


class DatabaseSettings(BaseSettings):
    """SQLite persistence settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/inventory.db"


class MessagingSettings(BaseSettings):
    """In-process publication queue settings."""

    model_config = SettingsConfigDict(env_prefix="MESSAGING_")

    queue_size: int = 1000
    recent_size: int = 50  # publications kept for the status API
    put_timeout_seconds: float = 30.0
    drain_timeout_seconds: float = 5.0


class DashboardSettings(BaseSettings):
    """Status API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # LOG_FORMAT=json for one JSON object per line
    provider: ProviderSettings = ProviderSettings()
    currency: CurrencySettings = CurrencySettings()
    agent: AgentSettings = AgentSettings()
    database: DatabaseSettings = DatabaseSettings()
    messaging: MessagingSettings = MessagingSettings()
    dashboard: DashboardSettings = DashboardSettings()

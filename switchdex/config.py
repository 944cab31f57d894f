"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Storage
    data_dir: str = "data"
    catalog_path: str = ""  # Empty = bundled switchdex/data/catalog.json
    backup_keep: int = 5  # Backups retained per logical file
    history_max_entries: int = 100

    # Discord
    discord_bot_token: str = ""
    discord_api_base: str = "https://discord.com/api/v10"
    log_channel_id: str = ""  # Operator alert channel

    # GitHub
    github_token: str = ""
    github_api_base: str = "https://api.github.com"

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_max_bytes: int = 5_000_000  # Rotate app.log/error.log past this size
    log_backup_count: int = 3
    app_host: str = "0.0.0.0"
    app_port: int = 8002
    admin_api_key: str = ""

    # Scheduler
    check_interval_minutes: int = 30
    min_interval_minutes: int = 1
    max_interval_minutes: int = 1440
    misfire_grace_seconds: int = 600

    # Fetching
    request_timeout_seconds: float = 15.0
    inter_call_delay_seconds: float = 1.5  # Pause between adapter calls
    host_min_interval_seconds: float = 2.0  # Minimum spacing per external host
    rate_limit_cooldown_seconds: float = 120.0  # Host back-off after a rate-limit response
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Deduplication
    dedupe_window_minutes: int = 60
    dedupe_retention_multiplier: float = 2.0

    # Detection behaviour
    announce_initial_versions: bool = False
    ignore_version_regressions: bool = False  # Opt-in: keep the higher stored version
    reliability_weighting: bool = False

    # Source health / alerting
    source_health_window: int = 50  # Rolling outcomes kept per source
    source_failure_alert_threshold: int = 5
    alert_cooldown_minutes: int = 30

    model_config = SettingsConfigDict(
        env_prefix="SWITCHDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

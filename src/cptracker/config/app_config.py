"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml
with fallback to built-in defaults. Secrets are never stored in the
file itself: they are read from environment variables named in the
config (or the defaults below).

Usage:
    from cptracker.config.app_config import load_app_config

    config = load_app_config()
    secret = config.sync.get_cron_secret()
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")


@dataclass
class DatabaseConfig:
    """SQLite database location."""

    path: str = "db/cptracker.db"
    path_env: str | None = "DATABASE_PATH"

    def get_path(self) -> Path:
        """Resolve database path, environment override first."""
        if self.path_env and os.environ.get(self.path_env):
            return Path(os.environ[self.path_env])
        return Path(self.path)


@dataclass
class JudgeConfig:
    """Configuration for the Codeforces API client."""

    base_url: str = "https://codeforces.com/api"
    timeout: float = 30.0
    submissions_limit: int = 1000


@dataclass
class EmailConfig:
    """Configuration for outbound reminder email."""

    from_address: str = "onboarding@resend.dev"
    api_key_env: str | None = "RESEND_API_KEY"
    from_address_env: str | None = "EMAIL_FROM"

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    def get_from_address(self) -> str:
        """Sender address, environment override first."""
        if self.from_address_env and os.environ.get(self.from_address_env):
            return os.environ[self.from_address_env]
        return self.from_address


@dataclass
class SyncConfig:
    """Configuration for the sync pipeline and its trigger."""

    resync_after_hours: int = 24
    inactivity_days: int = 7
    settings_poll_seconds: int = 60
    cron_secret_env: str | None = "CRON_SECRET"

    def get_cron_secret(self) -> str | None:
        """Get trigger secret from environment variable."""
        if self.cron_secret_env:
            return os.environ.get(self.cron_secret_env) or None
        return None


@dataclass
class AppConfig:
    """Application-wide configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    judge: JudgeConfig = field(default_factory=JudgeConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "database": {
            "path": "db/cptracker.db",
            "path_env": "DATABASE_PATH",
        },
        "judge": {
            "base_url": "https://codeforces.com/api",
            "timeout": 30.0,
            "submissions_limit": 1000,
        },
        "email": {
            "from_address": "onboarding@resend.dev",
            "api_key_env": "RESEND_API_KEY",
            "from_address_env": "EMAIL_FROM",
        },
        "sync": {
            "resync_after_hours": 24,
            "inactivity_days": 7,
            "settings_poll_seconds": 60,
            "cron_secret_env": "CRON_SECRET",
        },
    }


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge each config section over its defaults."""
    result = {}
    for section, values in defaults.items():
        merged = dict(values)
        merged.update(overrides.get(section) or {})
        result[section] = merged
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    db = data["database"]
    judge = data["judge"]
    email = data["email"]
    sync = data["sync"]

    return AppConfig(
        database=DatabaseConfig(path=db["path"], path_env=db.get("path_env")),
        judge=JudgeConfig(
            base_url=judge["base_url"].rstrip("/"),
            timeout=float(judge["timeout"]),
            submissions_limit=int(judge["submissions_limit"]),
        ),
        email=EmailConfig(
            from_address=email["from_address"],
            api_key_env=email.get("api_key_env"),
            from_address_env=email.get("from_address_env"),
        ),
        sync=SyncConfig(
            resync_after_hours=int(sync["resync_after_hours"]),
            inactivity_days=int(sync["inactivity_days"]),
            settings_poll_seconds=int(sync["settings_poll_seconds"]),
            cron_secret_env=sync.get("cron_secret_env"),
        ),
    )


def load_app_config(
    config_path: Path | None = None,
    force_reload: bool = False,
) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        config_path: Explicit YAML file. Defaults to CONFIG_FILE.
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload and config_path is None:
        return _cached_config

    path = config_path or CONFIG_FILE
    defaults = _get_defaults()

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        data = _merge(defaults, loaded)
    else:
        logger.info("using_default_config")
        data = defaults

    config = _parse_config(data)
    if config_path is None:
        _cached_config = config
    return config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None

"""Configuration package for the progress tracker."""

from cptracker.config.app_config import (
    AppConfig,
    DatabaseConfig,
    EmailConfig,
    JudgeConfig,
    SyncConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "EmailConfig",
    "JudgeConfig",
    "SyncConfig",
    "clear_config_cache",
    "load_app_config",
]

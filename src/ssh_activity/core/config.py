"""
Configuration management for the SSH activity monitor.

Uses Pydantic Settings for environment variable validation and type safety.
An optional YAML file can be layered on top of the environment.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigError


class AuditConfig(BaseSettings):
    """Audit subsystem query configuration."""

    ausearch_path: str = Field(
        default="ausearch",
        description="ausearch binary name or absolute path"
    )
    key: str = Field(
        default="ssh_fs",
        description="Audit rule key tagging monitored file syscalls"
    )
    query_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds before an ausearch query is abandoned"
    )
    remote_shell_exe: str = Field(
        default="sshd",
        description="Login process identifying remote shell sessions"
    )

    class Config:
        env_prefix = "AUDIT_"


class MonitorConfig(BaseSettings):
    """Poll loop and output configuration."""

    log_path: str = Field(
        default="/var/log/ssh_file_activity.log",
        description="Append-only activity log"
    )
    state_path: str = Field(
        default="/var/lib/ssh-file-activity.state",
        description="File holding the processing cursor"
    )
    poll_interval: float = Field(
        default=2.0,
        gt=0.0,
        description="Seconds between poll cycles"
    )
    lookback_minutes: int = Field(
        default=10,
        ge=1,
        description="Window queried on first run, when no cursor is saved"
    )
    delivery_mode: Literal["at_least_once", "dedup"] = Field(
        default="at_least_once",
        description="at_least_once may repeat a few entries after a restart; "
        "dedup suppresses entries whose audit event was already written"
    )
    dedup_db_path: str = Field(
        default="/var/lib/ssh-file-activity.dedup.db",
        description="SQLite index of written event digests (dedup mode)"
    )
    dedup_retention_hours: int = Field(
        default=24,
        ge=1,
        description="How long event digests are remembered"
    )

    class Config:
        env_prefix = "MONITOR_"


class AppConfig(BaseSettings):
    """Main application configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Nested configurations
    audit: AuditConfig = Field(default_factory=AuditConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Lazily loads configuration on first access.

    Returns:
        AppConfig: The global configuration instance
    """
    global _config
    if _config is None:
        _config = AppConfig(
            audit=AuditConfig(),
            monitor=MonitorConfig(),
        )
    return _config


def reload_config() -> AppConfig:
    """
    Reload configuration from environment variables.

    Useful for testing or when environment changes.

    Returns:
        AppConfig: The reloaded configuration instance
    """
    global _config
    _config = None
    return get_config()


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Build configuration from the environment plus an optional YAML file.

    Values in the file override environment values. Example:

        log_level: DEBUG
        audit:
          key: ssh_fs
          query_timeout: 15
        monitor:
          log_path: /var/log/ssh_file_activity.log
          delivery_mode: dedup

    Args:
        path: YAML file; None returns the environment-only configuration

    Raises:
        ConfigError: If the file is unreadable or holds invalid values
    """
    global _config
    if path is None:
        return reload_config()

    try:
        with open(path, "r") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        audit = AuditConfig(**(data.get("audit") or {}))
        monitor = MonitorConfig(**(data.get("monitor") or {}))
        extra = {"log_level": data["log_level"]} if "log_level" in data else {}
        _config = AppConfig(audit=audit, monitor=monitor, **extra)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    return _config

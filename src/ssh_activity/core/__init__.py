"""
Core configuration and exceptions.
"""

from .config import AppConfig, AuditConfig, MonitorConfig, get_config, load_config, reload_config
from .exceptions import ActivityMonitorError, AuditToolMissingError, ConfigError

__all__ = [
    "AppConfig",
    "AuditConfig",
    "MonitorConfig",
    "get_config",
    "load_config",
    "reload_config",
    "ActivityMonitorError",
    "AuditToolMissingError",
    "ConfigError",
]
